"""
Symptoms service for the Symptom Tracker.
"""

from typing import Any, Dict, List

from shared.base_service import BaseService

from .cache.coordinator import CacheAsideCoordinator
from .cache.redis_cache import RedisCache
from .insights.client import InsightClient
from .models import (
    InsightResponse, Symptom, SymptomCreate, SymptomDeleted, SymptomUpdate, TrendPoint
)
from .persistence.postgres import PostgreSQLSymptomStore


class SymptomsService(BaseService):
    """Symptoms service implementation."""

    def __init__(self, **config_overrides: Any):
        super().__init__("symptoms", 5000, **config_overrides)

        self.persistence = PostgreSQLSymptomStore(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool_size,
            max_size=self.config.postgres_max_pool_size,
            command_timeout=self.config.postgres_command_timeout,
        )
        self.cache = RedisCache(self.config.redis_url)
        self.insight_client = InsightClient(
            self.config.insight_api_url,
            self.config.insight_api_key,
            self.config.insight_model,
            timeout=self.config.insight_timeout_seconds,
        )
        self.coordinator = CacheAsideCoordinator(
            self.persistence,
            self.cache,
            self.insight_client,
            ttl_seconds=self.config.cache_ttl_seconds,
            metrics=self.metrics,
        )

        self._setup_symptoms_routes()

    def _setup_symptoms_routes(self):
        """Set up symptoms-specific routes.

        Typed failures raised by the coordinator are mapped to HTTP status
        codes by the base service's exception handler.
        """

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "symptoms",
                "message": "Symptom Tracker - Symptoms Service",
                "version": "1.0.0",
                "capabilities": ["caching", "persistence", "trends", "insights"]
            }

        @self.app.get("/symptoms", response_model=List[Symptom])
        async def list_symptoms():
            """List all symptoms, newest first."""
            return await self.coordinator.list_symptoms()

        @self.app.get("/symptoms/trends", response_model=List[TrendPoint])
        async def get_trends():
            """Average severity per day."""
            return await self.coordinator.get_trends()

        @self.app.get("/symptoms/insights", response_model=InsightResponse)
        async def get_insight():
            """Generated observation about recent symptoms."""
            return await self.coordinator.get_insight()

        @self.app.get("/symptoms/{symptom_id}", response_model=Symptom)
        async def get_symptom(symptom_id: int):
            """Get one symptom."""
            return await self.coordinator.get_symptom(symptom_id)

        @self.app.post("/symptoms", response_model=Symptom, status_code=201)
        async def create_symptom(request: SymptomCreate):
            """Log a new symptom."""
            return await self.coordinator.create_symptom(request)

        @self.app.put("/symptoms/{symptom_id}", response_model=Symptom)
        async def update_symptom(symptom_id: int, request: SymptomUpdate):
            """Update an existing symptom."""
            return await self.coordinator.update_symptom(symptom_id, request)

        @self.app.delete("/symptoms/{symptom_id}", response_model=SymptomDeleted)
        async def delete_symptom(symptom_id: int):
            """Delete a symptom."""
            return await self.coordinator.delete_symptom(symptom_id)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check symptoms service dependencies."""
        return {
            "redis": "ok" if await self.cache.health_check() else "error",
            "postgres": "ok" if await self.persistence.health_check() else "error",
        }

    async def start(self):
        """Start symptoms service components."""
        await self.persistence.start()
        await self.cache.start()

        self.logger.info("Symptoms service started", cache_ttl_seconds=self.config.cache_ttl_seconds)

    async def stop(self):
        """Stop symptoms service components."""
        await self.cache.stop()
        await self.persistence.stop()

        self.logger.info("Symptoms service stopped")


def create_app(**config_overrides: Any):
    """Create symptoms service application."""
    service = SymptomsService(**config_overrides)
    return service.app


if __name__ == "__main__":
    service = SymptomsService()
    service.run()
