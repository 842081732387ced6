"""
Shared fixtures and in-memory fakes for Symptoms Service tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

import pytest

from shared.errors import CacheError, StoreError
from shared.metrics import MetricsCollector
from service_symptoms.app.cache.coordinator import CacheAsideCoordinator
from service_symptoms.app.models import Symptom, SymptomCreate, SymptomUpdate, TrendPoint


class FakeClock:
    """Manually advanced clock for TTL checks."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class InMemoryCache:
    """Stand-in for RedisCache with the same get/set/delete contract."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        self.entries: Dict[str, Tuple[str, float]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_on: Set[Tuple[str, str]] = set()
        self.fail_all = False

    def _maybe_fail(self, operation: str, key: str):
        self.calls.append((operation, key))
        if self.fail_all or (operation, key) in self.fail_on:
            raise CacheError(f"Cache {operation} failed", details={"key": key})

    async def get(self, key: str) -> Optional[str]:
        self._maybe_fail("get", key)
        entry = self.entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._maybe_fail("set", key)
        self.entries[key] = (value, self.clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._maybe_fail("delete", key)
        self.entries.pop(key, None)

    def deleted_keys(self) -> List[str]:
        return [key for operation, key in self.calls if operation == "delete"]

    def set_keys(self) -> List[str]:
        return [key for operation, key in self.calls if operation == "set"]


class InMemorySymptomStore:
    """Stand-in for PostgreSQLSymptomStore backed by a list."""

    def __init__(self):
        self.symptoms: Dict[int, Symptom] = {}
        self.next_id = 1
        self.calls: List[str] = []
        self.fail = False
        self.yield_on_read = False
        self.base_time = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    async def _enter(self, name: str):
        self.calls.append(name)
        if self.yield_on_read:
            await asyncio.sleep(0)
        if self.fail:
            raise StoreError("Query failed", details={"error": "connection refused"})

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def seed(self, symptom_type: str, severity: int, notes: Optional[str] = None,
             logged_at: Optional[datetime] = None) -> Symptom:
        symptom = Symptom(
            id=self.next_id,
            symptom_type=symptom_type,
            severity=severity,
            notes=notes,
            logged_at=logged_at or self.base_time + timedelta(minutes=self.next_id),
        )
        self.symptoms[symptom.id] = symptom
        self.next_id += 1
        return symptom

    async def list_symptoms(self) -> List[Symptom]:
        await self._enter("list_symptoms")
        return sorted(self.symptoms.values(), key=lambda s: (s.logged_at, s.id), reverse=True)

    async def get_symptom(self, symptom_id: int) -> Optional[Symptom]:
        await self._enter("get_symptom")
        return self.symptoms.get(symptom_id)

    async def create_symptom(self, payload: SymptomCreate) -> Symptom:
        await self._enter("create_symptom")
        return self.seed(payload.symptom_type, payload.severity, payload.notes)

    async def update_symptom(self, symptom_id: int, changes: SymptomUpdate) -> Optional[Symptom]:
        await self._enter("update_symptom")
        existing = self.symptoms.get(symptom_id)
        if existing is None:
            return None
        updates = changes.model_dump(exclude_unset=True)
        updated = existing.model_copy(update=updates)
        self.symptoms[symptom_id] = updated
        return updated

    async def delete_symptom(self, symptom_id: int) -> bool:
        await self._enter("delete_symptom")
        return self.symptoms.pop(symptom_id, None) is not None

    async def get_trends(self) -> List[TrendPoint]:
        await self._enter("get_trends")
        by_date: Dict = {}
        for symptom in self.symptoms.values():
            by_date.setdefault(symptom.logged_at.date(), []).append(symptom.severity)
        return [
            TrendPoint(date=day, avg_severity=sum(values) / len(values))
            for day, values in sorted(by_date.items(), reverse=True)
        ]


class StubInsightClient:
    """Records prompts and returns canned text."""

    def __init__(self, text: str = "Headaches are trending down."):
        self.text = text
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return InMemoryCache(clock)


@pytest.fixture
def store():
    return InMemorySymptomStore()


@pytest.fixture
def insight_client():
    return StubInsightClient()


@pytest.fixture
def metrics():
    return MetricsCollector("symptoms")


@pytest.fixture
def coordinator(store, cache, insight_client, metrics):
    return CacheAsideCoordinator(store, cache, insight_client, ttl_seconds=60, metrics=metrics)
