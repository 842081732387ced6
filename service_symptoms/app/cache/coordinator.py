"""
Cache-aside coordination for symptom reads and writes.

Reads check Redis first and fall through to PostgreSQL on a miss, writing
the fresh result back with a fixed TTL. Writes go to PostgreSQL first and
then delete every key the write could have made stale; they never populate
the cache themselves.

Concurrency:
- No lock is held across miss -> store -> repopulate. Concurrent misses on
  one key each query the store and each rewrite the key (stampede is
  tolerated; the results are identical).
- Nothing orders a write's invalidation against a concurrent read's
  repopulation. If the repopulation lands after the invalidation, the
  pre-write value stays cached until its TTL expires. Staleness is bounded
  by one TTL window and is accepted rather than locked away.
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TYPE_CHECKING, TypeVar

import pydantic
from pydantic import TypeAdapter

from shared.logging import get_logger
from shared.errors import CacheError, InsightError, NotFoundError
from . import keys
from .keys import SymptomMutation, SymptomQuery
from ..insights.client import NO_SYMPTOMS_INSIGHT, build_insight_prompt
from ..models import (
    InsightResponse, Symptom, SymptomCreate, SymptomDeleted, SymptomUpdate, TrendPoint
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .redis_cache import RedisCache
    from ..insights.client import InsightClient
    from ..persistence.postgres import PostgreSQLSymptomStore


T = TypeVar("T")

DEFAULT_CACHE_TTL = 60

_SYMPTOM = TypeAdapter(Symptom)
_SYMPTOM_LIST = TypeAdapter(List[Symptom])
_TREND_LIST = TypeAdapter(List[TrendPoint])


class CacheAsideCoordinator:
    """Serves symptom reads through Redis and invalidates it on writes."""

    def __init__(
        self,
        store: "PostgreSQLSymptomStore",
        cache: "RedisCache",
        insight_client: Optional["InsightClient"] = None,
        *,
        ttl_seconds: int = DEFAULT_CACHE_TTL,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.cache = cache
        self.insight_client = insight_client
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("symptoms.cache.coordinator")

    # Reads

    async def list_symptoms(self) -> List[Symptom]:
        """All symptoms, newest first."""
        return await self._read_through(
            SymptomQuery.LIST,
            keys.cache_key(SymptomQuery.LIST),
            self.store.list_symptoms,
            _SYMPTOM_LIST,
        )

    async def get_symptom(self, symptom_id: int) -> Symptom:
        """One symptom by id. Raises ``NotFoundError`` when it does not exist."""

        async def load() -> Symptom:
            symptom = await self.store.get_symptom(symptom_id)
            if symptom is None:
                raise NotFoundError("Symptom not found", details={"symptom_id": symptom_id})
            return symptom

        return await self._read_through(
            SymptomQuery.GET,
            keys.cache_key(SymptomQuery.GET, symptom_id),
            load,
            _SYMPTOM,
        )

    async def get_trends(self) -> List[TrendPoint]:
        """Mean severity per date, recomputed over all symptoms on a miss."""
        return await self._read_through(
            SymptomQuery.TRENDS,
            keys.cache_key(SymptomQuery.TRENDS),
            self.store.get_trends,
            _TREND_LIST,
        )

    async def get_insight(self) -> InsightResponse:
        """Generated observation about recent symptoms. Not cached."""
        symptoms = await self.list_symptoms()
        if not symptoms:
            return InsightResponse(insight=NO_SYMPTOMS_INSIGHT)

        if self.insight_client is None:
            raise InsightError("Insight provider is not configured")

        text = await self.insight_client.generate(build_insight_prompt(symptoms))
        return InsightResponse(insight=text)

    # Writes

    async def create_symptom(self, payload: SymptomCreate) -> Symptom:
        """Insert a symptom, then drop the collection and trend entries."""
        return await self._write_through(
            SymptomMutation.CREATE,
            lambda: self.store.create_symptom(payload),
            keys.invalidation_keys(SymptomMutation.CREATE),
        )

    async def update_symptom(self, symptom_id: int, changes: SymptomUpdate) -> Symptom:
        """Update a symptom, then drop its entry and both aggregates."""

        async def mutate() -> Symptom:
            symptom = await self.store.update_symptom(symptom_id, changes)
            if symptom is None:
                raise NotFoundError("Symptom not found", details={"symptom_id": symptom_id})
            return symptom

        return await self._write_through(
            SymptomMutation.UPDATE,
            mutate,
            keys.invalidation_keys(SymptomMutation.UPDATE, symptom_id),
        )

    async def delete_symptom(self, symptom_id: int) -> SymptomDeleted:
        """Delete a symptom, then drop its entry and both aggregates."""

        async def mutate() -> SymptomDeleted:
            if not await self.store.delete_symptom(symptom_id):
                raise NotFoundError("Symptom not found", details={"symptom_id": symptom_id})
            return SymptomDeleted(id=symptom_id)

        return await self._write_through(
            SymptomMutation.DELETE,
            mutate,
            keys.invalidation_keys(SymptomMutation.DELETE, symptom_id),
        )

    # Cache-aside plumbing

    async def _read_through(
        self,
        query: SymptomQuery,
        key: str,
        loader: Callable[[], Awaitable[T]],
        adapter: TypeAdapter,
    ) -> T:
        cached = await self._cache_get(key)
        if cached is not None:
            try:
                value = adapter.validate_json(cached)
            except pydantic.ValidationError as e:
                self.logger.warning("Discarding undecodable cache entry", key=key, error=str(e))
            else:
                self.logger.debug("Cache hit", key=key)
                self._count("cache_hits_total", query=query.value)
                return value

        self.logger.debug("Cache miss", key=key)
        self._count("cache_misses_total", query=query.value)

        # Store and not-found errors propagate; nothing is cached for them.
        value = await loader()

        await self._cache_set(key, adapter.dump_json(value).decode("utf-8"))
        return value

    async def _write_through(
        self,
        mutation: SymptomMutation,
        mutate: Callable[[], Awaitable[T]],
        invalidation: Iterable[str],
    ) -> T:
        async def apply() -> T:
            result = await mutate()
            await self._invalidate(mutation, invalidation)
            return result

        # A cancelled caller must not strand a committed write with its
        # cache entries still in place.
        task = asyncio.ensure_future(apply())
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(functools.partial(self._report_detached_write, mutation))
            raise

    def _report_detached_write(self, mutation: SymptomMutation, task: "asyncio.Future[Any]"):
        """Log the outcome of a write whose caller was cancelled."""
        if task.cancelled():
            self.logger.warning("Detached write was cancelled", mutation=mutation.value)
            return
        error = task.exception()
        if error is not None:
            self.logger.error(
                "Write failed after caller was cancelled",
                mutation=mutation.value,
                error=str(error),
            )

    async def _invalidate(self, mutation: SymptomMutation, invalidation: Iterable[str]) -> int:
        """Delete every key independently. Returns how many deletes failed."""
        targets = list(invalidation)
        outcomes = await asyncio.gather(*(self._cache_delete(key) for key in targets))
        failed = outcomes.count(False)

        self._count("cache_invalidations_total", mutation=mutation.value)
        self.logger.info(
            "Cache invalidated",
            mutation=mutation.value,
            keys=targets,
            failed=failed,
        )
        return failed

    async def _cache_get(self, key: str) -> Optional[str]:
        try:
            return await self.cache.get(key)
        except CacheError as e:
            self._absorb("get", key, e)
            return None

    async def _cache_set(self, key: str, value: str) -> bool:
        try:
            await self.cache.set(key, value, self.ttl_seconds)
            return True
        except CacheError as e:
            self._absorb("set", key, e)
            return False

    async def _cache_delete(self, key: str) -> bool:
        try:
            await self.cache.delete(key)
            return True
        except CacheError as e:
            self._absorb("delete", key, e)
            return False

    def _absorb(self, operation: str, key: str, error: CacheError):
        self.logger.warning(
            "Cache command failed; continuing without cache",
            operation=operation,
            key=key,
            error=error.message,
            details=error.details,
        )
        self._count("cache_errors_total", operation=operation)

    def _count(self, metric_name: str, **labels: Any):
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
