"""
Unit tests for the symptoms PostgreSQL store.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from shared.errors import StoreError
from service_symptoms.app.models import SymptomCreate, SymptomUpdate
from service_symptoms.app.persistence.postgres import PostgreSQLSymptomStore


LOGGED_AT = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def symptom_row(**overrides):
    row = {
        "id": 1,
        "symptom_type": "headache",
        "severity": 5,
        "notes": None,
        "logged_at": LOGGED_AT,
    }
    row.update(overrides)
    return row


class FakePool:
    """Minimal asyncpg pool exposing ``acquire()`` as an async context manager."""

    def __init__(self):
        self.conn = AsyncMock()

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self):
        pass


class TestPostgreSQLSymptomStore:
    """Test cases for PostgreSQLSymptomStore."""

    @pytest.fixture
    def pool(self):
        return FakePool()

    @pytest.fixture
    def symptom_store(self, pool):
        store = PostgreSQLSymptomStore("postgres://localhost:5432/symptoms")
        store.pool = pool
        return store

    @pytest.mark.asyncio
    async def test_list_symptoms_converts_rows(self, symptom_store, pool):
        pool.conn.fetch.return_value = [symptom_row(), symptom_row(id=2, notes="after lunch")]

        result = await symptom_store.list_symptoms()

        assert [s.id for s in result] == [1, 2]
        assert result[1].notes == "after lunch"
        query = pool.conn.fetch.call_args.args[0]
        assert "ORDER BY logged_at DESC" in query

    @pytest.mark.asyncio
    async def test_get_symptom_binds_id_positionally(self, symptom_store, pool):
        pool.conn.fetchrow.return_value = symptom_row(id=7)

        result = await symptom_store.get_symptom(7)

        assert result.id == 7
        query, param = pool.conn.fetchrow.call_args.args
        assert "WHERE id = $1" in query
        assert param == 7

    @pytest.mark.asyncio
    async def test_get_missing_symptom_returns_none(self, symptom_store, pool):
        pool.conn.fetchrow.return_value = None

        assert await symptom_store.get_symptom(999) is None

    @pytest.mark.asyncio
    async def test_create_symptom_never_interpolates_values(self, symptom_store, pool):
        hostile = "headache'); DROP TABLE symptoms; --"
        pool.conn.fetchrow.return_value = symptom_row(symptom_type=hostile)

        await symptom_store.create_symptom(SymptomCreate(symptom_type=hostile, severity=5, notes="n"))

        args = pool.conn.fetchrow.call_args.args
        assert hostile not in args[0]
        assert args[1:] == (hostile, 5, "n")

    @pytest.mark.asyncio
    async def test_update_symptom_passes_notes_presence(self, symptom_store, pool):
        pool.conn.fetchrow.return_value = symptom_row(severity=8)

        result = await symptom_store.update_symptom(1, SymptomUpdate(severity=8))

        assert result.severity == 8
        args = pool.conn.fetchrow.call_args.args
        assert args[1:] == (1, None, 8, None, False)

    @pytest.mark.asyncio
    async def test_update_symptom_explicit_null_notes_clears(self, symptom_store, pool):
        pool.conn.fetchrow.return_value = symptom_row()

        await symptom_store.update_symptom(1, SymptomUpdate(notes=None))

        args = pool.conn.fetchrow.call_args.args
        assert args[-1] is True
        assert args[-2] is None

    @pytest.mark.asyncio
    async def test_update_missing_symptom_returns_none(self, symptom_store, pool):
        pool.conn.fetchrow.return_value = None

        assert await symptom_store.update_symptom(3, SymptomUpdate(severity=2)) is None

    @pytest.mark.asyncio
    async def test_delete_symptom(self, symptom_store, pool):
        pool.conn.fetchval.return_value = 4
        assert await symptom_store.delete_symptom(4) is True

        pool.conn.fetchval.return_value = None
        assert await symptom_store.delete_symptom(5) is False

    @pytest.mark.asyncio
    async def test_get_trends(self, symptom_store, pool):
        pool.conn.fetch.return_value = [
            {"date": date(2024, 3, 2), "avg_severity": 7.5},
            {"date": date(2024, 3, 1), "avg_severity": 3.0},
        ]

        trends = await symptom_store.get_trends()

        assert [(t.date, t.avg_severity) for t in trends] == [
            (date(2024, 3, 2), 7.5),
            (date(2024, 3, 1), 3.0),
        ]
        query = pool.conn.fetch.call_args.args[0]
        assert "GROUP BY DATE(logged_at)" in query
        assert "ORDER BY date DESC" in query

    @pytest.mark.asyncio
    async def test_driver_errors_raise_store_error(self, symptom_store, pool):
        pool.conn.fetch.side_effect = ConnectionRefusedError("connection refused")

        with pytest.raises(StoreError) as exc_info:
            await symptom_store.list_symptoms()

        assert "connection refused" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_malformed_row_raises_store_error(self, symptom_store, pool):
        pool.conn.fetchrow.return_value = symptom_row(severity=42)

        with pytest.raises(StoreError):
            await symptom_store.get_symptom(1)

    @pytest.mark.asyncio
    async def test_not_started_raises_store_error(self):
        store = PostgreSQLSymptomStore("postgres://localhost:5432/symptoms")

        with pytest.raises(StoreError):
            await store.list_symptoms()

    @pytest.mark.asyncio
    async def test_start_creates_schema(self):
        pool = FakePool()

        with patch(
            "service_symptoms.app.persistence.postgres.asyncpg.create_pool",
            new_callable=AsyncMock,
            return_value=pool,
        ):
            store = PostgreSQLSymptomStore("postgres://localhost:5432/symptoms")
            await store.start()

        statements = [c.args[0] for c in pool.conn.execute.call_args_list]
        assert any("CREATE TABLE IF NOT EXISTS symptoms" in s for s in statements)
        assert any("CHECK (severity BETWEEN 1 AND 10)" in s for s in statements)

    @pytest.mark.asyncio
    async def test_start_failure_raises_store_error(self):
        with patch(
            "service_symptoms.app.persistence.postgres.asyncpg.create_pool",
            new_callable=AsyncMock,
            side_effect=OSError("no route to host"),
        ):
            store = PostgreSQLSymptomStore("postgres://localhost:5432/symptoms")
            with pytest.raises(StoreError):
                await store.start()

    @pytest.mark.asyncio
    async def test_health_check(self, symptom_store, pool):
        pool.conn.fetchval.return_value = 1
        assert await symptom_store.health_check() is True

        pool.conn.fetchval.side_effect = OSError("down")
        assert await symptom_store.health_check() is False
