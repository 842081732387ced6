"""
PostgreSQL persistence layer for the Symptoms Service.
"""

from typing import Any, List, Optional

import asyncpg
import pydantic

from shared.logging import get_logger
from shared.errors import StoreError
from ..models import Symptom, SymptomCreate, SymptomUpdate, TrendPoint


SYMPTOM_COLUMNS = "id, symptom_type, severity, notes, logged_at"


class PostgreSQLSymptomStore:
    """PostgreSQL persistence layer for symptoms.

    All statements bind parameters positionally ($1, $2, ...). Failures of
    any kind are raised as ``StoreError`` and never retried here.
    """

    def __init__(
        self,
        dsn: str,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30.0,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("symptoms.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StoreError("Failed to start PostgreSQL persistence", details={"error": str(e)}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        await self.execute("""
            CREATE TABLE IF NOT EXISTS symptoms (
                id SERIAL PRIMARY KEY,
                symptom_type VARCHAR(255) NOT NULL,
                severity INTEGER NOT NULL CHECK (severity BETWEEN 1 AND 10),
                notes TEXT,
                logged_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
            );
        """)
        await self.execute("""
            CREATE INDEX IF NOT EXISTS idx_symptoms_logged_at ON symptoms(logged_at DESC);
        """)

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreError("PostgreSQL persistence not started")
        return self.pool

    # Generic query execution

    async def fetch(self, query: str, *params: Any) -> List[asyncpg.Record]:
        """Run a query and return all rows."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *params)
        except Exception as e:
            self.logger.error("Query failed", error=str(e))
            raise StoreError("Query failed", details={"error": str(e)}) from e

    async def fetchrow(self, query: str, *params: Any) -> Optional[asyncpg.Record]:
        """Run a query and return the first row, or None."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchrow(query, *params)
        except Exception as e:
            self.logger.error("Query failed", error=str(e))
            raise StoreError("Query failed", details={"error": str(e)}) from e

    async def fetchval(self, query: str, *params: Any) -> Any:
        """Run a query and return the first column of the first row."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval(query, *params)
        except Exception as e:
            self.logger.error("Query failed", error=str(e))
            raise StoreError("Query failed", details={"error": str(e)}) from e

    async def execute(self, statement: str, *params: Any) -> str:
        """Run a statement and return its status string (e.g. ``DELETE 1``)."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.execute(statement, *params)
        except Exception as e:
            self.logger.error("Statement failed", error=str(e))
            raise StoreError("Statement failed", details={"error": str(e)}) from e

    # Symptom queries

    async def list_symptoms(self) -> List[Symptom]:
        """Load all symptoms, newest first."""
        rows = await self.fetch(f"""
            SELECT {SYMPTOM_COLUMNS} FROM symptoms ORDER BY logged_at DESC, id DESC
        """)
        return [self._row_to_symptom(row) for row in rows]

    async def get_symptom(self, symptom_id: int) -> Optional[Symptom]:
        """Load one symptom, or None when no row has that id."""
        row = await self.fetchrow(f"""
            SELECT {SYMPTOM_COLUMNS} FROM symptoms WHERE id = $1
        """, symptom_id)
        return self._row_to_symptom(row) if row else None

    async def create_symptom(self, payload: SymptomCreate) -> Symptom:
        """Insert a symptom; id and timestamp are assigned by the database."""
        row = await self.fetchrow(f"""
            INSERT INTO symptoms (symptom_type, severity, notes)
            VALUES ($1, $2, $3)
            RETURNING {SYMPTOM_COLUMNS}
        """, payload.symptom_type, payload.severity, payload.notes)
        symptom = self._row_to_symptom(row)
        self.logger.info("Symptom created", symptom_id=symptom.id)
        return symptom

    async def update_symptom(self, symptom_id: int, changes: SymptomUpdate) -> Optional[Symptom]:
        """Replace the editable fields of a symptom.

        Returns None when no row has that id.
        """
        row = await self.fetchrow(f"""
            UPDATE symptoms SET
                symptom_type = COALESCE($2::varchar, symptom_type),
                severity = COALESCE($3::integer, severity),
                notes = CASE WHEN $5::boolean THEN $4::text ELSE notes END
            WHERE id = $1
            RETURNING {SYMPTOM_COLUMNS}
        """,
            symptom_id, changes.symptom_type, changes.severity,
            changes.notes, changes.notes_provided
        )
        if not row:
            self.logger.warning("Symptom not found for update", symptom_id=symptom_id)
            return None

        self.logger.info("Symptom updated", symptom_id=symptom_id)
        return self._row_to_symptom(row)

    async def delete_symptom(self, symptom_id: int) -> bool:
        """Delete a symptom. Returns False when no row has that id."""
        deleted_id = await self.fetchval("""
            DELETE FROM symptoms WHERE id = $1 RETURNING id
        """, symptom_id)
        if deleted_id is None:
            self.logger.warning("Symptom not found for deletion", symptom_id=symptom_id)
            return False

        self.logger.info("Symptom deleted", symptom_id=symptom_id)
        return True

    async def get_trends(self) -> List[TrendPoint]:
        """Mean severity per calendar date over every symptom, newest date first."""
        rows = await self.fetch("""
            SELECT DATE(logged_at) AS date, AVG(severity)::float8 AS avg_severity
            FROM symptoms
            GROUP BY DATE(logged_at)
            ORDER BY date DESC
        """)
        return [TrendPoint(date=row['date'], avg_severity=row['avg_severity']) for row in rows]

    def _row_to_symptom(self, row) -> Symptom:
        """Convert database row to Symptom."""
        try:
            return Symptom(
                id=row['id'],
                symptom_type=row['symptom_type'],
                severity=row['severity'],
                notes=row['notes'],
                logged_at=row['logged_at']
            )
        except pydantic.ValidationError as e:
            raise StoreError("Malformed symptom row", details={"error": str(e)}) from e

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            await self.fetchval("SELECT 1")
            return True
        except StoreError:
            return False
