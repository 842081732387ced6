"""
Cache key namespace for the Symptoms Service.

Only three query shapes are cached: one symptom by id, the full symptom
collection, and the daily trend summary. Everything here is pure; nothing
touches Redis or PostgreSQL.
"""

from enum import Enum
from typing import Optional, Tuple


SYMPTOM_PREFIX = "symptom:"
ALL_SYMPTOMS_KEY = "symptoms:all"
TRENDS_KEY = "symptoms:trends"


class SymptomQuery(str, Enum):
    """Cached read shapes."""
    GET = "get"
    LIST = "list"
    TRENDS = "trends"


class SymptomMutation(str, Enum):
    """Write operations that invalidate cached reads."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def symptom_key(symptom_id: int) -> str:
    """Key for a single symptom."""
    return f"{SYMPTOM_PREFIX}{symptom_id}"


def cache_key(query: SymptomQuery, symptom_id: Optional[int] = None) -> str:
    """Map a query descriptor to its cache key."""
    if query is SymptomQuery.GET:
        if symptom_id is None:
            raise ValueError("symptom_id is required for a single-symptom query")
        return symptom_key(symptom_id)
    if query is SymptomQuery.LIST:
        return ALL_SYMPTOMS_KEY
    if query is SymptomQuery.TRENDS:
        return TRENDS_KEY
    raise ValueError(f"Unsupported query: {query!r}")


def invalidation_keys(mutation: SymptomMutation, symptom_id: Optional[int] = None) -> Tuple[str, ...]:
    """Keys whose cached contents a successful mutation may have changed.

    A create has no prior single-symptom entry, so it only touches the two
    aggregates. Updates and deletes also drop the entry for that id.
    """
    aggregates = (ALL_SYMPTOMS_KEY, TRENDS_KEY)

    if mutation is SymptomMutation.CREATE:
        return aggregates
    if mutation in (SymptomMutation.UPDATE, SymptomMutation.DELETE):
        if symptom_id is None:
            raise ValueError(f"symptom_id is required for {mutation.value}")
        return (symptom_key(symptom_id),) + aggregates
    raise ValueError(f"Unsupported mutation: {mutation!r}")
