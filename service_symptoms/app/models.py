"""
Data models for the Symptoms Service.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, model_validator


SEVERITY_MIN = 1
SEVERITY_MAX = 10


class Symptom(BaseModel):
    """A single logged symptom as stored in PostgreSQL."""
    id: int = Field(..., description="Store-assigned identity")
    symptom_type: str = Field(..., description="Category label, e.g. 'headache'")
    severity: int = Field(..., ge=SEVERITY_MIN, le=SEVERITY_MAX, description="Severity score")
    notes: Optional[str] = Field(None, description="Free-text notes")
    logged_at: dt.datetime = Field(..., description="Creation timestamp")


class SymptomCreate(BaseModel):
    """Request model for logging a symptom."""
    symptom_type: str = Field(..., min_length=1, max_length=255, description="Category label")
    severity: int = Field(..., ge=SEVERITY_MIN, le=SEVERITY_MAX, description="Severity score")
    notes: Optional[str] = Field(None, description="Free-text notes")


class SymptomUpdate(BaseModel):
    """Request model for updating a symptom.

    Omitted fields keep their stored value. ``notes`` may be sent as null
    to clear it, which is why ``notes_provided`` tracks presence separately.
    """
    symptom_type: Optional[str] = Field(None, min_length=1, max_length=255, description="Category label")
    severity: Optional[int] = Field(None, ge=SEVERITY_MIN, le=SEVERITY_MAX, description="Severity score")
    notes: Optional[str] = Field(None, description="Free-text notes")

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> "SymptomUpdate":
        for name in ("symptom_type", "severity"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    @property
    def notes_provided(self) -> bool:
        return "notes" in self.model_fields_set


class SymptomDeleted(BaseModel):
    """Acknowledgement returned after a symptom is deleted."""
    id: int
    message: str = "Symptom deleted"


class TrendPoint(BaseModel):
    """Mean severity of all symptoms logged on one calendar date."""
    date: dt.date
    avg_severity: float


class InsightResponse(BaseModel):
    """Generated insight text."""
    insight: str
