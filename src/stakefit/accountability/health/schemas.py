"""Pydantic schemas for health metrics."""

from datetime import date
from typing import Optional

from pydantic import Field

from ..db.schemas import DocumentModel, Timestamp


class DailyMetrics(DocumentModel):
    """Activity totals for one day."""

    day: date
    steps: int = Field(0, ge=0)
    active_minutes: int = Field(0, ge=0)
    heart_rate: Optional[float] = None
    sleep_hours: Optional[float] = None
    recorded_at: Optional[Timestamp] = None
