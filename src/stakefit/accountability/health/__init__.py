"""Health metric sources feeding challenge progress."""

from .fitbit import FitbitProgressSource
from .schemas import DailyMetrics
from .source import DAILY_METRICS, ProgressSource, StoredProgressSource

__all__ = [
    "DAILY_METRICS",
    "DailyMetrics",
    "FitbitProgressSource",
    "ProgressSource",
    "StoredProgressSource",
]
