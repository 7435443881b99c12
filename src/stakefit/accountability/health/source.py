"""Progress sources: where today's activity metrics come from."""

from datetime import date
from typing import Optional, Protocol

from ..clock import Clock, SystemClock
from ..db.store import DocumentStore
from .schemas import DailyMetrics

DAILY_METRICS = "dailyMetrics"


class ProgressSource(Protocol):
    """Supplies today's metrics, or None when there is no data yet.

    Implementations raise ProgressSourceError when the provider fails.
    """

    def get_today_metrics(self) -> Optional[DailyMetrics]: ...


class StoredProgressSource:
    """Reads metrics that were logged into the document store."""

    def __init__(self, store: DocumentStore, user_id: str, clock: Optional[Clock] = None):
        """Initialize source.

        Args:
            store: Document store holding the dailyMetrics collection
            user_id: Whose metrics to read
            clock: Time source deciding what "today" is
        """
        self.store = store
        self.user_id = user_id
        self.clock = clock or SystemClock()

    @staticmethod
    def _doc_id(user_id: str, day: date) -> str:
        return f"{user_id}_{day.isoformat()}"

    def get_today_metrics(self) -> Optional[DailyMetrics]:
        today = self.clock.now().date()
        doc = self.store.get(DAILY_METRICS, self._doc_id(self.user_id, today))
        return DailyMetrics.from_document(doc) if doc else None

    def record(
        self,
        steps: int,
        active_minutes: int,
        day: Optional[date] = None,
    ) -> DailyMetrics:
        """Save the day's totals, replacing earlier values for that day."""
        day = day or self.clock.now().date()
        metrics = DailyMetrics(
            day=day,
            steps=steps,
            active_minutes=active_minutes,
            recorded_at=self.clock.now(),
        )
        self.store.set(
            DAILY_METRICS,
            self._doc_id(self.user_id, day),
            {**metrics.to_document(), "userId": self.user_id},
        )
        return metrics
