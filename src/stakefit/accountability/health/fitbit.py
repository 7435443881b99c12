"""Fitbit Web API progress source.

Reads today's activity summary for the token's owner. Only steps and very
active minutes are used; heart rate and sleep are left empty.
"""

import logging
import time
from typing import Optional

import requests

from ..clock import Clock, SystemClock
from ..errors import ProgressSourceError, ProgressSourceRateLimitError
from .schemas import DailyMetrics

logger = logging.getLogger(__name__)


class FitbitProgressSource:
    """Progress source backed by the Fitbit activity summary endpoint."""

    BASE_URL = "https://api.fitbit.com/1/user/-"

    def __init__(
        self,
        access_token: str,
        timeout: int = 10,
        max_retries: int = 3,
        initial_backoff: float = 1.0,
        clock: Optional[Clock] = None,
    ):
        """Initialize client.

        Args:
            access_token: OAuth bearer token for the Fitbit user
            timeout: Request timeout in seconds
            max_retries: Attempts before giving up on a failing request
            initial_backoff: First retry delay in seconds, doubled each retry
            clock: Time source stamping recorded_at
        """
        if not access_token:
            raise ProgressSourceError("Fitbit access token not configured")
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.clock = clock or SystemClock()
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        })

    def _get(self, path: str) -> dict:
        """Make GET request with error handling."""
        try:
            response = self._session.get(f"{self.BASE_URL}{path}", timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout:
            raise ProgressSourceError("Fitbit request timed out")
        except requests.exceptions.HTTPError as e:
            if e.response.status_code == 429:
                retry_after = float(e.response.headers.get("Retry-After", 0) or 0)
                raise ProgressSourceRateLimitError(
                    "Rate limited by Fitbit", retry_after=retry_after
                )
            raise ProgressSourceError(f"Fitbit HTTP error: {e.response.status_code}")
        except requests.exceptions.RequestException as e:
            raise ProgressSourceError(f"Fitbit request failed: {e}")

    def _with_retry(self, operation):
        """Execute operation with exponential backoff retry."""
        backoff = self.initial_backoff

        for attempt in range(self.max_retries):
            try:
                return operation()
            except ProgressSourceRateLimitError as e:
                if attempt == self.max_retries - 1:
                    raise
                sleep_time = max(e.retry_after, backoff)
                logger.warning("Fitbit rate limited, waiting %.1fs", sleep_time)
                time.sleep(sleep_time)
                backoff *= 2
            except ProgressSourceError:
                if attempt == self.max_retries - 1:
                    raise
                logger.warning("Fitbit request failed, retrying in %.1fs", backoff)
                time.sleep(backoff)
                backoff *= 2

    def get_today_metrics(self) -> Optional[DailyMetrics]:
        data = self._with_retry(lambda: self._get("/activities/date/today.json"))
        summary = data.get("summary") if data else None
        if not summary:
            return None

        now = self.clock.now()
        return DailyMetrics(
            day=now.date(),
            steps=int(summary.get("steps", 0)),
            active_minutes=int(summary.get("veryActiveMinutes", 0)),
            recorded_at=now,
        )
