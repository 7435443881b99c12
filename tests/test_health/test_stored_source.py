"""Tests for metrics logged into the store."""

from datetime import date

from stakefit.accountability.clock import FrozenClock
from stakefit.accountability.db import DocumentStore
from stakefit.accountability.health import DAILY_METRICS, StoredProgressSource


class TestStoredProgressSource:
    """Tests for StoredProgressSource."""

    def test_nothing_logged(self, store: DocumentStore, clock: FrozenClock):
        assert StoredProgressSource(store, "alice", clock=clock).get_today_metrics() is None

    def test_record_and_read_today(self, store: DocumentStore, clock: FrozenClock):
        source = StoredProgressSource(store, "alice", clock=clock)

        source.record(steps=4000, active_minutes=12)
        source.record(steps=6500, active_minutes=20)

        metrics = source.get_today_metrics()
        assert metrics.steps == 6500
        assert metrics.active_minutes == 20
        assert store.get(DAILY_METRICS, "alice_2025-01-15")["userId"] == "alice"

    def test_other_days_and_users_ignored(self, store: DocumentStore, clock: FrozenClock):
        StoredProgressSource(store, "alice", clock=clock).record(
            steps=9000, active_minutes=0, day=date(2025, 1, 14)
        )
        StoredProgressSource(store, "bob", clock=clock).record(steps=9000, active_minutes=0)

        assert StoredProgressSource(store, "alice", clock=clock).get_today_metrics() is None

    def test_new_day(self, store: DocumentStore, clock: FrozenClock):
        source = StoredProgressSource(store, "alice", clock=clock)
        source.record(steps=9000, active_minutes=0)

        clock.advance(days=1)

        assert source.get_today_metrics() is None
