"""Pytest configuration and shared fixtures.

Provides a temporary document store, a frozen clock, signed-in users and
stand-ins for the progress source and ledger.
"""

from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

import pytest

from stakefit.accountability.auth import StoreAuthProvider, UserAccount
from stakefit.accountability.cache import TTLCache
from stakefit.accountability.challenges import (
    ChallengeCreate,
    ChallengeLifecycle,
    ChallengeRepository,
    ChallengeType,
)
from stakefit.accountability.clock import FrozenClock
from stakefit.accountability.config import reset_config
from stakefit.accountability.db import Database, DocumentStore, reset_db
from stakefit.accountability.errors import LedgerError, ProgressSourceError
from stakefit.accountability.health import DailyMetrics
from stakefit.accountability.ledger import LedgerIntentLog

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Stand-ins
# ============================================================================


class FakeProgressSource:
    """Progress source returning preset metrics."""

    def __init__(self, steps: int = 0, active_minutes: int = 0):
        self.metrics: Optional[DailyMetrics] = DailyMetrics(
            day=NOW.date(), steps=steps, active_minutes=active_minutes
        )
        self.calls = 0
        self.fail_on_calls: set[int] = set()

    def set(self, steps: int = 0, active_minutes: int = 0) -> None:
        self.metrics = DailyMetrics(day=NOW.date(), steps=steps, active_minutes=active_minutes)

    def get_today_metrics(self) -> Optional[DailyMetrics]:
        self.calls += 1
        if self.calls in self.fail_on_calls:
            raise ProgressSourceError("Fitbit is down")
        return self.metrics


class FakeLedger:
    """Ledger that records calls and can be told to fail."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self._accounts = 0

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise LedgerError(f"{name} rejected")

    def init_wallet(self) -> str:
        self._check("init_wallet")
        self.calls.append(("init_wallet",))
        return "wallet-1"

    def create_account(self, external_id: str, initial_stake: float) -> str:
        self._check("create_account")
        self._accounts += 1
        self.calls.append(("create_account", external_id, initial_stake))
        return f"account-{self._accounts}"

    def add_stake(self, address: str, amount: float) -> None:
        self._check("add_stake")
        self.calls.append(("add_stake", address, amount))

    def payout(self, address: str, recipient: str, amount: float) -> None:
        self._check("payout")
        self.calls.append(("payout", address, recipient, amount))

    def get_balance(self) -> float:
        return 0.0

    def calls_named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def db(tmp_path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    reset_db()
    reset_config()

    database = Database(str(tmp_path / "test.db"))
    database.create_tables()
    yield database

    reset_db()
    reset_config()


@pytest.fixture
def store(db: Database) -> DocumentStore:
    return DocumentStore(db)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


# ============================================================================
# Users
# ============================================================================


@pytest.fixture
def auth(store: DocumentStore, clock: FrozenClock) -> StoreAuthProvider:
    return StoreAuthProvider(store, clock=clock)


@pytest.fixture
def alice(auth: StoreAuthProvider) -> UserAccount:
    """Signed-in user with 100 tokens."""
    account = auth.register("alice@example.com", "Alice", token_balance=100, user_id="alice")
    auth.sign_in(account.id)
    return account


@pytest.fixture
def bob(auth: StoreAuthProvider) -> UserAccount:
    """Second user with 50 tokens, not signed in."""
    return auth.register("bob@example.com", "Bob", token_balance=50, user_id="bob")


# ============================================================================
# Challenge Fixtures
# ============================================================================


@pytest.fixture
def progress_source() -> FakeProgressSource:
    return FakeProgressSource()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def repository(store: DocumentStore, clock: FrozenClock) -> ChallengeRepository:
    return ChallengeRepository(store, clock=clock)


@pytest.fixture
def intents(store: DocumentStore, clock: FrozenClock) -> LedgerIntentLog:
    return LedgerIntentLog(store, clock=clock)


@pytest.fixture
def lifecycle(
    repository: ChallengeRepository,
    auth: StoreAuthProvider,
    progress_source: FakeProgressSource,
    ledger: FakeLedger,
    clock: FrozenClock,
    intents: LedgerIntentLog,
) -> ChallengeLifecycle:
    return ChallengeLifecycle(
        repository,
        auth,
        progress_source,
        ledger,
        clock=clock,
        cache=TTLCache(300, clock=clock),
        intents=intents,
    )


@pytest.fixture
def challenge_params() -> ChallengeCreate:
    """A valid week-long steps challenge starting now."""
    return ChallengeCreate(
        title="10k a day",
        description="Walk 10,000 steps every day",
        challenge_type=ChallengeType.STEPS,
        goal=10000,
        stake=20,
        start_date=NOW,
        end_date=NOW + timedelta(days=7),
    )
