"""Wire the core services together from configuration."""

from dataclasses import dataclass
from typing import Optional

from .auth.provider import StoreAuthProvider
from .cache import TTLCache
from .challenges.lifecycle import ChallengeLifecycle
from .challenges.repository import ChallengeRepository
from .clock import Clock, SystemClock
from .config import Config
from .db.sqlite import Database, get_db
from .db.store import DocumentStore
from .health.fitbit import FitbitProgressSource
from .health.source import ProgressSource, StoredProgressSource
from .ledger.local import LocalLedger
from .ledger.outbox import LedgerIntentLog


@dataclass
class Services:
    """Everything a command needs, built once per process."""

    db: Database
    store: DocumentStore
    auth: StoreAuthProvider
    repository: ChallengeRepository
    metrics: StoredProgressSource
    progress_source: ProgressSource
    ledger: LocalLedger
    intents: LedgerIntentLog
    lifecycle: ChallengeLifecycle


def build_services(
    config: Config,
    user_id: Optional[str] = None,
    db: Optional[Database] = None,
    clock: Optional[Clock] = None,
) -> Services:
    """Build the service graph.

    Args:
        config: Application configuration
        user_id: Signed-in user (falls back to config.user_id)
        db: Database to use (global instance at config.db_path if not provided)
        clock: Time source (system clock if not provided)

    Returns:
        Wired services
    """
    clock = clock or SystemClock()
    db = db or get_db(str(config.db_path))
    user_id = user_id or config.user_id

    store = DocumentStore(db)
    auth = StoreAuthProvider(store, user_id=user_id, clock=clock)
    repository = ChallengeRepository(store, clock=clock)
    metrics = StoredProgressSource(store, user_id or "", clock=clock)

    progress_source: ProgressSource = metrics
    if config.has_fitbit_config():
        progress_source = FitbitProgressSource(config.fitbit_access_token, clock=clock)

    ledger = LocalLedger(store, auth, clock=clock)
    intents = LedgerIntentLog(store, clock=clock)
    lifecycle = ChallengeLifecycle(
        repository,
        auth,
        progress_source,
        ledger,
        clock=clock,
        cache=TTLCache(config.cache_ttl, clock=clock),
        intents=intents,
    )

    return Services(
        db=db,
        store=store,
        auth=auth,
        repository=repository,
        metrics=metrics,
        progress_source=progress_source,
        ledger=ledger,
        intents=intents,
        lifecycle=lifecycle,
    )
