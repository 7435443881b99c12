"""Ledger intent log.

Ledger calls and the store writes that depend on them cannot share a
transaction. Each ledger call is bracketed by an intent document so that a
process dying between the two leaves a visible trace:

    pending -> ledger_applied -> settled
            -> failed

Intents that stay pending or ledger_applied past a threshold are "stuck" and
need an operator; nothing here repairs them.
"""

import logging
from datetime import timedelta
from enum import Enum
from typing import Optional

from pydantic import Field

from ..clock import Clock, SystemClock
from ..db.schemas import DocumentModel, Timestamp, format_timestamp
from ..db.store import DocumentStore, Filter

logger = logging.getLogger(__name__)

LEDGER_INTENTS = "ledgerIntents"


class IntentStatus(str, Enum):
    PENDING = "pending"
    LEDGER_APPLIED = "ledger_applied"
    FAILED = "failed"
    SETTLED = "settled"


class LedgerIntent(DocumentModel):
    """One ledger call and how far its settlement got."""

    id: Optional[str] = None
    operation: str  # create_account, add_stake, payout
    user_id: str
    challenge_id: Optional[str] = None
    amount: float
    status: IntentStatus = IntentStatus.PENDING
    details: dict = Field(default_factory=dict)
    error: Optional[str] = None
    created_at: Timestamp
    updated_at: Timestamp

    @property
    def is_open(self) -> bool:
        return self.status in (IntentStatus.PENDING, IntentStatus.LEDGER_APPLIED)


class LedgerIntentLog:
    """Records ledger intents in the document store."""

    def __init__(self, store: DocumentStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()

    def record_intent(
        self,
        operation: str,
        user_id: str,
        amount: float,
        challenge_id: Optional[str] = None,
        **details,
    ) -> str:
        """Write a pending intent and return its id."""
        now = self.clock.now()
        intent = LedgerIntent(
            operation=operation,
            user_id=user_id,
            challenge_id=challenge_id,
            amount=amount,
            details=details,
            created_at=now,
            updated_at=now,
        )
        return self.store.create(LEDGER_INTENTS, intent.to_document(exclude={"id"}))

    def _transition(self, intent_id: str, status: IntentStatus, **fields) -> None:
        self.store.update(
            LEDGER_INTENTS,
            intent_id,
            {
                "status": status.value,
                "updatedAt": format_timestamp(self.clock.now()),
                **fields,
            },
        )

    def mark_ledger_applied(self, intent_id: str, **details) -> None:
        """The ledger call succeeded; store writes are still outstanding."""
        fields = {}
        if details:
            current = self.get(intent_id)
            fields["details"] = {**(current.details if current else {}), **details}
        self._transition(intent_id, IntentStatus.LEDGER_APPLIED, **fields)

    def mark_failed(self, intent_id: str, error: str) -> None:
        self._transition(intent_id, IntentStatus.FAILED, error=error)

    def mark_settled(self, intent_id: str) -> None:
        self._transition(intent_id, IntentStatus.SETTLED)

    def get(self, intent_id: str) -> Optional[LedgerIntent]:
        doc = self.store.get(LEDGER_INTENTS, intent_id)
        return LedgerIntent.from_document(doc) if doc else None

    def list_intents(self, status: Optional[IntentStatus] = None) -> list[LedgerIntent]:
        filters = [Filter("status", "==", status.value)] if status else []
        docs = self.store.query(LEDGER_INTENTS, filters, order_by="createdAt")
        return [LedgerIntent.from_document(d) for d in docs]

    def find_stuck(self, older_than: timedelta) -> list[LedgerIntent]:
        """Open intents created more than older_than ago."""
        cutoff = format_timestamp(self.clock.now() - older_than)
        docs = self.store.query(
            LEDGER_INTENTS,
            [Filter("createdAt", "<", cutoff)],
            order_by="createdAt",
        )
        stuck = [LedgerIntent.from_document(d) for d in docs]
        stuck = [i for i in stuck if i.is_open]
        if stuck:
            logger.warning("%d ledger intent(s) never settled", len(stuck))
        return stuck
