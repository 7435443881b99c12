"""Staking ledger access."""

from .base import Ledger
from .local import LEDGER_ACCOUNTS, LEDGER_TRANSACTIONS, LEDGER_WALLETS, LocalLedger
from .outbox import IntentStatus, LedgerIntent, LedgerIntentLog

__all__ = [
    "IntentStatus",
    "LEDGER_ACCOUNTS",
    "LEDGER_TRANSACTIONS",
    "LEDGER_WALLETS",
    "Ledger",
    "LedgerIntent",
    "LedgerIntentLog",
    "LocalLedger",
]
