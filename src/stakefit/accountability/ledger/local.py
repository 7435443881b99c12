"""Store-backed ledger simulation.

Wallets belong to users, stake accounts belong to challenges. Every
movement of tokens is appended to ledgerTransactions and never rewritten.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..auth.provider import AuthProvider
from ..clock import Clock, SystemClock
from ..db.models import generate_uuid
from ..db.schemas import format_timestamp
from ..db.store import DocumentStore, Filter
from ..errors import LedgerError

logger = logging.getLogger(__name__)

LEDGER_WALLETS = "ledgerWallets"
LEDGER_ACCOUNTS = "ledgerAccounts"
LEDGER_TRANSACTIONS = "ledgerTransactions"


class LocalLedger:
    """Ledger kept in the document store for the signed-in user."""

    def __init__(
        self,
        store: DocumentStore,
        auth: AuthProvider,
        clock: Optional[Clock] = None,
    ):
        """Initialize ledger.

        Args:
            store: Document store holding the ledger collections
            auth: Supplies the signed-in user who owns the wallet
            clock: Time source for transaction stamps
        """
        self.store = store
        self.auth = auth
        self.clock = clock or SystemClock()

    def _owner_id(self) -> str:
        user = self.auth.get_current_user()
        if not user:
            raise LedgerError("No signed-in user for the wallet")
        return user.id

    def _wallet(self, owner_id: str) -> Optional[dict]:
        wallets = self.store.query(LEDGER_WALLETS, [Filter("ownerId", "==", owner_id)], limit=1)
        return wallets[0] if wallets else None

    def _require_wallet(self) -> dict:
        wallet = self._wallet(self._owner_id())
        if not wallet:
            raise LedgerError("Wallet not initialized")
        return wallet

    def _record(self, session: Session, kind: str, amount: float, **details) -> None:
        self.store.create(
            LEDGER_TRANSACTIONS,
            {
                "kind": kind,
                "amount": amount,
                "createdAt": format_timestamp(self.clock.now()),
                **details,
            },
            session=session,
        )

    # ========================================================================
    # Ledger Operations
    # ========================================================================

    def init_wallet(self) -> str:
        owner_id = self._owner_id()
        wallet = self._wallet(owner_id)
        if wallet:
            return wallet["id"]

        address = f"wallet-{generate_uuid()}"
        self.store.create(
            LEDGER_WALLETS,
            {
                "ownerId": owner_id,
                "balance": 0.0,
                "createdAt": format_timestamp(self.clock.now()),
            },
            doc_id=address,
        )
        logger.info("Initialized wallet %s for %s", address, owner_id)
        return address

    def create_account(self, external_id: str, initial_stake: float) -> str:
        wallet = self._require_wallet()
        if initial_stake < 0:
            raise LedgerError(f"Initial stake cannot be negative: {initial_stake}")
        address = f"account-{generate_uuid()}"

        def _open(s: Session) -> str:
            self.store.create(
                LEDGER_ACCOUNTS,
                {
                    "externalId": external_id,
                    "authority": wallet["id"],
                    "balance": initial_stake,
                    "createdAt": format_timestamp(self.clock.now()),
                },
                doc_id=address,
                session=s,
            )
            self._record(s, "open", initial_stake, account=address, source=wallet["id"])
            return address

        return self.store.run_transaction(_open)

    def add_stake(self, address: str, amount: float) -> None:
        wallet = self._require_wallet()
        if amount <= 0:
            raise LedgerError(f"Stake must be positive: {amount}")

        def _stake(s: Session) -> None:
            account = self.store.get(LEDGER_ACCOUNTS, address, session=s)
            if not account:
                raise LedgerError(f"Unknown ledger account: {address}")
            self.store.update(
                LEDGER_ACCOUNTS, address, {"balance": account["balance"] + amount}, session=s
            )
            self._record(s, "stake", amount, account=address, source=wallet["id"])

        self.store.run_transaction(_stake)

    def payout(self, address: str, recipient: str, amount: float) -> None:
        self._require_wallet()
        if amount <= 0:
            raise LedgerError(f"Payout must be positive: {amount}")

        def _payout(s: Session) -> None:
            account = self.store.get(LEDGER_ACCOUNTS, address, session=s)
            if not account:
                raise LedgerError(f"Unknown ledger account: {address}")
            if account["balance"] < amount:
                raise LedgerError(
                    f"Insufficient account balance: {account['balance']} < {amount}"
                )
            target = self.store.get(LEDGER_WALLETS, recipient, session=s)
            if not target:
                raise LedgerError(f"Unknown recipient wallet: {recipient}")

            self.store.update(
                LEDGER_ACCOUNTS, address, {"balance": account["balance"] - amount}, session=s
            )
            self.store.update(
                LEDGER_WALLETS, recipient, {"balance": target["balance"] + amount}, session=s
            )
            self._record(s, "payout", amount, account=address, recipient=recipient)

        self.store.run_transaction(_payout)
        logger.info("Paid out %s from %s to %s", amount, address, recipient)

    def get_balance(self) -> float:
        """Tokens paid out to the signed-in user's wallet."""
        return float(self._require_wallet()["balance"])

    # ========================================================================
    # Inspection
    # ========================================================================

    def get_account(self, address: str) -> Optional[dict]:
        return self.store.get(LEDGER_ACCOUNTS, address)

    def list_transactions(self, address: Optional[str] = None) -> list[dict]:
        """Transactions oldest first, optionally for one account."""
        filters = [Filter("account", "==", address)] if address else []
        return self.store.query(LEDGER_TRANSACTIONS, filters, order_by="createdAt")
