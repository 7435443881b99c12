"""Staking ledger contract."""

from typing import Protocol


class Ledger(Protocol):
    """External ledger holding challenge stakes.

    Addresses are opaque strings. Every method raises LedgerError on failure;
    calls other than init_wallet fail until the caller's wallet exists.
    """

    def init_wallet(self) -> str:
        """Make sure the caller has a wallet and return its address."""
        ...

    def create_account(self, external_id: str, initial_stake: float) -> str:
        """Open a stake account for external_id seeded with initial_stake."""
        ...

    def add_stake(self, address: str, amount: float) -> None: ...

    def payout(self, address: str, recipient: str, amount: float) -> None:
        """Move amount from the account at address to the recipient wallet."""
        ...

    def get_balance(self) -> float: ...
