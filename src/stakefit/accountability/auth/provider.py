"""Current-user and token-balance access.

The lifecycle only needs to know who is signed in and to change their
token balance; ``AuthProvider`` is that contract. ``StoreAuthProvider``
keeps accounts in the document store for the CLI and tests.
"""

import logging
from typing import Optional, Protocol

from ..clock import Clock, SystemClock
from ..db.store import DocumentStore, Filter
from ..errors import DocumentNotFoundError, NotFoundError, ValidationError
from .schemas import UserAccount

logger = logging.getLogger(__name__)

USERS = "users"


class AuthProvider(Protocol):
    """Source of the signed-in user and their token balance."""

    def get_current_user(self) -> Optional[UserAccount]: ...

    def update_token_balance(self, user_id: str, new_balance: float) -> None: ...


class StoreAuthProvider:
    """Accounts kept in the document store with one signed-in user."""

    def __init__(
        self,
        store: DocumentStore,
        user_id: Optional[str] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize provider.

        Args:
            store: Document store holding the users collection
            user_id: Id of the signed-in user, if any
            clock: Time source for account creation
        """
        self.store = store
        self.user_id = user_id
        self.clock = clock or SystemClock()

    def register(
        self,
        email: str,
        display_name: str,
        token_balance: float = 0.0,
        user_id: Optional[str] = None,
    ) -> UserAccount:
        """Create an account.

        Raises:
            ValidationError: If the email is taken or the balance is negative
        """
        violations = []
        if not email.strip():
            violations.append("email must not be empty")
        elif self.store.query(USERS, [Filter("email", "==", email)], limit=1):
            violations.append(f"email already registered: {email}")
        if token_balance < 0:
            violations.append("token balance must not be negative")
        if violations:
            raise ValidationError(violations)

        account = UserAccount(
            email=email,
            display_name=display_name or email,
            token_balance=token_balance,
            created_at=self.clock.now(),
        )
        new_id = self.store.create(
            USERS, account.to_document(exclude={"id"}), doc_id=user_id
        )
        logger.info("Registered user %s", new_id)
        return account.model_copy(update={"id": new_id})

    def get_user(self, user_id: str) -> Optional[UserAccount]:
        doc = self.store.get(USERS, user_id)
        return UserAccount.from_document(doc) if doc else None

    def sign_in(self, user_id: str) -> UserAccount:
        """Make user_id the signed-in user."""
        account = self.get_user(user_id)
        if not account:
            raise NotFoundError(f"User not found: {user_id}")
        self.user_id = user_id
        return account

    def sign_out(self) -> None:
        self.user_id = None

    def get_current_user(self) -> Optional[UserAccount]:
        if not self.user_id:
            return None
        return self.get_user(self.user_id)

    def update_token_balance(self, user_id: str, new_balance: float) -> None:
        """Overwrite a user's token balance.

        Raises:
            ValueError: If the balance would be negative
            NotFoundError: If the user does not exist
        """
        if new_balance < 0:
            raise ValueError(f"Token balance cannot be negative: {new_balance}")
        try:
            self.store.update(USERS, user_id, {"tokenBalance": new_balance})
        except DocumentNotFoundError as e:
            raise NotFoundError(f"User not found: {user_id}") from e
