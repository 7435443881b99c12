"""Exception hierarchy for the challenge core.

Business-rule errors derive from ChallengeError and are raised before any
side effect. Failures of collaborating systems (document store, ledger,
progress source) derive from ExternalServiceError.

Every error carries a stable ``code`` and a ``user_message`` suitable for
showing to an end user; ``str(error)`` stays the developer-facing message.
"""

from typing import Optional


class AccountabilityError(Exception):
    """Base exception for the accountability core."""

    code = "ERROR"
    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class ChallengeError(AccountabilityError):
    """Base exception for challenge business-rule violations."""

    pass


class ValidationError(ChallengeError):
    """Raised when create or update parameters break a challenge rule."""

    code = "VALIDATION_FAILED"

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        message = "; ".join(self.violations)
        super().__init__(
            f"Invalid challenge: {message}",
            user_message=f"Please fix the following: {message}.",
        )


class NotFoundError(ChallengeError):
    """Raised when a referenced challenge or record does not exist."""

    code = "NOT_FOUND"
    default_user_message = "We couldn't find that challenge."


class DocumentNotFoundError(NotFoundError):
    """Raised by the document store when updating a missing document."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document not found: {collection}/{doc_id}")


class ConflictError(ChallengeError):
    """Raised when an operation conflicts with the current challenge state."""

    code = "CONFLICT"
    default_user_message = "That action isn't possible for this challenge right now."


class ConcurrentModificationError(ConflictError):
    """Raised when another writer changed a document during a transaction."""

    code = "CONCURRENT_MODIFICATION"
    default_user_message = "This challenge was just updated. Please try again."


class InsufficientFundsError(ChallengeError):
    """Raised when a token balance cannot cover a stake."""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, available: float, required: float):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient funds: {available:g} available, {required:g} required",
            user_message="You don't have enough tokens to stake on this challenge.",
        )


class UnsupportedTypeError(ChallengeError):
    """Raised when progress is requested for a type with no formula."""

    code = "UNSUPPORTED_TYPE"

    def __init__(self, challenge_type: str):
        self.challenge_type = challenge_type
        super().__init__(
            f"Progress tracking not supported for type: {challenge_type}",
            user_message="Progress for this kind of challenge can't be tracked yet.",
        )


class AuthenticationError(ChallengeError):
    """Raised when an operation needs a signed-in user."""

    code = "AUTH_REQUIRED"
    default_user_message = "Please sign in to continue."

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ExternalServiceError(AccountabilityError):
    """Base exception for failures of collaborating services."""

    code = "EXTERNAL_SERVICE_ERROR"
    default_user_message = (
        "A service we depend on isn't responding. Please check your connection "
        "and try again."
    )


class StoreError(ExternalServiceError):
    """Raised when the document store fails."""

    code = "STORE_ERROR"


class LedgerError(ExternalServiceError):
    """Raised when a ledger (staking program) call fails."""

    code = "LEDGER_ERROR"
    default_user_message = "The token ledger couldn't process this request."


class ProgressSourceError(ExternalServiceError):
    """Raised when health metrics cannot be fetched."""

    code = "PROGRESS_SOURCE_ERROR"
    default_user_message = "We couldn't read your activity data."


class ProgressSourceRateLimitError(ProgressSourceError):
    """Raised when the health data provider rate limits requests."""

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after
