"""Challenge lifecycle, persistence and schemas."""

from .lifecycle import ChallengeLifecycle, ProgressUpdateResult
from .progress import compute_progress
from .repository import CHALLENGE_GROUPS, CHALLENGES, USER_CHALLENGES, ChallengeRepository
from .schemas import (
    AvailableChallenge,
    Challenge,
    ChallengeCreate,
    ChallengeGroup,
    ChallengeGroupCreate,
    ChallengeListing,
    ChallengeStatus,
    ChallengeType,
    ChallengeUpdate,
    ChallengeVisibility,
    CheckInResult,
    GroupStatus,
    OwnedChallenge,
    UserChallenge,
)

__all__ = [
    # Core
    "ChallengeLifecycle",
    "ChallengeRepository",
    "ProgressUpdateResult",
    "compute_progress",
    # Collections
    "CHALLENGES",
    "CHALLENGE_GROUPS",
    "USER_CHALLENGES",
    # Enums
    "ChallengeStatus",
    "ChallengeType",
    "ChallengeVisibility",
    "GroupStatus",
    # Schemas
    "AvailableChallenge",
    "Challenge",
    "ChallengeCreate",
    "ChallengeGroup",
    "ChallengeGroupCreate",
    "ChallengeListing",
    "ChallengeUpdate",
    "CheckInResult",
    "OwnedChallenge",
    "UserChallenge",
]
