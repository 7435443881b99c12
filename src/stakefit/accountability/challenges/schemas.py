"""Pydantic schemas for challenges and participation records."""

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..db.schemas import DocumentModel, Timestamp


class ChallengeType(str, Enum):
    """Metric a challenge is measured in."""

    STEPS = "steps"
    ACTIVE_MINUTES = "activeMinutes"
    HEART_RATE = "heartRate"  # Recognized, no progress formula
    SLEEP_HOURS = "sleepHours"  # Recognized, no progress formula


class ChallengeStatus(str, Enum):
    """Status of a challenge or a participation record."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChallengeVisibility(str, Enum):
    """Who can discover a challenge."""

    PUBLIC = "public"
    PRIVATE = "private"
    INVITE_ONLY = "invite_only"


class ChallengeCreate(DocumentModel):
    """Schema for creating a challenge.

    Value rules (dates, positive amounts, non-empty text) are checked by
    the lifecycle so that every violation is reported at once.
    """

    title: str
    description: str
    challenge_type: ChallengeType = Field(ChallengeType.STEPS, alias="type")
    goal: float
    stake: float
    start_date: Timestamp
    end_date: Timestamp
    visibility: ChallengeVisibility = ChallengeVisibility.PUBLIC
    group_id: Optional[str] = None
    category: Optional[str] = None


class ChallengeUpdate(DocumentModel):
    """Schema for creator edits. Stake, status and membership are not editable."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    goal: Optional[float] = None
    start_date: Optional[Timestamp] = None
    end_date: Optional[Timestamp] = None
    visibility: Optional[ChallengeVisibility] = None
    group_id: Optional[str] = None
    category: Optional[str] = None


class Challenge(DocumentModel):
    """A shared, multi-participant goal."""

    id: Optional[str] = None
    title: str
    description: str
    challenge_type: ChallengeType = Field(alias="type")
    goal: float
    stake: float
    start_date: Timestamp
    end_date: Timestamp
    created_by: str
    participants: list[str] = Field(default_factory=list)
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    visibility: ChallengeVisibility = ChallengeVisibility.PUBLIC
    group_id: Optional[str] = None
    category: Optional[str] = None
    prize_pool: float = 0.0
    ledger_address: Optional[str] = None
    created_at: Timestamp
    updated_at: Timestamp

    def __repr__(self) -> str:
        return f"<Challenge(id={self.id}, title='{self.title}', status={self.status.value})>"

    def is_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def has_ended(self, now: datetime) -> bool:
        return self.end_date <= now

    @property
    def is_active(self) -> bool:
        return self.status == ChallengeStatus.ACTIVE


class UserChallenge(DocumentModel):
    """One participant's progress record against a challenge."""

    id: Optional[str] = None
    challenge_id: str
    user_id: str
    display_name: str
    title: str
    challenge_type: ChallengeType = Field(alias="type")
    goal: float
    stake: float
    start_date: Timestamp
    end_date: Timestamp
    group_id: Optional[str] = None
    progress: float = Field(0.0, ge=0, le=100)
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    joined_at: Timestamp
    updated_at: Timestamp
    completed_at: Optional[Timestamp] = None
    last_check_in: Optional[Timestamp] = None

    @staticmethod
    def make_id(user_id: str, challenge_id: str) -> str:
        """Record id for a (user, challenge) pair."""
        return f"{user_id}_{challenge_id}"

    @classmethod
    def for_participant(
        cls,
        challenge: Challenge,
        user_id: str,
        display_name: str,
        now: datetime,
    ) -> "UserChallenge":
        """Build a fresh participation record from a challenge snapshot."""
        return cls(
            id=cls.make_id(user_id, challenge.id),
            challenge_id=challenge.id,
            user_id=user_id,
            display_name=display_name,
            title=challenge.title,
            challenge_type=challenge.challenge_type,
            goal=challenge.goal,
            stake=challenge.stake,
            start_date=challenge.start_date,
            end_date=challenge.end_date,
            group_id=challenge.group_id,
            joined_at=now,
            updated_at=now,
        )

    def has_ended(self, now: datetime) -> bool:
        return self.end_date <= now

    def total_days(self) -> int:
        """Days the challenge runs, counting a started day as a whole one."""
        return max(1, math.ceil((self.end_date - self.start_date) / timedelta(days=1)))


class OwnedChallenge(BaseModel):
    """A challenge the current user participates in."""

    kind: Literal["owned"] = "owned"
    challenge: UserChallenge

    @property
    def challenge_id(self) -> str:
        return self.challenge.challenge_id


class AvailableChallenge(BaseModel):
    """A public challenge the current user has not joined."""

    kind: Literal["available"] = "available"
    challenge: Challenge

    @property
    def challenge_id(self) -> str:
        return self.challenge.id


ChallengeListing = Annotated[
    Union[OwnedChallenge, AvailableChallenge],
    Field(discriminator="kind"),
]


class CheckInResult(BaseModel):
    """Outcome of a daily check-in."""

    success: bool = True
    message: str = "Check-in successful"
    progress: float


# ============================================================================
# Groups
# ============================================================================


class GroupStatus(str, Enum):
    """Whether a group is still being set up or has a challenge running."""

    PENDING = "pending"
    ACTIVE = "active"


class ChallengeGroupCreate(DocumentModel):
    """Schema for creating a group."""

    name: str
    description: str = ""
    visibility: ChallengeVisibility = ChallengeVisibility.PUBLIC
    max_participants: Optional[int] = None


class ChallengeGroup(DocumentModel):
    """A set of users taking on challenges together."""

    id: Optional[str] = None
    name: str
    description: str = ""
    created_by: str
    members: list[str] = Field(default_factory=list)
    admins: list[str] = Field(default_factory=list)
    visibility: ChallengeVisibility = ChallengeVisibility.PUBLIC
    challenge_id: Optional[str] = None
    max_participants: Optional[int] = None
    status: GroupStatus = GroupStatus.PENDING
    created_at: Timestamp
    updated_at: Timestamp

    def __repr__(self) -> str:
        return f"<ChallengeGroup(id={self.id}, name='{self.name}', members={len(self.members)})>"

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members

    @property
    def is_full(self) -> bool:
        return self.max_participants is not None and len(self.members) >= self.max_participants
