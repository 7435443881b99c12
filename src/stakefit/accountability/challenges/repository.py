"""Typed persistence for challenges and participation records.

No business rules live here; the lifecycle decides what may be written.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..clock import Clock, SystemClock
from ..db.schemas import format_timestamp
from ..db.store import DocumentStore, Filter, WriteOp
from ..errors import DocumentNotFoundError, NotFoundError
from .schemas import (
    Challenge,
    ChallengeGroup,
    ChallengeStatus,
    ChallengeVisibility,
    UserChallenge,
)

CHALLENGES = "challenges"
USER_CHALLENGES = "userChallenges"
CHALLENGE_GROUPS = "challengeGroups"


class ChallengeRepository:
    """CRUD for Challenge and UserChallenge documents."""

    def __init__(self, store: DocumentStore, clock: Optional[Clock] = None):
        """Initialize repository.

        Args:
            store: Document store
            clock: Time source for updatedAt stamps
        """
        self.store = store
        self.clock = clock or SystemClock()

    # ========================================================================
    # Challenges
    # ========================================================================

    def create(self, challenge: Challenge, session: Optional[Session] = None) -> str:
        """Insert a challenge and return the store-assigned id."""
        data = challenge.to_document(exclude={"id"})
        return self.store.create(CHALLENGES, data, session=session)

    def get(self, challenge_id: str, session: Optional[Session] = None) -> Optional[Challenge]:
        """Get a challenge by id, or None if it does not exist."""
        doc = self.store.get(CHALLENGES, challenge_id, session=session)
        return Challenge.from_document(doc) if doc else None

    def update(
        self,
        challenge_id: str,
        fields: dict,
        session: Optional[Session] = None,
    ) -> Challenge:
        """Merge document fields into a challenge, stamping updatedAt.

        Args:
            challenge_id: Challenge id
            fields: camelCase document fields to merge

        Returns:
            The updated challenge

        Raises:
            NotFoundError: If the challenge does not exist
        """
        fields = {**fields, "updatedAt": format_timestamp(self.clock.now())}
        try:
            doc = self.store.update(CHALLENGES, challenge_id, fields, session=session)
        except DocumentNotFoundError as e:
            raise NotFoundError(f"Challenge not found: {challenge_id}") from e
        return Challenge.from_document(doc)

    def query_by_participant(
        self,
        user_id: str,
        status: ChallengeStatus,
        session: Optional[Session] = None,
    ) -> list[Challenge]:
        """Challenges with the given status that include user_id."""
        docs = self.store.query(
            CHALLENGES,
            [
                Filter("status", "==", status.value),
                Filter("participants", "array_contains", user_id),
            ],
            session=session,
        )
        return [Challenge.from_document(d) for d in docs]

    def query_public(self, limit: int = 10) -> list[Challenge]:
        """Newest active public challenges, at most limit of them."""
        docs = self.store.query(
            CHALLENGES,
            [
                Filter("visibility", "==", ChallengeVisibility.PUBLIC.value),
                Filter("status", "==", ChallengeStatus.ACTIVE.value),
            ],
            order_by="createdAt",
            descending=True,
            limit=limit,
        )
        return [Challenge.from_document(d) for d in docs]

    def query_available(self, now: datetime) -> list[Challenge]:
        """Active public challenges that have not ended yet."""
        docs = self.store.query(
            CHALLENGES,
            [
                Filter("visibility", "==", ChallengeVisibility.PUBLIC.value),
                Filter("status", "==", ChallengeStatus.ACTIVE.value),
                Filter("endDate", ">", format_timestamp(now)),
            ],
            order_by="createdAt",
            descending=True,
        )
        return [Challenge.from_document(d) for d in docs]

    def query_open(self, now: datetime, category: Optional[str] = None) -> list[Challenge]:
        """Public challenges that have not ended yet, optionally in one category."""
        filters = [
            Filter("visibility", "==", ChallengeVisibility.PUBLIC.value),
            Filter("endDate", ">", format_timestamp(now)),
        ]
        if category:
            filters.append(Filter("category", "==", category))
        docs = self.store.query(CHALLENGES, filters, order_by="endDate")
        return [Challenge.from_document(d) for d in docs]

    # ========================================================================
    # Participation Records
    # ========================================================================

    def get_user_challenge(
        self,
        challenge_id: str,
        user_id: str,
        session: Optional[Session] = None,
    ) -> Optional[UserChallenge]:
        """Get the participation record of user_id in challenge_id."""
        doc_id = UserChallenge.make_id(user_id, challenge_id)
        doc = self.store.get(USER_CHALLENGES, doc_id, session=session)
        return UserChallenge.from_document(doc) if doc else None

    def get_record(
        self, record_id: str, session: Optional[Session] = None
    ) -> Optional[UserChallenge]:
        """Get a participation record by its own id."""
        doc = self.store.get(USER_CHALLENGES, record_id, session=session)
        return UserChallenge.from_document(doc) if doc else None

    def list_user_challenges(
        self,
        user_id: str,
        status: Optional[ChallengeStatus] = None,
        session: Optional[Session] = None,
    ) -> list[UserChallenge]:
        """All participation records of a user, optionally by status."""
        filters = [Filter("userId", "==", user_id)]
        if status:
            filters.append(Filter("status", "==", status.value))
        docs = self.store.query(
            USER_CHALLENGES, filters, order_by="joinedAt", session=session
        )
        return [UserChallenge.from_document(d) for d in docs]

    def create_user_challenge(
        self,
        record: UserChallenge,
        session: Optional[Session] = None,
    ) -> str:
        """Insert a participation record keyed by (user, challenge)."""
        doc_id = UserChallenge.make_id(record.user_id, record.challenge_id)
        data = record.to_document(exclude={"id"})
        return self.store.create(USER_CHALLENGES, data, doc_id=doc_id, session=session)

    def update_user_challenge(
        self,
        record_id: str,
        fields: dict,
        session: Optional[Session] = None,
    ) -> UserChallenge:
        """Merge document fields into a participation record."""
        fields = {**fields, "updatedAt": format_timestamp(self.clock.now())}
        try:
            doc = self.store.update(USER_CHALLENGES, record_id, fields, session=session)
        except DocumentNotFoundError as e:
            raise NotFoundError(f"Participation record not found: {record_id}") from e
        return UserChallenge.from_document(doc)

    def delete_user_challenge(self, record_id: str, session: Optional[Session] = None) -> bool:
        """Delete a participation record. Returns True if it existed."""
        return self.store.delete(USER_CHALLENGES, record_id, session=session)

    def set_progress_many(self, progress_by_record: dict[str, float]) -> int:
        """Write progress for several records in one batch. Returns the count."""
        now = format_timestamp(self.clock.now())
        return self.store.batch_write(
            WriteOp.update(USER_CHALLENGES, record_id, {"progress": progress, "updatedAt": now})
            for record_id, progress in progress_by_record.items()
        )

    # ========================================================================
    # Groups
    # ========================================================================

    def create_group(
        self,
        group: ChallengeGroup,
        doc_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> str:
        """Insert a group and return its id."""
        data = group.to_document(exclude={"id"})
        return self.store.create(CHALLENGE_GROUPS, data, doc_id=doc_id, session=session)

    def get_group(
        self, group_id: str, session: Optional[Session] = None
    ) -> Optional[ChallengeGroup]:
        doc = self.store.get(CHALLENGE_GROUPS, group_id, session=session)
        return ChallengeGroup.from_document(doc) if doc else None

    def update_group(
        self,
        group_id: str,
        fields: dict,
        session: Optional[Session] = None,
    ) -> ChallengeGroup:
        """Merge document fields into a group, stamping updatedAt."""
        fields = {**fields, "updatedAt": format_timestamp(self.clock.now())}
        try:
            doc = self.store.update(CHALLENGE_GROUPS, group_id, fields, session=session)
        except DocumentNotFoundError as e:
            raise NotFoundError(f"Group not found: {group_id}") from e
        return ChallengeGroup.from_document(doc)

    def list_groups_for(self, user_id: str) -> list[ChallengeGroup]:
        """Public groups plus every group user_id belongs to, oldest first."""
        public = self.store.query(
            CHALLENGE_GROUPS,
            [Filter("visibility", "==", ChallengeVisibility.PUBLIC.value)],
        )
        joined = self.store.query(
            CHALLENGE_GROUPS, [Filter("members", "array_contains", user_id)]
        )
        by_id = {d["id"]: d for d in public + joined}
        groups = [ChallengeGroup.from_document(d) for d in by_id.values()]
        return sorted(groups, key=lambda g: g.created_at)
