"""Challenge lifecycle: create, join, leave, progress and settlement.

Coordinates the repository, the signed-in user's token balance, the
progress source and the staking ledger. Business rules are checked before
any side effect. Ledger calls and store writes cannot share a transaction,
so each ledger call is recorded in the intent log when one is configured.
"""

import functools
import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..auth.provider import AuthProvider
from ..auth.schemas import UserAccount
from ..cache import TTLCache
from ..clock import Clock, SystemClock
from ..db.schemas import format_timestamp
from ..errors import (
    AuthenticationError,
    ChallengeError,
    ConflictError,
    ExternalServiceError,
    InsufficientFundsError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from ..health.source import ProgressSource
from ..ledger.base import Ledger
from ..ledger.outbox import LedgerIntentLog
from .progress import compute_progress, ensure_supported
from .repository import ChallengeRepository
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
    CheckInResult,
    GroupStatus,
    OwnedChallenge,
    UserChallenge,
)
from .validation import ensure_valid_group, ensure_valid_new_challenge, ensure_valid_update

logger = logging.getLogger(__name__)

T = TypeVar("T")

AVAILABLE_CHALLENGES_KEY = "available_challenges"


def reported(fn: Callable[..., T]) -> Callable[..., T]:
    """Log failures of collaborating services and re-raise them."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ExternalServiceError as e:
            logger.error("%s failed [%s]: %s", fn.__name__, e.code, e)
            raise

    return wrapper


def _parse(model: type, params) -> object:
    if isinstance(params, model):
        return params
    try:
        return model.model_validate(params)
    except PydanticValidationError as e:
        raise ValidationError(
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        ) from e


@dataclass
class ProgressUpdateResult:
    """Result of a batch progress pass."""

    updated: int = 0
    completion_checked: int = 0
    skipped: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)
    already_running: bool = False

    @property
    def total(self) -> int:
        return self.updated + self.completion_checked

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class ChallengeLifecycle:
    """Challenge operations for the signed-in user."""

    def __init__(
        self,
        repository: ChallengeRepository,
        auth: AuthProvider,
        progress_source: ProgressSource,
        ledger: Ledger,
        clock: Optional[Clock] = None,
        cache: Optional[TTLCache] = None,
        intents: Optional[LedgerIntentLog] = None,
    ):
        """Initialize lifecycle.

        Args:
            repository: Challenge persistence
            auth: Signed-in user and token balance
            progress_source: Today's health metrics
            ledger: Staking ledger
            clock: Time source (system clock if not provided)
            cache: Cache for the available challenges list
            intents: Ledger intent log, ledger calls are unrecorded without it
        """
        self.repository = repository
        self.auth = auth
        self.progress_source = progress_source
        self.ledger = ledger
        self.clock = clock or SystemClock()
        self.cache = cache if cache is not None else TTLCache(clock=self.clock)
        self.intents = intents

        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    # ========================================================================
    # Helpers
    # ========================================================================

    def _current_user(self) -> UserAccount:
        user = self.auth.get_current_user()
        if not user:
            raise AuthenticationError()
        return user

    def _get_existing(self, challenge_id: str, session: Optional[Session] = None) -> Challenge:
        challenge = self.repository.get(challenge_id, session=session)
        if not challenge:
            raise NotFoundError(f"Challenge not found: {challenge_id}")
        return challenge

    def _get_group(self, group_id: str, session: Optional[Session] = None) -> ChallengeGroup:
        group = self.repository.get_group(group_id, session=session)
        if not group:
            raise NotFoundError(
                f"Group not found: {group_id}", user_message="We couldn't find that group."
            )
        return group

    def _check_group_attachable(
        self, group_id: str, user_id: str, session: Optional[Session] = None
    ) -> None:
        group = self._get_group(group_id, session=session)
        if user_id not in group.admins:
            raise ConflictError(
                f"User {user_id} is not an admin of group {group_id}",
                user_message="Only a group admin can start its challenge.",
            )
        if group.challenge_id:
            raise ConflictError(
                f"Group {group_id} already runs challenge {group.challenge_id}",
                user_message="This group already has a challenge.",
            )

    def _ledger_call(
        self,
        operation: str,
        call: Callable[[], T],
        user_id: str,
        amount: float,
        challenge_id: Optional[str] = None,
    ) -> tuple[T, Optional[str]]:
        """Run a ledger call bracketed by an intent.

        Returns:
            (ledger result, intent id or None)
        """
        intent_id = None
        if self.intents:
            intent_id = self.intents.record_intent(
                operation, user_id, amount, challenge_id=challenge_id
            )
        try:
            result = call()
        except LedgerError as e:
            if intent_id:
                self.intents.mark_failed(intent_id, str(e))
            raise
        except Exception as e:
            if intent_id:
                self.intents.mark_failed(intent_id, str(e))
            raise LedgerError(f"Ledger {operation} failed: {e}") from e

        if intent_id:
            details = {"result": result} if isinstance(result, str) else {}
            self.intents.mark_ledger_applied(intent_id, **details)
        return result, intent_id

    def _settle(self, intent_id: Optional[str]) -> None:
        if intent_id:
            self.intents.mark_settled(intent_id)

    def _invalidate_available(self) -> None:
        try:
            self.cache.invalidate(AVAILABLE_CHALLENGES_KEY)
        except Exception as e:
            logger.warning("Cache invalidation failed: %s", e)

    # ========================================================================
    # Creation and Membership
    # ========================================================================

    @reported
    def create_challenge(self, params: Union[ChallengeCreate, dict]) -> Challenge:
        """Create a challenge with the caller as first participant.

        The creator stakes like any other participant. When params name a
        group, the group must be one the caller administers that has no
        challenge yet; it is attached to the new challenge.

        Args:
            params: Creation parameters (model or document-style dict)

        Returns:
            The stored challenge, with its ledger address when the ledger
            account was opened

        Raises:
            ValidationError: Listing every broken rule; nothing is written
            NotFoundError: If the named group does not exist
            ConflictError: If the group cannot take this challenge
            InsufficientFundsError: If the balance cannot cover the stake
        """
        user = self._current_user()
        now = self.clock.now()
        data = _parse(ChallengeCreate, params)
        ensure_valid_new_challenge(data, now)
        if data.group_id:
            self._check_group_attachable(data.group_id, user.id)
        if user.token_balance < data.stake:
            raise InsufficientFundsError(user.token_balance, data.stake)

        self.ledger.init_wallet()

        challenge = Challenge(
            title=data.title,
            description=data.description,
            challenge_type=data.challenge_type,
            goal=data.goal,
            stake=data.stake,
            start_date=data.start_date,
            end_date=data.end_date,
            created_by=user.id,
            participants=[user.id],
            status=ChallengeStatus.ACTIVE,
            visibility=data.visibility,
            group_id=data.group_id,
            category=data.category,
            prize_pool=data.stake,
            created_at=now,
            updated_at=now,
        )

        def _persist(s: Session) -> Challenge:
            challenge_id = self.repository.create(challenge, session=s)
            stored = challenge.model_copy(update={"id": challenge_id})
            record = UserChallenge.for_participant(stored, user.id, user.display_name, now)
            self.repository.create_user_challenge(record, session=s)
            if data.group_id:
                self._check_group_attachable(data.group_id, user.id, session=s)
                self.repository.update_group(
                    data.group_id,
                    {"challengeId": challenge_id, "status": GroupStatus.ACTIVE.value},
                    session=s,
                )
            return stored

        challenge = self.repository.store.run_transaction(_persist)
        self.auth.update_token_balance(user.id, user.token_balance - challenge.stake)

        address, intent_id = self._ledger_call(
            "create_account",
            lambda: self.ledger.create_account(challenge.id, challenge.stake),
            user.id,
            challenge.stake,
            challenge_id=challenge.id,
        )
        challenge = self.repository.update(challenge.id, {"ledgerAddress": address})
        self._settle(intent_id)

        self._invalidate_available()
        logger.info("challenge_created id=%s user=%s stake=%s", challenge.id, user.id, challenge.stake)
        return challenge

    @reported
    def join_challenge(self, challenge_id: str) -> UserChallenge:
        """Join a challenge, staking its stake from the caller's balance.

        Raises:
            NotFoundError: If the challenge does not exist
            ConflictError: If already joined or the challenge is not active
            InsufficientFundsError: If the balance cannot cover the stake
        """
        user = self._current_user()
        challenge = self._get_existing(challenge_id)

        if not challenge.is_active:
            raise ConflictError(
                f"Challenge {challenge_id} is {challenge.status.value}",
                user_message="This challenge is no longer open.",
            )
        if challenge.is_participant(user.id) or self.repository.get_user_challenge(
            challenge_id, user.id
        ):
            raise ConflictError(
                f"Already joined challenge {challenge_id}",
                user_message="You've already joined this challenge.",
            )
        if user.token_balance < challenge.stake:
            raise InsufficientFundsError(user.token_balance, challenge.stake)

        self.ledger.init_wallet()

        intent_id = None
        if challenge.ledger_address:
            _, intent_id = self._ledger_call(
                "add_stake",
                lambda: self.ledger.add_stake(challenge.ledger_address, challenge.stake),
                user.id,
                challenge.stake,
                challenge_id=challenge_id,
            )

        now = self.clock.now()

        def _join(s: Session) -> UserChallenge:
            current = self._get_existing(challenge_id, session=s)
            if current.is_participant(user.id):
                raise ConflictError(f"Already joined challenge {challenge_id}")
            self.repository.update(
                challenge_id,
                {
                    "participants": current.participants + [user.id],
                    "prizePool": current.prize_pool + current.stake,
                },
                session=s,
            )
            record = UserChallenge.for_participant(current, user.id, user.display_name, now)
            self.repository.create_user_challenge(record, session=s)
            return record

        record = self.repository.store.run_transaction(_join)
        self._settle(intent_id)

        self.auth.update_token_balance(user.id, user.token_balance - challenge.stake)

        self._invalidate_available()
        logger.info("challenge_joined id=%s user=%s stake=%s", challenge_id, user.id, challenge.stake)
        return record

    @reported
    def leave_challenge(self, challenge_id: str) -> None:
        """Leave an active challenge and get the stake back as tokens.

        Records are keyed by (user, challenge), so only the caller's own
        record can be found here.

        Raises:
            NotFoundError: If the caller has no record for the challenge
            ConflictError: If the challenge is no longer active
        """
        user = self._current_user()
        record = self.repository.get_user_challenge(challenge_id, user.id)
        if not record:
            raise NotFoundError(
                f"No participation of {user.id} in {challenge_id}",
                user_message="You haven't joined this challenge.",
            )

        challenge = self._get_existing(challenge_id)
        if not challenge.is_active:
            raise ConflictError(
                f"Cannot leave {challenge.status.value} challenge {challenge_id}",
                user_message="A finished challenge can't be left.",
            )

        def _leave(s: Session) -> None:
            current = self._get_existing(challenge_id, session=s)
            prize_pool = current.prize_pool - record.stake
            if prize_pool < 0:
                logger.warning(
                    "Prize pool of %s would go negative (%s), clamping to 0",
                    challenge_id,
                    prize_pool,
                )
                prize_pool = 0.0
            self.repository.update(
                challenge_id,
                {
                    "participants": [p for p in current.participants if p != user.id],
                    "prizePool": prize_pool,
                },
                session=s,
            )
            self.repository.delete_user_challenge(record.id, session=s)

        self.repository.store.run_transaction(_leave)

        refreshed = self.auth.get_current_user() or user
        self.auth.update_token_balance(user.id, refreshed.token_balance + record.stake)

        self._invalidate_available()
        logger.info("challenge_left id=%s user=%s refund=%s", challenge_id, user.id, record.stake)

    # ========================================================================
    # Reads and Edits
    # ========================================================================

    @reported
    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        return self.repository.get(challenge_id)

    @reported
    def update_challenge(
        self,
        challenge_id: str,
        fields: Union[ChallengeUpdate, dict],
    ) -> Challenge:
        """Apply a creator edit.

        Raises:
            NotFoundError: If the challenge does not exist
            ConflictError: If the caller is not the creator or it is not active
            ValidationError: If the edited challenge would break a rule
        """
        user = self._current_user()
        data = _parse(ChallengeUpdate, fields)
        challenge = self._get_existing(challenge_id)

        if challenge.created_by != user.id:
            raise ConflictError(
                f"User {user.id} did not create challenge {challenge_id}",
                user_message="Only the creator can edit this challenge.",
            )
        if not challenge.is_active:
            raise ConflictError(
                f"Cannot edit {challenge.status.value} challenge {challenge_id}",
                user_message="A finished challenge can't be edited.",
            )

        ensure_valid_update(challenge, data, self.clock.now())

        changes = data.to_document(exclude_unset=True)
        if not changes:
            return challenge
        updated = self.repository.update(challenge_id, changes)
        self._invalidate_available()
        return updated

    @reported
    def get_user_challenges(self) -> list[UserChallenge]:
        """The caller's active participation records, with their progress."""
        user = self._current_user()
        return self.repository.list_user_challenges(user.id, ChallengeStatus.ACTIVE)

    @reported
    def get_challenges(self, category: Optional[str] = None) -> list[Challenge]:
        """Public challenges that have not ended, soonest to end first."""
        return self.repository.query_open(self.clock.now(), category)

    @reported
    def get_public_challenges(self, limit: int = 10) -> list[Challenge]:
        return self.repository.query_public(limit)

    @reported
    def get_available_challenges(self) -> list[Challenge]:
        """Public, active, not-yet-ended challenges, served from cache when fresh."""
        try:
            cached = self.cache.get(AVAILABLE_CHALLENGES_KEY)
        except Exception as e:
            logger.warning("Cache read failed: %s", e)
            cached = None
        if cached is not None:
            return list(cached)

        challenges = self.repository.query_available(self.clock.now())
        try:
            self.cache.set(AVAILABLE_CHALLENGES_KEY, challenges)
        except Exception as e:
            logger.warning("Cache write failed: %s", e)
        return list(challenges)

    @reported
    def get_all_challenges(self) -> list[ChallengeListing]:
        """The caller's active challenges followed by ones they could join."""
        user = self._current_user()
        owned = self.repository.list_user_challenges(user.id, ChallengeStatus.ACTIVE)
        joined = {record.challenge_id for record in owned}

        listings: list[ChallengeListing] = [OwnedChallenge(challenge=r) for r in owned]
        listings.extend(
            AvailableChallenge(challenge=c)
            for c in self.get_available_challenges()
            if c.id not in joined and not c.is_participant(user.id)
        )
        return listings

    # ========================================================================
    # Progress and Settlement
    # ========================================================================

    @reported
    def get_challenge_progress(self, challenge_type: ChallengeType, goal: float) -> float:
        """Today's progress towards goal as a percentage in [0, 100].

        Raises:
            UnsupportedTypeError: If the type has no progress formula
            ProgressSourceError: If metrics cannot be fetched
        """
        ensure_supported(challenge_type)
        metrics = self.progress_source.get_today_metrics()
        return compute_progress(challenge_type, goal, metrics)

    @reported
    def check_challenge_completion(self, challenge_id: str) -> bool:
        """Settle the challenge for the caller if their goal is reached.

        Returns:
            True if this call completed the challenge, False if nothing changed

        Raises:
            NotFoundError: If the challenge does not exist
            ConflictError: If the caller is not a participant
        """
        user = self._current_user()
        challenge = self._get_existing(challenge_id)
        if not challenge.is_participant(user.id):
            raise ConflictError(
                f"User {user.id} is not a participant in {challenge_id}",
                user_message="You're not part of this challenge.",
            )

        progress = self.get_challenge_progress(challenge.challenge_type, challenge.goal)
        if progress < 100 or challenge.status == ChallengeStatus.COMPLETED:
            return False

        wallet = self.ledger.init_wallet()

        intent_id = None
        if challenge.ledger_address:
            _, intent_id = self._ledger_call(
                "payout",
                lambda: self.ledger.payout(challenge.ledger_address, wallet, challenge.stake),
                user.id,
                challenge.stake,
                challenge_id=challenge_id,
            )

        now = self.clock.now()

        def _complete(s: Session) -> None:
            self.repository.update(
                challenge_id, {"status": ChallengeStatus.COMPLETED.value}, session=s
            )
            record = self.repository.get_user_challenge(challenge_id, user.id, session=s)
            if record:
                self.repository.update_user_challenge(
                    record.id,
                    {
                        "status": ChallengeStatus.COMPLETED.value,
                        "progress": 100.0,
                        "completedAt": format_timestamp(now),
                    },
                    session=s,
                )

        self.repository.store.run_transaction(_complete)
        self._settle(intent_id)

        refreshed = self.auth.get_current_user() or user
        self.auth.update_token_balance(user.id, refreshed.token_balance + challenge.stake)

        self._invalidate_available()
        logger.info(
            "challenge_completed id=%s user=%s reward=%s", challenge_id, user.id, challenge.stake
        )
        return True

    @reported
    def update_all_challenges_progress(self) -> ProgressUpdateResult:
        """Refresh progress of all the caller's active participations.

        Ended challenges are routed to completion checks. A failing item is
        logged and recorded in the result; the rest of the pass continues.
        A record whose progress cannot be read is written as 0.
        A pass for a user that already has one running is skipped.
        """
        user = self._current_user()
        with self._in_flight_lock:
            if user.id in self._in_flight:
                logger.info("Progress update already running for %s", user.id)
                return ProgressUpdateResult(already_running=True)
            self._in_flight.add(user.id)

        try:
            return self._update_progress(user)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(user.id)

    def _update_progress(self, user: UserAccount) -> ProgressUpdateResult:
        result = ProgressUpdateResult()
        now = self.clock.now()

        active_ids = {
            c.id for c in self.repository.query_by_participant(user.id, ChallengeStatus.ACTIVE)
        }
        records = self.repository.list_user_challenges(user.id, ChallengeStatus.ACTIVE)

        progress_by_record: dict[str, float] = {}
        for record in records:
            if record.challenge_id not in active_ids:
                result.skipped += 1
                continue
            if record.has_ended(now):
                try:
                    self.check_challenge_completion(record.challenge_id)
                    result.completion_checked += 1
                except (ChallengeError, ExternalServiceError) as e:
                    logger.warning("Completion check failed for %s: %s", record.challenge_id, e)
                    result.errors.append((record.challenge_id, str(e)))
                continue

            # Unreadable or untrackable progress counts as no data yet
            try:
                progress = self.get_challenge_progress(record.challenge_type, record.goal)
            except (ChallengeError, ExternalServiceError) as e:
                logger.warning("Progress update failed for %s: %s", record.challenge_id, e)
                result.errors.append((record.challenge_id, str(e)))
                progress = 0.0
            progress_by_record[record.id] = progress

        if progress_by_record:
            result.updated = self.repository.set_progress_many(progress_by_record)

        logger.info(
            "challenges_progress_updated user=%s updated=%d checked=%d errors=%d",
            user.id,
            result.updated,
            result.completion_checked,
            len(result.errors),
        )
        return result

    # ========================================================================
    # Check-ins
    # ========================================================================

    @reported
    def check_in(self, record_id: str) -> CheckInResult:
        """Record today's check-in on a participation record.

        Each check-in advances progress by one day's share of the challenge,
        rounded half up and capped at 100.

        Args:
            record_id: UserChallenge id

        Raises:
            NotFoundError: If the record does not exist
            ConflictError: If the record is someone else's, is not active,
                has ended or was already checked in today
        """
        user = self._current_user()
        now = self.clock.now()
        record = self.repository.get_record(record_id)
        if not record:
            raise NotFoundError(
                f"Participation record not found: {record_id}",
                user_message="You haven't joined this challenge.",
            )
        if record.user_id != user.id:
            raise ConflictError(
                f"User {user.id} cannot check in for record {record_id}",
                user_message="You can only check in to your own challenges.",
            )
        if record.status != ChallengeStatus.ACTIVE:
            raise ConflictError(
                f"Record {record_id} is {record.status.value}",
                user_message="This challenge is not active.",
            )
        if record.has_ended(now):
            raise ConflictError(
                f"Challenge {record.challenge_id} has ended",
                user_message="This challenge has ended.",
            )
        if record.last_check_in and record.last_check_in.date() == now.date():
            raise ConflictError(
                f"Record {record_id} already checked in on {now.date().isoformat()}",
                user_message="You've already checked in today.",
            )

        step = 100 / record.total_days()
        progress = float(min(100, math.floor(record.progress + step + 0.5)))
        self.repository.update_user_challenge(
            record_id, {"progress": progress, "lastCheckIn": format_timestamp(now)}
        )

        logger.info(
            "challenge_checked_in id=%s user=%s progress=%s", record.challenge_id, user.id, progress
        )
        return CheckInResult(progress=progress)

    # ========================================================================
    # Groups
    # ========================================================================

    @reported
    def create_challenge_group(self, params: Union[ChallengeGroupCreate, dict]) -> ChallengeGroup:
        """Create a group with the caller as its first member and admin.

        Raises:
            ValidationError: If the name is empty or the size limit is below 1
        """
        user = self._current_user()
        data = _parse(ChallengeGroupCreate, params)
        ensure_valid_group(data)

        now = self.clock.now()
        group = ChallengeGroup(
            name=data.name.strip(),
            description=data.description,
            created_by=user.id,
            members=[user.id],
            admins=[user.id],
            visibility=data.visibility,
            max_participants=data.max_participants,
            status=GroupStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        group_id = self.repository.create_group(group)

        logger.info("group_created id=%s user=%s", group_id, user.id)
        return group.model_copy(update={"id": group_id})

    @reported
    def get_challenge_groups(self) -> list[ChallengeGroup]:
        """Public groups and the groups the caller belongs to."""
        user = self._current_user()
        return self.repository.list_groups_for(user.id)

    @reported
    def create_group_challenge(
        self,
        params: Union[ChallengeCreate, dict],
        group_params: Union[ChallengeGroupCreate, dict],
    ) -> tuple[Challenge, ChallengeGroup]:
        """Create a group and the challenge it runs.

        Both parameter sets are validated before anything is written. The
        group is stored first; if the challenge cannot be created the group
        stays pending and can be given a challenge later.

        Returns:
            (challenge, group)
        """
        user = self._current_user()
        data = _parse(ChallengeCreate, params)
        group_data = _parse(ChallengeGroupCreate, group_params)
        ensure_valid_group(group_data)
        ensure_valid_new_challenge(data, self.clock.now())
        if user.token_balance < data.stake:
            raise InsufficientFundsError(user.token_balance, data.stake)

        group = self.create_challenge_group(group_data)
        challenge = self.create_challenge(data.model_copy(update={"group_id": group.id}))
        return challenge, self.repository.get_group(group.id)

    @reported
    def join_group_challenge(self, group_id: str) -> UserChallenge:
        """Join a group and stake on the challenge it runs.

        Raises:
            NotFoundError: If the group does not exist
            ConflictError: If already a member, the group is full or it has
                no challenge yet
            InsufficientFundsError: If the balance cannot cover the stake
        """
        user = self._current_user()
        group = self._get_group(group_id)
        if group.is_member(user.id):
            raise ConflictError(
                f"Already a member of group {group_id}",
                user_message="You're already a member of this group.",
            )
        if group.is_full:
            raise ConflictError(f"Group {group_id} is full", user_message="This group is full.")
        if not group.challenge_id:
            raise ConflictError(
                f"Group {group_id} has no challenge",
                user_message="This group has no challenge to join yet.",
            )

        record = self.join_challenge(group.challenge_id)

        def _add_member(s: Session) -> None:
            current = self._get_group(group_id, session=s)
            if not current.is_member(user.id):
                self.repository.update_group(
                    group_id, {"members": current.members + [user.id]}, session=s
                )

        self.repository.store.run_transaction(_add_member)

        logger.info(
            "group_joined id=%s user=%s challenge=%s", group_id, user.id, group.challenge_id
        )
        return record
