"""Business-rule validation for challenge creation and edits."""

from datetime import datetime
from typing import Optional

from ..errors import ValidationError
from .schemas import Challenge, ChallengeCreate, ChallengeGroupCreate, ChallengeUpdate

# Fields an edit may set back to null
CLEARABLE_ON_EDIT = frozenset({"group_id", "category"})


def _schedule_violations(start: datetime, end: datetime, now: datetime) -> list[str]:
    violations = []
    if end <= start:
        violations.append("end date must be after start date")
    if end <= now:
        violations.append("end date must be in the future")
    return violations


def _text_violations(title: Optional[str], description: Optional[str]) -> list[str]:
    violations = []
    if title is not None and not title.strip():
        violations.append("title must not be empty")
    if description is not None and not description.strip():
        violations.append("description must not be empty")
    return violations


def new_challenge_violations(data: ChallengeCreate, now: datetime) -> list[str]:
    """List every rule a new challenge breaks.

    Args:
        data: Creation parameters
        now: Current time

    Returns:
        Human-readable violations, empty if valid
    """
    violations = _schedule_violations(data.start_date, data.end_date, now)
    if data.stake <= 0:
        violations.append("stake must be greater than 0")
    if data.goal <= 0:
        violations.append("goal must be greater than 0")
    violations.extend(_text_violations(data.title, data.description))
    return violations


def update_violations(challenge: Challenge, data: ChallengeUpdate, now: datetime) -> list[str]:
    """List every rule an edit would break, checked against the merged result."""
    violations = []

    for name in sorted(data.model_fields_set - CLEARABLE_ON_EDIT):
        if getattr(data, name) is None:
            violations.append(f"{name.replace('_', ' ')} cannot be cleared")

    if data.start_date is not None or data.end_date is not None:
        start = data.start_date or challenge.start_date
        end = data.end_date or challenge.end_date
        violations.extend(_schedule_violations(start, end, now))

    if data.goal is not None and data.goal <= 0:
        violations.append("goal must be greater than 0")

    violations.extend(_text_violations(data.title, data.description))
    return violations


def ensure_valid_new_challenge(data: ChallengeCreate, now: datetime) -> None:
    """Raise ValidationError if the new challenge breaks any rule."""
    violations = new_challenge_violations(data, now)
    if violations:
        raise ValidationError(violations)


def ensure_valid_update(challenge: Challenge, data: ChallengeUpdate, now: datetime) -> None:
    """Raise ValidationError if the edit breaks any rule."""
    violations = update_violations(challenge, data, now)
    if violations:
        raise ValidationError(violations)


def group_violations(data: ChallengeGroupCreate) -> list[str]:
    """List every rule a new group breaks."""
    violations = []
    if not data.name.strip():
        violations.append("group name must not be empty")
    if data.max_participants is not None and data.max_participants < 1:
        violations.append("max participants must be at least 1")
    return violations


def ensure_valid_group(data: ChallengeGroupCreate) -> None:
    """Raise ValidationError if the new group breaks any rule."""
    violations = group_violations(data)
    if violations:
        raise ValidationError(violations)
