"""Progress formulas per challenge type."""

from typing import Optional

from ..errors import UnsupportedTypeError
from ..health.schemas import DailyMetrics
from .schemas import ChallengeType

SUPPORTED_TYPES = (ChallengeType.STEPS, ChallengeType.ACTIVE_MINUTES)


def ensure_supported(challenge_type: ChallengeType) -> None:
    """Raise UnsupportedTypeError for types without a progress formula."""
    if challenge_type not in SUPPORTED_TYPES:
        raise UnsupportedTypeError(ChallengeType(challenge_type).value)


def compute_progress(
    challenge_type: ChallengeType,
    goal: float,
    metrics: Optional[DailyMetrics],
) -> float:
    """Percentage of goal reached today, clamped to [0, 100].

    Args:
        challenge_type: Metric the goal is measured in
        goal: Target value, must be positive
        metrics: Today's metrics, None when nothing has been recorded

    Returns:
        Progress percentage
    """
    ensure_supported(challenge_type)
    if metrics is None or goal <= 0:
        return 0.0

    if challenge_type == ChallengeType.STEPS:
        value = metrics.steps
    else:
        value = metrics.active_minutes

    return max(0.0, min(100.0, value / goal * 100))
