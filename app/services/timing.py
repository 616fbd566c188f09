"""Time-box rules for a live interview.

All functions are pure; callers recompute the decision on every turn with a
freshly measured elapsed time.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

DEFAULT_DURATION_MINUTES = 30
GRACE_SECONDS = 30

CONCLUDE_ELAPSED_FRACTION = 0.90
CONCLUDE_REMAINING_MINUTES = 3
DYNAMIC_MIN_REMAINING_FRACTION = 0.25
DYNAMIC_MIN_REMAINING_MINUTES = 2


@dataclass(frozen=True)
class TimingDecision:
    duration_minutes: int
    elapsed_minutes: float
    remaining_minutes: float
    elapsed_fraction: float
    should_conclude: bool
    should_generate_dynamic_question: bool
    hard_ceiling_seconds: int


def effective_duration(duration: int | float | None, default: int = DEFAULT_DURATION_MINUTES) -> int:
    """Template duration in whole minutes; absent, zero or negative falls back to the default."""
    try:
        minutes = int(duration or 0)
    except (TypeError, ValueError):
        minutes = 0
    return minutes if minutes > 0 else default


def should_conclude(duration_minutes: float, elapsed_minutes: float) -> bool:
    remaining = duration_minutes - elapsed_minutes
    if elapsed_minutes / duration_minutes >= CONCLUDE_ELAPSED_FRACTION:
        return True
    # Interviews no longer than the threshold would otherwise conclude before the first question
    return duration_minutes > CONCLUDE_REMAINING_MINUTES and remaining <= CONCLUDE_REMAINING_MINUTES


def should_generate_dynamic_question(duration_minutes: float, elapsed_minutes: float) -> bool:
    remaining = duration_minutes - elapsed_minutes
    return (
        remaining / duration_minutes > DYNAMIC_MIN_REMAINING_FRACTION
        and remaining > DYNAMIC_MIN_REMAINING_MINUTES
    )


def hard_ceiling_seconds(duration_minutes: int, grace_seconds: int = GRACE_SECONDS) -> int:
    """Cutoff handed to the voice provider so the closing remarks are never truncated."""
    return int(duration_minutes * 60 + grace_seconds)


def elapsed_minutes_since(started_at: datetime | None, now: datetime | None = None) -> float:
    if started_at is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    return max(0.0, (now - started_at).total_seconds() / 60)


def evaluate(
    duration_minutes: int,
    elapsed_minutes: float,
    grace_seconds: int = GRACE_SECONDS,
) -> TimingDecision:
    duration = effective_duration(duration_minutes)
    remaining = duration - elapsed_minutes
    return TimingDecision(
        duration_minutes=duration,
        elapsed_minutes=elapsed_minutes,
        remaining_minutes=remaining,
        elapsed_fraction=elapsed_minutes / duration,
        should_conclude=should_conclude(duration, elapsed_minutes),
        should_generate_dynamic_question=should_generate_dynamic_question(duration, elapsed_minutes),
        hard_ceiling_seconds=hard_ceiling_seconds(duration, grace_seconds),
    )
