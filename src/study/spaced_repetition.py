"""
SM-2 Spaced Repetition Scheduler.

Implements the SuperMemo SM-2 algorithm over SM2State.

Quality ratings:
    0: Complete blackout, no recall
    1: Incorrect, but remembered on seeing the answer
    2: Incorrect, but the answer seemed easy to recall
    3: Correct with serious difficulty
    4: Correct after hesitation
    5: Perfect response

Ease factor update:
    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), floored at 1.3

Every function takes an optional ``now`` (epoch ms) so callers and tests can
pin the clock.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from typing import Literal, TypeVar

from src.core.models import MIN_EASE_FACTOR, SM2State
from src.core.timeutil import MS_PER_DAY, now_ms, round_half_up

FlashcardRating = Literal["again", "hard", "good", "easy"]

_FLASHCARD_QUALITY: dict[str, int] = {
    "again": 1,
    "hard": 3,
    "good": 4,
    "easy": 5,
}

T = TypeVar("T")


def _now(now: int | None) -> int:
    return now_ms() if now is None else now


def calculate_sm2(current: SM2State, quality: int, now: int | None = None) -> SM2State:
    """
    Calculate the SM-2 state after a review.

    Args:
        current: State before the review
        quality: Response quality 0-5
        now: Review time in epoch ms (defaults to the current time)

    Returns:
        New SM2State; ``current`` is not modified

    Raises:
        ValueError: If quality is outside 0-5
    """
    if quality not in range(6):
        raise ValueError(f"SM-2 quality must be between 0 and 5, got {quality}")

    miss = 5 - quality
    ease_factor = max(MIN_EASE_FACTOR, current.ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))

    if quality < 3:
        repetitions = 0
        interval = 1
    else:
        repetitions = current.repetitions + 1
        if current.repetitions == 0:
            interval = 1
        elif current.repetitions == 1:
            interval = 6
        else:
            interval = round_half_up(current.interval * ease_factor)

    return SM2State(
        ease_factor=ease_factor,
        interval=interval,
        repetitions=repetitions,
        next_review_date=_now(now) + interval * MS_PER_DAY,
    )


def is_due(state: SM2State, now: int | None = None) -> bool:
    return state.next_review_date <= _now(now)


def get_days_overdue(state: SM2State, now: int | None = None) -> int:
    """Whole days past the due date (0 when not overdue)."""
    current = _now(now)
    if state.next_review_date >= current:
        return 0
    return (current - state.next_review_date) // MS_PER_DAY


def get_days_until_review(state: SM2State, now: int | None = None) -> int:
    """Days until the item is due, rounded up (negative when overdue)."""
    return math.ceil((state.next_review_date - _now(now)) / MS_PER_DAY)


def simple_to_quality(is_correct: bool, was_hard: bool = False) -> int:
    """Map a plain correct/incorrect result onto the SM-2 scale."""
    if not is_correct:
        return 1
    return 3 if was_hard else 4


def flashcard_to_quality(rating: FlashcardRating) -> int:
    """Map a flashcard self-assessment onto the SM-2 scale."""
    try:
        return _FLASHCARD_QUALITY[rating]
    except KeyError:
        raise ValueError(f"Unknown flashcard rating: {rating!r}") from None


def estimate_retention(state: SM2State, now: int | None = None) -> float:
    """
    Estimate recall probability with the forgetting curve R = e^(-t/S).

    t is days past the due date; S is the interval scaled by ease / 2.5.
    Items that are not yet due are assumed fully retained.
    """
    days_since_due = -get_days_until_review(state, now)
    if days_since_due <= 0:
        return 1.0

    stability = state.interval * (state.ease_factor / 2.5)
    if stability <= 0:
        return 0.0
    return max(0.0, min(1.0, math.exp(-days_since_due / stability)))


def sort_by_review_priority(
    items: Iterable[T],
    get_state: Callable[[T], SM2State],
    now: int | None = None,
) -> list[T]:
    """
    Order items most urgent first.

    Overdue items come first (most overdue leading), then the rest by lowest
    estimated retention. The sort is stable.
    """
    current = _now(now)

    def priority(item: T) -> tuple[int, float]:
        state = get_state(item)
        overdue = get_days_overdue(state, current)
        if overdue > 0:
            return (0, -overdue)
        return (1, estimate_retention(state, current))

    return sorted(items, key=priority)
