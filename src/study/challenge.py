"""
Challenge gating.

An exercise becomes a challenge when every item it practices is already
strong. Challenges run on a timer, require full tashkeel, hide the English
hint and, for word/meaning exercises, may flip direction.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass

from src.core.exercises import Exercise, MeaningToWordExercise, WordToMeaningExercise
from src.core.mastery import CHALLENGE_THRESHOLD, CHALLENGE_TIMER_SECONDS

ReversibleExercise = WordToMeaningExercise | MeaningToWordExercise

REVERSE_PROBABILITY = 0.5


@dataclass(frozen=True)
class ChallengeConfig:
    """How an exercise should be presented."""

    is_challenge: bool = False
    timer_seconds: int = 0
    require_tashkeel: bool = False
    hide_english_hint: bool = False
    reversed_direction: bool = False

    def to_dict(self) -> dict[str, bool | int]:
        return {
            "isChallenge": self.is_challenge,
            "timerSeconds": self.timer_seconds,
            "requireTashkeel": self.require_tashkeel,
            "hideEnglishHint": self.hide_english_hint,
            "reversedDirection": self.reversed_direction,
        }


DEFAULT_CONFIG = ChallengeConfig()


def is_reversible(exercise: Exercise) -> bool:
    return isinstance(exercise, (WordToMeaningExercise, MeaningToWordExercise))


def get_challenge_config(
    exercise: Exercise,
    get_strength: Callable[[str], int],
    random_source: Callable[[], float] = random.random,
    threshold: int = CHALLENGE_THRESHOLD,
    timer_seconds: int = CHALLENGE_TIMER_SECONDS,
) -> ChallengeConfig:
    """
    Decide whether an exercise runs in challenge mode.

    Args:
        exercise: The exercise about to be shown
        get_strength: Effective strength lookup by item id
        random_source: Returns a float in [0, 1); decides direction reversal
        threshold: Strength every item must reach
        timer_seconds: Countdown applied to challenges

    Returns:
        DEFAULT_CONFIG unless the exercise has items and all are >= threshold
    """
    if not exercise.item_ids:
        return DEFAULT_CONFIG

    if not all(get_strength(item_id) >= threshold for item_id in exercise.item_ids):
        return DEFAULT_CONFIG

    return ChallengeConfig(
        is_challenge=True,
        timer_seconds=timer_seconds,
        require_tashkeel=True,
        hide_english_hint=True,
        reversed_direction=is_reversible(exercise) and random_source() < REVERSE_PROBABILITY,
    )


def reverse_exercise(exercise: ReversibleExercise) -> ReversibleExercise:
    """
    Swap prompt and answer and flip the exercise direction.

    Raises:
        TypeError: If the exercise is not a word/meaning exercise
    """
    if isinstance(exercise, WordToMeaningExercise):
        target = MeaningToWordExercise
    elif isinstance(exercise, MeaningToWordExercise):
        target = WordToMeaningExercise
    else:
        raise TypeError(f"Exercise type {exercise.type!r} cannot be reversed")

    return target(
        id=exercise.id,
        item_ids=exercise.item_ids,
        prompt=exercise.answer,
        answer=exercise.prompt,
    )


def apply_challenge(exercise: Exercise, config: ChallengeConfig) -> Exercise:
    """Return the exercise to present; only reversible exercises are ever replaced."""
    if config.reversed_direction and is_reversible(exercise):
        return reverse_exercise(exercise)
    return exercise
