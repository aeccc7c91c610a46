"""
Core Mastery Module.

Integer strength model (0-100) for knowledge items.

Design:
- MasteryLevel: Enum for categorizing an item's effective strength
- StrengthModel: Configurable deltas, decay and challenge scoring
- Module-level functions: default-constant versions used across the engine

Decay is lazy: effective strength is computed from the stored strength and
the days since last practice whenever it is read. Nothing runs in the
background.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.core.timeutil import round_half_up

# Strength deltas
STRENGTH_INCREASE = 10
STRENGTH_DECREASE = 20

# Decay
DECAY_GRACE_DAYS = 3
DECAY_RATE_PER_DAY = 5

# Challenge mode
CHALLENGE_STRENGTH_INCREASE = 15
CHALLENGE_STRENGTH_DECREASE = 30
CHALLENGE_DECAY_GRACE_DAYS = 5
CHALLENGE_TIMER_SECONDS = 30
CHALLENGE_THRESHOLD = 80

# Lesson strength weights
VOCABULARY_WEIGHT = 0.5
GRAMMAR_WEIGHT = 0.3
EXERCISE_WEIGHT = 0.2

MAX_STRENGTH = 100
MIN_STRENGTH = 0


class MasteryThreshold:
    """Strength / accuracy cut-offs used for labelling progress."""

    LEARNED = 80
    LESSON_COMPLETE = 90
    FAMILIAR = 40
    MASTERED = 80
    DECAY_DAYS = 3


class MasteryLevel(str, Enum):
    """Mastery level categorization for a single item."""

    NEW = "new"
    LEARNING = "learning"
    FAMILIAR = "familiar"
    MASTERED = "mastered"
    DECAYING = "decaying"

    @classmethod
    def for_strength(cls, effective_strength: int, days_since_practice: int) -> MasteryLevel:
        """
        Classify an item.

        Args:
            effective_strength: Strength after decay (0-100)
            days_since_practice: Whole days since the item was last practiced

        Returns:
            Corresponding MasteryLevel
        """
        if effective_strength <= 0:
            return cls.NEW
        if days_since_practice > MasteryThreshold.DECAY_DAYS:
            return cls.DECAYING
        if effective_strength >= MasteryThreshold.MASTERED:
            return cls.MASTERED
        if effective_strength >= MasteryThreshold.FAMILIAR:
            return cls.FAMILIAR
        return cls.LEARNING

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.title()

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryLevel.NEW: "dim",
            MasteryLevel.LEARNING: "yellow",
            MasteryLevel.FAMILIAR: "cyan",
            MasteryLevel.MASTERED: "green",
            MasteryLevel.DECAYING: "red",
        }[self]


@dataclass(frozen=True)
class LessonStrengthInput:
    """Component scores (each 0-100) that make up a lesson's strength."""

    vocabulary_strength: float
    grammar_strength: float
    exercise_accuracy: float


def clamp_strength(value: float) -> int:
    return int(max(MIN_STRENGTH, min(MAX_STRENGTH, value)))


class StrengthModel:
    """
    Strength arithmetic with configurable constants.

    Formula:
        correct   -> min(100, s + increase)
        incorrect -> max(0, s - decrease)
        decay     -> s while days <= grace, else max(0, s - rate * (days - grace))
    """

    def __init__(
        self,
        increase: int = STRENGTH_INCREASE,
        decrease: int = STRENGTH_DECREASE,
        grace_days: int = DECAY_GRACE_DAYS,
        decay_rate: int = DECAY_RATE_PER_DAY,
        challenge_increase: int = CHALLENGE_STRENGTH_INCREASE,
        challenge_decrease: int = CHALLENGE_STRENGTH_DECREASE,
        proven_grace_days: int = CHALLENGE_DECAY_GRACE_DAYS,
        challenge_threshold: int = CHALLENGE_THRESHOLD,
    ):
        self.increase = increase
        self.decrease = decrease
        self.grace_days = grace_days
        self.decay_rate = decay_rate
        self.challenge_increase = challenge_increase
        self.challenge_decrease = challenge_decrease
        self.proven_grace_days = proven_grace_days
        self.challenge_threshold = challenge_threshold

    @classmethod
    def from_settings(cls, settings) -> StrengthModel:
        """Build a model from the application Settings."""
        return cls(
            increase=settings.strength_increase,
            decrease=settings.strength_decrease,
            grace_days=settings.decay_grace_days,
            decay_rate=settings.decay_rate_per_day,
            challenge_threshold=settings.challenge_threshold,
        )

    def strength_change(self, current: int, is_correct: bool) -> int:
        if is_correct:
            return min(MAX_STRENGTH, current + self.increase)
        return max(MIN_STRENGTH, current - self.decrease)

    def challenge_strength_change(self, current: int, is_correct: bool) -> int:
        if is_correct:
            return min(MAX_STRENGTH, current + self.challenge_increase)
        return max(MIN_STRENGTH, current - self.challenge_decrease)

    def decay(self, strength: int, days_since_practice: int, has_proven_mastery: bool = False) -> int:
        grace = self.proven_grace_days if has_proven_mastery else self.grace_days
        if days_since_practice <= grace:
            return strength
        return max(MIN_STRENGTH, strength - self.decay_rate * (days_since_practice - grace))

    def should_trigger_challenge(self, strength: int) -> bool:
        return strength >= self.challenge_threshold


DEFAULT_STRENGTH_MODEL = StrengthModel()


# ============================================================================
# Strength Formulas
# ============================================================================


def calculate_strength_change(current_strength: int, is_correct: bool) -> int:
    """
    Apply one exercise outcome to a strength value.

    Args:
        current_strength: Strength before the attempt (0-100)
        is_correct: Whether the answer was correct

    Returns:
        New strength, clamped to 0-100
    """
    return DEFAULT_STRENGTH_MODEL.strength_change(current_strength, is_correct)


def calculate_challenge_strength_change(current_strength: int, is_correct: bool) -> int:
    """Higher-stakes scoring for challenge exercises (+15 / -30)."""
    return DEFAULT_STRENGTH_MODEL.challenge_strength_change(current_strength, is_correct)


def calculate_decay(strength: int, days_since_practice: int, has_proven_mastery: bool = False) -> int:
    """
    Effective strength after time without practice.

    Items that passed a challenge get a longer grace period.

    Args:
        strength: Stored strength (0-100)
        days_since_practice: Whole days since last practice
        has_proven_mastery: True once the item has passed a challenge

    Returns:
        Decayed strength, never below 0
    """
    return DEFAULT_STRENGTH_MODEL.decay(strength, days_since_practice, has_proven_mastery)


def should_trigger_challenge(strength: int) -> bool:
    return DEFAULT_STRENGTH_MODEL.should_trigger_challenge(strength)


def calculate_lesson_strength(lesson: LessonStrengthInput) -> int:
    """
    Combine component scores into a lesson strength.

    Formula: round(0.5 * vocabulary + 0.3 * grammar + 0.2 * accuracy)
    """
    weighted = (
        lesson.vocabulary_strength * VOCABULARY_WEIGHT
        + lesson.grammar_strength * GRAMMAR_WEIGHT
        + lesson.exercise_accuracy * EXERCISE_WEIGHT
    )
    return round_half_up(weighted)
