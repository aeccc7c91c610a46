"""
Unit tests for strength arithmetic and mastery levels.
"""

import pytest

from src.core.mastery import (
    LessonStrengthInput,
    MasteryLevel,
    StrengthModel,
    calculate_challenge_strength_change,
    calculate_decay,
    calculate_lesson_strength,
    calculate_strength_change,
    should_trigger_challenge,
)


class TestStrengthChange:
    """Exercise outcomes move strength by fixed deltas within 0-100."""

    def test_correct_adds_ten(self):
        assert calculate_strength_change(50, True) == 60

    def test_incorrect_subtracts_twenty(self):
        assert calculate_strength_change(50, False) == 30

    def test_clamped_at_bounds(self):
        assert calculate_strength_change(95, True) == 100
        assert calculate_strength_change(10, False) == 0

    def test_challenge_deltas(self):
        assert calculate_challenge_strength_change(80, True) == 95
        assert calculate_challenge_strength_change(80, False) == 50
        assert calculate_challenge_strength_change(20, False) == 0

    @pytest.mark.parametrize("strength", [0, 13, 50, 99, 100])
    def test_result_always_in_range(self, strength):
        for is_correct in (True, False):
            assert 0 <= calculate_strength_change(strength, is_correct) <= 100


class TestDecay:
    """Decay starts after the grace period and drops 5 per day."""

    def test_no_decay_within_grace(self):
        assert calculate_decay(80, 0) == 80
        assert calculate_decay(80, 3) == 80

    def test_decay_after_grace(self):
        assert calculate_decay(80, 5) == 70

    def test_decay_floors_at_zero(self):
        assert calculate_decay(10, 30) == 0

    def test_proven_mastery_extends_grace(self):
        assert calculate_decay(80, 5, has_proven_mastery=True) == 80
        assert calculate_decay(80, 7, has_proven_mastery=True) == 70


class TestChallengeTrigger:
    def test_threshold_is_inclusive(self):
        assert should_trigger_challenge(80)
        assert not should_trigger_challenge(79)


class TestLessonStrength:
    def test_weighted_combination(self):
        lesson = LessonStrengthInput(vocabulary_strength=80, grammar_strength=60, exercise_accuracy=90)
        assert calculate_lesson_strength(lesson) == 76

    def test_half_rounds_up(self):
        # 0.5 * 1 = 0.5
        lesson = LessonStrengthInput(vocabulary_strength=1, grammar_strength=0, exercise_accuracy=0)
        assert calculate_lesson_strength(lesson) == 1


class TestMasteryLevel:
    def test_zero_is_new(self):
        assert MasteryLevel.for_strength(0, 0) is MasteryLevel.NEW

    def test_stale_practice_is_decaying(self):
        assert MasteryLevel.for_strength(90, 4) is MasteryLevel.DECAYING

    def test_bands(self):
        assert MasteryLevel.for_strength(85, 0) is MasteryLevel.MASTERED
        assert MasteryLevel.for_strength(40, 1) is MasteryLevel.FAMILIAR
        assert MasteryLevel.for_strength(39, 3) is MasteryLevel.LEARNING


class TestStrengthModel:
    """Configured constants flow through every formula."""

    def test_custom_constants(self):
        model = StrengthModel(increase=5, decrease=10, grace_days=1, decay_rate=2, challenge_threshold=70)
        assert model.strength_change(50, True) == 55
        assert model.strength_change(50, False) == 40
        assert model.decay(50, 4) == 44
        assert model.should_trigger_challenge(70)

    def test_from_settings(self):
        class FakeSettings:
            strength_increase = 12
            strength_decrease = 8
            decay_grace_days = 2
            decay_rate_per_day = 1
            challenge_threshold = 75

        model = StrengthModel.from_settings(FakeSettings())
        assert model.strength_change(0, True) == 12
        assert model.strength_change(20, False) == 12
        assert model.decay(50, 5) == 47
        assert not model.should_trigger_challenge(74)
