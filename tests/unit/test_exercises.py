"""
Unit tests for exercise variant parsing.
"""

import pytest

from src.core.exceptions import UnknownExerciseTypeError
from src.core.exercises import (
    EXERCISE_TYPES,
    ClozeBlank,
    ErrorCorrectionExercise,
    FillBlankExercise,
    GrammarApplyExercise,
    MultiClozeExercise,
    SemanticFieldExercise,
    SentenceUnscrambleExercise,
    exercise_from_dict,
)


class TestExerciseFromDict:
    """Dispatch on the type tag."""

    def test_fill_blank(self):
        exercise = exercise_from_dict(
            {"id": "ex1", "type": "fill-blank", "itemIds": ["w1"], "prompt": "___", "answer": "كِتَابٌ", "promptEn": "a book"}
        )
        assert isinstance(exercise, FillBlankExercise)
        assert exercise.item_ids == ("w1",)
        assert exercise.prompt_en == "a book"

    def test_grammar_apply_is_its_own_variant(self):
        exercise = exercise_from_dict({"id": "ex2", "type": "grammar-apply", "prompt": "p", "answer": "a"})
        assert type(exercise) is GrammarApplyExercise
        assert exercise.item_ids == ()

    def test_error_correction(self):
        exercise = exercise_from_dict(
            {
                "id": "ex3",
                "type": "error-correction",
                "itemIds": ["w2"],
                "sentenceWithError": "هَذَا كِتَابَةٌ",
                "correctSentence": "هَذَا كِتَابٌ",
                "errorWord": "كِتَابَةٌ",
                "correctWord": "كِتَابٌ",
                "errorType": "vocabulary",
            }
        )
        assert isinstance(exercise, ErrorCorrectionExercise)
        assert exercise.error_type == "vocabulary"
        assert exercise.explanation is None

    def test_multi_cloze(self):
        exercise = exercise_from_dict(
            {
                "id": "ex4",
                "type": "multi-cloze",
                "prompt": "___ ___",
                "blanks": [{"position": 0, "answer": "هَذَا"}, {"position": 1, "answer": "بَيْتٌ", "hint": "house"}],
                "completeSentence": "هَذَا بَيْتٌ",
            }
        )
        assert isinstance(exercise, MultiClozeExercise)
        assert exercise.blanks[1] == ClozeBlank(position=1, answer="بَيْتٌ", hint="house")

    def test_semantic_field(self):
        exercise = exercise_from_dict(
            {
                "id": "ex5",
                "type": "semantic-field",
                "categories": [{"id": "home", "nameEn": "Home", "nameAr": "بَيْت"}],
                "words": [{"arabic": "بَابٌ", "english": "door", "category": "home"}],
            }
        )
        assert isinstance(exercise, SemanticFieldExercise)
        assert exercise.categories[0].name_en == "Home"

    def test_sentence_unscramble(self):
        exercise = exercise_from_dict(
            {
                "id": "ex6",
                "type": "sentence-unscramble",
                "correctSentence": "هَذَا بَيْتٌ",
                "words": [
                    {"text": "هَذَا", "id": "t1"},
                    {"text": "بَيْتٌ", "id": "t2"},
                    {"text": "قَلَمٌ", "id": "t3", "isDistractor": True},
                ],
                "distractorCount": 1,
            }
        )
        assert isinstance(exercise, SentenceUnscrambleExercise)
        assert [w.is_distractor for w in exercise.words] == [False, False, True]

    def test_unknown_type(self):
        with pytest.raises(UnknownExerciseTypeError) as exc_info:
            exercise_from_dict({"id": "ex7", "type": "essay"})
        assert exc_info.value.exercise_type == "essay"

    def test_to_dict_preserves_tag(self):
        data = {"id": "ex8", "type": "word-to-meaning", "itemIds": ["w1"], "prompt": "قَلَمٌ", "answer": "pen"}
        assert exercise_from_dict(data).to_dict() == data

    def test_all_types_registered(self):
        assert len(EXERCISE_TYPES) == 10
        assert "translate-to-arabic" in EXERCISE_TYPES

    def test_exercises_are_immutable(self):
        exercise = FillBlankExercise(id="ex9", prompt="p", answer="a")
        with pytest.raises(AttributeError):
            exercise.answer = "b"
