"""
Unit tests for ProgressService.
"""

import pytest

from src.core.exceptions import UnknownBookError, UnknownLessonError
from src.core.mastery import MasteryLevel
from src.core.models import EncounterType, MasteryRecord, ProgressData, SM2State
from src.core.timeutil import MS_PER_DAY, iso_from_ms
from src.progress.service import ProgressService


class Clock:
    """Settable clock in epoch ms."""

    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, days: float) -> None:
        self.now += int(days * MS_PER_DAY)


@pytest.fixture
def clock(fixed_now):
    return Clock(fixed_now)


@pytest.fixture
def service(store, content_index, clock):
    return ProgressService(store, content_index, clock=clock)


class TestRecordExerciseResult:
    """Exercise bookkeeping, item strength and streaks."""

    def test_first_correct_attempt(self, service, store, fixed_now):
        service.record_exercise_result("b1-l01-ex01", "b1-l01", ["w1", "w2"], True)
        progress = store.get_progress()

        exercise = progress.exercise_results["b1-l01-ex01"]
        assert (exercise.attempts, exercise.correct_attempts, exercise.last_correct) == (1, 1, True)
        assert exercise.last_attempt == iso_from_ms(fixed_now)

        for item_id in ("w1", "w2"):
            record = progress.word_mastery[item_id]
            assert record.strength == 10
            assert record.times_correct == 1
            assert record.last_practiced == iso_from_ms(fixed_now)

    def test_incorrect_attempt_lowers_strength(self, service, store):
        store.save_progress(ProgressData(word_mastery={"w1": MasteryRecord(strength=50)}))
        service.record_exercise_result("b1-l01-ex01", "b1-l01", ["w1"], False)
        record = store.get_progress().word_mastery["w1"]
        assert record.strength == 30
        assert record.times_incorrect == 1

    def test_lesson_accuracy_against_manifest(self, service, store):
        service.record_exercise_result("b1-l01-ex01", "b1-l01", ["w1"], True)
        service.record_exercise_result("b1-l01-ex01", "b1-l01", ["w1"], True)
        service.record_exercise_result("b1-l01-ex02", "b1-l01", ["g1"], False)

        lesson = store.get_progress().lesson_progress["b1-l01"]
        assert lesson.started
        assert lesson.exercises_attempted == ["b1-l01-ex01", "b1-l01-ex02"]
        assert lesson.correct_exercises == ["b1-l01-ex01"]
        assert lesson.best_accuracy == 25  # 1 of 4 exercises

    def test_best_accuracy_never_drops(self, service, store):
        service.record_exercise_result("b1-l02-ex01", "b1-l02", ["w3"], True)
        service.record_exercise_result("b1-l02-ex01", "b1-l02", ["w3"], False)
        assert store.get_progress().lesson_progress["b1-l02"].best_accuracy == 50

    def test_lesson_without_exercises(self, service, store):
        service.record_exercise_result("b2-l01-ex01", "b2-l01", ["w5"], True)
        assert store.get_progress().lesson_progress["b2-l01"].best_accuracy == 0

    def test_unknown_lesson_persists_nothing(self, service, store):
        with pytest.raises(UnknownLessonError):
            service.record_exercise_result("x-ex01", "b9-l01", ["w1"], True)
        assert store.get_progress().exercise_results == {}

    def test_answer_streak(self, service, store):
        for is_correct in (True, True, True, False, True):
            service.record_exercise_result("b1-l01-ex01", "b1-l01", [], is_correct)
        stats = store.get_progress().stats
        assert stats.total_exercises_attempted == 5
        assert stats.total_correct == 4
        assert stats.current_answer_streak == 1
        assert stats.best_answer_streak == 3

    def test_practice_streak(self, service, store, clock):
        service.record_exercise_result("b1-l01-ex01", "b1-l01", [], True)
        service.record_exercise_result("b1-l01-ex01", "b1-l01", [], True)
        assert store.get_progress().stats.current_practice_streak == 1

        clock.advance(1)
        service.record_exercise_result("b1-l01-ex01", "b1-l01", [], True)
        assert store.get_progress().stats.current_practice_streak == 2

        clock.advance(3)
        service.record_exercise_result("b1-l01-ex01", "b1-l01", [], True)
        stats = store.get_progress().stats
        assert stats.current_practice_streak == 1
        assert stats.best_practice_streak == 2
        assert stats.last_practice_date == "2024-03-19"


class TestRecordChallengeResult:
    def test_pass_marks_proven(self, service, store):
        store.save_progress(ProgressData(word_mastery={"w1": MasteryRecord(strength=85)}))
        service.record_challenge_result("b1-l01-ex01", "b1-l01", ["w1"], True)

        record = store.get_progress().word_mastery["w1"]
        assert record.strength == 100
        assert record.challenges_passed == 1
        assert record.last_challenge_date == "2024-03-15"
        assert service.has_proven_mastery("w1")

    def test_fail_costs_thirty(self, service, store):
        store.save_progress(ProgressData(word_mastery={"w1": MasteryRecord(strength=85)}))
        service.record_challenge_result("b1-l01-ex01", "b1-l01", ["w1"], False)
        record = store.get_progress().word_mastery["w1"]
        assert record.strength == 55
        assert record.challenges_passed == 0


class TestSm2Recording:
    def test_review_creates_schedule(self, service, fixed_now):
        record = service.record_sm2_review("w1", 4, "flashcard")
        assert record.sm2.interval == 1
        assert record.sm2.next_review_date == fixed_now + MS_PER_DAY
        assert record.encounters.by_type[EncounterType.FLASHCARD] == 1
        assert record.strength == 10
        assert record.times_correct == 1

    def test_poor_review_counts_as_incorrect(self, service, store):
        service.record_sm2_review("w1", 2)
        record = store.get_progress().word_mastery["w1"]
        assert record.times_incorrect == 1
        assert record.sm2.repetitions == 0

    def test_exercise_with_sm2(self, service, store, fixed_now):
        service.record_exercise_with_sm2("b1-l01-ex01", "b1-l01", ["w1", "w2"], True, was_hard=True)
        progress = store.get_progress()
        for item_id in ("w1", "w2"):
            record = progress.word_mastery[item_id]
            assert record.sm2.repetitions == 1
            assert record.sm2.ease_factor == pytest.approx(2.36)
            assert record.encounters.total == 1
        assert progress.exercise_results["b1-l01-ex01"].attempts == 1


class TestDiagnosticsRecording:
    def test_confidence(self, service, store, fixed_now):
        service.record_confidence("w1", 3, was_correct=False)
        history = store.get_progress().word_mastery["w1"].confidence.history
        assert [(r.timestamp, r.rating, r.was_correct) for r in history] == [(fixed_now, 3, False)]

    def test_invalid_confidence(self, service, store):
        with pytest.raises(ValueError):
            service.record_confidence("w1", 0, was_correct=True)
        assert "w1" not in store.get_progress().word_mastery

    def test_errors_accumulate(self, service, store, clock):
        for i in range(7):
            service.record_error("w1", "tashkeel_missing", "كِتَابٌ", f"كتاب{i}", "b1-l01-ex01")
            clock.advance(0.1)
        pattern = store.get_progress().word_mastery["w1"].find_error_pattern("tashkeel_missing")
        assert pattern.count == 7
        assert len(pattern.examples) == 5
        assert pattern.examples[0].actual == "كتاب6"

    def test_encounter(self, service):
        encounters = service.record_encounter("w1", EncounterType.READING)
        assert encounters.by_type[EncounterType.READING] == 1


class TestEffectiveStrength:
    def _practiced(self, store, strength, practiced_ms, **kwargs):
        store.save_progress(
            ProgressData(
                word_mastery={"w1": MasteryRecord(strength=strength, last_practiced=iso_from_ms(practiced_ms), **kwargs)}
            )
        )

    def test_unknown_word(self, service):
        assert service.get_word_effective_strength("nope") == 0
        assert service.get_word_mastery_level("nope") is MasteryLevel.NEW

    def test_decay_by_calendar_days(self, service, store, fixed_now):
        self._practiced(store, 80, fixed_now - 5 * MS_PER_DAY)
        assert service.get_word_effective_strength("w1") == 70
        assert service.get_word_mastery_level("w1") is MasteryLevel.DECAYING

    def test_fresh_practice(self, service, store, fixed_now):
        self._practiced(store, 80, fixed_now)
        assert service.get_word_effective_strength("w1") == 80
        assert service.get_word_mastery_level("w1") is MasteryLevel.MASTERED

    def test_proven_mastery_grace(self, service, store, fixed_now):
        self._practiced(store, 80, fixed_now - 5 * MS_PER_DAY, challenges_passed=1)
        assert service.get_word_effective_strength("w1") == 80


class TestReviewQueries:
    @pytest.fixture
    def scheduled(self, store, fixed_now):
        def at(days):
            return SM2State(interval=3, next_review_date=fixed_now + int(days * MS_PER_DAY))

        store.save_progress(
            ProgressData(
                word_mastery={
                    "overdue": MasteryRecord(strength=40, sm2=at(-3)),
                    "slightly": MasteryRecord(strength=40, sm2=at(-1.5)),
                    "now": MasteryRecord(strength=40, sm2=at(0), last_practiced=iso_from_ms(fixed_now - 3600_000)),
                    "tonight": MasteryRecord(strength=40, sm2=at(0.4)),
                    "later": MasteryRecord(strength=40, sm2=at(4)),
                    "far": MasteryRecord(strength=40, sm2=at(30)),
                    "legacy": MasteryRecord(strength=40),
                }
            )
        )

    def test_due_words_most_overdue_first(self, service, scheduled):
        due = service.get_due_words()
        assert [w.word_id for w in due] == ["overdue", "slightly", "now"]
        assert [w.days_overdue for w in due] == [3, 1, 0]

    def test_review_stats(self, service, scheduled):
        stats = service.get_review_stats()
        # 12:00 + 0.4 day is still today
        assert stats.due_today == 4
        assert stats.overdue == 2
        assert stats.upcoming_week == 1
        assert stats.reviewed_today == 1


class TestLessonAndBookProgress:
    def test_lesson_strength(self, service, store, fixed_now):
        now_iso = iso_from_ms(fixed_now)
        store.save_progress(
            ProgressData.from_dict(
                {
                    "wordMastery": {
                        "w1": {"strength": 80, "lastPracticed": now_iso},
                        "w2": {"strength": 60, "lastPracticed": now_iso},
                        "g1": {"strength": 50, "lastPracticed": now_iso},
                    },
                    "lessonProgress": {"b1-l01": {"started": True, "bestAccuracy": 75}},
                }
            )
        )
        # 0.5 * 70 + 0.3 * 50 + 0.2 * 75 = 65
        assert service.get_lesson_strength("b1-l01") == 65

    def test_lesson_strength_unknown(self, service):
        with pytest.raises(UnknownLessonError):
            service.get_lesson_strength("b5-l01")

    def test_book_progress(self, service, store, fixed_now):
        now_iso = iso_from_ms(fixed_now)
        store.save_progress(
            ProgressData.from_dict(
                {
                    "wordMastery": {
                        "w1": {"strength": 90, "lastPracticed": now_iso},
                        "w2": {"strength": 30, "lastPracticed": now_iso},
                        "w3": {"strength": 0, "lastPracticed": now_iso},
                    },
                    "lessonProgress": {
                        "b1-l01": {"started": True, "bestAccuracy": 100},
                        "b1-l02": {"started": True, "bestAccuracy": 50},
                    },
                }
            )
        )
        progress = service.get_book_progress(1)
        assert progress.lessons_total == 3
        assert progress.lessons_completed == 1
        assert progress.words_total == 4
        assert progress.words_learned == 1
        assert progress.words_in_progress == 1
        assert progress.mastery_percent == 50  # (100 + 50) / 3 lessons

    def test_untouched_book(self, service):
        progress = service.get_book_progress(2)
        assert progress.mastery_percent == 0
        assert progress.words_learned == 0

    def test_unknown_book(self, service):
        with pytest.raises(UnknownBookError):
            service.get_book_progress(3)
