"""
Progress Service.

Records learner activity against the progress store and answers the
per-item, per-lesson and per-book progress queries the CLI and analyzers
need. Every write is a single read-modify-persist step: load the blob,
apply the change, save it back.

Strength is stored undecayed; effective strength applies decay at read
time from the last-practiced date.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from src.content.manifest import ContentIndex
from src.core.mastery import (
    DEFAULT_STRENGTH_MODEL,
    LessonStrengthInput,
    MasteryLevel,
    MasteryThreshold,
    StrengthModel,
    calculate_lesson_strength,
)
from src.core.models import (
    MAX_ERROR_EXAMPLES,
    ConfidenceData,
    ConfidenceRecord,
    EncounterData,
    EncounterType,
    ErrorExample,
    ErrorPattern,
    ExerciseRecord,
    LessonProgress,
    MasteryRecord,
    ProgressData,
    SM2State,
)
from src.core.timeutil import (
    MS_PER_DAY,
    date_string,
    day_bounds_ms,
    days_between,
    iso_from_ms,
    now_ms,
    parse_iso_ms,
    previous_date_string,
    round_half_up,
)
from src.progress.store import ProgressStore
from src.study.migration import add_encounter
from src.study.spaced_repetition import calculate_sm2, get_days_overdue, is_due, simple_to_quality

UPCOMING_WINDOW_DAYS = 7


@dataclass
class ReviewStats:
    due_today: int = 0
    overdue: int = 0
    upcoming_week: int = 0
    reviewed_today: int = 0


@dataclass
class BookProgress:
    book_number: int
    lessons_total: int
    lessons_completed: int
    words_total: int
    words_learned: int
    words_in_progress: int
    mastery_percent: int


@dataclass
class DueWord:
    word_id: str
    days_overdue: int
    sm2: SM2State


def _iso_date(iso_timestamp: str) -> str:
    return iso_timestamp.split("T")[0]


class ProgressService:
    """Learner progress operations over a ProgressStore."""

    def __init__(
        self,
        store: ProgressStore,
        content: ContentIndex,
        strength_model: StrengthModel | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Initialize service.

        Args:
            store: Persistence collaborator
            content: Loaded content index (lesson exercise counts, book structure)
            strength_model: Strength arithmetic (defaults to the standard constants)
            clock: Returns the current time in epoch ms
        """
        self.store = store
        self.content = content
        self.strength = strength_model or DEFAULT_STRENGTH_MODEL
        self.clock = clock

    # ========================================================================
    # Writes
    # ========================================================================

    def record_exercise_result(
        self,
        exercise_id: str,
        lesson_id: str,
        item_ids: Iterable[str],
        is_correct: bool,
    ) -> ProgressData:
        """
        Record one exercise attempt.

        Updates the exercise record, each tested item's strength and counters,
        the lesson's progress and accuracy, and the answer / practice streaks.

        Returns:
            The persisted progress
        """
        return self._record_attempt(exercise_id, lesson_id, item_ids, is_correct, is_challenge=False)

    def record_challenge_result(
        self,
        exercise_id: str,
        lesson_id: str,
        item_ids: Iterable[str],
        is_correct: bool,
    ) -> ProgressData:
        """Record a challenge attempt; a pass marks the items as proven."""
        return self._record_attempt(exercise_id, lesson_id, item_ids, is_correct, is_challenge=True)

    def _record_attempt(
        self,
        exercise_id: str,
        lesson_id: str,
        item_ids: Iterable[str],
        is_correct: bool,
        is_challenge: bool,
    ) -> ProgressData:
        now = self.clock()
        now_iso = iso_from_ms(now)
        today = date_string(now)
        progress = self.store.get_progress()

        exercise = progress.exercise_results.setdefault(exercise_id, ExerciseRecord())
        exercise.attempts += 1
        if is_correct:
            exercise.correct_attempts += 1
        exercise.last_attempt = now_iso
        exercise.last_correct = is_correct

        for item_id in item_ids:
            record = progress.word_mastery.setdefault(item_id, MasteryRecord())
            if is_challenge:
                record.strength = self.strength.challenge_strength_change(record.strength, is_correct)
                if is_correct:
                    record.challenges_passed += 1
                    record.last_challenge_date = today
            else:
                record.strength = self.strength.strength_change(record.strength, is_correct)
            record.last_practiced = now_iso
            if is_correct:
                record.times_correct += 1
            else:
                record.times_incorrect += 1

        self._update_lesson(progress, lesson_id, exercise_id, is_correct, now_iso)
        self._update_stats(progress, is_correct, today)

        self.store.save_progress(progress)
        kind = "challenge" if is_challenge else "exercise"
        logger.debug(f"Recorded {kind} {exercise_id} ({'correct' if is_correct else 'incorrect'})")
        return progress

    def _update_lesson(
        self,
        progress: ProgressData,
        lesson_id: str,
        exercise_id: str,
        is_correct: bool,
        now_iso: str,
    ) -> None:
        lesson = progress.lesson_progress.setdefault(lesson_id, LessonProgress())
        lesson.started = True
        lesson.last_practiced = now_iso
        if exercise_id not in lesson.exercises_attempted:
            lesson.exercises_attempted.append(exercise_id)
        if is_correct and exercise_id not in lesson.correct_exercises:
            lesson.correct_exercises.append(exercise_id)

        total = self.content.get_lesson_exercise_count(lesson_id)
        accuracy = round_half_up(len(lesson.correct_exercises) / total * 100) if total > 0 else 0
        lesson.best_accuracy = max(lesson.best_accuracy, accuracy)

    @staticmethod
    def _update_stats(progress: ProgressData, is_correct: bool, today: str) -> None:
        stats = progress.stats
        stats.total_exercises_attempted += 1
        if is_correct:
            stats.total_correct += 1
            stats.current_answer_streak += 1
            stats.best_answer_streak = max(stats.best_answer_streak, stats.current_answer_streak)
        else:
            stats.current_answer_streak = 0

        if stats.last_practice_date != today:
            if stats.last_practice_date == previous_date_string(today):
                stats.current_practice_streak += 1
            else:
                stats.current_practice_streak = 1
            stats.best_practice_streak = max(stats.best_practice_streak, stats.current_practice_streak)
            stats.last_practice_date = today

    def record_sm2_review(
        self,
        word_id: str,
        quality: int,
        encounter_type: EncounterType | str = EncounterType.EXERCISE,
    ) -> MasteryRecord:
        """
        Schedule the next review of a word from a quality rating (0-5).

        Also counts the encounter and keeps the legacy strength in step
        (quality >= 3 counts as correct).
        """
        now = self.clock()
        progress = self.store.get_progress()
        record = progress.word_mastery.setdefault(word_id, MasteryRecord())
        is_correct = quality >= 3

        record.sm2 = calculate_sm2(record.sm2 or SM2State.new(now), quality, now)
        record.encounters = add_encounter(record.encounters or EncounterData(), encounter_type, now)
        record.strength = self.strength.strength_change(record.strength, is_correct)
        record.last_practiced = iso_from_ms(now)
        if is_correct:
            record.times_correct += 1
        else:
            record.times_incorrect += 1

        self.store.save_progress(progress)
        return record

    def record_exercise_with_sm2(
        self,
        exercise_id: str,
        lesson_id: str,
        item_ids: Iterable[str],
        is_correct: bool,
        was_hard: bool = False,
    ) -> ProgressData:
        """
        Record an exercise attempt and reschedule every tested item.

        Items get an SM-2 update from the plain result and an exercise
        encounter on top of the usual exercise bookkeeping.
        """
        item_ids = list(item_ids)
        progress = self.record_exercise_result(exercise_id, lesson_id, item_ids, is_correct)

        now = self.clock()
        quality = simple_to_quality(is_correct, was_hard)
        for item_id in item_ids:
            record = progress.word_mastery.get(item_id)
            if record is None:
                continue
            record.sm2 = calculate_sm2(record.sm2 or SM2State.new(now), quality, now)
            record.encounters = add_encounter(record.encounters or EncounterData(), EncounterType.EXERCISE, now)

        self.store.save_progress(progress)
        return progress

    def record_confidence(self, word_id: str, rating: int, was_correct: bool) -> MasteryRecord:
        """
        Store a self-reported confidence rating for a word.

        Raises:
            ValueError: If rating is not 1, 2 or 3
        """
        entry = ConfidenceRecord(timestamp=self.clock(), rating=rating, was_correct=was_correct)
        progress = self.store.get_progress()
        record = progress.word_mastery.setdefault(word_id, MasteryRecord())
        if record.confidence is None:
            record.confidence = ConfidenceData()
        record.confidence.add(entry)
        self.store.save_progress(progress)
        return record

    def record_error(
        self,
        word_id: str,
        error_type: str,
        expected: str,
        actual: str,
        exercise_id: str,
    ) -> ErrorPattern:
        """Count one classified error against a word, keeping the newest examples."""
        if isinstance(error_type, Enum):
            error_type = error_type.value
        now = self.clock()
        progress = self.store.get_progress()
        record = progress.word_mastery.setdefault(word_id, MasteryRecord())

        pattern = record.find_error_pattern(error_type)
        if pattern is None:
            pattern = ErrorPattern(type=error_type)
            record.error_patterns.append(pattern)
        pattern.count += 1
        pattern.last_occurred = now
        pattern.examples.insert(0, ErrorExample(expected=expected, actual=actual, exercise_id=exercise_id))
        del pattern.examples[MAX_ERROR_EXAMPLES:]

        self.store.save_progress(progress)
        return pattern

    def record_encounter(self, word_id: str, encounter_type: EncounterType | str) -> EncounterData:
        """Count a non-graded encounter (reading, listening, ...) with a word."""
        progress = self.store.get_progress()
        record = progress.word_mastery.setdefault(word_id, MasteryRecord())
        record.encounters = add_encounter(record.encounters or EncounterData(), encounter_type, self.clock())
        self.store.save_progress(progress)
        return record.encounters

    # ========================================================================
    # Reads
    # ========================================================================

    def _days_since_practice(self, record: MasteryRecord) -> int:
        if not record.last_practiced:
            return 0
        return days_between(_iso_date(record.last_practiced), date_string(self.clock()))

    def _effective_strength(self, record: MasteryRecord) -> int:
        return self.strength.decay(record.strength, self._days_since_practice(record), record.has_proven_mastery)

    def get_word_effective_strength(self, word_id: str) -> int:
        """Stored strength with decay applied; 0 for words never practiced."""
        record = self.store.get_progress().word_mastery.get(word_id)
        if record is None:
            return 0
        return self._effective_strength(record)

    def get_word_mastery_level(self, word_id: str) -> MasteryLevel:
        record = self.store.get_progress().word_mastery.get(word_id)
        if record is None:
            return MasteryLevel.NEW
        return MasteryLevel.for_strength(self._effective_strength(record), self._days_since_practice(record))

    def has_proven_mastery(self, word_id: str) -> bool:
        record = self.store.get_progress().word_mastery.get(word_id)
        return record is not None and record.has_proven_mastery

    def get_due_words(self) -> list[DueWord]:
        """Scheduled words that are due now, most overdue first."""
        now = self.clock()
        due = [
            DueWord(word_id=word_id, days_overdue=get_days_overdue(record.sm2, now), sm2=record.sm2)
            for word_id, record in self.store.get_progress().word_mastery.items()
            if record.sm2 is not None and is_due(record.sm2, now)
        ]
        due.sort(key=lambda word: word.days_overdue, reverse=True)
        return due

    def get_review_stats(self) -> ReviewStats:
        now = self.clock()
        start_of_today, end_of_today = day_bounds_ms(now)
        week_ahead = now + UPCOMING_WINDOW_DAYS * MS_PER_DAY
        stats = ReviewStats()

        for record in self.store.get_progress().word_mastery.values():
            practiced = parse_iso_ms(record.last_practiced)
            if practiced is not None and start_of_today <= practiced <= end_of_today:
                stats.reviewed_today += 1

            if record.sm2 is None:
                continue
            next_review = record.sm2.next_review_date
            if next_review <= end_of_today:
                stats.due_today += 1
            if next_review < start_of_today:
                stats.overdue += 1
            elif end_of_today < next_review <= week_ahead:
                stats.upcoming_week += 1
        return stats

    def get_lesson_strength(self, lesson_id: str) -> int:
        """
        Combined strength of a lesson.

        Vocabulary and grammar components are the mean effective strength of
        the lesson's words and grammar points (0 when the lesson has none);
        the exercise component is the lesson's best accuracy.

        Raises:
            UnknownLessonError: If the lesson is not in the manifest
        """
        lesson = self.content.get_lesson(lesson_id)
        progress = self.store.get_progress()

        def mean_strength(item_ids: list[str]) -> float:
            if not item_ids:
                return 0.0
            total = 0
            for item_id in item_ids:
                record = progress.word_mastery.get(item_id)
                total += self._effective_strength(record) if record is not None else 0
            return total / len(item_ids)

        lesson_progress = progress.lesson_progress.get(lesson_id)
        return calculate_lesson_strength(
            LessonStrengthInput(
                vocabulary_strength=mean_strength(lesson.vocabulary_ids),
                grammar_strength=mean_strength(lesson.grammar_point_ids),
                exercise_accuracy=lesson_progress.best_accuracy if lesson_progress else 0,
            )
        )

    def get_book_progress(self, book_number: int) -> BookProgress:
        """
        Summary of one book.

        Raises:
            UnknownBookError: If the book is not in the manifest
        """
        stats = self.content.get_book_content_stats(book_number)
        lesson_ids = self.content.get_lesson_ids_for_book(book_number)
        word_ids = self.content.get_word_ids_for_book(book_number)
        progress = self.store.get_progress()

        lessons_completed = 0
        accuracy_total = 0
        any_started = False
        for lesson_id in lesson_ids:
            lesson = progress.lesson_progress.get(lesson_id)
            if lesson is None:
                continue
            any_started = True
            accuracy_total += lesson.best_accuracy
            if lesson.best_accuracy >= MasteryThreshold.LESSON_COMPLETE:
                lessons_completed += 1

        words_learned = 0
        words_in_progress = 0
        for word_id in word_ids:
            record = progress.word_mastery.get(word_id)
            if record is None:
                continue
            effective = self._effective_strength(record)
            if effective >= MasteryThreshold.LEARNED:
                words_learned += 1
            elif effective > 0:
                words_in_progress += 1

        mastery_percent = round_half_up(accuracy_total / len(lesson_ids)) if any_started and lesson_ids else 0

        return BookProgress(
            book_number=book_number,
            lessons_total=stats.lesson_count,
            lessons_completed=lessons_completed,
            words_total=stats.word_count,
            words_learned=words_learned,
            words_in_progress=words_in_progress,
            mastery_percent=mastery_percent,
        )

