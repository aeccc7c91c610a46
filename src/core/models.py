"""
Progress data model.

Dataclasses for everything the progress store persists. Serialization goes
through to_dict / from_dict and keeps the camelCase keys of the stored JSON
format so existing progress blobs load unchanged. Keys this model does not
know about are preserved in ``extra`` and written back on save.
A record that fails to parse is kept as stored and written back the same
way, so one damaged record never costs the rest of the blob.

Invariants enforced at construction:
- strength is clamped to 0-100
- ease factor never drops below 1.3, interval is never negative
- error pattern examples are capped at 5, confidence history at 10,
  encounter history at 20
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from loguru import logger

from src.core.mastery import clamp_strength
from src.core.timeutil import now_ms

CURRENT_PROGRESS_VERSION = 2

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5

MAX_ERROR_EXAMPLES = 5
MAX_CONFIDENCE_HISTORY = 10
MAX_ENCOUNTER_HISTORY = 20

# Record sections of the progress blob, keyed by item / exercise / lesson id
RECORD_SECTIONS = ("exerciseResults", "wordMastery", "lessonProgress")

T = TypeVar("T")


def _int(value: Any, default: int = 0) -> int:
    """int() that reads a missing or null field as the default."""
    return default if value is None else int(value)


def _float(value: Any, default: float) -> float:
    return default if value is None else float(value)


class ItemKind(str, Enum):
    """Kinds of knowledge item tracked by the engine."""

    WORD = "word"
    GRAMMAR_POINT = "grammar-point"
    LESSON = "lesson"
    BOOK = "book"


class EncounterType(str, Enum):
    """Channels through which an item can be encountered."""

    EXERCISE = "exercise"
    FLASHCARD = "flashcard"
    READING = "reading"
    LISTENING = "listening"


@dataclass(frozen=True)
class KnowledgeItem:
    """An authored unit of content. Identity is the id."""

    id: str
    kind: ItemKind


# ============================================================================
# Spaced Repetition State
# ============================================================================


@dataclass
class SM2State:
    """SM-2 scheduling state for one item."""

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0  # days
    repetitions: int = 0
    next_review_date: int = 0  # epoch ms

    def __post_init__(self):
        self.ease_factor = max(MIN_EASE_FACTOR, float(self.ease_factor))
        self.interval = max(0, int(self.interval))
        self.repetitions = max(0, int(self.repetitions))

    @classmethod
    def new(cls, now: int | None = None) -> SM2State:
        """Default state for an unseen item, due immediately."""
        return cls(next_review_date=now_ms() if now is None else now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "easeFactor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "nextReviewDate": self.next_review_date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SM2State:
        return cls(
            ease_factor=_float(data.get("easeFactor"), DEFAULT_EASE_FACTOR),
            interval=_int(data.get("interval")),
            repetitions=_int(data.get("repetitions")),
            next_review_date=_int(data.get("nextReviewDate")),
        )


@dataclass
class EncounterEvent:
    date: int  # epoch ms
    type: EncounterType

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "type": self.type.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EncounterEvent:
        return cls(date=_int(data.get("date")), type=EncounterType(data.get("type", "exercise")))


@dataclass
class EncounterData:
    """How many times, and through which channels, an item has been seen."""

    total: int = 0
    by_type: dict[EncounterType, int] = field(
        default_factory=lambda: {encounter_type: 0 for encounter_type in EncounterType}
    )
    history: list[EncounterEvent] = field(default_factory=list)  # newest first

    def __post_init__(self):
        for encounter_type in EncounterType:
            self.by_type.setdefault(encounter_type, 0)
        del self.history[MAX_ENCOUNTER_HISTORY:]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "byType": {k.value: v for k, v in self.by_type.items()},
            "history": [event.to_dict() for event in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EncounterData:
        by_type = {EncounterType(k): _int(v) for k, v in data.get("byType", {}).items()}
        return cls(
            total=_int(data.get("total")),
            by_type=by_type,
            history=[EncounterEvent.from_dict(e) for e in data.get("history", [])],
        )


# ============================================================================
# Diagnostics
# ============================================================================


@dataclass
class ErrorExample:
    expected: str
    actual: str
    exercise_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"expected": self.expected, "actual": self.actual, "exerciseId": self.exercise_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorExample:
        return cls(
            expected=data.get("expected", ""),
            actual=data.get("actual", ""),
            exercise_id=data.get("exerciseId", ""),
        )


@dataclass
class ErrorPattern:
    """A recurring error of one type on one item."""

    type: str
    count: int = 0
    last_occurred: int = 0  # epoch ms
    examples: list[ErrorExample] = field(default_factory=list)  # newest first

    def __post_init__(self):
        self.count = max(0, self.count)
        del self.examples[MAX_ERROR_EXAMPLES:]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "count": self.count,
            "lastOccurred": self.last_occurred,
            "examples": [example.to_dict() for example in self.examples],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorPattern:
        return cls(
            type=data.get("type", ""),
            count=_int(data.get("count")),
            last_occurred=_int(data.get("lastOccurred")),
            examples=[ErrorExample.from_dict(e) for e in data.get("examples", [])],
        )


@dataclass
class ConfidenceRecord:
    """One self-reported confidence rating (1=unsure, 2=somewhat, 3=very sure)."""

    timestamp: int
    rating: int
    was_correct: bool

    def __post_init__(self):
        if self.rating not in (1, 2, 3):
            raise ValueError(f"Confidence rating must be 1, 2 or 3, got {self.rating}")

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "rating": self.rating, "wasCorrect": self.was_correct}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfidenceRecord:
        return cls(
            timestamp=_int(data.get("timestamp")),
            rating=_int(data.get("rating")),
            was_correct=bool(data.get("wasCorrect", False)),
        )


@dataclass
class ConfidenceData:
    history: list[ConfidenceRecord] = field(default_factory=list)  # oldest first
    calibration_score: float | None = None

    def __post_init__(self):
        del self.history[:-MAX_CONFIDENCE_HISTORY]

    def add(self, record: ConfidenceRecord) -> None:
        self.history.append(record)
        del self.history[:-MAX_CONFIDENCE_HISTORY]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"history": [r.to_dict() for r in self.history]}
        if self.calibration_score is not None:
            data["calibrationScore"] = self.calibration_score
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfidenceData:
        history = []
        for raw in data.get("history", []):
            try:
                history.append(ConfidenceRecord.from_dict(raw))
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable confidence rating {raw!r}: {e}")
        return cls(history=history, calibration_score=data.get("calibrationScore"))


# ============================================================================
# Mastery Record
# ============================================================================

_MASTERY_KEYS = {
    "strength",
    "lastPracticed",
    "timesCorrect",
    "timesIncorrect",
    "challengesPassed",
    "lastChallengeDate",
    "sm2",
    "encounters",
    "confidence",
    "errorPatterns",
}


@dataclass
class MasteryRecord:
    """
    Proficiency state for one knowledge item.

    Created lazily on the first encounter with the item.
    """

    strength: int = 0
    last_practiced: str = ""  # ISO timestamp
    times_correct: int = 0
    times_incorrect: int = 0
    challenges_passed: int = 0
    last_challenge_date: str | None = None  # YYYY-MM-DD
    sm2: SM2State | None = None
    encounters: EncounterData | None = None
    confidence: ConfidenceData | None = None
    error_patterns: list[ErrorPattern] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.strength = clamp_strength(self.strength)
        self.times_correct = max(0, self.times_correct)
        self.times_incorrect = max(0, self.times_incorrect)
        self.challenges_passed = max(0, self.challenges_passed)

    @property
    def has_proven_mastery(self) -> bool:
        return self.challenges_passed > 0

    def find_error_pattern(self, error_type: str) -> ErrorPattern | None:
        for pattern in self.error_patterns:
            if pattern.type == error_type:
                return pattern
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "strength": self.strength,
                "lastPracticed": self.last_practiced,
                "timesCorrect": self.times_correct,
                "timesIncorrect": self.times_incorrect,
                "challengesPassed": self.challenges_passed,
                "lastChallengeDate": self.last_challenge_date,
            }
        )
        if self.sm2 is not None:
            data["sm2"] = self.sm2.to_dict()
        if self.encounters is not None:
            data["encounters"] = self.encounters.to_dict()
        if self.confidence is not None:
            data["confidence"] = self.confidence.to_dict()
        if self.error_patterns:
            data["errorPatterns"] = [p.to_dict() for p in self.error_patterns]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MasteryRecord:
        sm2 = data.get("sm2")
        encounters = data.get("encounters")
        confidence = data.get("confidence")
        return cls(
            strength=_int(data.get("strength")),
            last_practiced=data.get("lastPracticed") or "",
            times_correct=_int(data.get("timesCorrect")),
            times_incorrect=_int(data.get("timesIncorrect")),
            challenges_passed=_int(data.get("challengesPassed")),
            last_challenge_date=data.get("lastChallengeDate"),
            sm2=SM2State.from_dict(sm2) if sm2 else None,
            encounters=EncounterData.from_dict(encounters) if encounters else None,
            confidence=ConfidenceData.from_dict(confidence) if confidence else None,
            error_patterns=[ErrorPattern.from_dict(p) for p in data.get("errorPatterns", [])],
            extra={k: v for k, v in data.items() if k not in _MASTERY_KEYS},
        )


# ============================================================================
# Exercise / Lesson / Aggregate Progress
# ============================================================================


@dataclass
class ExerciseRecord:
    attempts: int = 0
    correct_attempts: int = 0
    last_attempt: str = ""
    last_correct: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "correctAttempts": self.correct_attempts,
            "lastAttempt": self.last_attempt,
            "lastCorrect": self.last_correct,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExerciseRecord:
        return cls(
            attempts=_int(data.get("attempts")),
            correct_attempts=_int(data.get("correctAttempts")),
            last_attempt=data.get("lastAttempt", ""),
            last_correct=bool(data.get("lastCorrect", False)),
        )


@dataclass
class LessonProgress:
    started: bool = False
    exercises_attempted: list[str] = field(default_factory=list)
    correct_exercises: list[str] = field(default_factory=list)
    best_accuracy: int = 0
    last_practiced: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "started": self.started,
            "exercisesAttempted": list(self.exercises_attempted),
            "correctExercises": list(self.correct_exercises),
            "bestAccuracy": self.best_accuracy,
            "lastPracticed": self.last_practiced,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LessonProgress:
        return cls(
            started=bool(data.get("started", False)),
            exercises_attempted=list(data.get("exercisesAttempted", [])),
            correct_exercises=list(data.get("correctExercises", [])),
            best_accuracy=_int(data.get("bestAccuracy")),
            last_practiced=data.get("lastPracticed") or "",
        )


@dataclass
class ProgressStats:
    total_exercises_attempted: int = 0
    total_correct: int = 0
    current_answer_streak: int = 0
    best_answer_streak: int = 0
    current_practice_streak: int = 0
    best_practice_streak: int = 0
    last_practice_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalExercisesAttempted": self.total_exercises_attempted,
            "totalCorrect": self.total_correct,
            "currentAnswerStreak": self.current_answer_streak,
            "bestAnswerStreak": self.best_answer_streak,
            "currentPracticeStreak": self.current_practice_streak,
            "bestPracticeStreak": self.best_practice_streak,
            "lastPracticeDate": self.last_practice_date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressStats:
        return cls(
            total_exercises_attempted=_int(data.get("totalExercisesAttempted")),
            total_correct=_int(data.get("totalCorrect")),
            current_answer_streak=_int(data.get("currentAnswerStreak")),
            best_answer_streak=_int(data.get("bestAnswerStreak")),
            current_practice_streak=_int(data.get("currentPracticeStreak")),
            best_practice_streak=_int(data.get("bestPracticeStreak")),
            last_practice_date=data.get("lastPracticeDate"),
        )


def _parse_records(
    section: str, raw: dict[str, Any], parse: Callable[[dict[str, Any]], T]
) -> tuple[dict[str, T], dict[str, Any]]:
    """
    Parse one record section entry by entry.

    Returns:
        Tuple of (parsed records, records that failed to parse, as stored)
    """
    parsed: dict[str, T] = {}
    unreadable: dict[str, Any] = {}
    for record_id, record in raw.items():
        try:
            parsed[record_id] = parse(record)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            logger.warning(f"Keeping unreadable {section} record {record_id!r} as stored: {e}")
            unreadable[record_id] = record
    return parsed, unreadable


@dataclass
class ProgressData:
    """
    The complete persisted progress blob for the learner.

    Records that fail to parse are held in ``unreadable`` (section -> id ->
    stored value) and written back unchanged by to_dict, unless a parsed
    record with the same id has replaced them.
    """

    version: int = CURRENT_PROGRESS_VERSION
    exercise_results: dict[str, ExerciseRecord] = field(default_factory=dict)
    word_mastery: dict[str, MasteryRecord] = field(default_factory=dict)
    lesson_progress: dict[str, LessonProgress] = field(default_factory=dict)
    stats: ProgressStats = field(default_factory=ProgressStats)
    unreadable: dict[str, dict[str, Any]] = field(default_factory=dict)

    def _section(self, section: str, records: dict[str, Any]) -> dict[str, Any]:
        data = dict(self.unreadable.get(section, {}))
        data.update((k, v.to_dict()) for k, v in records.items())
        return data

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "exerciseResults": self._section("exerciseResults", self.exercise_results),
            "wordMastery": self._section("wordMastery", self.word_mastery),
            "lessonProgress": self._section("lessonProgress", self.lesson_progress),
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressData:
        parsers = {
            "exerciseResults": ExerciseRecord.from_dict,
            "wordMastery": MasteryRecord.from_dict,
            "lessonProgress": LessonProgress.from_dict,
        }
        sections: dict[str, dict[str, Any]] = {}
        unreadable: dict[str, dict[str, Any]] = {}
        for section in RECORD_SECTIONS:
            sections[section], failed = _parse_records(section, data.get(section) or {}, parsers[section])
            if failed:
                unreadable[section] = failed

        return cls(
            version=_int(data.get("version"), CURRENT_PROGRESS_VERSION),
            exercise_results=sections["exerciseResults"],
            word_mastery=sections["wordMastery"],
            lesson_progress=sections["lessonProgress"],
            stats=ProgressStats.from_dict(data.get("stats") or {}),
            unreadable=unreadable,
        )
