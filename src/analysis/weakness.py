"""
Weakness Analysis.

Aggregates per-item error patterns into ranked weaknesses by error type so
practice can target them (deliberate practice).

Rules:
- Counts per type are summed across items; affected items are unioned
- A type needs min_errors_for_weakness errors to be reported, but every
  error still counts toward total_errors / words_with_errors
- Severity by aggregated count: >= severe_threshold severe,
  >= moderate_threshold moderate, otherwise mild
- Trend by the share of errors whose pattern occurred inside the recent
  window: > 0.6 worsening, < 0.3 improving, otherwise stable
- Ranked severity first, then count; capped at max_top_weaknesses
"""

from __future__ import annotations

import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from src.content.vocabulary import WordData, WordLookup
from src.core.models import MAX_ERROR_EXAMPLES, MasteryRecord
from src.core.timeutil import MS_PER_DAY, now_ms
from src.progress.store import ProgressStore

MIN_ERRORS_FOR_WEAKNESS = 3
MAX_TOP_WEAKNESSES = 5
RECENT_ERROR_DAYS = 14
MODERATE_THRESHOLD = 5
SEVERE_THRESHOLD = 10

WORSENING_RATIO = 0.6
IMPROVING_RATIO = 0.3


class ErrorType(str, Enum):
    """Answer-checking error categories recorded against items."""

    TASHKEEL_MISSING = "tashkeel_missing"
    TASHKEEL_WRONG = "tashkeel_wrong"
    LETTER_CONFUSION = "letter_confusion"
    WORD_ORDER = "word_order"
    VOCABULARY_UNKNOWN = "vocabulary_unknown"
    PARTIAL_MATCH = "partial_match"
    SPELLING_ERROR = "spelling_error"
    TYPO = "typo"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        """0 for the most severe."""
        return {Severity.SEVERE: 0, Severity.MODERATE: 1, Severity.MILD: 2}[self]


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


# (label, description, advice, practice instruction)
_ERROR_TYPE_INFO: dict[str, tuple[str, str, str, str]] = {
    ErrorType.TASHKEEL_MISSING.value: (
        "Missing Tashkeel",
        "Missing diacritical marks (tashkeel)",
        "Practice writing words with full vowel marks. Pay attention to the short vowels (fatha, kasra, damma).",
        "Pay special attention to the vowel marks",
    ),
    ErrorType.TASHKEEL_WRONG.value: (
        "Wrong Tashkeel",
        "Incorrect diacritical marks",
        "Review the vowel patterns for these words. Notice how the vowels change based on grammatical position.",
        "Pay special attention to the vowel marks",
    ),
    ErrorType.LETTER_CONFUSION.value: (
        "Letter Confusion",
        "Confusing similar-looking letters",
        "Focus on distinguishing between similar letters like ه/ة, ا/أ, ى/ي. Practice writing them side by side.",
        "Look carefully at each letter",
    ),
    ErrorType.WORD_ORDER.value: (
        "Word Order",
        "Incorrect word order in sentences",
        "Review Arabic sentence structure. Remember: Arabic often follows Verb-Subject-Object order.",
        "Focus on the word order",
    ),
    ErrorType.VOCABULARY_UNKNOWN.value: (
        "Unknown Words",
        "Unknown or forgotten vocabulary",
        "These words need more practice. Try using flashcards or reading them in context.",
        "Try to recall this word from memory",
    ),
    ErrorType.PARTIAL_MATCH.value: (
        "Partial Matches",
        "Close but not quite correct",
        "Pay attention to the exact form of words. Small details matter in Arabic.",
        "Write the complete word carefully",
    ),
    ErrorType.SPELLING_ERROR.value: (
        "Spelling",
        "Spelling mistakes",
        "Practice writing these words carefully. Break them into syllables if needed.",
        "Write the complete word carefully",
    ),
    ErrorType.TYPO.value: (
        "Typos",
        "Typing errors",
        "Slow down when typing Arabic. Make sure your keyboard layout is correct.",
        "Type slowly and accurately",
    ),
}
_DEFAULT_INFO = (
    "Other",
    "General errors",
    "Review these words and practice them more frequently.",
    "Practice this word",
)


def _info(error_type: str) -> tuple[str, str, str, str]:
    key = error_type.value if isinstance(error_type, Enum) else error_type
    return _ERROR_TYPE_INFO.get(key, _DEFAULT_INFO)


def get_error_type_label(error_type: str) -> str:
    return _info(error_type)[0]


def get_error_type_info(error_type: str) -> tuple[str, str]:
    """(description, advice) for an error type."""
    _, description, advice, _ = _info(error_type)
    return description, advice


def get_instruction_for_error_type(error_type: str) -> str:
    return _info(error_type)[3]


def get_trend_icon(trend: Trend) -> str:
    """Arrow direction for an error trend; fewer errors points down."""
    return {Trend.IMPROVING: "down", Trend.WORSENING: "up", Trend.STABLE: "flat"}[trend]


@dataclass(frozen=True)
class WeaknessThresholds:
    min_errors_for_weakness: int = MIN_ERRORS_FOR_WEAKNESS
    max_top_weaknesses: int = MAX_TOP_WEAKNESSES
    recent_error_days: int = RECENT_ERROR_DAYS
    moderate_threshold: int = MODERATE_THRESHOLD
    severe_threshold: int = SEVERE_THRESHOLD

    @classmethod
    def from_settings(cls, settings) -> WeaknessThresholds:
        return cls(**settings.get_weakness_thresholds())

    def severity_for(self, count: int) -> Severity:
        if count >= self.severe_threshold:
            return Severity.SEVERE
        if count >= self.moderate_threshold:
            return Severity.MODERATE
        return Severity.MILD


def trend_for(count: int, recent_count: int) -> Trend:
    recent_ratio = recent_count / count if count > 0 else 0.0
    if recent_ratio > WORSENING_RATIO:
        return Trend.WORSENING
    if recent_ratio < IMPROVING_RATIO:
        return Trend.IMPROVING
    return Trend.STABLE


@dataclass(frozen=True)
class WeaknessExample:
    expected: str
    actual: str


@dataclass
class Weakness:
    """An error type that recurs across the learner's items."""

    type: str
    count: int
    recent_count: int
    trend: Trend
    severity: Severity
    affected_word_ids: list[str]
    examples: list[WeaknessExample]
    description: str
    advice: str
    last_occurred: int = 0

    @property
    def label(self) -> str:
        return get_error_type_label(self.type)


@dataclass
class WeaknessReport:
    top_weaknesses: list[Weakness] = field(default_factory=list)
    total_errors: int = 0
    words_with_errors: int = 0
    has_enough_data: bool = False


@dataclass
class WeaknessPracticeItem:
    word_id: str
    arabic: str
    english: str
    focus_type: str
    instruction: str


@dataclass
class _Aggregate:
    count: int = 0
    recent_count: int = 0
    last_occurred: int = 0
    word_ids: dict[str, None] = field(default_factory=dict)  # insertion-ordered set
    examples: list[WeaknessExample] = field(default_factory=list)


def analyze_error_patterns(
    word_mastery: Mapping[str, MasteryRecord],
    now: int | None = None,
    thresholds: WeaknessThresholds | None = None,
) -> WeaknessReport:
    """
    Build a weakness report from every item's error patterns.

    Args:
        word_mastery: Mastery records keyed by item id
        now: Reference time in epoch ms for the recency window
        thresholds: Aggregation tunables (module defaults when omitted)

    Returns:
        WeaknessReport with ranked top weaknesses
    """
    limits = thresholds or WeaknessThresholds()
    current = now_ms() if now is None else now
    recent_cutoff = current - limits.recent_error_days * MS_PER_DAY

    by_type: dict[str, _Aggregate] = {}
    total_errors = 0
    words_with_errors = 0

    for word_id, record in word_mastery.items():
        if not record.error_patterns:
            continue
        words_with_errors += 1

        for pattern in record.error_patterns:
            total_errors += pattern.count
            entry = by_type.setdefault(pattern.type, _Aggregate())
            entry.count += pattern.count
            entry.word_ids[word_id] = None
            entry.last_occurred = max(entry.last_occurred, pattern.last_occurred)
            if pattern.last_occurred >= recent_cutoff:
                entry.recent_count += pattern.count
            for example in pattern.examples:
                if len(entry.examples) >= MAX_ERROR_EXAMPLES:
                    break
                entry.examples.append(WeaknessExample(example.expected, example.actual))

    weaknesses = []
    for error_type, entry in by_type.items():
        if entry.count < limits.min_errors_for_weakness:
            continue
        description, advice = get_error_type_info(error_type)
        weaknesses.append(
            Weakness(
                type=error_type,
                count=entry.count,
                recent_count=entry.recent_count,
                trend=trend_for(entry.count, entry.recent_count),
                severity=limits.severity_for(entry.count),
                affected_word_ids=list(entry.word_ids),
                examples=entry.examples,
                description=description,
                advice=advice,
                last_occurred=entry.last_occurred,
            )
        )

    weaknesses.sort(key=lambda w: (w.severity.rank, -w.count))

    return WeaknessReport(
        top_weaknesses=weaknesses[: limits.max_top_weaknesses],
        total_errors=total_errors,
        words_with_errors=words_with_errors,
        has_enough_data=total_errors >= limits.min_errors_for_weakness,
    )


class WeaknessAnalyzer:
    """Weakness queries over the learner's stored progress."""

    def __init__(
        self,
        store: ProgressStore,
        vocabulary: WordLookup,
        thresholds: WeaknessThresholds | None = None,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.vocabulary = vocabulary
        self.thresholds = thresholds or WeaknessThresholds()
        self.clock = clock
        self.rng = rng or random.Random()

    def analyze(self) -> WeaknessReport:
        progress = self.store.get_progress()
        report = analyze_error_patterns(progress.word_mastery, self.clock(), self.thresholds)
        logger.debug(
            f"Weakness analysis: {report.total_errors} errors across {report.words_with_errors} words, "
            f"{len(report.top_weaknesses)} weaknesses"
        )
        return report

    def has_significant_weaknesses(self) -> bool:
        report = self.analyze()
        return report.has_enough_data and bool(report.top_weaknesses)

    def get_weakness_summary(self) -> str:
        report = self.analyze()
        if not report.has_enough_data:
            return "Keep practicing to identify areas for improvement"
        if not report.top_weaknesses:
            return "No significant weaknesses detected"
        top = report.top_weaknesses[0]
        return f"Focus area: {top.label} - {top.description}"

    def get_words_for_weakness(self, weakness: Weakness, max_items: int | None = None) -> list[WordData]:
        """Resolve affected ids to words, skipping ids the vocabulary no longer knows."""
        words = []
        for word_id in weakness.affected_word_ids:
            word = self.vocabulary.get_word_by_id(word_id)
            if word is not None:
                words.append(word)
        if max_items is not None:
            words = words[:max_items]
        return words

    def generate_weakness_practice(self, weakness: Weakness, max_items: int = 10) -> list[WeaknessPracticeItem]:
        """Shuffled practice items targeting one weakness."""
        words = self.get_words_for_weakness(weakness)
        if not words:
            return []
        self.rng.shuffle(words)
        instruction = get_instruction_for_error_type(weakness.type)
        return [
            WeaknessPracticeItem(
                word_id=word.id,
                arabic=word.arabic,
                english=word.english,
                focus_type=weakness.type,
                instruction=instruction,
            )
            for word in words[:max_items]
        ]
