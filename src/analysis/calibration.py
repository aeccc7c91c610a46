"""
Confidence calibration.

Compares how sure the learner said they were (1=unsure, 2=somewhat sure,
3=very sure) with how often they were actually right at each level.

Formula:
    calibration_score = clamp(0, 1, 1 - sum(|actual - expected| * n) / sum(n))
    tendency          = sign of the count-weighted mean (actual - expected)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from src.core.models import ConfidenceRecord, MasteryRecord
from src.progress.store import ProgressStore

EXPECTED_ACCURACY: dict[int, float] = {
    1: 0.33,
    2: 0.66,
    3: 0.90,
}
CONFIDENCE_LEVELS = (1, 2, 3)

MIN_RATINGS_FOR_CALIBRATION = 10
TENDENCY_THRESHOLD = 0.15

# Levels need this many ratings to be singled out in feedback
MIN_LEVEL_COUNT_FOR_FEEDBACK = 3

TREND_WINDOW = 20
TREND_THRESHOLD = 0.1


class Tendency(str, Enum):
    WELL_CALIBRATED = "well-calibrated"
    OVERCONFIDENT = "overconfident"
    UNDERCONFIDENT = "underconfident"
    INSUFFICIENT_DATA = "insufficient-data"


class CalibrationTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient-data"


@dataclass
class LevelStats:
    level: int
    count: int
    correct_count: int
    expected_accuracy: float
    actual_accuracy: float
    difference: float  # actual - expected; negative means overconfident


@dataclass
class CalibrationStats:
    total_ratings: int
    calibration_score: float
    tendency: Tendency
    by_level: list[LevelStats] = field(default_factory=list)
    feedback_message: str = ""


def get_confidence_level_label(level: int) -> str:
    return {1: "Unsure", 2: "Somewhat sure", 3: "Very sure"}[level]


def aggregate_confidence_records(word_mastery: Mapping[str, MasteryRecord]) -> list[ConfidenceRecord]:
    """All confidence ratings across items, most recent first."""
    records = [
        record
        for mastery in word_mastery.values()
        if mastery.confidence is not None
        for record in mastery.confidence.history
    ]
    records.sort(key=lambda record: record.timestamp, reverse=True)
    return records


def _level_stats(records: Iterable[ConfidenceRecord]) -> list[LevelStats]:
    totals = {level: 0 for level in CONFIDENCE_LEVELS}
    correct = {level: 0 for level in CONFIDENCE_LEVELS}
    for record in records:
        totals[record.rating] += 1
        if record.was_correct:
            correct[record.rating] += 1

    stats = []
    for level in CONFIDENCE_LEVELS:
        actual = correct[level] / totals[level] if totals[level] else 0.0
        expected = EXPECTED_ACCURACY[level]
        stats.append(
            LevelStats(
                level=level,
                count=totals[level],
                correct_count=correct[level],
                expected_accuracy=expected,
                actual_accuracy=actual,
                difference=actual - expected,
            )
        )
    return stats


def _weighted_mean(by_level: list[LevelStats], absolute: bool) -> float | None:
    total_weight = sum(stats.count for stats in by_level)
    if total_weight == 0:
        return None
    weighted = sum(
        (abs(stats.difference) if absolute else stats.difference) * stats.count
        for stats in by_level
        if stats.count > 0
    )
    return weighted / total_weight


def determine_tendency(by_level: list[LevelStats], threshold: float = TENDENCY_THRESHOLD) -> Tendency:
    mean_difference = _weighted_mean(by_level, absolute=False)
    if mean_difference is None:
        return Tendency.INSUFFICIENT_DATA
    if mean_difference < -threshold:
        return Tendency.OVERCONFIDENT
    if mean_difference > threshold:
        return Tendency.UNDERCONFIDENT
    return Tendency.WELL_CALIBRATED


def generate_feedback_message(tendency: Tendency, by_level: list[LevelStats], score: float) -> str:
    eligible = [stats for stats in by_level if stats.count >= MIN_LEVEL_COUNT_FOR_FEEDBACK]

    if tendency is Tendency.OVERCONFIDENT:
        overconfident = [stats for stats in eligible if stats.difference < 0]
        worst = min(overconfident, key=lambda stats: stats.difference, default=None)
        if worst is not None and worst.level == 3:
            return "When you feel 'very sure', pause and double-check. You might be overlooking something."
        return "Your confidence tends to exceed your accuracy. Take a moment to verify before answering."

    if tendency is Tendency.UNDERCONFIDENT:
        underconfident = [stats for stats in eligible if stats.difference > 0]
        worst = max(underconfident, key=lambda stats: stats.difference, default=None)
        if worst is not None and worst.level == 1:
            return "You know more than you think! Trust your instincts more when answering."
        return "You're more accurate than you believe. Have more confidence in your knowledge!"

    if tendency is Tendency.WELL_CALIBRATED:
        if score >= 0.85:
            return "Excellent metacognition! Your confidence accurately predicts your performance."
        return "Good calibration. Your confidence levels reasonably match your actual accuracy."

    return "Keep practicing with confidence ratings to unlock your calibration insights."


def calculate_calibration_stats(
    records: list[ConfidenceRecord],
    min_ratings: int = MIN_RATINGS_FOR_CALIBRATION,
    tendency_threshold: float = TENDENCY_THRESHOLD,
) -> CalibrationStats:
    """
    Score how well confidence ratings predict correctness.

    Args:
        records: Confidence ratings (any order)
        min_ratings: Ratings required before a score is reported
        tendency_threshold: Mean gap beyond which the learner is over/under confident

    Returns:
        CalibrationStats; an insufficient-data stub with score 0 below min_ratings
    """
    total = len(records)
    if total < min_ratings:
        return CalibrationStats(
            total_ratings=total,
            calibration_score=0.0,
            tendency=Tendency.INSUFFICIENT_DATA,
            by_level=[],
            feedback_message=f"Need {min_ratings - total} more ratings for calibration analysis.",
        )

    by_level = _level_stats(records)
    mean_error = _weighted_mean(by_level, absolute=True) or 0.0
    score = max(0.0, min(1.0, 1 - mean_error))
    tendency = determine_tendency(by_level, tendency_threshold)

    return CalibrationStats(
        total_ratings=total,
        calibration_score=score,
        tendency=tendency,
        by_level=by_level,
        feedback_message=generate_feedback_message(tendency, by_level, score),
    )


def get_calibration_trend(records: list[ConfidenceRecord]) -> CalibrationTrend:
    """
    Compare the most recent 20 ratings with the 20 before them.

    ``records`` must be ordered most recent first (as returned by
    aggregate_confidence_records).
    """
    if len(records) < TREND_WINDOW * 2:
        return CalibrationTrend.INSUFFICIENT_DATA

    recent = calculate_calibration_stats(records[:TREND_WINDOW])
    previous = calculate_calibration_stats(records[TREND_WINDOW : TREND_WINDOW * 2])
    if Tendency.INSUFFICIENT_DATA in (recent.tendency, previous.tendency):
        return CalibrationTrend.INSUFFICIENT_DATA

    improvement = recent.calibration_score - previous.calibration_score
    if improvement > TREND_THRESHOLD:
        return CalibrationTrend.IMPROVING
    if improvement < -TREND_THRESHOLD:
        return CalibrationTrend.DECLINING
    return CalibrationTrend.STABLE


class CalibrationAnalyzer:
    """Calibration queries over the learner's stored confidence ratings."""

    def __init__(
        self,
        store: ProgressStore,
        min_ratings: int = MIN_RATINGS_FOR_CALIBRATION,
        tendency_threshold: float = TENDENCY_THRESHOLD,
    ):
        self.store = store
        self.min_ratings = min_ratings
        self.tendency_threshold = tendency_threshold

    @classmethod
    def from_settings(cls, store: ProgressStore, settings) -> CalibrationAnalyzer:
        return cls(
            store,
            min_ratings=settings.calibration_min_ratings,
            tendency_threshold=settings.calibration_tendency_threshold,
        )

    def records(self) -> list[ConfidenceRecord]:
        return aggregate_confidence_records(self.store.get_progress().word_mastery)

    def stats(self) -> CalibrationStats:
        return calculate_calibration_stats(self.records(), self.min_ratings, self.tendency_threshold)

    def trend(self) -> CalibrationTrend:
        return get_calibration_trend(self.records())
