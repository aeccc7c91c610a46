"""
Configuration settings for the mastery engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///data/progress.db",
        description="SQLAlchemy connection string for the progress store",
    )

    # ========================================
    # Content Sources
    # ========================================
    manifest_source: str = Field(
        default="data/content-manifest.json",
        description="Content manifest location (local path or http(s) URL)",
    )
    vocabulary_source: str = Field(
        default="data/vocabulary.json",
        description="Vocabulary dataset location (local path or http(s) URL)",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for remote content downloads",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Strength Model
    # ========================================
    strength_increase: int = Field(
        default=10,
        description="Strength gained on a correct answer",
    )
    strength_decrease: int = Field(
        default=20,
        description="Strength lost on an incorrect answer",
    )
    decay_grace_days: int = Field(
        default=3,
        description="Days without practice before strength starts decaying",
    )
    decay_rate_per_day: int = Field(
        default=5,
        description="Strength lost per day once past the grace period",
    )

    # ========================================
    # Challenge Mode
    # ========================================
    challenge_threshold: int = Field(
        default=80,
        description="Minimum strength on every item before an exercise becomes a challenge",
    )
    challenge_timer_seconds: int = Field(
        default=30,
        description="Countdown for challenge exercises",
    )

    # ========================================
    # Encompassing Graph
    # ========================================
    graph_include_lesson_encompassing: bool = Field(
        default=True,
        description="Build lesson-to-lesson edges",
    )
    graph_adjacent_lesson_weight: float = Field(
        default=0.5,
        description="Weight to the previous lesson (divided by lesson distance)",
    )
    graph_cross_book_weight: float = Field(
        default=0.2,
        description="Weight from a lesson to each lesson of an earlier book",
    )
    graph_same_lesson_item_weight: float = Field(
        default=0.3,
        description="Weight between items introduced in the same lesson",
    )
    graph_min_weight: float = Field(
        default=0.05,
        description="Edges below this weight are pruned",
    )

    # ========================================
    # Weakness Analysis
    # ========================================
    weakness_min_errors: int = Field(
        default=3,
        description="Minimum errors of one type before it counts as a weakness",
    )
    weakness_max_top: int = Field(
        default=5,
        description="Maximum weaknesses reported",
    )
    weakness_recent_days: int = Field(
        default=14,
        description="Window (days) for counting recent errors",
    )
    weakness_moderate_threshold: int = Field(
        default=5,
        description="Aggregated error count at which a weakness is moderate",
    )
    weakness_severe_threshold: int = Field(
        default=10,
        description="Aggregated error count at which a weakness is severe",
    )

    # ========================================
    # Confidence Calibration
    # ========================================
    calibration_min_ratings: int = Field(
        default=10,
        description="Ratings required before calibration is reported",
    )
    calibration_tendency_threshold: float = Field(
        default=0.15,
        description="Mean accuracy gap that flags over/under confidence",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_graph_build_options(self) -> dict[str, float | bool]:
        """Return graph construction tunables keyed by option name."""
        return {
            "include_lesson_encompassing": self.graph_include_lesson_encompassing,
            "adjacent_lesson_weight": self.graph_adjacent_lesson_weight,
            "cross_book_weight": self.graph_cross_book_weight,
            "same_lesson_item_weight": self.graph_same_lesson_item_weight,
            "min_weight": self.graph_min_weight,
        }

    def get_weakness_thresholds(self) -> dict[str, int]:
        """Return weakness aggregation tunables keyed by threshold name."""
        return {
            "min_errors_for_weakness": self.weakness_min_errors,
            "max_top_weaknesses": self.weakness_max_top,
            "recent_error_days": self.weakness_recent_days,
            "moderate_threshold": self.weakness_moderate_threshold,
            "severe_threshold": self.weakness_severe_threshold,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
