"""
Study scheduling.

Provides:
- SM-2 spaced repetition scheduling
- Legacy strength migration and encounter tracking
- Challenge gating for exercises on well-known items
"""

from src.study.challenge import ChallengeConfig, apply_challenge, get_challenge_config
from src.study.spaced_repetition import calculate_sm2, is_due

__all__ = [
    "ChallengeConfig",
    "apply_challenge",
    "get_challenge_config",
    "calculate_sm2",
    "is_due",
]
