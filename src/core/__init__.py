"""
Core Module - Shared domain models and primitives.

Components:
- mastery: Strength deltas, decay and mastery levels (StrengthModel)
- models: Persisted progress dataclasses (MasteryRecord, SM2State, ...)
- exercises: Exercise variants and their tagged-union parsing
- exceptions: MasteryEngineError hierarchy
- context: EngineContext, the shared engine state

Design Principle:
Domain modules (src/study/, src/graph/, src/analysis/) import shared
concepts from src/core/ rather than reimplementing them.
"""

from src.core.exceptions import MasteryEngineError
from src.core.mastery import MasteryLevel, StrengthModel

__all__ = [
    "MasteryEngineError",
    "MasteryLevel",
    "StrengthModel",
]
