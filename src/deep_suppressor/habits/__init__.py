# deep_suppressor/habits/__init__.py
"""
Habit learning subsystem.

- scoring: usage-pattern score, importance weight, learning curves
- storage: crash-safe JSON storage with best-effort loading
- store: HabitStore, the lock-protected owner of learned state
"""

from .scoring import (
    IMPORTANCE_MAX,
    IMPORTANCE_MIN,
    PATTERN_SCORE_CEILING,
    ImportanceWeights,
    PatternWeights,
    advance_learning,
    importance_weight,
    learning_intensity,
    learning_weight,
    rescore,
    usage_pattern_score,
)
from .storage import HabitsFileStorage, HabitsStorage, InMemoryHabitsStorage
from .store import HabitStore, PersistenceConfig

__all__ = [
    # Store
    "HabitStore",
    "PersistenceConfig",
    # Storage
    "HabitsFileStorage",
    "HabitsStorage",
    "InMemoryHabitsStorage",
    # Scoring
    "IMPORTANCE_MAX",
    "IMPORTANCE_MIN",
    "PATTERN_SCORE_CEILING",
    "ImportanceWeights",
    "PatternWeights",
    "advance_learning",
    "importance_weight",
    "learning_intensity",
    "learning_weight",
    "rescore",
    "usage_pattern_score",
]
