# deep_suppressor/models/__init__.py
"""
Data models for the suppressor.

Organized into submodules:
- enums: TargetState, LearningIntensity and learning constants
- target: Target
- habits: AppStats, TimePattern, LearningState, ScreenStats, HabitsSnapshot, HabitsDelta
"""

from .enums import (
    HIGH_INTENSITY_HOURS,
    HOURS_PER_DAY,
    LEARNING_TARGET_HOURS,
    MAX_ACTIVE_TARGETS_PER_HOUR,
    MEDIUM_INTENSITY_HOURS,
    NO_USAGE_DAY,
    NO_USAGE_HOUR,
    LearningIntensity,
    TargetState,
)
from .habits import (
    AppStats,
    HabitsDelta,
    HabitsSnapshot,
    LearningState,
    ScreenStats,
    TimePattern,
)
from .target import Target

__all__ = [
    # Enums
    "LearningIntensity",
    "TargetState",
    # Constants
    "HIGH_INTENSITY_HOURS",
    "HOURS_PER_DAY",
    "LEARNING_TARGET_HOURS",
    "MAX_ACTIVE_TARGETS_PER_HOUR",
    "MEDIUM_INTENSITY_HOURS",
    "NO_USAGE_DAY",
    "NO_USAGE_HOUR",
    # Models
    "AppStats",
    "HabitsDelta",
    "HabitsSnapshot",
    "LearningState",
    "ScreenStats",
    "Target",
    "TimePattern",
]
