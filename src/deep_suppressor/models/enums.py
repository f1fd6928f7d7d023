# deep_suppressor/models/enums.py
"""Enums and constants for targets and habit learning."""

from enum import Enum

# =============================================================================
# Enums
# =============================================================================


class TargetState(str, Enum):
    """Lifecycle state of a monitored target."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"


class LearningIntensity(str, Enum):
    """
    Learning phase tiers, derived from elapsed learning hours.

    While not STABLE, fixed fallback intervals replace habit-derived ones.
    """

    HIGH = "high"  # first day
    MEDIUM = "medium"  # second day
    LOW = "low"  # third day
    STABLE = "stable"  # habits drive everything


# =============================================================================
# Constants
# =============================================================================

HOURS_PER_DAY = 24

# Bounded set of recently-active targets remembered per hour slot
MAX_ACTIVE_TARGETS_PER_HOUR = 10

# Learning thresholds (hours)
HIGH_INTENSITY_HOURS = 24
MEDIUM_INTENSITY_HOURS = 48
LEARNING_TARGET_HOURS = 72

# Sentinel for "never used"
NO_USAGE_HOUR = -1
NO_USAGE_DAY = 0
