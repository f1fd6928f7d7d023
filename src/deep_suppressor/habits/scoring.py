# deep_suppressor/habits/scoring.py
"""
Scoring functions for learned habits.

Pure functions over AppStats / LearningState. Every normalized factor is
capped at 1.0 so that combined scores stay within their ceilings.

Usage-pattern score (0..PATTERN_SCORE_CEILING):
    frequency * w1 + duration * w2 + switching * w3
        + consecutiveness * w4 + hour_diversity * w5

Importance weight (0..100):
    (pattern * 0.6 + foreground_term + consistency_term) * recency_factor
"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field

from deep_suppressor.models import (
    HIGH_INTENSITY_HOURS,
    HOURS_PER_DAY,
    LEARNING_TARGET_HOURS,
    MEDIUM_INTENSITY_HOURS,
    NO_USAGE_DAY,
    AppStats,
    LearningIntensity,
    LearningState,
)

PATTERN_SCORE_CEILING = 100.0
IMPORTANCE_MIN = 0.0
IMPORTANCE_MAX = 100.0

# Learning weight curve: floor + (1 - floor) * exp(-hours / decay)
LEARNING_WEIGHT_FLOOR = 0.05
LEARNING_WEIGHT_DECAY_HOURS = 24.0


class PatternWeights(BaseModel):
    """Weights for the usage-pattern score (must sum to 1.0)."""

    frequency: float = 0.30
    duration: float = 0.30
    switching: float = 0.10
    consecutiveness: float = 0.15
    hour_diversity: float = 0.15

    # Normalization scales: value at which a factor saturates
    frequency_scale: float = Field(default=50.0, gt=0.0, description="usage_count")
    duration_scale_hours: float = Field(default=10.0, gt=0.0, description="foreground hours")
    switching_scale: float = Field(default=100.0, gt=0.0, description="switch_count")
    consecutive_scale_days: float = Field(default=7.0, gt=0.0, description="consecutive days")


class ImportanceWeights(BaseModel):
    """Weights for the importance weight (maxima sum to 100)."""

    pattern_share: float = 0.6  # of the 0..100 pattern score
    foreground_points: float = 25.0
    foreground_scale_hours: float = Field(default=20.0, gt=0.0)
    consistency_points: float = 15.0
    consistency_scale_days: float = Field(default=7.0, gt=0.0)

    # Recency: factor = floor + (1 - floor) * 0.5 ** (days_idle / half_life)
    recency_floor: float = Field(default=0.5, ge=0.0, le=1.0)
    recency_half_life_days: float = Field(default=7.0, gt=0.0)


DEFAULT_PATTERN_WEIGHTS = PatternWeights()
DEFAULT_IMPORTANCE_WEIGHTS = ImportanceWeights()


def _capped(value: float, scale: float) -> float:
    return min(max(value, 0.0) / scale, 1.0)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# =============================================================================
# App scores
# =============================================================================


def usage_pattern_score(stats: AppStats, weights: PatternWeights = DEFAULT_PATTERN_WEIGHTS) -> float:
    """Weighted combination of frequency, duration, switching, consecutiveness and hour diversity."""
    frequency = _capped(stats.usage_count, weights.frequency_scale)
    duration = _capped(stats.foreground_hours, weights.duration_scale_hours)
    switching = _capped(stats.switch_count, weights.switching_scale)
    consecutive = _capped(stats.consecutive_days_used, weights.consecutive_scale_days)
    diversity = stats.active_hour_count / HOURS_PER_DAY

    combined = (
        frequency * weights.frequency
        + duration * weights.duration
        + switching * weights.switching
        + consecutive * weights.consecutiveness
        + diversity * weights.hour_diversity
    )
    return min(combined * PATTERN_SCORE_CEILING, PATTERN_SCORE_CEILING)


def recency_factor(
    stats: AppStats,
    today: int,
    weights: ImportanceWeights = DEFAULT_IMPORTANCE_WEIGHTS,
) -> float:
    """Decay multiplier for apps that have not been used recently."""
    if stats.last_used_day == NO_USAGE_DAY:
        return weights.recency_floor
    idle_days = max(0, today - stats.last_used_day)
    decay = 0.5 ** (idle_days / weights.recency_half_life_days)
    return weights.recency_floor + (1.0 - weights.recency_floor) * decay


def importance_weight(
    stats: AppStats,
    today: int,
    weights: ImportanceWeights = DEFAULT_IMPORTANCE_WEIGHTS,
) -> float:
    """
    Importance in [0, 100].

    Non-decreasing in total_foreground_seconds and usage_count when all
    other fields are held fixed.
    """
    foreground = _capped(stats.foreground_hours, weights.foreground_scale_hours) * weights.foreground_points
    consistency = _capped(stats.consecutive_days_used, weights.consistency_scale_days) * weights.consistency_points
    raw = stats.usage_pattern_score * weights.pattern_share + foreground + consistency
    return clamp(raw * recency_factor(stats, today, weights), IMPORTANCE_MIN, IMPORTANCE_MAX)


def rescore(stats: AppStats, today: int) -> None:
    """Recompute derived scores in place."""
    stats.usage_pattern_score = usage_pattern_score(stats)
    stats.importance_weight = importance_weight(stats, today)


# =============================================================================
# Learning curves
# =============================================================================


def learning_weight(hours: float) -> float:
    """Starts at 1.0 and decays toward LEARNING_WEIGHT_FLOOR, never reaching zero."""
    return LEARNING_WEIGHT_FLOOR + (1.0 - LEARNING_WEIGHT_FLOOR) * math.exp(-hours / LEARNING_WEIGHT_DECAY_HOURS)


def learning_intensity(hours: float) -> LearningIntensity:
    if hours < HIGH_INTENSITY_HOURS:
        return LearningIntensity.HIGH
    if hours < MEDIUM_INTENSITY_HOURS:
        return LearningIntensity.MEDIUM
    if hours < LEARNING_TARGET_HOURS:
        return LearningIntensity.LOW
    return LearningIntensity.STABLE


def advance_learning(state: LearningState, hours: float) -> bool:
    """
    Move learning progress forward to ``hours``.

    learning_hours never decreases. Returns True when this call is the one
    that completed learning.
    """
    was_complete = state.learning_complete
    state.learning_hours = max(state.learning_hours, hours)
    state.learning_weight = learning_weight(state.learning_hours)
    state.learning_complete = was_complete or state.learning_hours >= LEARNING_TARGET_HOURS
    state.intensity = LearningIntensity.STABLE if state.learning_complete else learning_intensity(state.learning_hours)
    return state.learning_complete and not was_complete
