# deep_suppressor/models/habits.py
"""
Learned habit models.

- AppStats: per-target usage profile and derived importance
- TimePattern: per-hour-of-day aggregate activity
- LearningState: progress through the learning phase
- ScreenStats: screen-on session statistics
- HabitsSnapshot: the persisted aggregate of all of the above
- HabitsDelta: incremental save payload (modified targets only)
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .enums import (
    HOURS_PER_DAY,
    MAX_ACTIVE_TARGETS_PER_HOUR,
    NO_USAGE_DAY,
    NO_USAGE_HOUR,
    LearningIntensity,
)


def _zero_hours() -> list[int]:
    return [0] * HOURS_PER_DAY


def _default_time_patterns() -> list[TimePattern]:
    return [TimePattern(hour=h) for h in range(HOURS_PER_DAY)]


# =============================================================================
# Per-target statistics
# =============================================================================


class AppStats(BaseModel):
    """Learned usage profile for one target."""

    # Counters
    usage_count: int = Field(default=0, ge=0, description="Completed foreground sessions")
    total_foreground_seconds: float = Field(default=0.0, ge=0.0)
    total_background_seconds: float = Field(default=0.0, ge=0.0)
    switch_count: int = Field(default=0, ge=0)
    consecutive_days_used: int = Field(default=0, ge=0)
    last_used_day: int = Field(default=NO_USAGE_DAY, ge=0, description="date.toordinal() of last use")
    last_usage_hour: int = Field(default=NO_USAGE_HOUR, ge=NO_USAGE_HOUR, le=HOURS_PER_DAY - 1)
    hourly_usage: list[int] = Field(default_factory=_zero_hours)

    # Derived scores (recomputed after every update)
    usage_pattern_score: float = Field(default=0.0, ge=0.0)
    importance_weight: float = Field(default=0.0, ge=0.0, le=100.0)

    @field_validator("hourly_usage")
    @classmethod
    def _check_hours(cls, value: list[int]) -> list[int]:
        if len(value) != HOURS_PER_DAY:
            raise ValueError(f"hourly_usage must have {HOURS_PER_DAY} slots, got {len(value)}")
        if any(v < 0 for v in value):
            raise ValueError("hourly_usage counts must be non-negative")
        return value

    @property
    def foreground_hours(self) -> float:
        return self.total_foreground_seconds / 3600.0

    @property
    def active_hour_count(self) -> int:
        """Number of distinct hours-of-day with any recorded use."""
        return sum(1 for count in self.hourly_usage if count > 0)


# =============================================================================
# Time-of-day patterns
# =============================================================================


class TimePattern(BaseModel):
    """Aggregate activity for one hour-of-day slot."""

    hour: int = Field(..., ge=0, le=HOURS_PER_DAY - 1)
    activity_level: float = Field(default=0.0, ge=0.0, le=1.0, description="EMA of aggregate activity")
    check_frequency: float = Field(default=0.0, ge=0.0, description="EMA of switches per hour")
    active_targets: list[str] = Field(default_factory=list, max_length=MAX_ACTIVE_TARGETS_PER_HOUR)

    def note_active(self, app_id: str) -> None:
        """Remember a target as recently active in this hour, dropping the oldest."""
        if app_id in self.active_targets:
            self.active_targets.remove(app_id)
        self.active_targets.append(app_id)
        if len(self.active_targets) > MAX_ACTIVE_TARGETS_PER_HOUR:
            del self.active_targets[0]


# =============================================================================
# Learning / screen state
# =============================================================================


class LearningState(BaseModel):
    """Progress through the learning phase."""

    first_seen_at: datetime | None = None
    learning_hours: float = Field(default=0.0, ge=0.0)
    learning_complete: bool = False
    learning_weight: float = Field(default=1.0, gt=0.0, le=1.0)
    intensity: LearningIntensity = LearningIntensity.HIGH


class ScreenStats(BaseModel):
    """Screen-on session statistics."""

    screen_on_ema_seconds: float = Field(default=0.0, ge=0.0)
    sessions: int = Field(default=0, ge=0)


# =============================================================================
# Aggregates
# =============================================================================


class _HabitsBody(BaseModel):
    """Fields shared by full snapshots and incremental deltas."""

    save_version: int = Field(default=0, ge=0)
    total_samples: int = Field(default=0, ge=0)
    app_stats: dict[str, AppStats] = Field(default_factory=dict)
    time_patterns: list[TimePattern] = Field(default_factory=_default_time_patterns)
    learning: LearningState = Field(default_factory=LearningState)
    screen: ScreenStats = Field(default_factory=ScreenStats)

    @field_validator("time_patterns")
    @classmethod
    def _check_patterns(cls, value: list[TimePattern]) -> list[TimePattern]:
        if len(value) != HOURS_PER_DAY:
            raise ValueError(f"time_patterns must have {HOURS_PER_DAY} slots, got {len(value)}")
        ordered = sorted(value, key=lambda p: p.hour)
        if [p.hour for p in ordered] != list(range(HOURS_PER_DAY)):
            raise ValueError("time_patterns must cover every hour exactly once")
        return ordered


class HabitsSnapshot(_HabitsBody):
    """Everything the supervisor has learned; the unit of full persistence."""

    def stats_for(self, app_id: str) -> AppStats | None:
        return self.app_stats.get(app_id)

    def pattern_for(self, hour: int) -> TimePattern:
        return self.time_patterns[hour % HOURS_PER_DAY]

    def apply_delta(self, delta: HabitsDelta) -> None:
        """Overlay an incremental save onto this snapshot."""
        self.app_stats.update(delta.app_stats)
        self.time_patterns = delta.time_patterns
        self.learning = delta.learning
        self.screen = delta.screen
        self.total_samples = max(self.total_samples, delta.total_samples)


class HabitsDelta(_HabitsBody):
    """
    Incremental save payload.

    Carries only the targets modified since the last save, plus the small
    global sections, under the save_version of the full file it extends.
    """
