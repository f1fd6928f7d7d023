# deep_suppressor/policy.py
"""
Interval policy: learned habits -> durations.

IntervalPolicy is a pure function of a HabitsSnapshot and the current
hour-of-day. It is rebuilt every scheduler cycle, never cached.

- screen_check_interval: learning -> grows with progress;
  stable -> shrinks with the hour's activity level
- process_check_interval: learning -> fixed per-intensity constant
  (halved for apps active this hour); stable -> shrinks with importance
- kill_interval: grows with importance; high-importance apps active this
  hour get a longer, separately bounded grace period; divided under
  memory pressure
- screen_off_sleep_interval: fixed base, shorter while learning, longer
  for historically quiet hours

Every duration is clamped to its [min, max] bounds and is always > 0.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from deep_suppressor.habits.scoring import IMPORTANCE_MAX, clamp
from deep_suppressor.models import LEARNING_TARGET_HOURS, HabitsSnapshot, LearningIntensity

# =============================================================================
# Models
# =============================================================================


class PressureReading(BaseModel):
    """Coarse system pressure signals. Missing readings mean no pressure."""

    memory_high: bool = False
    cpu_high: bool = False
    battery_low: bool = False

    @property
    def under_pressure(self) -> bool:
        return self.memory_high or self.cpu_high or self.battery_low

    @property
    def kill_divisor(self) -> float:
        """1 without memory pressure, 2 with it, 3 when another signal joins it."""
        if not self.memory_high:
            return 1.0
        return 3.0 if (self.cpu_high or self.battery_low) else 2.0


NO_PRESSURE = PressureReading()


class PolicyConfig(BaseModel):
    """Bounds and constants for every interval the policy hands out (seconds)."""

    # Screen checks
    screen_check_min: float = Field(default=60.0, gt=0)
    screen_check_max: float = Field(default=600.0, gt=0)

    # Per-target checks
    process_check_min: float = Field(default=15.0, gt=0)
    process_check_max: float = Field(default=300.0, gt=0)
    learning_check_high: float = Field(default=30.0, gt=0)
    learning_check_medium: float = Field(default=60.0, gt=0)
    learning_check_low: float = Field(default=120.0, gt=0)
    active_hour_factor: float = Field(default=0.5, gt=0, le=1.0)

    # Kill grace periods
    kill_default: float = Field(default=600.0, gt=0, description="Apps with no statistics")
    kill_min: float = Field(default=120.0, gt=0)
    kill_max: float = Field(default=1800.0, gt=0)
    high_importance_threshold: float = Field(default=70.0, ge=0, le=IMPORTANCE_MAX)
    extended_kill_min: float = Field(default=1800.0, gt=0)
    extended_kill_max: float = Field(default=3600.0, gt=0)
    pressure_kill_floor: float = Field(default=30.0, gt=0)

    # Sleeps
    screen_off_sleep: float = Field(default=1800.0, gt=0)
    screen_off_sleep_learning: float = Field(default=900.0, gt=0)
    screen_off_sleep_quiet: float = Field(default=3600.0, gt=0)
    screen_off_sleep_min: float = Field(default=300.0, gt=0)
    screen_off_sleep_max: float = Field(default=3600.0, gt=0)
    quiet_hour_activity: float = Field(default=0.1, ge=0, le=1.0)
    pressure_check_interval: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> PolicyConfig:
        pairs = [
            ("screen_check_min", "screen_check_max"),
            ("process_check_min", "process_check_max"),
            ("kill_min", "kill_max"),
            ("extended_kill_min", "extended_kill_max"),
            ("screen_off_sleep_min", "screen_off_sleep_max"),
        ]
        for low, high in pairs:
            if getattr(self, low) > getattr(self, high):
                raise ValueError(f"{low} must not exceed {high}")
        if self.kill_max > self.extended_kill_min:
            raise ValueError("kill_max must not exceed extended_kill_min")
        return self


# =============================================================================
# Policy
# =============================================================================


class IntervalPolicy:
    """
    Durations derived from one HabitsSnapshot at one hour-of-day.

    Usage::

        policy = IntervalPolicy(store.snapshot(), hour=datetime.now().hour)
        policy.kill_interval("com.example.app", pressure)
    """

    def __init__(self, habits: HabitsSnapshot, hour: int, config: PolicyConfig | None = None) -> None:
        self.habits = habits
        self.hour = hour % 24
        self.config = config or PolicyConfig()
        self._pattern = habits.pattern_for(self.hour)

    # ------------------------------------------------------------------
    # Learning state
    # ------------------------------------------------------------------

    @property
    def intensity(self) -> LearningIntensity:
        return self.habits.learning.intensity

    @property
    def is_stable(self) -> bool:
        return self.intensity == LearningIntensity.STABLE

    @property
    def learning_progress(self) -> float:
        """0.0 at first run, 1.0 once the learning target is reached."""
        if self.habits.learning.learning_complete:
            return 1.0
        return clamp(self.habits.learning.learning_hours / LEARNING_TARGET_HOURS, 0.0, 1.0)

    def importance(self, app_id: str) -> float | None:
        stats = self.habits.stats_for(app_id)
        return stats.importance_weight if stats else None

    def is_active_this_hour(self, app_id: str) -> bool:
        return app_id in self._pattern.active_targets

    # ------------------------------------------------------------------
    # Intervals
    # ------------------------------------------------------------------

    def screen_check_interval(self) -> float:
        cfg = self.config
        span = cfg.screen_check_max - cfg.screen_check_min
        if not self.is_stable:
            value = cfg.screen_check_min + span * self.learning_progress
        else:
            value = cfg.screen_check_max - span * self._pattern.activity_level
        return clamp(value, cfg.screen_check_min, cfg.screen_check_max)

    def process_check_interval(self, app_id: str) -> float:
        cfg = self.config
        if not self.is_stable:
            value = {
                LearningIntensity.HIGH: cfg.learning_check_high,
                LearningIntensity.MEDIUM: cfg.learning_check_medium,
                LearningIntensity.LOW: cfg.learning_check_low,
            }[self.intensity]
            if self.is_active_this_hour(app_id):
                value *= cfg.active_hour_factor
        else:
            importance = self.importance(app_id) or 0.0
            span = cfg.process_check_max - cfg.process_check_min
            value = cfg.process_check_max - span * (importance / IMPORTANCE_MAX)
        return clamp(value, cfg.process_check_min, cfg.process_check_max)

    def kill_interval(self, app_id: str, pressure: PressureReading = NO_PRESSURE) -> float:
        cfg = self.config
        importance = self.importance(app_id)

        if importance is None:
            low, high = cfg.kill_min, cfg.kill_max
            value = cfg.kill_default
        elif importance >= cfg.high_importance_threshold and self.is_active_this_hour(app_id):
            low, high = cfg.extended_kill_min, cfg.extended_kill_max
            headroom = IMPORTANCE_MAX - cfg.high_importance_threshold
            fraction = (importance - cfg.high_importance_threshold) / headroom if headroom > 0 else 1.0
            value = low + (high - low) * fraction
        else:
            low, high = cfg.kill_min, cfg.kill_max
            value = low + (high - low) * (importance / IMPORTANCE_MAX)

        value = clamp(value, low, high)
        divisor = pressure.kill_divisor
        if divisor > 1.0:
            value = clamp(value / divisor, min(cfg.pressure_kill_floor, low), high)
        return value

    def screen_off_sleep_interval(self) -> float:
        cfg = self.config
        if not self.habits.learning.learning_complete:
            value = cfg.screen_off_sleep_learning
        elif self._pattern.activity_level < cfg.quiet_hour_activity:
            value = cfg.screen_off_sleep_quiet
        else:
            value = cfg.screen_off_sleep
        return clamp(value, cfg.screen_off_sleep_min, cfg.screen_off_sleep_max)

    def pressure_interval(self) -> float:
        return self.config.pressure_check_interval
