# deep_suppressor/models/target.py
"""Target model: one monitored application and its worker processes."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .enums import TargetState


class Target(BaseModel):
    """
    A monitored application identity plus the process-name patterns
    that belong to it.

    Created once at startup and never destroyed while the supervisor
    runs. Only the derived AppStats are persisted, not the target.

    Timestamps are monotonic seconds (``time.monotonic()`` or an injected
    equivalent), never wall-clock time.
    """

    # Identity
    app_id: str = Field(..., min_length=1, description="Application identifier")
    process_patterns: list[str] = Field(..., min_length=1, description="Ordered, de-duplicated process-name globs")

    # Lifecycle
    state: TargetState = Field(default=TargetState.FOREGROUND, description="Optimistic default until first probe")
    observed: bool = Field(default=False, description="Whether any probe result has been applied yet")
    last_background_time: float | None = None
    last_switch_time: float | None = None
    switch_count: int = Field(default=0, ge=0)

    # Kill bookkeeping
    kill_attempts: int = Field(default=0, ge=0)
    protected: bool = Field(default=False, description="Exempt after too many ineffective kills")
    sticky: bool = Field(default=False, description="Externally configured exemption")

    # Scheduler's per-target check timer
    next_check_at: float = 0.0

    @field_validator("process_patterns")
    @classmethod
    def _dedupe_patterns(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for pattern in value:
            pattern = pattern.strip()
            if not pattern:
                raise ValueError("process pattern must not be empty")
            if pattern not in seen:
                seen.append(pattern)
        return seen

    @property
    def is_foreground(self) -> bool:
        return self.state == TargetState.FOREGROUND

    @property
    def is_background(self) -> bool:
        return self.state == TargetState.BACKGROUND

    @property
    def kill_exempt(self) -> bool:
        """Sticky or protected targets are never terminated."""
        return self.protected or self.sticky

    def background_elapsed(self, now: float) -> float:
        """Seconds spent in the current background session (0 if foreground)."""
        if not self.is_background or self.last_background_time is None:
            return 0.0
        return max(0.0, now - self.last_background_time)
