# deep_suppressor/state_machine.py
"""
Per-target Foreground/Background state machine.

Transitions:
    Foreground -> Background   probe says not foreground; arms the kill timer
    Background -> Foreground   probe says foreground; resets kill attempts
    same -> same               no-op (switch_count untouched)

Kill evaluation is only reachable in Background. After every kill attempt
the kill timer is re-armed by default (last_background_time = attempt
time), so the next attempt needs another full grace period. With
``rearm_kill_timer=False`` the timer is left alone and a target that stays
in background is eligible again at every check.

Repeated attempts without the target ever returning to foreground mark it
protected once ``max_kill_attempts`` is reached (anti-thrash for things
the environment cannot actually stop).
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from deep_suppressor.models import Target, TargetState

logger = logging.getLogger(__name__)

DEFAULT_MAX_KILL_ATTEMPTS = 10


class StateTransition(BaseModel):
    """A detected Foreground/Background switch."""

    app_id: str
    previous: TargetState
    current: TargetState
    at: float
    duration: float | None = Field(
        default=None,
        description="Seconds spent in the previous state; None if it was never observed",
    )

    @property
    def now_foreground(self) -> bool:
        return self.current == TargetState.FOREGROUND


class KillDecision(BaseModel):
    """Outcome of a kill-eligibility evaluation."""

    app_id: str
    should_kill: bool
    elapsed: float = 0.0
    threshold: float = 0.0
    reason: str = ""


class TargetStateMachine:
    """
    Applies probe results to targets and decides kill eligibility.

    Holds no per-target state of its own; everything lives on Target.
    """

    def __init__(
        self,
        max_kill_attempts: int = DEFAULT_MAX_KILL_ATTEMPTS,
        rearm_kill_timer: bool = True,
    ) -> None:
        if max_kill_attempts < 1:
            raise ValueError("max_kill_attempts must be at least 1")
        self.max_kill_attempts = max_kill_attempts
        self.rearm_kill_timer = rearm_kill_timer

    def observe(self, target: Target, is_foreground: bool, now: float) -> StateTransition | None:
        """
        Apply one probe result.

        Returns the transition if the state changed, otherwise None.
        """
        new_state = TargetState.FOREGROUND if is_foreground else TargetState.BACKGROUND
        was_observed = target.observed
        target.observed = True

        if new_state == target.state:
            if not was_observed:
                # First confirmation of the optimistic default starts the clock
                target.last_switch_time = now
            return None

        previous = target.state
        duration = None
        if was_observed and target.last_switch_time is not None:
            duration = max(0.0, now - target.last_switch_time)

        target.state = new_state
        target.last_switch_time = now
        target.switch_count += 1
        if new_state == TargetState.BACKGROUND:
            target.last_background_time = now
        else:
            target.kill_attempts = 0

        logger.info(f"Package {target.app_id} moved to {new_state.value}")
        return StateTransition(
            app_id=target.app_id,
            previous=previous,
            current=new_state,
            at=now,
            duration=duration,
        )

    def evaluate_kill(self, target: Target, now: float, threshold: float) -> KillDecision:
        """Decide whether ``target`` has been in background for at least ``threshold`` seconds."""
        if target.is_foreground:
            logger.debug(f"Protecting foreground app: {target.app_id}")
            return KillDecision(app_id=target.app_id, should_kill=False, threshold=threshold, reason="foreground")
        if target.sticky:
            return KillDecision(app_id=target.app_id, should_kill=False, threshold=threshold, reason="sticky")
        if target.protected:
            return KillDecision(app_id=target.app_id, should_kill=False, threshold=threshold, reason="protected")

        elapsed = target.background_elapsed(now)
        if elapsed >= threshold:
            logger.debug(
                f"Marking {target.app_id} for kill - background for {elapsed:.0f}s, threshold {threshold:.0f}s"
            )
            return KillDecision(
                app_id=target.app_id,
                should_kill=True,
                elapsed=elapsed,
                threshold=threshold,
                reason="grace period elapsed",
            )
        return KillDecision(
            app_id=target.app_id,
            should_kill=False,
            elapsed=elapsed,
            threshold=threshold,
            reason="within grace period",
        )

    def record_kill_attempt(self, target: Target, now: float) -> bool:
        """
        Book-keep one kill attempt.

        Returns True if this attempt made the target protected.
        """
        target.kill_attempts += 1
        if self.rearm_kill_timer:
            target.last_background_time = now

        if not target.protected and target.kill_attempts >= self.max_kill_attempts:
            target.protected = True
            logger.warning(
                f"{target.app_id} still in background after {target.kill_attempts} kill attempts; "
                "protecting it from further kills"
            )
            return True
        return False
