# deep_suppressor/scheduler.py
"""
Scheduler - the single control loop.

Each cycle:
1. Screen check when its own timer is due (disabled for a startup delay,
   during which the screen is assumed on). On a transition to off, a
   screen-off sweep applies a shortened kill threshold to every
   Background, non-exempt target, then the loop sleeps long.
2. With the screen on, every target that is Foreground or whose check
   timer has elapsed is probed; transitions feed the HabitStore and
   Background targets are evaluated for termination.
3. IntervalPolicy is rebuilt from a fresh snapshot.
4. Next sleep: the shortest of the pressure interval (under pressure),
   the check interval of any Foreground target (else the screen check
   interval), the earliest per-target deadline and the next screen check.
5. Sleep until the timeout, a stop request or a check-now request.

Failures while handling one target are logged and treated as "no
transition" for that target. Whole-cycle failures are logged; after
``max_consecutive_failures`` in a row the habits are force-saved.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from datetime import datetime

from pydantic import BaseModel, Field

from deep_suppressor.exceptions import ActionError, ProbeError, TargetListError
from deep_suppressor.habits.store import HabitStore
from deep_suppressor.models import Target
from deep_suppressor.policy import NO_PRESSURE, IntervalPolicy, PolicyConfig, PressureReading
from deep_suppressor.probes.base import ActivityProbe, PressureProbe, TerminationAction, read_pressure
from deep_suppressor.state_machine import DEFAULT_MAX_KILL_ATTEMPTS, StateTransition, TargetStateMachine

log = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================


class SchedulerConfig(BaseModel):
    """Control-loop tunables (seconds unless noted)."""

    max_consecutive_failures: int = Field(default=5, ge=1, description="Cycle failures before a forced save")
    failure_sleep: float = Field(default=30.0, gt=0, description="Sleep after a failed cycle")
    min_sleep: float = Field(default=1.0, gt=0)
    startup_screen_check_delay: float = Field(default=600.0, ge=0)
    screen_off_kill_factor: float = Field(default=0.25, gt=0, le=1.0, description="Kill threshold multiplier when the screen turns off")
    rearm_kill_timer: bool = Field(default=True, description="Reset the background timer after every kill attempt")
    max_kill_attempts: int = Field(default=DEFAULT_MAX_KILL_ATTEMPTS, ge=1)


class CycleReport(BaseModel):
    """What one cycle observed and did."""

    started_at: float
    screen_on: bool = True
    screen_checked: bool = False
    pressure: PressureReading = NO_PRESSURE
    checked: list[str] = Field(default_factory=list)
    transitions: list[StateTransition] = Field(default_factory=list)
    kills: list[str] = Field(default_factory=list)
    next_sleep: float = 0.0


# =============================================================================
# Scheduler
# =============================================================================


class Scheduler:
    """
    Ties probes, state machine, habits and policy into one loop.

    Usage::

        scheduler = Scheduler(targets, store, DumpsysActivityProbe(), PsutilTerminationAction())
        await scheduler.run()  # until request_stop()

    ``run_cycle()`` performs exactly one cycle synchronously and is what
    tests drive with an injected monotonic clock.
    """

    def __init__(
        self,
        targets: Iterable[Target],
        store: HabitStore,
        activity_probe: ActivityProbe,
        termination: TerminationAction,
        pressure_probe: PressureProbe | None = None,
        policy_config: PolicyConfig | None = None,
        config: SchedulerConfig | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        clock: Callable[[], datetime] = datetime.now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._targets = list(targets)
        if not self._targets:
            raise TargetListError("no targets to supervise")
        seen: set[str] = set()
        for target in self._targets:
            if target.app_id in seen:
                raise TargetListError(f"duplicate target {target.app_id}")
            seen.add(target.app_id)

        self._store = store
        self._activity = activity_probe
        self._termination = termination
        self._pressure_probe = pressure_probe
        self._policy_config = policy_config or PolicyConfig()
        self._config = config or SchedulerConfig()
        self._monotonic = monotonic
        self._clock = clock
        self._log = logger or log

        self._machine = TargetStateMachine(
            max_kill_attempts=self._config.max_kill_attempts,
            rearm_kill_timer=self._config.rearm_kill_timer,
        )

        started = self._monotonic()
        self._started_at = started
        self._screen_on = True
        self._screen_since = started
        self._next_screen_check = started + self._config.startup_screen_check_delay

        self._stop_requested = False
        self._force_check = False
        self._consecutive_failures = 0
        self._wake = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def targets(self) -> list[Target]:
        return self._targets

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def screen_on(self) -> bool:
        return self._screen_on

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def target(self, app_id: str) -> Target | None:
        return next((t for t in self._targets if t.app_id == app_id), None)

    def policy(self) -> IntervalPolicy:
        """A policy built from the current habits and hour-of-day."""
        return IntervalPolicy(self._store.snapshot(), self._clock().hour, self._policy_config)

    # ------------------------------------------------------------------
    # External triggers
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Stop after the in-flight action; run() flushes habits on the way out."""
        self._stop_requested = True
        self._wake_up()

    def request_check(self) -> None:
        """Wake now and treat the screen and every target as due."""
        self._force_check = True
        self._wake_up()

    def request_save(self) -> bool:
        """Force a full habits save."""
        self._log.info("Forced habits save requested")
        return self._store.persist(full=True)

    def _wake_up(self) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self._wake.set)
        else:
            self._wake.set()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run cycles until request_stop(); always ends with a full save."""
        self._loop = asyncio.get_running_loop()
        self._log.info(f"Scheduler started with {len(self._targets)} targets")
        try:
            while not self._stop_requested:
                try:
                    # Probes shell out; keep the event loop free for signals
                    report = await asyncio.to_thread(self.run_cycle)
                    self._consecutive_failures = 0
                    sleep = report.next_sleep
                except Exception:
                    sleep = self._config.failure_sleep
                    self._record_cycle_failure()

                if self._stop_requested:
                    break
                await self._sleep(sleep)
        finally:
            self._log.info("Scheduler stopping, flushing habits")
            self._store.persist(full=True)
            self._loop = None

    def _record_cycle_failure(self) -> None:
        self._consecutive_failures += 1
        self._log.exception(f"Scheduler cycle failed ({self._consecutive_failures} in a row)")
        if self._consecutive_failures >= self._config.max_consecutive_failures:
            self._log.error(
                f"{self._consecutive_failures} consecutive cycle failures, forcing a habits save"
            )
            self._store.persist(full=True)
            self._consecutive_failures = 0

    async def _sleep(self, seconds: float) -> None:
        self._log.debug(f"Sleeping {seconds:.0f}s")
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            woken = False
        else:
            woken = True
        self._wake.clear()
        if woken:
            self._log.debug("Woken before the sleep elapsed")

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleReport:
        now = self._monotonic()
        force = self._force_check
        self._force_check = False

        pressure = read_pressure(self._pressure_probe)
        report = CycleReport(started_at=now, pressure=pressure)
        policy = self.policy()

        if self._screen_checks_enabled(now) and (force or now >= self._next_screen_check):
            self._check_screen(now, policy, pressure, report)

        if self._screen_on:
            for target in self._targets:
                if self._stop_requested:
                    break
                if not (force or target.is_foreground or now >= target.next_check_at):
                    continue
                report.checked.append(target.app_id)
                try:
                    self._check_target(target, now, policy, pressure, report)
                except Exception:
                    # No transition this cycle; still due next cycle
                    self._log.exception(f"Error processing target {target.app_id}")

        self._store.tick()
        policy = self.policy()
        report.screen_on = self._screen_on
        report.next_sleep = self._next_sleep(now, policy, pressure)

        self._store.maybe_persist()
        return report

    def _screen_checks_enabled(self, now: float) -> bool:
        return now - self._started_at >= self._config.startup_screen_check_delay

    def _check_screen(
        self, now: float, policy: IntervalPolicy, pressure: PressureReading, report: CycleReport
    ) -> None:
        report.screen_checked = True
        self._next_screen_check = now + policy.screen_check_interval()
        try:
            is_on = self._activity.is_screen_on()
        except ProbeError as e:
            self._log.warning(f"Screen probe failed, keeping screen {'on' if self._screen_on else 'off'}: {e}")
            return
        except Exception:
            self._log.warning(
                f"Unexpected screen probe error, keeping screen {'on' if self._screen_on else 'off'}", exc_info=True
            )
            return

        if is_on == self._screen_on:
            return

        duration = now - self._screen_since
        self._screen_on = is_on
        self._screen_since = now
        self._store.record_screen_state(is_on, duration)

        if is_on:
            self._log.info("Screen on, resuming target checks")
            for target in self._targets:
                target.next_check_at = now
        else:
            self._log.info("Screen off, entering deep sleep")
            self._screen_off_sweep(now, policy, pressure, report)

    def _screen_off_sweep(
        self, now: float, policy: IntervalPolicy, pressure: PressureReading, report: CycleReport
    ) -> None:
        factor = self._config.screen_off_kill_factor
        for target in self._targets:
            if self._stop_requested:
                break
            if not target.is_background or target.kill_exempt:
                continue
            try:
                threshold = policy.kill_interval(target.app_id, pressure) * factor
                if self._machine.evaluate_kill(target, now, threshold).should_kill:
                    self._terminate(target, now, report)
            except Exception:
                self._log.exception(f"Error sweeping target {target.app_id}")

    def _check_target(
        self,
        target: Target,
        now: float,
        policy: IntervalPolicy,
        pressure: PressureReading,
        report: CycleReport,
    ) -> None:
        was_observed = target.observed
        try:
            foreground = self._activity.is_foreground(target)
        except ProbeError as e:
            self._log.warning(f"Foreground probe failed for {target.app_id}, keeping {target.state.value}: {e}")
            self._schedule_target(target, now, policy, pressure)
            return

        transition = self._machine.observe(target, foreground, now)
        if transition is not None:
            report.transitions.append(transition)
            # The first observation only confirms where we started; no sample
            if was_observed and transition.duration is not None:
                self._store.record_transition(
                    target.app_id,
                    now_foreground=transition.now_foreground,
                    duration=transition.duration,
                    activity=self._activity_share(),
                )

        if target.is_background:
            threshold = policy.kill_interval(target.app_id, pressure)
            if self._machine.evaluate_kill(target, now, threshold).should_kill:
                self._terminate(target, now, report)

        self._schedule_target(target, now, policy, pressure)

    def _terminate(self, target: Target, now: float, report: CycleReport) -> None:
        report.kills.append(target.app_id)
        self._log.info(f"Stopping {target.app_id} (attempt {target.kill_attempts + 1})")
        try:
            self._termination.stop(target)
        except ActionError as e:
            self._log.warning(f"Failed to stop {target.app_id}: {e}")
        finally:
            self._machine.record_kill_attempt(target, now)

    def _schedule_target(
        self, target: Target, now: float, policy: IntervalPolicy, pressure: PressureReading
    ) -> None:
        due = now + policy.process_check_interval(target.app_id)
        if target.is_background and not target.kill_exempt and target.last_background_time is not None:
            kill_due = target.last_background_time + policy.kill_interval(target.app_id, pressure)
            if kill_due > now:
                due = min(due, kill_due)
        target.next_check_at = due

    def _activity_share(self) -> float:
        return sum(1 for t in self._targets if t.is_foreground) / len(self._targets)

    def _next_sleep(self, now: float, policy: IntervalPolicy, pressure: PressureReading) -> float:
        minimum = self._config.min_sleep

        if not self._screen_on:
            sleep = policy.screen_off_sleep_interval()
            self._next_screen_check = now + sleep
            return max(minimum, sleep)

        candidates: list[float] = []
        if pressure.under_pressure:
            candidates.append(policy.pressure_interval())

        foreground = [t for t in self._targets if t.is_foreground]
        if foreground:
            candidates.extend(policy.process_check_interval(t.app_id) for t in foreground)
        else:
            candidates.append(policy.screen_check_interval())

        pending = [t.next_check_at - now for t in self._targets if t.is_background]
        if pending:
            candidates.append(min(pending))
        candidates.append(self._next_screen_check - now)

        sleep = max(minimum, min(candidates))
        self._log.debug(
            f"Next cycle in {sleep:.0f}s ({len(foreground)} foreground, "
            f"{'under pressure' if pressure.under_pressure else 'no pressure'})"
        )
        return sleep
