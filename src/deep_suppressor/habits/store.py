# deep_suppressor/habits/store.py
"""
HabitStore - owner of everything the supervisor learns.

Handles:
- Recording foreground/background transitions into AppStats
- Feeding hour-of-day activity into TimePattern slots
- Advancing LearningState as wall-clock hours elapse
- Recording screen sessions and refreshing importance (passive decay)
- Full and incremental persistence with time/sample triggers

All in-memory state sits behind one short-held lock. Persistence builds
its payload under the lock and performs I/O outside it, so a slow disk
never blocks snapshot() for longer than a copy.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel, Field

from deep_suppressor.exceptions import PersistenceError
from deep_suppressor.models import AppStats, HabitsDelta, HabitsSnapshot

from .scoring import advance_learning, clamp, rescore
from .storage import HabitsStorage

log = logging.getLogger(__name__)

SCREEN_EMA_ALPHA = 0.2


class PersistenceConfig(BaseModel):
    """When to write habits to storage."""

    full_save_interval: float = Field(default=12 * 3600.0, gt=0, description="Seconds between full saves")
    incremental_save_interval: float = Field(default=600.0, gt=0, description="Seconds between incremental saves")
    incremental_sample_trigger: int = Field(default=50, gt=0, description="Samples that force an incremental save")


def ema(previous: float, sample: float, alpha: float) -> float:
    return previous + alpha * (sample - previous)


class HabitStore:
    """
    Learned statistics plus load/save.

    Usage::

        store = HabitStore(HabitsFileStorage("/data/habits.json"))
        store.load()

        store.record_transition("com.example.app", now_foreground=False, duration=600)
        habits = store.snapshot()

        store.maybe_persist()  # each scheduler cycle
        store.persist(full=True)  # at shutdown
    """

    def __init__(
        self,
        storage: HabitsStorage,
        config: PersistenceConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self._config = config or PersistenceConfig()
        self._clock = clock
        self._monotonic = monotonic
        self._log = logger or log

        self._lock = threading.RLock()
        self._persist_lock = threading.Lock()
        self._habits = HabitsSnapshot()

        # Save markers: targets modified since the last save of any kind,
        # and since the last full save (the contents of the next delta)
        self._dirty: set[str] = set()
        self._unsaved_since_full: set[str] = set()
        self._globals_dirty = False
        self._samples_since_save = 0
        self._learning_just_completed = False

        started = self._monotonic()
        self._last_full_save = started
        self._last_incremental_save = started

        # Switches seen in the current (day, hour) bucket
        self._hour_bucket: tuple[int, int] | None = None
        self._hour_switches = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> PersistenceConfig:
        return self._config

    @property
    def dirty_targets(self) -> set[str]:
        with self._lock:
            return set(self._dirty)

    @property
    def samples_since_save(self) -> int:
        return self._samples_since_save

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def snapshot(self) -> HabitsSnapshot:
        """Immutable-by-convention deep copy of the current habits."""
        with self._lock:
            return self._habits.model_copy(deep=True)

    def stats_for(self, app_id: str) -> AppStats | None:
        with self._lock:
            stats = self._habits.app_stats.get(app_id)
            return stats.model_copy(deep=True) if stats else None

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_transition(
        self,
        app_id: str,
        now_foreground: bool,
        duration: float,
        activity: float | None = None,
    ) -> AppStats:
        """
        Record a foreground/background switch for ``app_id``.

        Args:
            app_id: Target that switched.
            now_foreground: State the target switched *into*.
            duration: Seconds spent in the previous state.
            activity: Aggregate activity sample in [0, 1] (share of targets
                in foreground). Defaults to 1.0 when entering foreground,
                0.0 otherwise.

        Returns:
            A copy of the updated AppStats.
        """
        duration = max(0.0, duration)
        if activity is None:
            activity = 1.0 if now_foreground else 0.0

        with self._lock:
            now = self._clock()
            hour = now.hour
            today = now.date().toordinal()

            stats = self._habits.app_stats.setdefault(app_id, AppStats())
            if now_foreground:
                stats.total_background_seconds += duration
            else:
                # A foreground session just ended
                stats.total_foreground_seconds += duration
                stats.usage_count += 1
                stats.hourly_usage[hour] += 1
                stats.last_usage_hour = hour
                self._update_consecutive_days(stats, today)
            stats.switch_count += 1
            rescore(stats, today)

            self._habits.total_samples += 1
            self._samples_since_save += 1

            alpha = self._habits.learning.learning_weight
            pattern = self._habits.pattern_for(hour)
            pattern.activity_level = clamp(ema(pattern.activity_level, clamp(activity, 0.0, 1.0), alpha), 0.0, 1.0)
            pattern.check_frequency = max(0.0, ema(pattern.check_frequency, self._count_hour_switch(today, hour), alpha))
            pattern.note_active(app_id)

            self._advance_learning_locked(now)
            self._mark_dirty(app_id)

            self._log.debug(
                f"Recorded {app_id} -> {'foreground' if now_foreground else 'background'} "
                f"after {duration:.0f}s (importance {stats.importance_weight:.1f})"
            )
            return stats.model_copy(deep=True)

    def record_screen_state(self, is_on: bool, duration: float) -> None:
        """
        Record a screen state change.

        Args:
            is_on: State the screen switched *into*.
            duration: Seconds spent in the previous state. When the screen
                turns off this is the length of the on-session that ended.
        """
        duration = max(0.0, duration)
        with self._lock:
            now = self._clock()
            screen = self._habits.screen
            if not is_on:
                screen.screen_on_ema_seconds = (
                    ema(screen.screen_on_ema_seconds, duration, SCREEN_EMA_ALPHA) if screen.sessions else duration
                )
                screen.sessions += 1
            else:
                today = now.date().toordinal()
                for app_id, stats in self._habits.app_stats.items():
                    before = stats.importance_weight
                    rescore(stats, today)
                    if stats.importance_weight != before:
                        self._mark_dirty(app_id)

            self._globals_dirty = True
            self._advance_learning_locked(now)

    def tick(self) -> None:
        """Advance learning progress to the current wall-clock time."""
        with self._lock:
            self._advance_learning_locked(self._clock())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """
        Best-effort load from storage.

        Returns True if stored habits were found. Any failure leaves the
        store with fresh defaults.
        """
        try:
            loaded = self._storage.read()
        except PersistenceError as e:
            self._log.error(f"Failed to load habits, starting fresh: {e}")
            loaded = None

        with self._lock:
            if loaded is None:
                self._habits = HabitsSnapshot()
                self._log.info("No stored habits, starting learning from scratch")
                return False
            self._habits = loaded
            self._log.info(
                f"Loaded habits v{loaded.save_version}: {len(loaded.app_stats)} apps, "
                f"{loaded.learning.learning_hours:.1f}h learned ({loaded.learning.intensity.value})"
            )
            return True

    def persist(self, full: bool) -> bool:
        """
        Write habits to storage.

        A full save writes everything under save_version + 1 and clears all
        markers. An incremental save writes the targets modified since the
        last full save under the current save_version.

        Failures are logged and restore the markers so the next trigger
        retries. Changes recorded while the write is in flight are not in
        the payload and stay pending. Returns True on success.
        """
        with self._persist_lock:
            with self._lock:
                # Markers are taken with the payload; anything recorded while
                # the write is in flight marks afresh and stays pending
                captured = set(self._dirty)
                captured_samples = self._samples_since_save
                globals_were_dirty = self._globals_dirty
                self._dirty.clear()
                self._samples_since_save = 0
                self._globals_dirty = False
                if full:
                    captured_unsaved = set(self._unsaved_since_full)
                    learning_completed = self._learning_just_completed
                    self._unsaved_since_full.clear()
                    self._learning_just_completed = False
                    payload: HabitsSnapshot | HabitsDelta = self._habits.model_copy(deep=True)
                    payload.save_version = self._habits.save_version + 1
                else:
                    payload = HabitsDelta(
                        save_version=self._habits.save_version,
                        total_samples=self._habits.total_samples,
                        app_stats={
                            app_id: self._habits.app_stats[app_id].model_copy(deep=True)
                            for app_id in self._unsaved_since_full
                            if app_id in self._habits.app_stats
                        },
                        time_patterns=[p.model_copy(deep=True) for p in self._habits.time_patterns],
                        learning=self._habits.learning.model_copy(),
                        screen=self._habits.screen.model_copy(),
                    )

            try:
                if full:
                    self._storage.write_full(payload)
                else:
                    self._storage.write_delta(payload)
            except PersistenceError as e:
                self._log.error(f"{'Full' if full else 'Incremental'} habits save failed, will retry: {e}")
                with self._lock:
                    self._dirty |= captured
                    self._samples_since_save += captured_samples
                    self._globals_dirty = self._globals_dirty or globals_were_dirty
                    if full:
                        self._unsaved_since_full |= captured_unsaved
                        self._learning_just_completed = self._learning_just_completed or learning_completed
                return False

            with self._lock:
                now = self._monotonic()
                self._last_incremental_save = now
                if full:
                    self._habits.save_version = payload.save_version
                    self._last_full_save = now

            self._log.info(
                f"Saved habits ({'full' if full else 'incremental'}) v{payload.save_version}, "
                f"{len(payload.app_stats)} apps"
            )
            return True

    def maybe_persist(self) -> bool:
        """
        Save if a trigger is due.

        Full: every full_save_interval, or right after learning completes.
        Incremental: when anything changed and either the incremental
        interval elapsed or enough samples accumulated.
        """
        now = self._monotonic()
        cfg = self._config
        with self._lock:
            full_due = self._learning_just_completed or now - self._last_full_save >= cfg.full_save_interval
            changed = bool(self._dirty) or self._globals_dirty
            incremental_due = changed and (
                now - self._last_incremental_save >= cfg.incremental_save_interval
                or self._samples_since_save >= cfg.incremental_sample_trigger
            )

        if full_due:
            return self.persist(full=True)
        if incremental_due:
            return self.persist(full=False)
        return False

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _mark_dirty(self, app_id: str) -> None:
        self._dirty.add(app_id)
        self._unsaved_since_full.add(app_id)
        self._globals_dirty = True

    @staticmethod
    def _update_consecutive_days(stats: AppStats, today: int) -> None:
        if stats.last_used_day == today:
            return
        if stats.last_used_day == today - 1:
            stats.consecutive_days_used += 1
        else:
            stats.consecutive_days_used = 1
        stats.last_used_day = today

    def _count_hour_switch(self, today: int, hour: int) -> int:
        bucket = (today, hour)
        if bucket != self._hour_bucket:
            self._hour_bucket = bucket
            self._hour_switches = 0
        self._hour_switches += 1
        return self._hour_switches

    def _advance_learning_locked(self, now: datetime) -> None:
        learning = self._habits.learning
        if learning.first_seen_at is None:
            learning.first_seen_at = now
            self._globals_dirty = True
        hours = max(0.0, (now.timestamp() - learning.first_seen_at.timestamp()) / 3600.0)
        previous = learning.intensity
        if advance_learning(learning, hours):
            self._learning_just_completed = True
            self._globals_dirty = True
            self._log.info(f"Learning complete after {learning.learning_hours:.1f}h")
        elif learning.intensity != previous:
            self._globals_dirty = True
            self._log.info(f"Learning intensity {previous.value} -> {learning.intensity.value}")
