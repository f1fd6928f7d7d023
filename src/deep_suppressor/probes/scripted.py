# deep_suppressor/probes/scripted.py
"""
Scripted collaborators for tests and dry runs.

- ScriptedActivityProbe replays per-target sequences of results; an
  exception instance in a sequence is raised instead of returned. When a
  sequence runs out its last entry repeats.
- RecordingTerminationAction records every stop() call and can be told
  to fail.
- StaticPressureProbe returns whatever its attributes say.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from deep_suppressor.models import Target

Step = bool | BaseException


class _Script:
    def __init__(self, steps: Iterable[Step], default: bool) -> None:
        self.steps: list[Step] = list(steps)
        self.last: Step = default

    def next(self) -> bool:
        if self.steps:
            self.last = self.steps.pop(0)
        if isinstance(self.last, BaseException):
            raise self.last
        return self.last


class ScriptedActivityProbe:
    """ActivityProbe driven by scripted sequences."""

    def __init__(
        self,
        foreground: dict[str, Iterable[Step]] | None = None,
        screen: Iterable[Step] = (),
        default_foreground: bool = False,
        default_screen: bool = True,
    ) -> None:
        self._default_foreground = default_foreground
        self._foreground: dict[str, _Script] = {
            app_id: _Script(steps, default_foreground) for app_id, steps in (foreground or {}).items()
        }
        self._default_screen = default_screen
        self._screen = _Script(screen, default_screen)
        self.foreground_calls: dict[str, int] = defaultdict(int)
        self.screen_calls = 0

    def is_foreground(self, target: Target) -> bool:
        self.foreground_calls[target.app_id] += 1
        script = self._foreground.setdefault(target.app_id, _Script((), self._default_foreground))
        return script.next()

    def is_screen_on(self) -> bool:
        self.screen_calls += 1
        return self._screen.next()

    def set_foreground(self, app_id: str, *steps: Step) -> None:
        """Replace the script for ``app_id``."""
        self._foreground[app_id] = _Script(steps, self._default_foreground)

    def set_screen(self, *steps: Step) -> None:
        self._screen = _Script(steps, self._default_screen)


class RecordingTerminationAction:
    """TerminationAction that only records what it was asked to stop."""

    def __init__(self, error: BaseException | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    def stop(self, target: Target) -> None:
        self.calls.append(target.app_id)
        if self.error is not None:
            raise self.error

    def count(self, app_id: str) -> int:
        return self.calls.count(app_id)


class StaticPressureProbe:
    """PressureProbe with fixed, mutable answers."""

    def __init__(self, memory_high: bool = False, cpu_high: bool = False, battery_low: bool = False) -> None:
        self.memory_high = memory_high
        self.cpu_high = cpu_high
        self.battery_low = battery_low

    def is_memory_pressure_high(self) -> bool:
        return self.memory_high

    def is_battery_low(self) -> bool:
        return self.battery_low

    def is_cpu_load_high(self) -> bool:
        return self.cpu_high
