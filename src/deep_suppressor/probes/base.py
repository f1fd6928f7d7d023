# deep_suppressor/probes/base.py
"""
Capability interfaces for the platform-specific collaborators.

The scheduling core only ever sees these protocols; concrete backends
(dumpsys, psutil, scripted test doubles) are swappable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from deep_suppressor.models import Target
from deep_suppressor.policy import NO_PRESSURE, PressureReading

logger = logging.getLogger(__name__)


@runtime_checkable
class ActivityProbe(Protocol):
    """Reports foreground/screen state. Raises ProbeError when it cannot tell."""

    def is_foreground(self, target: Target) -> bool:
        """Whether ``target`` is the app currently receiving user interaction."""
        ...

    def is_screen_on(self) -> bool:
        """Whether the display is on."""
        ...


@runtime_checkable
class TerminationAction(Protocol):
    """Stops a target's processes. Best-effort; raises ActionError on failure."""

    def stop(self, target: Target) -> None:
        ...


@runtime_checkable
class PressureProbe(Protocol):
    """Coarse system pressure signals."""

    def is_memory_pressure_high(self) -> bool:
        ...

    def is_battery_low(self) -> bool:
        ...

    def is_cpu_load_high(self) -> bool:
        ...


def _read_signal(name: str, reader: Callable[[], bool]) -> bool:
    try:
        return bool(reader())
    except Exception as e:
        logger.warning(f"Pressure signal {name} unavailable, assuming no pressure: {e}")
        return False


def read_pressure(probe: PressureProbe | None) -> PressureReading:
    """
    Sample every signal of ``probe``.

    A missing probe or a failing signal reads as "no pressure".
    """
    if probe is None:
        return NO_PRESSURE
    return PressureReading(
        memory_high=_read_signal("memory", probe.is_memory_pressure_high),
        cpu_high=_read_signal("cpu", probe.is_cpu_load_high),
        battery_low=_read_signal("battery", probe.is_battery_low),
    )
