# deep_suppressor/probes/system.py
"""
psutil-backed collaborators.

- PsutilPressureProbe: memory percent, CPU percent and battery level
- PsutilTerminationAction: SIGKILL every process matching a target's
  patterns (fnmatch globs against the process name or the first
  command-line token, which holds the full name where comm is truncated)
"""

from __future__ import annotations

import logging
import os
from fnmatch import fnmatchcase

import psutil
from pydantic import BaseModel, Field

from deep_suppressor.exceptions import ActionError, ProbeError
from deep_suppressor.models import Target

logger = logging.getLogger(__name__)


class PressureThresholds(BaseModel):
    """Percent thresholds at which a signal counts as pressure."""

    memory_percent: float = Field(default=85.0, gt=0, le=100)
    cpu_percent: float = Field(default=90.0, gt=0, le=100)
    battery_percent: float = Field(default=15.0, ge=0, le=100)


class PsutilPressureProbe:
    """PressureProbe reading live system metrics."""

    def __init__(self, thresholds: PressureThresholds | None = None) -> None:
        self.thresholds = thresholds or PressureThresholds()

    def is_memory_pressure_high(self) -> bool:
        try:
            percent = psutil.virtual_memory().percent
        except (psutil.Error, OSError) as e:
            raise ProbeError(f"memory reading failed: {e}") from e
        return percent >= self.thresholds.memory_percent

    def is_cpu_load_high(self) -> bool:
        try:
            # interval=0 compares against the previous call; never blocks
            percent = psutil.cpu_percent(interval=0)
        except (psutil.Error, OSError) as e:
            raise ProbeError(f"cpu reading failed: {e}") from e
        return percent >= self.thresholds.cpu_percent

    def is_battery_low(self) -> bool:
        if not hasattr(psutil, "sensors_battery"):
            return False
        try:
            battery = psutil.sensors_battery()
        except (psutil.Error, OSError) as e:
            raise ProbeError(f"battery reading failed: {e}") from e
        if battery is None or battery.power_plugged:
            return False
        return battery.percent <= self.thresholds.battery_percent


def process_matches(name: str, cmdline: list[str] | None, patterns: list[str]) -> bool:
    """Whether a process belongs to a target with the given patterns."""
    candidates = [name] if name else []
    if cmdline:
        first = cmdline[0]
        candidates.append(first)
        # Absolute executables are matched by basename too
        if "/" in first:
            candidates.append(os.path.basename(first))
    return any(fnmatchcase(candidate, pattern) for candidate in candidates for pattern in patterns)


class PsutilTerminationAction:
    """TerminationAction that kills matching processes with SIGKILL."""

    def __init__(self) -> None:
        self._own_pid = os.getpid()

    def stop(self, target: Target) -> None:
        killed: list[int] = []
        denied: list[int] = []

        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            info = proc.info
            if info["pid"] == self._own_pid:
                continue
            if not process_matches(info.get("name") or "", info.get("cmdline"), target.process_patterns):
                continue
            try:
                proc.kill()
                killed.append(info["pid"])
            except psutil.NoSuchProcess:
                continue
            except (psutil.AccessDenied, OSError) as e:
                logger.debug(f"Kill of pid {info['pid']} for {target.app_id} failed: {e}")
                denied.append(info["pid"])

        if denied:
            raise ActionError(f"could not kill {len(denied)} process(es) of {target.app_id}: pids {denied}")
        if killed:
            logger.info(f"Killed {len(killed)} process(es) of {target.app_id}: pids {killed}")
        else:
            logger.debug(f"No running processes matched {target.app_id}")
