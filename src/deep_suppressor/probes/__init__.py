# deep_suppressor/probes/__init__.py
"""
External collaborators: activity, termination and pressure.

- base: protocols and the safe pressure sampler
- android: dumpsys-backed ActivityProbe
- system: psutil-backed PressureProbe and TerminationAction
- scripted: test doubles
"""

from .android import DumpsysActivityProbe, parse_focused_packages, parse_screen_state
from .base import ActivityProbe, PressureProbe, TerminationAction, read_pressure
from .scripted import RecordingTerminationAction, ScriptedActivityProbe, StaticPressureProbe
from .system import PressureThresholds, PsutilPressureProbe, PsutilTerminationAction, process_matches

__all__ = [
    # Protocols
    "ActivityProbe",
    "PressureProbe",
    "TerminationAction",
    "read_pressure",
    # Android
    "DumpsysActivityProbe",
    "parse_focused_packages",
    "parse_screen_state",
    # psutil
    "PressureThresholds",
    "PsutilPressureProbe",
    "PsutilTerminationAction",
    "process_matches",
    # Test doubles
    "RecordingTerminationAction",
    "ScriptedActivityProbe",
    "StaticPressureProbe",
]
