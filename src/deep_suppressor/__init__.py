# deep_suppressor/__init__.py
"""
Deep Suppressor - adaptive background process reclaim.

Watches a fixed set of targets (an app id plus its worker process
patterns), learns how they are used and when, and terminates background
processes after a grace period that adapts to the learned habits.

Quick start::

    from deep_suppressor import HabitStore, HabitsFileStorage, Scheduler, parse_target_args
    from deep_suppressor.probes import DumpsysActivityProbe, PsutilTerminationAction

    store = HabitStore(HabitsFileStorage("habits.json"))
    store.load()
    scheduler = Scheduler(
        parse_target_args(["com.tencent.mm=com.tencent.mm:appbrand*"]),
        store,
        DumpsysActivityProbe(),
        PsutilTerminationAction(),
    )
    asyncio.run(scheduler.run())
"""

from deep_suppressor.exceptions import (
    ActionError,
    PersistenceError,
    ProbeError,
    SuppressorError,
    TargetListError,
)
from deep_suppressor.habits import HabitsFileStorage, HabitStore, InMemoryHabitsStorage, PersistenceConfig
from deep_suppressor.logging_setup import LogSink
from deep_suppressor.models import (
    AppStats,
    HabitsSnapshot,
    LearningIntensity,
    LearningState,
    Target,
    TargetState,
    TimePattern,
)
from deep_suppressor.policy import IntervalPolicy, PolicyConfig, PressureReading
from deep_suppressor.scheduler import CycleReport, Scheduler, SchedulerConfig
from deep_suppressor.state_machine import KillDecision, StateTransition, TargetStateMachine
from deep_suppressor.targets import build_targets, load_targets_config, parse_target_args, parse_target_spec

__version__ = "0.1.0"

__all__ = [
    # Core
    "Scheduler",
    "SchedulerConfig",
    "CycleReport",
    "TargetStateMachine",
    "StateTransition",
    "KillDecision",
    "IntervalPolicy",
    "PolicyConfig",
    "PressureReading",
    # Habits
    "HabitStore",
    "HabitsFileStorage",
    "InMemoryHabitsStorage",
    "PersistenceConfig",
    # Models
    "AppStats",
    "HabitsSnapshot",
    "LearningIntensity",
    "LearningState",
    "Target",
    "TargetState",
    "TimePattern",
    # Targets
    "build_targets",
    "load_targets_config",
    "parse_target_args",
    "parse_target_spec",
    # Logging
    "LogSink",
    # Errors
    "SuppressorError",
    "ProbeError",
    "ActionError",
    "PersistenceError",
    "TargetListError",
]
