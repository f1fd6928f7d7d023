# deep_suppressor/habits/storage.py
"""
Durable storage for learned habits.

Layout on disk::

    habits.json        full snapshot (HabitsSnapshot), save_version N
    habits.delta.json  incremental save (HabitsDelta), save_version N

A delta only applies on top of the full file with the same save_version;
a full save bumps the version, so older deltas are ignored after it.

Design principles:
- Crash-safe: write temp file, fsync, then os.replace into place
- Best-effort load: an invalid field falls back to its default instead
  of discarding the whole file
- Pydantic-native: JSON via model_dump_json / model_validate
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, Field, ValidationError

from deep_suppressor.exceptions import PersistenceError
from deep_suppressor.models import (
    HOURS_PER_DAY,
    AppStats,
    HabitsDelta,
    HabitsSnapshot,
    LearningState,
    ScreenStats,
    TimePattern,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class HabitsStorage(Protocol):
    """Protocol for habits storage backends."""

    def write_full(self, snapshot: HabitsSnapshot) -> None:
        """Replace the stored habits with a full snapshot."""
        ...

    def write_delta(self, delta: HabitsDelta) -> None:
        """Store an incremental save on top of the last full snapshot."""
        ...

    def read(self) -> HabitsSnapshot | None:
        """Load stored habits, or None if nothing usable is stored."""
        ...


# =============================================================================
# Best-effort parsing
# =============================================================================


def salvage(model_cls: type[ModelT], raw: Any, defaults: dict[str, Any] | None = None) -> ModelT:
    """
    Validate ``raw`` into ``model_cls``, dropping invalid fields.

    Each field that fails validation is replaced by ``defaults[field]`` if
    given, otherwise removed so the model default applies.
    """
    defaults = defaults or {}
    data: dict[str, Any] = {**defaults, **raw} if isinstance(raw, dict) else dict(defaults)

    for _ in range(len(model_cls.model_fields) + 1):
        try:
            return model_cls.model_validate(data)
        except ValidationError as exc:
            bad = {err["loc"][0] for err in exc.errors() if err["loc"]}
            changed = False
            for key in bad:
                if key not in data:
                    continue
                if key in defaults and data[key] != defaults[key]:
                    data[key] = defaults[key]
                    changed = True
                elif key not in defaults:
                    data.pop(key)
                    changed = True
                else:
                    continue
                logger.warning(f"Discarding invalid {model_cls.__name__}.{key} from stored habits")
            if not changed:
                break

    return model_cls.model_validate(defaults)


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


def _parse_patterns(raw: Any) -> list[TimePattern]:
    slots = {hour: TimePattern(hour=hour) for hour in range(HOURS_PER_DAY)}
    if not isinstance(raw, list):
        return list(slots.values())

    for position, item in enumerate(raw[:HOURS_PER_DAY]):
        pattern = salvage(TimePattern, item, defaults={"hour": position})
        slots[pattern.hour] = pattern
    return [slots[hour] for hour in range(HOURS_PER_DAY)]


def parse_body(raw: Any) -> dict[str, Any]:
    """Turn a decoded JSON document into validated snapshot/delta fields."""
    if not isinstance(raw, dict):
        raise PersistenceError("habits document is not a JSON object")

    app_stats: dict[str, AppStats] = {}
    raw_stats = raw.get("app_stats")
    if isinstance(raw_stats, dict):
        for app_id, item in raw_stats.items():
            if isinstance(app_id, str) and app_id and isinstance(item, dict):
                app_stats[app_id] = salvage(AppStats, item)

    return {
        "save_version": _as_int(raw.get("save_version")),
        "total_samples": _as_int(raw.get("total_samples")),
        "app_stats": app_stats,
        "time_patterns": _parse_patterns(raw.get("time_patterns")),
        "learning": salvage(LearningState, raw.get("learning")),
        "screen": salvage(ScreenStats, raw.get("screen")),
    }


def decode_snapshot(text: str) -> HabitsSnapshot:
    """Decode a full snapshot, tolerating invalid fields."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise PersistenceError(f"habits file is not valid JSON: {e}") from e
    return HabitsSnapshot(**parse_body(raw))


def decode_delta(text: str) -> HabitsDelta:
    """Decode an incremental save, tolerating invalid fields."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise PersistenceError(f"habits delta is not valid JSON: {e}") from e
    return HabitsDelta(**parse_body(raw))


def merge(snapshot: HabitsSnapshot | None, delta: HabitsDelta | None) -> HabitsSnapshot | None:
    """Overlay a delta onto its full snapshot when their versions match."""
    if delta is None:
        return snapshot
    if snapshot is None:
        # Full file missing or unreadable: the delta is the best data left
        base = HabitsSnapshot(save_version=delta.save_version)
        base.apply_delta(delta)
        return base
    base = snapshot
    if delta.save_version != base.save_version:
        logger.info(
            f"Ignoring habits delta for save_version {delta.save_version} (full file is {base.save_version})"
        )
        return snapshot
    base.apply_delta(delta)
    return base


# =============================================================================
# Implementations
# =============================================================================


def atomic_write(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` via temp file + fsync + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise

    # Persist the rename itself; not every platform allows opening a directory
    try:
        dir_fd = os.open(path.parent, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


class HabitsFileStorage:
    """JSON file storage with atomic replacement."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self.delta_path = self.path.with_name(f"{self.path.stem}.delta{self.path.suffix or '.json'}")

    def write_full(self, snapshot: HabitsSnapshot) -> None:
        try:
            atomic_write(self.path, snapshot.model_dump_json(indent=2))
        except OSError as e:
            raise PersistenceError(f"Failed to write habits: {e}", path=str(self.path)) from e

        # The delta is superseded by the new version; a stale one is ignored anyway
        try:
            self.delta_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove stale habits delta {self.delta_path}: {e}")

    def write_delta(self, delta: HabitsDelta) -> None:
        try:
            atomic_write(self.delta_path, delta.model_dump_json(indent=2))
        except OSError as e:
            raise PersistenceError(f"Failed to write habits delta: {e}", path=str(self.delta_path)) from e

    def read(self) -> HabitsSnapshot | None:
        snapshot = self._read_one(self.path, decode_snapshot)
        delta = self._read_one(self.delta_path, decode_delta)
        return merge(snapshot, delta)

    def _read_one(self, path: Path, decode: Callable[[str], Any]) -> Any:
        if not path.exists():
            return None
        try:
            return decode(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
        except PersistenceError as e:
            logger.error(f"Failed to parse {path}: {e}")
        return None


class InMemoryHabitsStorage(BaseModel):
    """
    In-memory storage for testing/development.

    Holds the serialized JSON so reads go through the same decoding path
    as the file backend. Not persistent.
    """

    full_text: str | None = None
    delta_text: str | None = None
    full_writes: int = Field(default=0)
    delta_writes: int = Field(default=0)

    def write_full(self, snapshot: HabitsSnapshot) -> None:
        self.full_text = snapshot.model_dump_json()
        self.delta_text = None
        self.full_writes += 1

    def write_delta(self, delta: HabitsDelta) -> None:
        self.delta_text = delta.model_dump_json()
        self.delta_writes += 1

    def read(self) -> HabitsSnapshot | None:
        snapshot = decode_snapshot(self.full_text) if self.full_text else None
        delta = decode_delta(self.delta_text) if self.delta_text else None
        return merge(snapshot, delta)
