# tests/test_habit_storage.py
"""
Tests for habits storage.

Covers:
- Atomic file writes (no temp files left behind, failures wrapped)
- Full + delta layout, version matching and stale deltas
- Best-effort decoding of partially invalid documents
"""

import json
from unittest.mock import patch

import pytest

from deep_suppressor.exceptions import PersistenceError
from deep_suppressor.habits.storage import (
    HabitsFileStorage,
    InMemoryHabitsStorage,
    atomic_write,
    decode_snapshot,
    merge,
)
from deep_suppressor.models import AppStats, HabitsDelta, HabitsSnapshot, LearningIntensity


def snapshot_with(app_id="a", version=1, **stats) -> HabitsSnapshot:
    return HabitsSnapshot(save_version=version, app_stats={app_id: AppStats(**stats)})


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_and_leaves_no_temp_files(self, tmp_path):
        path = tmp_path / "nested" / "habits.json"
        atomic_write(path, "hello")
        assert path.read_text() == "hello"
        assert [p.name for p in path.parent.iterdir()] == ["habits.json"]

    def test_replace_failure_cleans_up(self, tmp_path):
        path = tmp_path / "habits.json"
        path.write_text("old")
        with patch("deep_suppressor.habits.storage.os.replace", side_effect=OSError("boom")):
            with pytest.raises(OSError):
                atomic_write(path, "new")
        assert path.read_text() == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["habits.json"]


# ---------------------------------------------------------------------------
# File storage
# ---------------------------------------------------------------------------


class TestHabitsFileStorage:
    def test_missing_files_read_none(self, tmp_path):
        assert HabitsFileStorage(tmp_path / "habits.json").read() is None

    def test_delta_path(self, tmp_path):
        storage = HabitsFileStorage(tmp_path / "habits.json")
        assert storage.delta_path.name == "habits.delta.json"

    def test_full_then_delta(self, tmp_path):
        storage = HabitsFileStorage(tmp_path / "habits.json")
        storage.write_full(snapshot_with("a", usage_count=1))
        storage.write_delta(HabitsDelta(save_version=1, app_stats={"b": AppStats(usage_count=2)}))

        loaded = storage.read()
        assert loaded.app_stats["a"].usage_count == 1
        assert loaded.app_stats["b"].usage_count == 2

    def test_full_save_removes_delta(self, tmp_path):
        storage = HabitsFileStorage(tmp_path / "habits.json")
        storage.write_delta(HabitsDelta(save_version=0))
        storage.write_full(snapshot_with())
        assert not storage.delta_path.exists()

    def test_stale_delta_ignored(self, tmp_path):
        storage = HabitsFileStorage(tmp_path / "habits.json")
        storage.write_full(snapshot_with("a", version=2, usage_count=1))
        # A delta from before the last full save
        storage.delta_path.write_text(
            HabitsDelta(save_version=1, app_stats={"a": AppStats(usage_count=50)}).model_dump_json()
        )
        assert storage.read().app_stats["a"].usage_count == 1

    def test_corrupt_full_file_falls_back_to_delta(self, tmp_path):
        storage = HabitsFileStorage(tmp_path / "habits.json")
        storage.path.write_text("{truncated")
        storage.write_delta(HabitsDelta(save_version=3, app_stats={"a": AppStats(usage_count=4)}))
        loaded = storage.read()
        assert loaded.save_version == 3
        assert loaded.app_stats["a"].usage_count == 4

    def test_write_failure_raises_persistence_error(self, tmp_path):
        storage = HabitsFileStorage(tmp_path / "habits.json")
        with patch("deep_suppressor.habits.storage.atomic_write", side_effect=OSError("read-only")):
            with pytest.raises(PersistenceError) as exc_info:
                storage.write_full(snapshot_with())
        assert exc_info.value.path == str(storage.path)


# ---------------------------------------------------------------------------
# Best-effort decoding
# ---------------------------------------------------------------------------


class TestDecode:
    def test_invalid_json(self):
        with pytest.raises(PersistenceError):
            decode_snapshot("not json")

    def test_non_object_document(self):
        with pytest.raises(PersistenceError):
            decode_snapshot("[1, 2, 3]")

    def test_invalid_fields_fall_back_to_defaults(self):
        doc = {
            "save_version": "seven",
            "app_stats": {
                "a": {
                    "usage_count": 3,
                    "importance_weight": 500,
                    "hourly_usage": [1, 2],
                    "last_usage_hour": 99,
                },
                "": {"usage_count": 1},
                "b": "garbage",
            },
            "learning": {"learning_complete": "maybe", "learning_hours": 12.5},
            "time_patterns": "nope",
        }
        snap = decode_snapshot(json.dumps(doc))

        assert snap.save_version == 0
        assert list(snap.app_stats) == ["a"]
        stats = snap.app_stats["a"]
        assert stats.usage_count == 3
        assert stats.importance_weight == 0.0
        assert stats.hourly_usage == [0] * 24
        assert stats.last_usage_hour == -1
        assert snap.learning.learning_hours == 12.5
        assert snap.learning.learning_complete is False
        assert snap.learning.intensity == LearningIntensity.HIGH
        assert [p.hour for p in snap.time_patterns] == list(range(24))

    def test_partial_time_patterns(self):
        doc = {"time_patterns": [{"hour": 0, "activity_level": 0.5}, {"hour": 1, "activity_level": 7}]}
        snap = decode_snapshot(json.dumps(doc))
        assert snap.pattern_for(0).activity_level == 0.5
        assert snap.pattern_for(1).activity_level == 0.0
        assert len(snap.time_patterns) == 24


class TestMerge:
    def test_no_delta(self):
        snap = snapshot_with()
        assert merge(snap, None) is snap

    def test_nothing_at_all(self):
        assert merge(None, None) is None

    def test_delta_overrides_app_and_keeps_others(self):
        snap = HabitsSnapshot(
            save_version=1,
            total_samples=10,
            app_stats={"a": AppStats(usage_count=1), "b": AppStats(usage_count=1)},
        )
        delta = HabitsDelta(save_version=1, total_samples=12, app_stats={"a": AppStats(usage_count=5)})
        merged = merge(snap, delta)
        assert merged.app_stats["a"].usage_count == 5
        assert merged.app_stats["b"].usage_count == 1
        assert merged.total_samples == 12


class TestInMemoryStorage:
    def test_round_trip_through_json(self):
        storage = InMemoryHabitsStorage()
        storage.write_full(snapshot_with("a", usage_count=9))
        assert storage.read().app_stats["a"].usage_count == 9
        assert storage.full_writes == 1
