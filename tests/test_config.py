# tests/test_config.py
"""
Tests for environment configuration defaults.
"""

import importlib
import os

from deep_suppressor import config


def test_defaults_live_under_data_dir(monkeypatch):
    for name in ("DATA_DIR", "HABITS_FILE", "LOG_FILE", "LOG_LEVEL", "TARGETS_FILE"):
        monkeypatch.delenv(f"DEEP_SUPPRESSOR_{name}", raising=False)
    monkeypatch.setenv("DEEP_SUPPRESSOR_DATA_DIR", "/tmp/ds")
    try:
        reloaded = importlib.reload(config)
        assert reloaded.HABITS_FILE == os.path.join("/tmp/ds", "habits", "habits.json")
        assert reloaded.LOG_FILE == os.path.join("/tmp/ds", "logs", "process_manager.log")
        assert reloaded.TARGETS_FILE == os.path.join("/tmp/ds", "module_settings", "suppress_config.json")
        assert reloaded.LOG_LEVEL == "INFO"
    finally:
        monkeypatch.undo()
        importlib.reload(config)


def test_explicit_override(monkeypatch):
    monkeypatch.setenv("DEEP_SUPPRESSOR_HABITS_FILE", "/elsewhere/h.json")
    try:
        assert importlib.reload(config).HABITS_FILE == "/elsewhere/h.json"
    finally:
        monkeypatch.undo()
        importlib.reload(config)
