# tests/test_cli.py
"""
Tests for the deep-suppressor command.
"""

import asyncio
import json
import logging
from unittest.mock import patch

import pytest

from deep_suppressor import cli
from deep_suppressor.logging_setup import LOGGER_NAME


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger(LOGGER_NAME)
    level, handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers


@pytest.fixture
def paths(tmp_path):
    return {
        "habits": str(tmp_path / "habits" / "habits.json"),
        "log": str(tmp_path / "logs" / "process_manager.log"),
    }


class TestParser:
    def test_repeatable_targets(self):
        args = cli.build_parser().parse_args(["-t", "a=x", "--target", "b=y", "--log-level", "warn"])
        assert args.target == ["a=x", "b=y"]
        assert args.log_level == "WARN"

    def test_explicit_config_path(self, tmp_path):
        args = cli.build_parser().parse_args(["--config", str(tmp_path / "c.json")])
        assert cli.resolve_config_path(args) == tmp_path / "c.json"

    def test_no_default_config_with_targets(self):
        args = cli.build_parser().parse_args(["-t", "a=x"])
        assert cli.resolve_config_path(args) is None


class TestMain:
    def test_bad_target_exits_non_zero(self, paths, capsys):
        code = cli.main(["--target", "no-equals-sign", "--habits", paths["habits"], "--log-file", paths["log"]])
        assert code == 1
        assert "missing '='" in capsys.readouterr().err

    def test_empty_config_exits_non_zero(self, tmp_path, paths):
        config = tmp_path / "suppress_config.json"
        config.write_text(json.dumps({"suppress_apps": {}}))
        code = cli.main(["--config", str(config), "--habits", paths["habits"], "--log-file", paths["log"]])
        assert code == 1

    def test_runs_scheduler_and_returns_zero(self, paths):
        argv = ["-t", "com.example.app=com.example.app:push", "--habits", paths["habits"], "--log-file", paths["log"]]
        with patch.object(cli, "serve") as serve, patch.object(cli.asyncio, "run") as run:
            code = cli.main(argv)

        assert code == 0
        run.assert_called_once()
        scheduler = serve.call_args.args[0]
        assert [t.app_id for t in scheduler.targets] == ["com.example.app"]


class TestServe:
    @pytest.mark.asyncio
    async def test_serve_runs_until_stopped(self, make_scheduler):
        scheduler = make_scheduler()
        task = asyncio.create_task(cli.serve(scheduler))
        await asyncio.sleep(0.05)
        scheduler.request_stop()
        await asyncio.wait_for(task, timeout=5)
        assert scheduler.stop_requested
