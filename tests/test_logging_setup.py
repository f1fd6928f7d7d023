# tests/test_logging_setup.py
"""
Tests for LogSink.
"""

import logging

import pytest

from deep_suppressor.logging_setup import LOGGER_NAME, LogSink, parse_level


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger(LOGGER_NAME)
    level, handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers


class TestParseLevel:
    @pytest.mark.parametrize(
        "name,level",
        [("debug", logging.DEBUG), ("WARN", logging.WARNING), ("Fatal", logging.CRITICAL), ("ERROR", logging.ERROR)],
    )
    def test_names(self, name, level):
        assert parse_level(name) == level

    def test_unknown(self):
        with pytest.raises(ValueError):
            parse_level("chatty")


class TestLogSink:
    def test_writes_formatted_lines(self, tmp_path):
        path = tmp_path / "logs" / "process_manager.log"
        with LogSink(path, level="DEBUG") as sink:
            logging.getLogger("deep_suppressor.scheduler").warning("Screen probe failed")
            assert sink.started

        text = path.read_text()
        assert "[WARNING] deep_suppressor.scheduler: Screen probe failed" in text
        assert "Logging stopped" in text

    def test_level_filters(self, tmp_path):
        path = tmp_path / "app.log"
        with LogSink(path, level="WARN"):
            logging.getLogger("deep_suppressor.policy").info("not written")
        assert "not written" not in path.read_text()

    def test_close_detaches_and_is_idempotent(self, tmp_path):
        sink = LogSink(tmp_path / "app.log").start()
        handlers_while_open = len(sink.logger.handlers)
        sink.close()
        sink.close()
        assert not sink.started
        assert len(sink.logger.handlers) == handlers_while_open - 1

    def test_rotation(self, tmp_path):
        path = tmp_path / "app.log"
        with LogSink(path, level="INFO", max_bytes=200, max_files=3) as sink:
            for i in range(100):
                sink.logger.info(f"line {i:03d} " + "x" * 40)

        names = sorted(p.name for p in tmp_path.iterdir())
        assert names == ["app.log", "app.log.1", "app.log.2"]

    def test_console_only_without_path(self):
        sink = LogSink(None).start()
        try:
            assert any(type(h) is logging.StreamHandler for h in sink.logger.handlers)
        finally:
            sink.close()
