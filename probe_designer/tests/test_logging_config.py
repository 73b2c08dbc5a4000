"""Tests for logging setup and context fields."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from probe_designer.utils import logging_config
from probe_designer.utils.logging_config import (
    ContextFormatter,
    get_logger,
    install_excepthook,
    pop_context,
    push_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _clean_context():
    pop_context()
    yield
    pop_context()


def _record(msg: str = "Parsed 3 probe operation(s)", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("probe_designer.gcode.parser", level, __file__, 1, msg, None, None)


class TestFormatter:
    def test_human_line(self) -> None:
        push_context(app="probe-import")
        line = ContextFormatter("human", use_color=False).format(_record())
        assert line.endswith("| INFO     | app=probe-import | Parsed 3 probe operation(s)")

    def test_human_without_context(self) -> None:
        line = ContextFormatter("human", use_color=False).format(_record("hello"))
        assert line.endswith("| INFO     | hello")

    def test_json_line(self) -> None:
        push_context(app="probe-generate", source="fixture.yaml")
        payload = json.loads(ContextFormatter("json").format(_record(level=logging.WARNING)))
        assert payload["lvl"] == "WARNING"
        assert payload["msg"] == "Parsed 3 probe operation(s)"
        assert payload["app"] == "probe-generate"
        assert payload["source"] == "fixture.yaml"


class TestGetLogger:
    def test_returns_named_logger(self) -> None:
        logger = get_logger("probe_designer.scripts.import_gcode")
        assert logger is logging.getLogger("probe_designer.scripts.import_gcode")


class TestContext:
    def test_push_and_pop_keys(self) -> None:
        push_context(app="probe-import", source="a.nc")
        pop_context(keys=["source", "not-there"])
        assert logging_config._context_var.get() == {"app": "probe-import"}

    def test_pop_all(self) -> None:
        push_context(app="probe-import")
        pop_context()
        assert logging_config._context_var.get() == {}


class TestSetup:
    @pytest.fixture(autouse=True)
    def _restore_root(self, monkeypatch):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        monkeypatch.setattr(sys, "excepthook", sys.excepthook)
        yield
        for handler in root.handlers[:]:
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        for handler in handlers:
            if handler not in root.handlers:
                root.addHandler(handler)
        root.setLevel(level)

    def test_repeated_setup_does_not_stack(self, tmp_path) -> None:
        first = setup_logging("INFO")
        handlers = setup_logging("DEBUG", str(tmp_path / "logs" / "probe.log"))
        root = logging.getLogger()
        assert len(handlers) == 2
        assert [h for h in root.handlers if h in handlers] == handlers
        assert not any(h in root.handlers for h in first)
        assert root.level == logging.DEBUG

    def test_foreign_handlers_are_kept(self) -> None:
        foreign = logging.NullHandler()
        root = logging.getLogger()
        root.addHandler(foreign)
        setup_logging("INFO")
        setup_logging("INFO")
        assert foreign in root.handlers

    def test_log_file_receives_records(self, tmp_path) -> None:
        log_file = tmp_path / "probe.log"
        setup_logging("INFO", str(log_file), context={"app": "probe-import"})
        logging.getLogger("probe_designer.test").info("written")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "app=probe-import | written" in log_file.read_text(encoding="utf-8")

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging("LOUD")

    def test_excepthook_logs_uncaught(self, caplog: pytest.LogCaptureFixture) -> None:
        install_excepthook()
        try:
            raise RuntimeError("probe crashed")
        except RuntimeError:
            exc_info = sys.exc_info()
        with caplog.at_level(logging.CRITICAL):
            sys.excepthook(*exc_info)
        assert "Uncaught exception" in caplog.text
