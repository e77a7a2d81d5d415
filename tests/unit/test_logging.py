"""Tests for Sprig logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from sprig.runtime.logging import (
    ROOT_LOGGER,
    ConsoleFormatter,
    JSONLFormatter,
    get_log_file,
    get_logger,
    log_with_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger(ROOT_LOGGER)
    saved = (list(root.handlers), root.level, root.propagate)
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    handlers, level, propagate = saved
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    root.propagate = propagate


def _record(name: str, level: int, message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Console and JSONL formatting."""

    def test_jsonl_record(self) -> None:
        record = _record(
            "sprig.runtime.router",
            logging.WARNING,
            "Unknown handler 'missing_handler'",
            context={"widget_id": "b1"},
        )
        entry = json.loads(JSONLFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["component"] == "ROUTER"
        assert entry["logger"] == "sprig.runtime.router"
        assert entry["message"] == "Unknown handler 'missing_handler'"
        assert entry["context"] == {"widget_id": "b1"}

    def test_component_attribute_wins(self) -> None:
        record = _record("sprig.reload", logging.INFO, "Reloading", component="RELOAD")
        assert json.loads(JSONLFormatter().format(record))["component"] == "RELOAD"

    def test_console_shows_component_and_level(self) -> None:
        formatter = ConsoleFormatter()
        info = formatter.format(_record("sprig.script", logging.INFO, "hello"))
        warning = formatter.format(_record("sprig.script", logging.WARNING, "careful"))
        assert "[SCRIPT]" in info
        assert info.endswith("hello")
        assert "INFO" not in info
        assert "WARNING" in warning


class TestSetup:
    """Handler configuration."""

    def test_console_only(self) -> None:
        root = setup_logging(level="debug")
        assert root.name == ROOT_LOGGER
        assert root.level == logging.DEBUG
        assert not root.propagate
        assert len(root.handlers) == 1
        assert get_log_file() is None

    def test_repeated_setup_replaces_handlers(self) -> None:
        setup_logging()
        root = setup_logging()
        assert len(root.handlers) == 1

    def test_jsonl_file(self, tmp_path: Path) -> None:
        setup_logging(level=logging.INFO, log_dir=tmp_path / "logs", json=True)
        log_file = get_log_file()
        assert log_file == tmp_path / "logs" / "sprig.log"

        log_with_context(
            logging.getLogger("sprig.runtime.router"),
            logging.WARNING,
            "Update 'setText' targets unknown widget 'ghost'",
            target_id="ghost",
        )
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()

        entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert entries[-1]["context"] == {"target_id": "ghost"}
        assert entries[-1]["component"] == "ROUTER"

    def test_json_requires_log_dir(self) -> None:
        with pytest.raises(ValueError, match="log_dir is required"):
            setup_logging(json=True)


class TestComponentLoggers:
    def test_component_is_tagged(self) -> None:
        logger = get_logger("RELOAD")
        assert logger.name == "sprig.reload"
        assert get_logger("RELOAD") is logger

        record = _record("sprig.reload", logging.INFO, "x")
        for log_filter in logger.filters:
            log_filter.filter(record)
        assert record.component == "RELOAD"
