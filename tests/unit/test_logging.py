"""Unit tests for logging configuration."""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Any

import pytest
import structlog

from procforge.config import LoggingConfig
from procforge.logging import (
    add_run_id,
    bind_run_context,
    get_logger,
    get_run_id,
    set_run_id,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging() -> None:
    """Reset logging configuration before each test."""
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    set_run_id(None)


@pytest.fixture
def capture_stream() -> StringIO:
    return StringIO()


@pytest.fixture
def json_config() -> LoggingConfig:
    return LoggingConfig(level="INFO", format="json", file=None)


def capture(config: LoggingConfig, stream: StringIO) -> None:
    """Configure logging and redirect the stream handler into ``stream``."""
    setup_logging(config)
    logging.getLogger().handlers[0].stream = stream


def last_entry(stream: StringIO) -> dict[str, Any]:
    return json.loads(stream.getvalue().strip().splitlines()[-1])


def test_json_output_format(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    capture(json_config, capture_stream)

    get_logger("procforge.loaders.bpmn").info("bpmn_loaded", processes=1, path="process.bpmn")

    entry = last_entry(capture_stream)
    assert entry["event"] == "bpmn_loaded"
    assert entry["processes"] == 1
    assert entry["level"] == "info"
    assert entry["logger"] == "procforge.loaders.bpmn"
    datetime.fromisoformat(entry["timestamp"].replace("Z", "+00:00"))


def test_console_output_format(capture_stream: StringIO) -> None:
    """Test that console format produces human-readable output."""
    capture(LoggingConfig(level="DEBUG", format="console"), capture_stream)

    get_logger("test.module").debug("flow_resolved", flow="Flow_1")

    output = capture_stream.getvalue()
    assert "flow_resolved" in output
    assert "Flow_1" in output
    with pytest.raises(json.JSONDecodeError):
        json.loads(output.strip())


def test_log_level_filtering(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    capture(json_config, capture_stream)
    logger = get_logger("test.module")

    logger.debug("debug_message")
    assert capture_stream.getvalue() == ""

    logger.warning("warning_message")
    assert "warning_message" in capture_stream.getvalue()


def test_run_id_processor() -> None:
    event_dict: dict[str, Any] = {"event": "test"}

    assert "run_id" not in add_run_id(None, "", event_dict.copy())

    set_run_id("3f2a9c")
    assert add_run_id(None, "", event_dict.copy())["run_id"] == "3f2a9c"
    assert get_run_id() == "3f2a9c"


def test_run_context_binding(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    """Test that the run id and target appear on every event while bound."""
    capture(json_config, capture_stream)
    logger = get_logger("procforge.pipeline")

    bind_run_context("run-1", "camunda")
    logger.info("target_started")
    entry = last_entry(capture_stream)
    assert entry["run_id"] == "run-1"
    assert entry["target"] == "camunda"

    bind_run_context("run-1")
    logger.info("run_finished")
    entry = last_entry(capture_stream)
    assert entry["run_id"] == "run-1"
    assert "target" not in entry


def test_context_shared_across_loggers(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    capture(json_config, capture_stream)
    bind_run_context("run-2", "bonita")

    get_logger("module1").info("event1")
    first = last_entry(capture_stream)
    get_logger("module2").info("event2")
    second = last_entry(capture_stream)

    assert (first["run_id"], first["target"]) == ("run-2", "bonita")
    assert (second["run_id"], second["target"]) == ("run-2", "bonita")


def test_exception_formatting(json_config: LoggingConfig, capture_stream: StringIO) -> None:
    capture(json_config, capture_stream)

    try:
        raise ValueError("bad timer")
    except ValueError:
        get_logger("test.module").exception("target_failed")

    entry = last_entry(capture_stream)
    assert entry["level"] == "error"
    assert "ValueError: bad timer" in entry["exception"]


def test_file_rotation_handler_configuration(tmp_path: Path) -> None:
    """Test that the rotating file handler follows the configuration."""
    log_file = tmp_path / "logs" / "nested" / "procforge.log"
    setup_logging(
        LoggingConfig(level="INFO", format="json", file=log_file, rotation_size_mb=10, retention_count=3)
    )

    root = logging.getLogger()
    assert len(root.handlers) == 1
    handler = root.handlers[0]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == 10 * 1024 * 1024
    assert handler.backupCount == 3
    assert log_file.exists()

    get_logger("test.module").info("test_file_write", data="test")
    handler.flush()

    entry = json.loads(log_file.read_text(encoding="utf-8").strip())
    assert entry["event"] == "test_file_write"
    assert entry["data"] == "test"
