"""
Tests for run-id propagation and the log formatters.
"""

from __future__ import annotations

import json
import logging
import re
import sys

import pytest

from agent_pipeline.config import Settings
from agent_pipeline.logging_config import (
    ConsoleLogFormatter,
    StructuredLogFormatter,
    clear_run_id,
    configure_logging,
    get_run_id,
    new_run_id,
    set_run_id,
)


def make_record(message: str = "Stage trading: 2/2 succeeded", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="agent_pipeline.pipeline",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def no_run_id():
    clear_run_id()
    yield
    clear_run_id()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRunId:

    def test_format(self) -> None:
        assert re.fullmatch(r"run_\d+_[0-9a-f]{8}", new_run_id())

    def test_unique(self) -> None:
        assert new_run_id() != new_run_id()

    def test_set_get_clear(self) -> None:
        run_id = set_run_id()

        assert get_run_id() == run_id

        clear_run_id()

        assert get_run_id() is None

    def test_set_explicit(self) -> None:
        assert set_run_id("run_1_abcdef01") == "run_1_abcdef01"
        assert get_run_id() == "run_1_abcdef01"


class TestStructuredLogFormatter:

    def test_json_fields(self) -> None:
        data = json.loads(StructuredLogFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "agent_pipeline.pipeline"
        assert data["message"] == "Stage trading: 2/2 succeeded"
        assert "run_id" not in data

    def test_includes_run_id_and_extras(self) -> None:
        set_run_id("run_1_abcdef01")

        data = json.loads(
            StructuredLogFormatter().format(make_record(event="stage_complete", stage="trading", failed=0))
        )

        assert data["run_id"] == "run_1_abcdef01"
        assert data["event"] == "stage_complete"
        assert data["stage"] == "trading"
        assert data["failed"] == 0

    def test_unserializable_extra_is_stringified(self) -> None:
        data = json.loads(StructuredLogFormatter().format(make_record(agent={"News Analyst"})))

        assert data["agent"] == "{'News Analyst'}"

    def test_extras_can_be_disabled(self) -> None:
        data = json.loads(StructuredLogFormatter(include_extra=False).format(make_record(stage="trading")))

        assert "stage" not in data

    def test_exception(self) -> None:
        try:
            raise RuntimeError("quote feed down")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(StructuredLogFormatter().format(record))

        assert data["exception"]["type"] == "RuntimeError"
        assert data["exception"]["message"] == "quote feed down"
        assert "Traceback" in data["exception"]["traceback"]


class TestConsoleLogFormatter:

    def test_run_id_prefix(self) -> None:
        set_run_id("run_1_abcdef01")

        line = ConsoleLogFormatter().format(make_record())

        assert "[run_1_abcdef01] agent_pipeline.pipeline: Stage trading: 2/2 succeeded" in line

    def test_no_prefix_outside_a_run(self) -> None:
        line = ConsoleLogFormatter().format(make_record())

        assert "[run_" not in line
        assert line.endswith("agent_pipeline.pipeline: Stage trading: 2/2 succeeded")


class TestConfigureLogging:

    def test_json_outside_debug(self, restore_root_logger: logging.Logger) -> None:
        configure_logging(Settings(_env_file=None, debug=False, log_level="WARNING"))

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredLogFormatter)

    def test_console_in_debug(self, restore_root_logger: logging.Logger) -> None:
        configure_logging(Settings(_env_file=None, debug=True, log_level="debug"))

        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(restore_root_logger.handlers[0].formatter, ConsoleLogFormatter)
        assert logging.getLogger("asyncio").level == logging.WARNING
