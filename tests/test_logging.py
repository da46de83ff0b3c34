"""Tests for strata/logging_config.py"""

import json
import logging

import pytest

from strata.logging_config import LOG_FILE_NAME, JsonFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def test_file_handler_written_when_logs_dir_given(tmp_path, restore_root_logger):
    logs_dir = tmp_path / "logs"
    assert setup_logging("DEBUG", str(logs_dir)) == logging.DEBUG
    logging.getLogger("strata.engine").info("[0] add_task %s", "ok")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "[0] add_task ok" in (logs_dir / LOG_FILE_NAME).read_text()


def test_console_only_without_logs_dir(tmp_path, restore_root_logger):
    setup_logging("INFO")
    assert not any(
        isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers
    )
    assert not list(tmp_path.iterdir())


def test_client_libraries_are_quieted(restore_root_logger):
    setup_logging("DEBUG")
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("googleapiclient").level == logging.WARNING


def test_unknown_level_falls_back_to_info(restore_root_logger):
    assert setup_logging("chatty") == logging.INFO
    assert logging.getLogger().level == logging.INFO


def test_json_formatter_carries_extra_fields():
    record = logging.LogRecord("strata.assistant", logging.WARNING, __file__, 1, "retry %d", (2,), None)
    record.user_id = "u1"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "strata.assistant"
    assert payload["message"] == "retry 2"
    assert payload["user_id"] == "u1"
    assert "exception" not in payload
    assert "args" not in payload
