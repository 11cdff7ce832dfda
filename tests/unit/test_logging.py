"""Unit tests for structured logging."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from chat_workflow_orchestrator.core.logging import JsonFormatter, configure_logging


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="chat_workflow_orchestrator.workflows.safety",
        level=logging.ERROR,
        pathname=__file__,
        lineno=1,
        msg="Forbidden content in %s",
        args=("parameters",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields() -> None:
    line = JsonFormatter().format(_record(pattern="foo()", path="filter.title", phase="deep-scan"))
    payload = json.loads(line)

    assert payload["level"] == "ERROR"
    assert payload["logger"] == "chat_workflow_orchestrator.workflows.safety"
    assert payload["message"] == "Forbidden content in parameters"
    assert payload["extra"] == {"pattern": "foo()", "path": "filter.title", "phase": "deep-scan"}
    assert "exception" not in payload


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]


@pytest.mark.usefixtures("restore_root_logger")
def test_configure_logging_replaces_handlers() -> None:
    configure_logging("debug")
    configure_logging("warning", fmt="text")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.WARNING
    assert logging.getLogger("httpx").level >= logging.INFO
