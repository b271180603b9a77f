"""Unit tests for observability.logging structlog configuration."""

from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING

import pytest
import structlog

from specks.observability import configure_logging, reset_logging
from specks.parsing import parse

if TYPE_CHECKING:
    from collections.abc import Iterator


pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    reset_logging()


def _json_lines(buffer: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


def test_json_output_renders_one_object_per_event() -> None:
    buffer = io.StringIO()
    configure_logging("debug", json_output=True, stream=buffer)

    parse("#### Step 0: A {#step-0}\n", path="inline.md")

    records = _json_lines(buffer)
    assert len(records) == 1
    record = records[0]
    assert record["event"] == "speck_parsed"
    assert record["level"] == "debug"
    assert record["path"] == "inline.md"
    assert record["steps"] == 1
    assert "timestamp" in record


def test_events_below_threshold_are_dropped() -> None:
    buffer = io.StringIO()
    configure_logging("WARNING", json_output=True, stream=buffer)

    parse("#### Step 0: A {#step-0}\n")
    structlog.get_logger("specks.tests").warning("speck_test_warning", detail="kept")

    records = _json_lines(buffer)
    assert [record["event"] for record in records] == ["speck_test_warning"]
    assert records[0]["detail"] == "kept"


def test_console_output_is_plain_text() -> None:
    buffer = io.StringIO()
    configure_logging("INFO", stream=buffer)

    structlog.get_logger("specks.tests").info("speck_console_event", count=2)

    output = buffer.getvalue()
    assert "speck_console_event" in output
    assert "count=2" in output
    assert "\x1b[" not in output


@pytest.mark.parametrize("level", ["LOUD", ""])
def test_unknown_level_raises(level: str) -> None:
    with pytest.raises(ValueError, match="unsupported logging level"):
        configure_logging(level)


def test_reconfiguring_replaces_the_previous_handler() -> None:
    first, second = io.StringIO(), io.StringIO()
    configure_logging("debug", json_output=True, stream=first)
    configure_logging("debug", json_output=True, stream=second)

    parse("#### Step 0: A {#step-0}\n")

    assert first.getvalue() == ""
    assert [record["event"] for record in _json_lines(second)] == ["speck_parsed"]


def test_reset_detaches_output(capsys: pytest.CaptureFixture[str]) -> None:
    buffer = io.StringIO()
    configure_logging("debug", json_output=True, stream=buffer)
    reset_logging()

    parse("#### Step 0: A {#step-0}\n")

    assert buffer.getvalue() == ""
    assert capsys.readouterr().out == ""
