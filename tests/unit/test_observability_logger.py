# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger
from observability import metrics


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", lines.append)
    monkeypatch.setattr(logger, "_threshold", logger._LEVELS["info"])  # pylint: disable=protected-access
    return lines


def test_log_event_emits_one_jsonl_line(captured: list[str]) -> None:
    """
    - exactly one JSON line per event
    - payload fields preserved
    - ts_ms and level stamped when absent
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1
    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "TEST"
    assert decoded["value"] == 123
    assert decoded["level"] == "info"
    assert isinstance(decoded["ts_ms"], int)


def test_caller_ts_ms_wins(captured: list[str]) -> None:
    logger.log_event({"event_type": "TEST", "ts_ms": 5})

    assert json.loads(captured[0])["ts_ms"] == 5


def test_events_below_threshold_are_dropped(captured: list[str]) -> None:
    logger.set_log_level("WARNING")

    logger.log_event({"event_type": "QUIET", "level": "info"})
    logger.log_event({"event_type": "LOUD", "level": "error"})

    assert [json.loads(line)["event_type"] for line in captured] == ["LOUD"]


def test_unserializable_event_falls_back(captured: list[str]) -> None:
    logger.log_event({"event_type": "BAD", "obj": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"


def test_timed_emits_metric_even_when_block_raises(captured: list[str]) -> None:
    with pytest.raises(RuntimeError):
        with metrics.timed("upstream_start", session_id="s1"):
            raise RuntimeError("boom")

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "METRIC_TIMER"
    assert decoded["metric"] == "upstream_start"
    assert decoded["session_id"] == "s1"
    assert decoded["ok"] is False
