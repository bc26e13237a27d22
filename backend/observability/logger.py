"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Events below the configured level are dropped
- Never raises
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "error": 40,
}


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_threshold: int = _LEVELS["info"]


def set_log_level(level: str) -> None:
    """
    Set the minimum level that reaches the sink.

    Unknown level names fall back to INFO.
    """
    global _threshold  # pylint: disable=global-statement
    _threshold = _LEVELS.get(level.lower(), _LEVELS["info"])


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller supplies the event dict (event_type, session_id, ...).
    A "level" key selects severity (default "info"); "ts_ms" is stamped
    with wall-clock milliseconds when absent.
    """
    level = str(event.get("level", "info")).lower()
    if _LEVELS.get(level, _LEVELS["info"]) < _threshold:
        return

    record: dict[str, Any] = {"ts_ms": int(time.time() * 1000), "level": level}
    record.update(event)

    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash a session
        fallback: dict[str, Any] = {
            "ts_ms": record.get("ts_ms"),
            "level": "error",
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
