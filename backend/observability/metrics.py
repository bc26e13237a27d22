"""
Latency metrics for observability.

- Durations use monotonic time
- One metric = one METRIC_TIMER log event, never aggregated
- `timed()` guarantees the timer is stopped even when the block raises
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Measure the duration of a block and emit it as a metric event.

    Usage:
        with timed("credential_issue", session_id=bridge.session_id):
            credential = await provider.issue()

    The event records "ok": False when the block raised.
    """
    start_ns = time.monotonic_ns()
    ok = False
    try:
        yield
        ok = True
    finally:
        log_event({
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": (time.monotonic_ns() - start_ns) // 1_000_000,
            "ok": ok,
            "session_id": session_id,
            "details": details or {},
        })
