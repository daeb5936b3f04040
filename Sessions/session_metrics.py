"""
SESSION METRICS
===============
Prometheus-backed counters for session lifecycle events.
"""

from __future__ import annotations

import os
from typing import Dict

from prometheus_client import Counter


SESSION_EVENTS = (
    "created",
    "loaded",
    "saved",
    "destroyed",
    "regenerated",
    "decode_failed",
    "auth_failed",
    "store_failed",
    "save_failed",
)

_SESSION_EVENTS = None


def _enabled() -> bool:
    return os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"


def _init_metrics() -> None:
    global _SESSION_EVENTS
    if _SESSION_EVENTS is not None or not _enabled():
        return
    _SESSION_EVENTS = Counter(
        "session_events_total",
        "Count of session lifecycle events",
        ["event"],
    )


def increment_session_event(event: str, amount: int = 1) -> None:
    _init_metrics()
    if _SESSION_EVENTS is None:
        return
    _SESSION_EVENTS.labels(event=event).inc(amount)


def _counter_value(counter, event: str) -> int:
    try:
        return int(counter.labels(event=event)._value.get())
    except (AttributeError, ValueError):
        return 0


def get_session_metrics_snapshot(events: list[str] | None = None) -> Dict[str, int]:
    _init_metrics()
    snapshot: Dict[str, int] = {}
    for event in events or SESSION_EVENTS:
        snapshot[event] = _counter_value(_SESSION_EVENTS, event) if _SESSION_EVENTS is not None else 0
    return snapshot
