"""Startup diagnostics.

The lifespan records what it wired (store backend, venue mode, ranking source,
autotrader) and anything it had to degrade. Events with level "warning" mark a
component running in a fallback mode; `/status` and `/startup/log` expose them.
"""
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger("startup")

MAX_STARTUP_EVENTS = 200

_startup_events: Deque[Dict[str, Any]] = deque(maxlen=MAX_STARTUP_EVENTS)


def record_startup_event(kind: str, message: str, level: str = "info", **extra) -> Dict[str, Any]:
    event = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "kind": kind,
        "message": message,
        "level": level,
        **extra,
    }
    _startup_events.append(event)
    logger.log(logging.WARNING if level == "warning" else logging.INFO, "%s: %s %s", kind, message, extra or "")
    return event


def get_startup_events(limit: int = 100, kind: Optional[str] = None) -> List[Dict[str, Any]]:
    events = [e for e in _startup_events if kind is None or e["kind"] == kind]
    if limit <= 0:
        return []
    return events[-limit:]


def degraded_components() -> List[str]:
    """Kinds with at least one warning event, e.g. ["market_data", "venue"]."""
    return sorted({e["kind"] for e in _startup_events if e["level"] == "warning"})


def clear_startup_events() -> None:
    _startup_events.clear()


__all__ = [
    "MAX_STARTUP_EVENTS",
    "record_startup_event",
    "get_startup_events",
    "degraded_components",
    "clear_startup_events",
]
