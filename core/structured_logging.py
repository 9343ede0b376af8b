"""Gateway-wide structured JSON logging.

Every log line is one JSON object on stdout carrying the same envelope:
``service``, ``component`` (which part of the gateway emitted it: ``cli``,
``handler``, ``gateway``, ``robots`` or ``fetcher``), ``event_type``,
``level``, ``timestamp`` and ``request_id``. Event-specific fields are
merged in after the envelope and may not overwrite it.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any


SERVICE_NAME = "fetch-gateway"
COMPONENTS = frozenset({"cli", "handler", "gateway", "robots", "fetcher"})
LEVELS = frozenset({"debug", "info", "warning", "error"})


def emit_json_event(
    event_type: str,
    *,
    request_id: str | None,
    component: str,
    level: str = "info",
    timestamp: datetime | None = None,
    **payload: Any,
) -> str:
    """Emit one JSON event line to stdout and return the rendered line."""
    if component not in COMPONENTS:
        raise ValueError(f"unknown log component: {component!r}")
    if level not in LEVELS:
        raise ValueError(f"unknown log level: {level!r}")

    event: dict[str, Any] = {
        "service": SERVICE_NAME,
        "component": component,
        "event_type": event_type,
        "level": level,
        "timestamp": (timestamp or datetime.now(UTC)).isoformat(),
        "request_id": request_id,
    }
    clashing = sorted(event.keys() & payload.keys())
    if clashing:
        raise ValueError(f"payload overrides envelope fields: {', '.join(clashing)}")
    event.update(payload)

    line = json.dumps(event, ensure_ascii=True, sort_keys=True, default=str)
    print(line)
    return line
