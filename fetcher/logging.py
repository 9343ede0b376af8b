"""Structured logging helpers for fetch operations."""

from __future__ import annotations

from typing import Any

from core.models import FetchLog
from core.structured_logging import emit_json_event


def fetch_log_to_dict(fetch_log: FetchLog) -> dict[str, Any]:
    """Convert FetchLog to the JSON-safe payload of a ``fetch_log`` event."""
    return {
        "id": fetch_log.id,
        "url": fetch_log.url,
        "purpose": fetch_log.purpose,
        "status_code": fetch_log.status_code,
        "latency_ms": fetch_log.latency_ms,
        "bytes_received": fetch_log.bytes_received,
        "error_code": fetch_log.error_code.value if fetch_log.error_code else None,
    }


def emit_fetch_log(fetch_log: FetchLog) -> str:
    """Emit a structured JSON log line and return it for testability."""
    return emit_json_event(
        "fetch_log",
        request_id=fetch_log.request_id,
        component="fetcher",
        level="info" if fetch_log.error_code is None else "warning",
        timestamp=fetch_log.created_at,
        **fetch_log_to_dict(fetch_log),
    )
