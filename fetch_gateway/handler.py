"""JSON request handler: query parameters in, serialized response out."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from core.structured_logging import emit_json_event
from fetch_gateway.gateway import FetchGateway


JSON_HEADERS = {"content-type": "application/json; charset=utf-8"}


class HttpResponse(BaseModel):
    """Transport-neutral HTTP response."""
    status_code: int
    headers: dict[str, str] = Field(default_factory=lambda: dict(JSON_HEADERS))
    body: str

    def payload(self) -> dict[str, Any]:
        return json.loads(self.body)


def json_response(status_code: int, payload: dict[str, Any]) -> HttpResponse:
    return HttpResponse(
        status_code=status_code,
        body=json.dumps(payload, ensure_ascii=False),
    )


def handle_request(
    query: Mapping[str, str] | None,
    gateway: FetchGateway,
    request_id: str | None = None,
) -> HttpResponse:
    """Handle one inbound call carrying a ``url`` query parameter."""
    url = (query or {}).get("url")
    if not url or not str(url).strip():
        return json_response(400, {"error": "URL parameter is required."})

    try:
        result = gateway.execute(str(url), request_id=request_id)
    except Exception as exc:
        emit_json_event(
            "handler_error",
            request_id=request_id,
            component="handler",
            level="error",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return json_response(500, {"error": str(exc) or type(exc).__name__})

    return json_response(result.status_code, result.to_body())
