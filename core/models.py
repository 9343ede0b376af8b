"""
Core Pydantic models for fetch-gateway.

Design principles:
- Every model is explicitly typed and validated
- Nothing outlives a single gateway request (no persistence, no caches)
- Results carry enough context to render the JSON response and the logs
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlsplit
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================

class AddressClassification(str, Enum):
    """Which range does a resolved address fall in?"""
    PUBLIC = "PUBLIC"
    PRIVATE_OR_RESERVED = "PRIVATE_OR_RESERVED"
    LOOPBACK = "LOOPBACK"
    LINK_LOCAL = "LINK_LOCAL"
    UNRESOLVABLE = "UNRESOLVABLE"  # DNS failed; the fetch will surface it


class FetchErrorCode(str, Enum):
    """Why did an outbound fetch fail?"""
    TIMEOUT = "TIMEOUT"
    FETCH_ERROR = "FETCH_ERROR"  # Network / DNS / protocol error
    BODY_TOO_LARGE = "BODY_TOO_LARGE"


class ErrorKind(str, Enum):
    """Gateway failure taxonomy, one value per terminal error."""
    MALFORMED_URL = "MalformedURL"
    UNSUPPORTED_PROTOCOL = "UnsupportedProtocol"
    BLOCKED_HOST = "BlockedHost"
    BLOCKED_ADDRESS = "BlockedAddress"
    ROBOTS_DISALLOWED = "RobotsDisallowed"
    UPSTREAM_ERROR = "UpstreamError"
    REQUEST_TIMEOUT = "RequestTimeout"
    RESPONSE_TOO_LARGE = "ResponseTooLarge"
    UPSTREAM_UNREACHABLE = "UpstreamUnreachable"
    INTERNAL_ERROR = "InternalError"


class GatewayStage(str, Enum):
    """Linear gateway states; the first failing stage is terminal."""
    PARSE_URL = "PARSE_URL"
    VALIDATE_PROTOCOL = "VALIDATE_PROTOCOL"
    GUARD_HOST = "GUARD_HOST"
    CHECK_ROBOTS = "CHECK_ROBOTS"
    FETCH_TARGET = "FETCH_TARGET"
    DONE = "DONE"


# ============================================================================
# Target URL
# ============================================================================

class TargetURL(BaseModel):
    """
    A parsed absolute URL, built once per request.

    Example:
      url = "https://Example.com:8443/a/b?q=1"
      scheme = "https"
      host = "Example.com:8443"   # netloc without credentials, as given
      hostname = "example.com"    # lowercased, IPv6 brackets stripped
      path = "/a/b"
    """
    model_config = ConfigDict(frozen=True)

    url: str
    scheme: str
    host: str
    hostname: str
    path: str = "/"

    @classmethod
    def parse(cls, raw: str) -> Optional["TargetURL"]:
        """Parse an absolute URL; return None if it is not one."""
        text = (raw or "").strip()
        if not text:
            return None
        try:
            parts = urlsplit(text)
            hostname = parts.hostname or ""
            # Accessing .port validates the port component.
            _ = parts.port
        except ValueError:
            return None
        if not parts.scheme or not parts.netloc or not hostname:
            return None

        host = parts.netloc.rpartition("@")[2]
        return cls(
            url=text,
            scheme=parts.scheme.lower(),
            host=host,
            hostname=hostname.lower(),
            path=parts.path or "/",
        )

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host}"

    @property
    def robots_url(self) -> str:
        return f"{self.origin}/robots.txt"


# ============================================================================
# Fetch Outcome
# ============================================================================

class FetchOutcome(BaseModel):
    """
    Result of one bounded outbound fetch.

    Exactly one of the two shapes is populated:
    - success: ok=True, status_code, body (+ headers, encoding, final_url)
    - failure: ok=False, error_code, detail
    """
    ok: bool

    status_code: Optional[int] = None
    body: bytes = b""
    headers: Dict[str, str] = Field(default_factory=dict)
    encoding: Optional[str] = None
    final_url: Optional[str] = None

    error_code: Optional[FetchErrorCode] = None
    detail: Optional[str] = None

    @classmethod
    def success(
        cls,
        status_code: int,
        body: bytes,
        headers: Optional[Dict[str, str]] = None,
        encoding: Optional[str] = None,
        final_url: Optional[str] = None,
    ) -> "FetchOutcome":
        return cls(
            ok=True,
            status_code=status_code,
            body=body,
            headers=headers or {},
            encoding=encoding,
            final_url=final_url,
        )

    @classmethod
    def failure(cls, error_code: FetchErrorCode, detail: str) -> "FetchOutcome":
        return cls(ok=False, error_code=error_code, detail=detail)

    @property
    def is_2xx(self) -> bool:
        return self.ok and self.status_code is not None and 200 <= self.status_code < 300

    def text(self) -> str:
        """Decode the body with the declared Content-Type charset, else UTF-8."""
        encoding = self.encoding or "utf-8"
        try:
            return self.body.decode(encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


# ============================================================================
# Fetch / Network Logging
# ============================================================================

class FetchLog(BaseModel):
    """
    Log entry for a single outbound fetch (robots.txt or target).
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    url: str
    purpose: str = "target"  # "robots" | "target"

    status_code: Optional[int] = None  # HTTP status
    latency_ms: Optional[int] = None  # Time to full body
    bytes_received: Optional[int] = None

    error_code: Optional[FetchErrorCode] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    request_id: Optional[str] = None


# ============================================================================
# Gateway Result
# ============================================================================

class GatewayResult(BaseModel):
    """
    Final outcome of one gateway request.

    Example (success):
      ok = True, status_code = 200, html = "<html>ok</html>"
    Example (failure):
      ok = False, status_code = 403, error = "Blocked by robots.txt",
      error_kind = ErrorKind.ROBOTS_DISALLOWED,
      failed_stage = GatewayStage.CHECK_ROBOTS
    """
    ok: bool
    status_code: int

    html: Optional[str] = None
    upstream_status: Optional[int] = None

    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    failed_stage: Optional[GatewayStage] = None

    request_id: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        """Render the public JSON body: {"html": ...} or {"error": ...}."""
        if self.ok:
            return {"html": self.html or ""}
        return {"error": self.error or "Internal error"}
