"""Gateway error taxonomy.

Every terminal failure of a gateway request is raised as a GatewayError
subclass. Each carries the ErrorKind, the HTTP status reported to the
caller and a message that is safe to return verbatim.
"""

from __future__ import annotations

from core.models import ErrorKind


class GatewayError(Exception):
    """Base class for expected, caller-reportable gateway failures."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedURL(GatewayError):
    """The url parameter is not a syntactically valid absolute URL."""

    kind = ErrorKind.MALFORMED_URL
    status_code = 400
    default_message = "Invalid URL."


class UnsupportedProtocol(GatewayError):
    """The URL scheme is not in the allowed protocol set."""

    kind = ErrorKind.UNSUPPORTED_PROTOCOL
    status_code = 400
    default_message = "Invalid URL protocol."


class BlockedHost(GatewayError):
    """The hostname is an obvious local alias (localhost, 0.0.0.0, ::1)."""

    kind = ErrorKind.BLOCKED_HOST
    status_code = 500
    default_message = "Blocked private host"


class BlockedAddress(GatewayError):
    """The hostname resolved to a private, loopback or link-local address."""

    kind = ErrorKind.BLOCKED_ADDRESS
    status_code = 500
    default_message = "Blocked private address"


class RobotsDisallowed(GatewayError):
    """The target path is disallowed by the origin's robots.txt."""

    kind = ErrorKind.ROBOTS_DISALLOWED
    status_code = 403
    default_message = "Blocked by robots.txt"


class UpstreamError(GatewayError):
    """The target answered with a non-2xx status; the status passes through."""

    kind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, upstream_status: int) -> None:
        self.upstream_status = upstream_status
        super().__init__(f"Upstream HTTP {upstream_status}")
        self.status_code = upstream_status


class RequestTimeout(GatewayError):
    """The target fetch did not complete within its wall-clock budget."""

    kind = ErrorKind.REQUEST_TIMEOUT
    status_code = 504

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Request timed out after {timeout_ms} ms")


class ResponseTooLarge(GatewayError):
    """The target body exceeded the configured size cap."""

    kind = ErrorKind.RESPONSE_TOO_LARGE
    status_code = 502

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes
        super().__init__(f"Upstream response exceeds {max_bytes} bytes")


class UpstreamUnreachable(GatewayError):
    """The target could not be fetched (DNS, connection or protocol error)."""

    kind = ErrorKind.UPSTREAM_UNREACHABLE
    status_code = 502
    default_message = "Upstream unreachable"


class InternalError(GatewayError):
    """Unexpected failure; only the original message is reported."""

    kind = ErrorKind.INTERNAL_ERROR
    status_code = 500
