"""End-to-end tests for the gateway orchestrator and JSON request handler."""

from __future__ import annotations

import socket

import pytest
import requests

from core.config import GatewayConfig
from core.models import ErrorKind, GatewayStage
from fetch_gateway.gateway import FetchGateway
from fetch_gateway.handler import handle_request


ROBOTS_PRIVATE = b"User-agent: *\nDisallow: /private\n"


def _unreachable(*args, **kwargs):
    raise AssertionError("no network call expected")


@pytest.mark.integration
def test_success_returns_html(http_fakes, make_gateway):
    gateway, session = make_gateway(
        [
            http_fakes.Response(404),
            http_fakes.Response(200, body=b"<html>ok</html>", headers={"content-type": "text/html"}),
        ]
    )

    response = handle_request({"url": "https://example.com/page"}, gateway)

    assert response.status_code == 200
    assert response.payload() == {"html": "<html>ok</html>"}
    assert response.headers["content-type"] == "application/json; charset=utf-8"
    assert session.calls == ["https://example.com/robots.txt", "https://example.com/page"]
    assert session.closed is True


@pytest.mark.integration
def test_upstream_status_passes_through(http_fakes, make_gateway):
    gateway, _ = make_gateway([http_fakes.Response(404), http_fakes.Response(404, body=b"nope")])

    response = handle_request({"url": "https://example.com/missing"}, gateway)

    assert response.status_code == 404
    assert response.payload() == {"error": "Upstream HTTP 404"}


@pytest.mark.integration
def test_upstream_server_error_passes_through(http_fakes, make_gateway):
    gateway, _ = make_gateway([http_fakes.Response(404), http_fakes.Response(503)])

    result = gateway.execute("https://example.com/")

    assert result.status_code == 503
    assert result.error_kind is ErrorKind.UPSTREAM_ERROR
    assert result.upstream_status == 503
    assert result.failed_stage is GatewayStage.FETCH_TARGET


@pytest.mark.integration
def test_robots_disallow_blocks_before_target_fetch(http_fakes, make_gateway):
    gateway, session = make_gateway([http_fakes.Response(200, body=ROBOTS_PRIVATE)])

    response = handle_request({"url": "https://example.com/private/data"}, gateway)

    assert response.status_code == 403
    assert response.payload() == {"error": "Blocked by robots.txt"}
    assert session.calls == ["https://example.com/robots.txt"]


@pytest.mark.integration
def test_robots_allows_other_paths(http_fakes, make_gateway):
    gateway, session = make_gateway(
        [
            http_fakes.Response(200, body=ROBOTS_PRIVATE),
            http_fakes.Response(200, body=b"public page"),
        ]
    )

    result = gateway.execute("https://example.com/public")

    assert result.ok is True
    assert result.html == "public page"
    assert len(session.calls) == 2


@pytest.mark.integration
def test_robots_timeout_is_permissive(http_fakes, make_gateway):
    gateway, _ = make_gateway(
        [requests.Timeout("robots slow"), http_fakes.Response(200, body=b"fine")]
    )

    result = gateway.execute("https://example.com/private/data")

    assert result.ok is True
    assert result.html == "fine"


@pytest.mark.integration
def test_unsupported_protocol_never_reaches_guard(timers):
    gateway = FetchGateway(
        GatewayConfig(),
        session_factory=_unreachable,
        resolver=_unreachable,
        timer_factory=timers,
    )

    result = gateway.execute("ftp://example.com/x")

    assert result.status_code == 400
    assert result.error == "Invalid URL protocol."
    assert result.error_kind is ErrorKind.UNSUPPORTED_PROTOCOL
    assert result.failed_stage is GatewayStage.VALIDATE_PROTOCOL
    assert timers.timers == []


@pytest.mark.integration
@pytest.mark.parametrize("url", ["not a url", "example.com/page", "http://", "https://[::1/", "http://host:port/"])
def test_malformed_url(url: str):
    gateway = FetchGateway(session_factory=_unreachable, resolver=_unreachable)

    result = gateway.execute(url)

    assert result.status_code == 400
    assert result.error == "Invalid URL."
    assert result.failed_stage is GatewayStage.PARSE_URL


@pytest.mark.integration
@pytest.mark.parametrize(
    "url",
    ["http://localhost/admin", "http://LOCALHOST:8080/", "http://0.0.0.0/", "http://[::1]/", "https://LocalHost./"],
)
def test_local_hosts_blocked_without_network(url: str):
    gateway = FetchGateway(session_factory=_unreachable, resolver=_unreachable)

    result = gateway.execute(url)

    assert result.status_code == 500
    assert result.error == "Blocked private host"
    assert result.error_kind is ErrorKind.BLOCKED_HOST
    assert result.failed_stage is GatewayStage.GUARD_HOST


@pytest.mark.integration
@pytest.mark.parametrize(
    "resolved",
    [(socket.AF_INET, "10.0.0.5"), (socket.AF_INET, "169.254.169.254"), (socket.AF_INET6, "fe80::1")],
)
def test_private_resolution_blocked(resolved):
    gateway = FetchGateway(session_factory=_unreachable, resolver=lambda hostname: resolved)

    response = handle_request({"url": "http://metadata.example.com/latest"}, gateway)

    assert response.status_code == 500
    assert response.payload() == {"error": "Blocked private address"}


@pytest.mark.integration
def test_unresolvable_host_surfaces_fetch_error(http_fakes, make_gateway):
    gateway, session = make_gateway(
        [
            requests.ConnectionError("Name or service not known"),
            requests.ConnectionError("Name or service not known"),
        ],
        resolved=None,
    )

    result = gateway.execute("https://does-not-exist.invalid/")

    assert result.status_code == 502
    assert result.error_kind is ErrorKind.UPSTREAM_UNREACHABLE
    assert "Name or service not known" in result.error
    assert len(session.calls) == 2


@pytest.mark.integration
def test_target_timeout(http_fakes, make_gateway, timers):
    gateway, _ = make_gateway([http_fakes.Response(404), requests.Timeout("read timed out")])

    result = gateway.execute("https://example.com/slow")

    assert result.status_code == 504
    assert result.error_kind is ErrorKind.REQUEST_TIMEOUT
    assert result.error == "Request timed out after 15000 ms"
    assert len(timers.timers) == 2
    assert not any(timer.pending for timer in timers.timers)


@pytest.mark.integration
def test_target_wall_clock_timeout_mid_body(http_fakes, make_gateway, timers):
    clock = http_fakes.Clock()
    slow = http_fakes.Response(
        200,
        chunks=[b"<html>", b"...", b"</html>"],
        between_chunks=lambda: clock.advance(16),
    )
    gateway, _ = make_gateway([http_fakes.Response(404), slow], clock=clock)

    result = gateway.execute("https://example.com/slow")

    assert result.error_kind is ErrorKind.REQUEST_TIMEOUT
    assert slow.closed is True
    assert not any(timer.pending for timer in timers.timers)


@pytest.mark.integration
def test_oversized_target(http_fakes, make_gateway):
    gateway, _ = make_gateway(
        [http_fakes.Response(404), http_fakes.Response(200, body=b"x" * 64)],
        config=GatewayConfig(max_body_bytes=32),
    )

    result = gateway.execute("https://example.com/big")

    assert result.status_code == 502
    assert result.error == "Upstream response exceeds 32 bytes"


@pytest.mark.integration
def test_outbound_requests_carry_identity_headers(http_fakes, make_gateway):
    gateway, session = make_gateway([http_fakes.Response(404), http_fakes.Response(200, body=b"ok")])

    gateway.execute("https://example.com/")

    for kwargs in session.kwargs:
        assert kwargs["headers"]["User-Agent"].startswith("fetch-gateway/")
        assert kwargs["headers"]["Accept-Language"] == "en-US,en;q=0.9"
    assert [kwargs["timeout"] for kwargs in session.kwargs] == [5.0, 15.0]


@pytest.mark.integration
def test_agent_specific_robots_group(http_fakes, make_gateway):
    gateway, _ = make_gateway(
        [http_fakes.Response(200, body=b"User-agent: fetch-gateway\nDisallow: /\n")]
    )

    assert gateway.execute("https://example.com/anything").status_code == 403


@pytest.mark.integration
def test_internal_error_is_sanitized_and_logged(capsys, json_lines):
    def broken_session():
        raise RuntimeError("session pool exhausted")

    gateway = FetchGateway(
        session_factory=broken_session,
        resolver=lambda hostname: (socket.AF_INET, "93.184.216.34"),
    )

    response = handle_request({"url": "https://example.com/"}, gateway, request_id="req-500")
    lines = json_lines(capsys.readouterr().out)

    assert response.status_code == 500
    assert response.payload() == {"error": "session pool exhausted"}
    errors = [line for line in lines if line["event_type"] == "gateway_internal_error"]
    assert errors
    assert errors[0]["request_id"] == "req-500"
    assert errors[0]["level"] == "error"
    assert "Traceback" in errors[0]["traceback"]


@pytest.mark.integration
@pytest.mark.parametrize("query", [None, {}, {"url": ""}, {"url": "   "}])
def test_missing_url_parameter(query):
    gateway = FetchGateway(session_factory=_unreachable, resolver=_unreachable)

    response = handle_request(query, gateway)

    assert response.status_code == 400
    assert response.payload() == {"error": "URL parameter is required."}


@pytest.mark.integration
def test_rejections_are_logged_with_stage(http_fakes, make_gateway, capsys, json_lines):
    gateway, _ = make_gateway([http_fakes.Response(200, body=ROBOTS_PRIVATE)])

    gateway.execute("https://example.com/private/x", request_id="req-robots")
    lines = json_lines(capsys.readouterr().out)

    rejected = [line for line in lines if line["event_type"] == "gateway_rejected"]
    assert rejected[-1]["stage"] == "CHECK_ROBOTS"
    assert rejected[-1]["error_kind"] == "RobotsDisallowed"
    assert rejected[-1]["status_code"] == 403
    assert rejected[-1]["request_id"] == "req-robots"


@pytest.mark.integration
def test_session_closed_on_failure(http_fakes, make_gateway):
    gateway, session = make_gateway([http_fakes.Response(404), requests.Timeout("slow")])

    gateway.execute("https://example.com/slow")

    assert session.closed is True


@pytest.mark.integration
def test_declared_charset_decoding(http_fakes, make_gateway):
    gateway, _ = make_gateway(
        [
            http_fakes.Response(404),
            http_fakes.Response(
                200,
                body="café".encode("latin-1"),
                headers={"Content-Type": "text/html; charset=ISO-8859-1"},
            ),
        ]
    )

    assert gateway.execute("https://example.com/").html == "café"


@pytest.mark.integration
def test_missing_charset_decodes_utf8(http_fakes, make_gateway):
    gateway, _ = make_gateway(
        [
            http_fakes.Response(404),
            http_fakes.Response(
                200,
                body="café ✓".encode("utf-8"),
                headers={"Content-Type": "text/html"},
            ),
        ]
    )

    assert gateway.execute("https://example.com/").html == "café ✓"
