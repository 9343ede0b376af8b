"""
Shared pytest fixtures and configuration for fetch-gateway tests.
"""

from __future__ import annotations

import json
import socket
from types import SimpleNamespace

import pytest

from core.config import GatewayConfig
from fetch_gateway.gateway import FetchGateway


PUBLIC_ADDRESS = (socket.AF_INET, "93.184.216.34")


# ============================================================================
# Fakes: HTTP
# ============================================================================

class DummyResponse:
    """Minimal streamed response object for exercising fetcher logic."""

    def __init__(
        self,
        status_code: int,
        body: bytes = b"",
        headers: dict[str, str] | None = None,
        chunks: list[bytes] | None = None,
        between_chunks=None,
        url: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        self.url = url
        self._chunks = chunks if chunks is not None else ([body] if body else [])
        self._between_chunks = between_chunks
        self.closed = False

    def iter_content(self, chunk_size: int = 8192):
        for index, chunk in enumerate(self._chunks):
            if index and self._between_chunks:
                self._between_chunks()
            if self.closed:
                return
            yield chunk

    def close(self) -> None:
        self.closed = True


class DummySession:
    """Sequence-driven session for deterministic HTTP behavior."""

    def __init__(self, responses: list[object] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[str] = []
        self.kwargs: list[dict[str, object]] = []
        self.closed = False

    def get(self, url: str, **kwargs: object):
        self.calls.append(url)
        self.kwargs.append(kwargs)
        if not self.responses:
            raise AssertionError("No more stubbed responses available")
        next_item = self.responses.pop(0)
        if isinstance(next_item, Exception):
            raise next_item
        return next_item

    def close(self) -> None:
        self.closed = True


class ManualTimer:
    """threading.Timer stand-in that only fires when told to."""

    def __init__(self, interval: float, function) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()

    @property
    def pending(self) -> bool:
        return self.started and not self.cancelled


class TimerRecorder:
    """Timer factory collecting every ManualTimer it creates."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, interval: float, function) -> ManualTimer:
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def http_fakes() -> SimpleNamespace:
    """Fake classes for HTTP responses, sessions, timers and clocks."""
    return SimpleNamespace(
        Response=DummyResponse,
        Session=DummySession,
        Timer=ManualTimer,
        TimerRecorder=TimerRecorder,
        Clock=FakeClock,
    )


@pytest.fixture
def config() -> GatewayConfig:
    """Default configuration."""
    return GatewayConfig()


@pytest.fixture
def timers() -> TimerRecorder:
    """Recorder for cancellation timers created during a test."""
    return TimerRecorder()


@pytest.fixture
def make_gateway(timers: TimerRecorder):
    """Build a FetchGateway wired to a DummySession and a fixed resolver."""

    def _make(
        responses: list[object] | None = None,
        resolved=PUBLIC_ADDRESS,
        config: GatewayConfig | None = None,
        clock=None,
    ) -> tuple[FetchGateway, DummySession]:
        session = DummySession(responses)
        gateway = FetchGateway(
            config or GatewayConfig(),
            session_factory=lambda: session,
            resolver=lambda hostname: resolved,
            timer_factory=timers,
            clock_fn=clock,
        )
        return gateway, session

    return _make


@pytest.fixture
def json_lines():
    """Decode structured log lines emitted to stdout."""

    def _parse(captured: str) -> list[dict[str, object]]:
        return [json.loads(line) for line in captured.splitlines() if line.strip().startswith("{")]

    return _parse


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "contract: contract schema compliance tests")
    config.addinivalue_line("markers", "integration: end-to-end integration tests")
    config.addinivalue_line("markers", "unit: unit tests")
