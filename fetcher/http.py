"""Bounded HTTP fetcher: wall-clock timeout, body cap, fixed identity headers."""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Callable, Mapping
from typing import Any

import requests

from core.config import GatewayConfig
from core.models import FetchErrorCode, FetchLog, FetchOutcome
from fetcher.logging import emit_fetch_log


TimerFactory = Callable[[float, Callable[[], None]], Any]

READ_CHUNK_BYTES = 1024


class BodyLimitExceeded(Exception):
    """Raised when response body exceeds the configured limit."""


class FetchCancelled(Exception):
    """Raised when the cancellation timer fired or the deadline passed."""


def _response_socket(response: Any) -> socket.socket | None:
    """Locate the connected socket under a streamed requests response."""
    raw = getattr(response, "raw", None)
    if raw is None:
        return None
    connection = getattr(raw, "connection", None) or getattr(raw, "_connection", None)
    sock = getattr(connection, "sock", None)
    if sock is not None:
        return sock
    # http.client response file: SocketIO keeps the socket as _sock.
    fp = getattr(getattr(raw, "_fp", None), "fp", None)
    return getattr(getattr(fp, "raw", None), "_sock", None)


def _abort(response: Any) -> None:
    """Wake a reader blocked on the response's socket.

    Closing the response does not interrupt a thread already inside
    ``recv``; shutting the socket down does. Responses without a socket
    are closed instead.
    """
    sock = _response_socket(response)
    if sock is None:
        response.close()
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass


def declared_charset(content_type: str | None) -> str | None:
    """Return the charset parameter of a Content-Type header, if any."""
    if not content_type:
        return None
    for param in content_type.split(";")[1:]:
        name, sep, value = param.partition("=")
        if sep and name.strip().lower() == "charset":
            charset = value.strip().strip("'\"").strip()
            return charset or None
    return None


class _Cancellation:
    """One-shot cancellation signal that aborts the attached response."""

    def __init__(self) -> None:
        self._fired = threading.Event()
        self._lock = threading.Lock()
        self._response: Any = None

    @property
    def fired(self) -> bool:
        return self._fired.is_set()

    def attach(self, response: Any) -> None:
        with self._lock:
            self._response = response
            fired = self._fired.is_set()
        if fired:
            _abort(response)

    def fire(self) -> None:
        with self._lock:
            self._fired.set()
            response = self._response
        if response is not None:
            _abort(response)


def _read_body_with_limit(
    response: requests.Response,
    max_bytes: int,
    cancellation: _Cancellation,
    deadline: float,
    clock: Callable[[], float],
) -> bytes:
    """Read response body up to max_bytes, stopping on cancellation.

    Before each read the socket timeout is narrowed to what is left of the
    budget, so a single stalled ``recv`` cannot outlive the deadline.
    """
    sock = _response_socket(response)
    chunks: list[bytes] = []
    total = 0
    stream = response.iter_content(chunk_size=READ_CHUNK_BYTES)
    while True:
        remaining = deadline - clock()
        if cancellation.fired or remaining <= 0:
            raise FetchCancelled("deadline passed while reading body")
        if sock is not None:
            try:
                sock.settimeout(remaining)
            except OSError:
                pass
        try:
            chunk = next(stream)
        except StopIteration:
            break
        if not chunk:
            continue
        total += len(chunk)
        if total > max_bytes:
            raise BodyLimitExceeded(f"response exceeds {max_bytes} bytes")
        chunks.append(chunk)

    # An aborted response can end iteration early instead of raising.
    if cancellation.fired:
        raise FetchCancelled("cancelled while reading body")
    return b"".join(chunks)


class BoundedFetcher:
    """Issue one GET per call under a wall-clock budget.

    A cancellation timer is started for every call and cancelled on every
    exit path; when it fires, the in-flight response's socket is shut down.
    The budget is also passed to requests for the connect/read phases and
    checked between body chunks.
    """

    def __init__(
        self,
        config: GatewayConfig,
        session: requests.Session | None = None,
        timer_factory: TimerFactory | None = None,
        clock_fn: Callable[[], float] | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize fetch dependencies with optional test-time hooks."""
        self.config = config
        self.request_id = request_id
        self._session = session or requests.Session()
        self._timer_factory = timer_factory or threading.Timer
        self._clock = clock_fn or time.monotonic

    def base_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.config.user_agent,
            "Accept-Language": self.config.accept_language,
        }

    def _merge_headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        """Caller headers override base headers, matched case-insensitively."""
        merged = self.base_headers()
        for key, value in (headers or {}).items():
            for existing in [name for name in merged if name.lower() == key.lower()]:
                del merged[existing]
            merged[key] = value
        return merged

    def fetch(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
        purpose: str = "target",
    ) -> FetchOutcome:
        """Fetch a URL and return a FetchOutcome; never raises for network errors."""
        budget_ms = timeout_ms or self.config.fetch_timeout_ms
        budget_seconds = budget_ms / 1000
        start = self._clock()
        deadline = start + budget_seconds

        cancellation = _Cancellation()
        timer = self._timer_factory(budget_seconds, cancellation.fire)
        timer.daemon = True
        timer.start()

        response = None
        status_code: int | None = None
        try:
            response = self._session.get(
                url,
                headers=self._merge_headers(headers),
                timeout=budget_seconds,
                allow_redirects=True,
                stream=True,
            )
            cancellation.attach(response)
            status_code = response.status_code
            body = _read_body_with_limit(
                response,
                self.config.max_body_bytes,
                cancellation,
                deadline,
                self._clock,
            )
            response_headers = {k.lower(): v for k, v in response.headers.items()}
            outcome = FetchOutcome.success(
                status_code=response.status_code,
                body=body,
                headers=response_headers,
                # requests guesses ISO-8859-1 for text/*; only trust the header.
                encoding=declared_charset(response_headers.get("content-type")),
                final_url=getattr(response, "url", None) or url,
            )
        except (requests.Timeout, FetchCancelled):
            outcome = self._timeout_outcome(budget_ms)
        except BodyLimitExceeded as exc:
            outcome = FetchOutcome.failure(FetchErrorCode.BODY_TOO_LARGE, str(exc))
        except requests.RequestException as exc:
            if cancellation.fired or self._clock() >= deadline:
                outcome = self._timeout_outcome(budget_ms)
            else:
                outcome = FetchOutcome.failure(FetchErrorCode.FETCH_ERROR, str(exc))
        except Exception:
            # Aborting a response mid-read can surface as a low-level error.
            if not (cancellation.fired or self._clock() >= deadline):
                raise
            outcome = self._timeout_outcome(budget_ms)
        finally:
            timer.cancel()
            if response is not None:
                response.close()

        if self.config.log_fetches:
            emit_fetch_log(
                FetchLog(
                    url=url,
                    purpose=purpose,
                    status_code=status_code,
                    latency_ms=int((self._clock() - start) * 1000),
                    bytes_received=len(outcome.body) if outcome.ok else None,
                    error_code=outcome.error_code,
                    request_id=self.request_id,
                )
            )
        return outcome

    @staticmethod
    def _timeout_outcome(budget_ms: int) -> FetchOutcome:
        return FetchOutcome.failure(
            FetchErrorCode.TIMEOUT,
            f"request exceeded {budget_ms} ms",
        )
