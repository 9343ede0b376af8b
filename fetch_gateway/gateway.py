"""
Gateway orchestrator for fetch-gateway.

Runs one request through the stages:
parse URL → validate protocol → guard host → check robots → fetch target

This is intentionally linear:
- No skipping stages
- No retries; the first failing stage is terminal
- No state shared between requests (a fresh session per call)
"""

from __future__ import annotations

import traceback
from collections.abc import Callable
from uuid import uuid4

import requests

from core.config import GatewayConfig
from core.errors import (
    GatewayError,
    InternalError,
    MalformedURL,
    RequestTimeout,
    ResponseTooLarge,
    RobotsDisallowed,
    UnsupportedProtocol,
    UpstreamError,
    UpstreamUnreachable,
)
from core.models import FetchErrorCode, FetchOutcome, GatewayResult, GatewayStage, TargetURL
from core.structured_logging import emit_json_event
from fetcher.guard import Resolver, ResolverGuard
from fetcher.hosts import blocked_networks
from fetcher.http import BoundedFetcher, TimerFactory
from fetcher.robots import RobotsPolicyEvaluator


class FetchGateway:
    """
    Main orchestrator: validates, guards and fetches one URL per call.

    Usage:
        gateway = FetchGateway(GatewayConfig.from_env())
        result = gateway.execute("https://example.com/page")
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        session_factory: Callable[[], requests.Session] | None = None,
        resolver: Resolver | None = None,
        timer_factory: TimerFactory | None = None,
        clock_fn: Callable[[], float] | None = None,
    ) -> None:
        """Store immutable configuration and per-request factories."""
        self.config = config or GatewayConfig()
        self._session_factory = session_factory or requests.Session
        self._timer_factory = timer_factory
        self._clock = clock_fn
        self.guard = ResolverGuard(
            extra_blocked_networks=blocked_networks(self.config.extra_blocked_ip_ranges),
            resolver=resolver,
        )

    @staticmethod
    def _emit_gateway_event(
        event_type: str,
        *,
        request_id: str,
        level: str = "info",
        **payload: object,
    ) -> None:
        """Emit a structured gateway event."""
        emit_json_event(
            event_type,
            request_id=request_id,
            level=level,
            component="gateway",
            **payload,
        )

    def _open_session(self) -> requests.Session:
        session = self._session_factory()
        if isinstance(session, requests.Session):
            session.max_redirects = self.config.max_redirects
        return session

    def _fetch_target(self, fetcher: BoundedFetcher, target: TargetURL) -> FetchOutcome:
        """FETCH_TARGET: map fetch failures and non-2xx statuses to errors."""
        outcome = fetcher.fetch(target.url, timeout_ms=self.config.fetch_timeout_ms)
        if not outcome.ok:
            if outcome.error_code == FetchErrorCode.TIMEOUT:
                raise RequestTimeout(self.config.fetch_timeout_ms)
            if outcome.error_code == FetchErrorCode.BODY_TOO_LARGE:
                raise ResponseTooLarge(self.config.max_body_bytes)
            raise UpstreamUnreachable(outcome.detail)
        if not outcome.is_2xx:
            raise UpstreamError(outcome.status_code)
        return outcome

    def execute(self, url: str, request_id: str | None = None) -> GatewayResult:
        """
        Run one URL through every stage and return the result.

        Args:
            url: Caller-supplied URL
            request_id: Correlation ID for logs (generated if omitted)

        Returns:
            GatewayResult carrying either the body text or the error

        Note:
            - Expected failures (GatewayError) are reported with their status
            - Anything else is logged with a traceback and reported as a 500
              carrying only the exception message
        """
        request_id = request_id or str(uuid4())
        stage = GatewayStage.PARSE_URL
        session: requests.Session | None = None

        try:
            target = TargetURL.parse(url)
            if target is None:
                raise MalformedURL()

            stage = GatewayStage.VALIDATE_PROTOCOL
            if target.scheme not in self.config.allowed_protocols:
                raise UnsupportedProtocol()

            stage = GatewayStage.GUARD_HOST
            classification = self.guard.assert_not_private_host(target.hostname)
            self._emit_gateway_event(
                "host_guard_passed",
                request_id=request_id,
                hostname=target.hostname,
                classification=classification.value,
            )

            session = self._open_session()
            fetcher = BoundedFetcher(
                self.config,
                session=session,
                timer_factory=self._timer_factory,
                clock_fn=self._clock,
                request_id=request_id,
            )

            stage = GatewayStage.CHECK_ROBOTS
            robots = RobotsPolicyEvaluator(
                fetcher,
                agent_token=self.config.agent_token,
                timeout_ms=self.config.robots_timeout_ms,
            )
            if not robots.is_allowed(target):
                raise RobotsDisallowed()

            stage = GatewayStage.FETCH_TARGET
            outcome = self._fetch_target(fetcher, target)

            stage = GatewayStage.DONE
            html = outcome.text()
            self._emit_gateway_event(
                "gateway_completed",
                request_id=request_id,
                url=target.url,
                upstream_status=outcome.status_code,
                bytes_received=len(outcome.body),
            )
            return GatewayResult(
                ok=True,
                status_code=200,
                html=html,
                upstream_status=outcome.status_code,
                request_id=request_id,
            )

        except GatewayError as exc:
            self._emit_gateway_event(
                "gateway_rejected",
                request_id=request_id,
                level="warning",
                url=url,
                stage=stage.value,
                error_kind=exc.kind.value,
                status_code=exc.status_code,
                error=exc.message,
            )
            return self._failure(exc, stage, request_id)

        except Exception as exc:
            self._emit_gateway_event(
                "gateway_internal_error",
                request_id=request_id,
                level="error",
                url=url,
                stage=stage.value,
                error_type=type(exc).__name__,
                error=str(exc),
                traceback=traceback.format_exc(),
            )
            return self._failure(InternalError(str(exc) or type(exc).__name__), stage, request_id)

        finally:
            if session is not None:
                session.close()

    @staticmethod
    def _failure(exc: GatewayError, stage: GatewayStage, request_id: str) -> GatewayResult:
        return GatewayResult(
            ok=False,
            status_code=exc.status_code,
            error=exc.message,
            error_kind=exc.kind,
            failed_stage=stage,
            upstream_status=getattr(exc, "upstream_status", None),
            request_id=request_id,
        )
