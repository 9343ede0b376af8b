"""Robots.txt evaluation with a permissive failure strategy.

Rules are fetched and parsed fresh for every request. Any failure to fetch
or parse the file allows the request: a missing or broken robots.txt must
never block traffic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from requests.utils import requote_uri

from core.models import FetchOutcome, TargetURL
from core.structured_logging import emit_json_event
from fetcher.http import BoundedFetcher


class _ScanState(Enum):
    OUTSIDE = "outside"
    INSIDE = "inside"


@dataclass(slots=True, frozen=True)
class RobotsRuleSet:
    """Disallow prefixes collected from the groups that apply to us."""

    disallow: tuple[str, ...] = ()

    def allows(self, path: str) -> bool:
        """Plain prefix match on percent-encoded paths; no wildcard or $ expansion."""
        if not self.disallow:
            return True
        encoded = requote_uri(path)
        return not any(encoded.startswith(prefix) for prefix in self.disallow)


def _split_directive(line: str) -> tuple[str, str] | None:
    """Split "Field: value" into (lowercased field, stripped value)."""
    field, sep, value = line.partition(":")
    if not sep:
        return None
    return field.strip().lower(), value.strip()


def parse_robots(text: str, agent_token: str = "*") -> RobotsRuleSet:
    """
    Scan robots.txt text into a RobotsRuleSet.

    Two states: OUTSIDE a relevant group, or INSIDE one. A ``User-agent``
    line naming ``*`` or ``agent_token`` (case-insensitive) moves INSIDE; any
    other ``User-agent`` line moves OUTSIDE. Non-empty ``Disallow`` values
    seen while INSIDE are kept in order, percent-encoded the way request
    paths are. Other directives are ignored.
    """
    token = agent_token.strip().lower()
    state = _ScanState.OUTSIDE
    disallow: list[str] = []

    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        directive = _split_directive(line)
        if directive is None:
            continue
        field, value = directive

        if field == "user-agent":
            agent = value.lower()
            relevant = agent == "*" or (bool(token) and agent == token)
            state = _ScanState.INSIDE if relevant else _ScanState.OUTSIDE
        elif field == "disallow" and state is _ScanState.INSIDE and value:
            disallow.append(requote_uri(value))

    return RobotsRuleSet(disallow=tuple(disallow))


class RobotsPolicyEvaluator:
    """Fetch an origin's robots.txt and decide whether a path may be fetched."""

    def __init__(
        self,
        fetcher: BoundedFetcher,
        agent_token: str,
        timeout_ms: int = 5_000,
    ) -> None:
        self.fetcher = fetcher
        self.agent_token = agent_token
        self.timeout_ms = timeout_ms

    def _emit(self, event_type: str, level: str = "info", **payload: object) -> None:
        emit_json_event(
            event_type,
            request_id=self.fetcher.request_id,
            level=level,
            component="robots",
            **payload,
        )

    def fetch_rules(self, target: TargetURL) -> RobotsRuleSet | None:
        """Return the rule set, or None when no policy could be obtained."""
        outcome: FetchOutcome = self.fetcher.fetch(
            target.robots_url,
            timeout_ms=self.timeout_ms,
            purpose="robots",
        )
        if not outcome.is_2xx:
            self._emit(
                "robots_unavailable",
                robots_url=target.robots_url,
                status_code=outcome.status_code,
                error_code=outcome.error_code.value if outcome.error_code else None,
                mode="allow_all",
            )
            return None
        return parse_robots(outcome.text(), self.agent_token)

    def is_allowed(self, target: TargetURL) -> bool:
        """Evaluate target against its origin's robots.txt; errors allow."""
        try:
            rules = self.fetch_rules(target)
            allowed = True if rules is None else rules.allows(target.path)
        except Exception as exc:
            self._emit(
                "robots_evaluation_error",
                level="warning",
                robots_url=target.robots_url,
                error_type=type(exc).__name__,
                error=str(exc),
                mode="allow_all",
            )
            return True

        self._emit(
            "robots_decision",
            robots_url=target.robots_url,
            path=target.path,
            allowed=allowed,
            rule_count=len(rules.disallow) if rules else 0,
        )
        return allowed
