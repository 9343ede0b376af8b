"""
Gateway configuration for fetch-gateway.

Settings are loaded once at process start and are read-only afterwards.
The gateway receives a GatewayConfig instance at construction time; business
logic never reads module-level globals or the environment directly.

Design: Everything defaults to "safe" mode. Operators may tighten limits via
environment variables, but the protocol whitelist and the private-range
checks in fetcher.hosts cannot be switched off.
"""

from __future__ import annotations

import os
from ipaddress import ip_network
from typing import Mapping

from pydantic import BaseModel, ConfigDict, field_validator


ENV_PREFIX = "FETCH_GATEWAY_"

DEFAULT_USER_AGENT = "fetch-gateway/0.1 (+https://github.com/fetch-gateway/fetch-gateway)"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"


class GatewayConfig(BaseModel):
    """
    Immutable gateway settings.

    One instance is built at startup (usually via ``from_env``) and shared by
    every request; it holds no per-request state.
    """

    model_config = ConfigDict(frozen=True)

    # ========================================================================
    # Outbound identity
    # ========================================================================

    user_agent: str = DEFAULT_USER_AGENT
    """User-Agent header sent on every outbound request (must be descriptive)."""

    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    """Accept-Language header sent on every outbound request."""

    # ========================================================================
    # Request validation
    # ========================================================================

    allowed_protocols: frozenset[str] = frozenset({"http", "https"})
    """Only HTTP(S) allowed. No file://, gopher, ftp, etc."""

    # Checked in addition to the fixed private/loopback/link-local ranges.
    extra_blocked_ip_ranges: tuple[str, ...] = (
        "0.0.0.0/8",            # This network
        "224.0.0.0/4",          # Multicast
        "255.255.255.255/32",   # Broadcast
        "ff00::/8",             # IPv6 multicast
    )
    """Additional CIDR blocks rejected by the resolver guard."""

    # ========================================================================
    # Resource bounds
    # ========================================================================

    fetch_timeout_ms: int = 15_000
    """Wall-clock budget for the target fetch."""

    robots_timeout_ms: int = 5_000
    """Wall-clock budget for the robots.txt fetch."""

    max_body_bytes: int = 5_000_000
    """Largest response body read from upstream (5 MB)."""

    max_redirects: int = 5
    """Maximum redirect hops followed by the HTTP client."""

    # ========================================================================
    # Observability
    # ========================================================================

    log_fetches: bool = True
    """Emit one structured fetch_log line per outbound request."""

    @field_validator("user_agent")
    @classmethod
    def _user_agent_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("user_agent must not be empty")
        return value

    @field_validator("fetch_timeout_ms", "robots_timeout_ms", "max_body_bytes")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @field_validator("max_redirects")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @field_validator("allowed_protocols")
    @classmethod
    def _normalize_protocols(cls, value: frozenset[str]) -> frozenset[str]:
        protocols = frozenset(item.strip().lower().rstrip(":") for item in value if item.strip())
        if not protocols:
            raise ValueError("allowed_protocols must not be empty")
        return protocols

    @field_validator("extra_blocked_ip_ranges")
    @classmethod
    def _valid_cidrs(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for cidr in value:
            ip_network(cidr, strict=False)
        return value

    @property
    def agent_token(self) -> str:
        """Product token of the user agent, as matched in robots.txt groups."""
        product = self.user_agent.split("/", 1)[0].strip()
        return (product.split() or ["*"])[0].lower()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GatewayConfig":
        """
        Build configuration from ``FETCH_GATEWAY_*`` environment variables.

        Unset variables keep their defaults. List values are comma-separated.

        Raises:
            pydantic.ValidationError: If any value is out of range.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}

        for field_name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{field_name.upper()}")
            if raw is None or raw == "":
                continue
            if field_name in {"allowed_protocols", "extra_blocked_ip_ranges"}:
                overrides[field_name] = [item.strip() for item in raw.split(",") if item.strip()]
            elif field_name == "log_fetches":
                overrides[field_name] = raw.strip().lower() in {"1", "true", "yes", "on"}
            else:
                overrides[field_name] = raw

        return cls(**overrides)
