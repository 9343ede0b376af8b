"""Core module for fetch-gateway."""

from core.models import (
    AddressClassification,
    ErrorKind,
    FetchErrorCode,
    FetchLog,
    FetchOutcome,
    GatewayResult,
    GatewayStage,
    TargetURL,
)
from core.config import GatewayConfig
from core.errors import GatewayError

__all__ = [
    "AddressClassification",
    "ErrorKind",
    "FetchErrorCode",
    "FetchLog",
    "FetchOutcome",
    "GatewayResult",
    "GatewayStage",
    "TargetURL",
    "GatewayConfig",
    "GatewayError",
]
