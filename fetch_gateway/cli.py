"""Minimal CLI entrypoint for fetch-gateway."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any
from typing import Sequence
from uuid import uuid4

import jsonschema

from core.config import GatewayConfig
from core.structured_logging import emit_json_event
from fetch_gateway.gateway import FetchGateway
from fetch_gateway.handler import handle_request


PROJECT_ROOT = Path(__file__).resolve().parent.parent
SCHEMAS_DIR = PROJECT_ROOT / "schemas"
RESPONSE_SCHEMA = SCHEMAS_DIR / "gateway_response.schema.json"


def _resolve_command_request_id(args: argparse.Namespace) -> str:
    """Resolve request_id from CLI args or create one for command-level tracing."""
    explicit = getattr(args, "request_id", None)
    if explicit:
        return str(explicit)
    return str(uuid4())


def _emit_cli_event(
    event_type: str,
    *,
    request_id: str,
    command: str,
    **payload: Any,
) -> str:
    """Emit one structured CLI event line with standard fields."""
    return emit_json_event(
        event_type,
        request_id=request_id,
        component="cli",
        command=command,
        **payload,
    )


def _validate_schema_file(path: Path) -> None:
    """Validate that a JSON schema file is well-formed and has required top-level keys."""
    data = json.loads(path.read_text(encoding="utf-8"))
    required_keys = {"$schema", "type", "oneOf"}
    missing = required_keys.difference(data)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ValueError(f"{path.name} missing required schema keys: {missing_str}")
    jsonschema.Draft202012Validator.check_schema(data)


def _cmd_validate_schemas(_: argparse.Namespace) -> int:
    """Validate schema files for basic structural correctness."""
    request_id = str(uuid4())
    if not RESPONSE_SCHEMA.exists():
        raise FileNotFoundError(f"Schema file not found: {RESPONSE_SCHEMA}")
    _validate_schema_file(RESPONSE_SCHEMA)
    _emit_cli_event(
        "cli_validate_schemas_completed",
        request_id=request_id,
        command="validate-schemas",
        schema_files=[str(RESPONSE_SCHEMA)],
    )
    return 0


def _build_config(args: argparse.Namespace) -> GatewayConfig:
    """Load config from the environment, then apply CLI overrides."""
    config = GatewayConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.timeout_ms is not None:
        overrides["fetch_timeout_ms"] = args.timeout_ms
    if args.robots_timeout_ms is not None:
        overrides["robots_timeout_ms"] = args.robots_timeout_ms
    if args.quiet:
        overrides["log_fetches"] = False
    if not overrides:
        return config
    return GatewayConfig(**{**config.model_dump(), **overrides})


def _cmd_fetch(args: argparse.Namespace) -> int:
    """Fetch one URL through the gateway and print the JSON response."""
    request_id = _resolve_command_request_id(args)
    gateway = FetchGateway(_build_config(args))
    response = handle_request({"url": args.url}, gateway, request_id=request_id)

    sys.stdout.write(response.body + "\n")
    _emit_cli_event(
        "cli_fetch_completed",
        request_id=request_id,
        command="fetch",
        url=args.url,
        status_code=response.status_code,
    )
    return 0 if 200 <= response.status_code < 300 else 1


def build_parser() -> argparse.ArgumentParser:
    """Create argument parser for the fetch-gateway CLI."""
    parser = argparse.ArgumentParser(
        prog="fetch-gateway",
        description="SSRF-guarded, robots-aware URL fetch gateway",
    )
    parser.add_argument("--version", action="version", version="fetch-gateway 0.1.0")

    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser(
        "validate-schemas",
        help="Validate the JSON response schema used by contract tests",
    )
    validate_parser.set_defaults(func=_cmd_validate_schemas)

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Fetch one URL through the gateway and print the JSON response",
    )
    fetch_parser.add_argument("--url", required=True, help="Target URL (http or https)")
    fetch_parser.add_argument("--request-id", help="Optional explicit request ID for logging")
    fetch_parser.add_argument(
        "--timeout-ms",
        type=int,
        help="Override the target fetch timeout in milliseconds",
    )
    fetch_parser.add_argument(
        "--robots-timeout-ms",
        type=int,
        help="Override the robots.txt fetch timeout in milliseconds",
    )
    fetch_parser.add_argument("--quiet", action="store_true", help="Suppress per-fetch log lines")
    fetch_parser.set_defaults(func=_cmd_fetch)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Execute CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        return int(args.func(args))
    except Exception as exc:
        request_id = _resolve_command_request_id(args)
        _emit_cli_event(
            "cli_error",
            request_id=request_id,
            command=str(getattr(args, "command", "unknown")),
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return 1


def cli() -> None:
    """Console-script entrypoint."""
    raise SystemExit(main())


if __name__ == "__main__":
    raise SystemExit(main())
