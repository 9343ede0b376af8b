"""Fetcher subsystem: host guard, robots policy, and bounded HTTP fetches."""

from fetcher.guard import ResolverGuard
from fetcher.hosts import is_local_hostname, is_private_ipv4, is_private_ipv6
from fetcher.http import BoundedFetcher
from fetcher.logging import emit_fetch_log
from fetcher.robots import RobotsPolicyEvaluator, RobotsRuleSet, parse_robots

__all__ = [
    "BoundedFetcher",
    "ResolverGuard",
    "RobotsPolicyEvaluator",
    "RobotsRuleSet",
    "emit_fetch_log",
    "is_local_hostname",
    "is_private_ipv4",
    "is_private_ipv6",
    "parse_robots",
]
