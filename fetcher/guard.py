"""Resolver guard: reject hosts that are, or resolve to, private addresses."""

from __future__ import annotations

import socket
from collections.abc import Callable
from typing import Iterable

from core.errors import BlockedAddress, BlockedHost
from core.models import AddressClassification
from fetcher.hosts import classify_address, in_blocked_networks, is_local_hostname, is_private_address


Resolver = Callable[[str], tuple[int, str] | None]


def _resolve_first_address(hostname: str) -> tuple[int, str] | None:
    """Resolve hostname once and return (family, address) of the first answer.

    Addresses are taken as the resolver returns them: no IPv4-mapped or
    synthesized forms. Returns None if resolution fails.
    """
    try:
        infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError):
        return None
    for family, _, _, _, sockaddr in infos:
        if family in (socket.AF_INET, socket.AF_INET6):
            return family, str(sockaddr[0])
    return None


class ResolverGuard:
    """Block local aliases before DNS and private addresses after it.

    Resolution failures are not an error here: a host that does not resolve
    cannot be privately addressed, and the fetch will surface the failure.
    """

    def __init__(
        self,
        extra_blocked_networks: Iterable = (),
        resolver: Resolver | None = None,
    ) -> None:
        self.extra_blocked_networks = list(extra_blocked_networks)
        self._resolve = resolver or _resolve_first_address

    def assert_not_private_host(self, hostname: str) -> AddressClassification:
        """Raise BlockedHost/BlockedAddress, else return the classification."""
        if is_local_hostname(hostname):
            raise BlockedHost()

        resolved = self._resolve(hostname)
        if resolved is None:
            return AddressClassification.UNRESOLVABLE

        family, address = resolved
        if is_private_address(address, family):
            raise BlockedAddress()
        if in_blocked_networks(address, self.extra_blocked_networks):
            raise BlockedAddress()
        return classify_address(address, family)
