"""Host classification: private/reserved ranges and local host aliases."""

from __future__ import annotations

import socket
from ipaddress import ip_address, ip_network
from typing import Iterable

from core.models import AddressClassification


LOCAL_HOSTNAMES = frozenset({"localhost", "0.0.0.0", "::1"})


def _ipv4_octets(ip: str) -> list[int] | None:
    """Split dotted-decimal text into 4 octets, or None if malformed."""
    parts = ip.strip().split(".")
    if len(parts) != 4:
        return None
    octets: list[int] = []
    for part in parts:
        if not part.isdigit() or not part.isascii():
            return None
        value = int(part)
        if value > 255:
            return None
        octets.append(value)
    return octets


def is_private_ipv4(ip: str) -> bool:
    """Return True for 10/8, 172.16/12, 192.168/16, 127/8 and 169.254/16."""
    octets = _ipv4_octets(ip or "")
    if octets is None:
        return False
    first, second = octets[0], octets[1]
    return (
        first == 10
        or (first == 172 and 16 <= second <= 31)
        or (first == 192 and second == 168)
        or first == 127
        or (first == 169 and second == 254)
    )


def is_private_ipv6(ip: str) -> bool:
    """Return True for ::1 and the fc00::/7 and fe80::/10 text prefixes."""
    text = (ip or "").strip().lower()
    return text == "::1" or text.startswith(("fc", "fd", "fe80:"))


def is_local_hostname(name: str) -> bool:
    """Return True for obvious local aliases (localhost, 0.0.0.0, ::1)."""
    host = (name or "").strip().lower()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if host.endswith(".") and host != ".":
        host = host[:-1]
    return host in LOCAL_HOSTNAMES


def is_private_address(ip: str, family: int) -> bool:
    """Dispatch the private-range check on the resolved address family."""
    if family == socket.AF_INET:
        return is_private_ipv4(ip)
    if family == socket.AF_INET6:
        return is_private_ipv6(ip)
    return False


def in_blocked_networks(ip: str, networks: Iterable) -> bool:
    """Check if an IP is inside any of the given networks; malformed → False."""
    try:
        ip_obj = ip_address(ip.split("%", 1)[0])
    except ValueError:
        return False
    return any(ip_obj.version == network.version and ip_obj in network for network in networks)


def blocked_networks(cidrs: Iterable[str]) -> list:
    """Build a network list from CIDR strings."""
    return [ip_network(cidr, strict=False) for cidr in cidrs]


def classify_address(ip: str, family: int) -> AddressClassification:
    """Name the range a resolved address falls in."""
    text = (ip or "").strip().lower()
    if family == socket.AF_INET:
        octets = _ipv4_octets(text)
        if octets is None:
            return AddressClassification.UNRESOLVABLE
        if octets[0] == 127:
            return AddressClassification.LOOPBACK
        if octets[0] == 169 and octets[1] == 254:
            return AddressClassification.LINK_LOCAL
        if is_private_ipv4(text):
            return AddressClassification.PRIVATE_OR_RESERVED
        return AddressClassification.PUBLIC

    if family == socket.AF_INET6:
        if text == "::1":
            return AddressClassification.LOOPBACK
        if text.startswith("fe80:"):
            return AddressClassification.LINK_LOCAL
        if is_private_ipv6(text):
            return AddressClassification.PRIVATE_OR_RESERVED
        return AddressClassification.PUBLIC

    return AddressClassification.UNRESOLVABLE
