"""
Subnet range expansion.

Turns an IPv4 CIDR string into the bounded list of candidate host
addresses probed during discovery.
"""

from __future__ import annotations

import ipaddress
import logging

logger = logging.getLogger(__name__)

MIN_PREFIX = 16
MAX_PREFIX = 30

# Ranges wider than a /24 are capped to bound scan time and memory
MAX_HOSTS_LARGE_RANGE = 254 * 2

FALLBACK_PREFIX = "192.168.1."


class InvalidRangeError(ValueError):
    """Raised when a CIDR string cannot be scanned."""


def parse_range(network_range: str) -> tuple[int, int]:
    """
    Parse a CIDR string strictly.

    Returns:
        (address as integer, prefix length)

    Raises:
        InvalidRangeError: malformed input, non-IPv4 address or a prefix
            outside the supported /16 to /30 window
    """
    parts = (network_range or "").strip().split("/")
    if len(parts) != 2:
        raise InvalidRangeError(f"Invalid network range format: {network_range!r}")

    address_text, prefix_text = parts
    try:
        address = ipaddress.IPv4Address(address_text)
    except ValueError as e:
        raise InvalidRangeError(f"Only IPv4 is supported: {address_text!r}") from e

    try:
        prefix = int(prefix_text)
    except ValueError as e:
        raise InvalidRangeError(f"Invalid prefix length: {prefix_text!r}") from e

    if prefix < MIN_PREFIX or prefix > MAX_PREFIX:
        raise InvalidRangeError(
            f"Prefix /{prefix} out of supported range ({MIN_PREFIX}-{MAX_PREFIX})"
        )

    return int(address), prefix


def fallback_range() -> list[str]:
    """The default 192.168.1.1 - 192.168.1.254 candidate list."""
    return [f"{FALLBACK_PREFIX}{i}" for i in range(1, 255)]


def expand_range(network_range: str) -> list[str]:
    """
    Expand a CIDR string into candidate host addresses.

    Network and broadcast addresses are excluded. Ranges with more than
    8 host bits are capped at MAX_HOSTS_LARGE_RANGE addresses. Any parse
    failure falls back to the default /24 instead of failing the scan.
    """
    try:
        address, prefix = parse_range(network_range)
    except InvalidRangeError as e:
        logger.warning(f"{e}; falling back to {FALLBACK_PREFIX}0/24")
        return fallback_range()

    host_bits = 32 - prefix
    mask = (0xFFFFFFFF << host_bits) & 0xFFFFFFFF
    base = address & mask
    broadcast = base | (~mask & 0xFFFFFFFF)
    limit = MAX_HOSTS_LARGE_RANGE if host_bits > 8 else None

    hosts: list[str] = []
    seen: set[int] = set()
    for value in range(base + 1, broadcast):
        if limit is not None and len(hosts) >= limit:
            break
        if value in seen:
            continue
        seen.add(value)
        hosts.append(str(ipaddress.IPv4Address(value)))

    logger.debug(f"Expanded {network_range} to {len(hosts)} candidate hosts")
    return hosts
