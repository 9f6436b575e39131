"""
Discovered-host container and host ordering.
"""

from __future__ import annotations

import ipaddress
from enum import Enum
from typing import Iterable, Optional

from ._types import HostRecord


class HostRegistry:
    """
    Address-keyed host records.

    add_if_absent inserts at most once per address. The registry is owned
    by the scanner's event loop; all mutation happens between awaits, so
    no lock is needed.
    """

    def __init__(self) -> None:
        self._hosts: dict[str, HostRecord] = {}

    def add_if_absent(self, host: HostRecord) -> bool:
        """Insert host unless its address is already known. Returns True if inserted."""
        if host.address in self._hosts:
            return False
        self._hosts[host.address] = host
        return True

    def replace(self, host: HostRecord) -> None:
        """Store host, replacing any record with the same address."""
        self._hosts[host.address] = host

    def get(self, address: str) -> Optional[HostRecord]:
        return self._hosts.get(address)

    def addresses(self) -> list[str]:
        """Addresses in insertion order."""
        return list(self._hosts)

    def snapshot(self) -> dict[str, HostRecord]:
        return dict(self._hosts)

    def clear(self) -> None:
        self._hosts.clear()

    def __contains__(self, address: object) -> bool:
        return address in self._hosts

    def __len__(self) -> int:
        return len(self._hosts)


class SortOption(str, Enum):
    """Host list orderings."""
    IP_ADDRESS = "ip_address"
    HOSTNAME = "hostname"
    SIGNAL_STRENGTH = "signal_strength"
    RESPONSE_TIME = "response_time"
    OPEN_PORTS = "open_ports"
    LAST_SEEN = "last_seen"
    DEVICE_TYPE = "device_type"


def _address_key(host: HostRecord) -> int:
    try:
        return int(ipaddress.IPv4Address(host.address))
    except ValueError:
        return 0


def sort_hosts(hosts: Iterable[HostRecord], option: SortOption = SortOption.IP_ADDRESS) -> list[HostRecord]:
    """Return hosts ordered by the given option."""
    hosts = list(hosts)

    if option == SortOption.IP_ADDRESS:
        return sorted(hosts, key=_address_key)
    if option == SortOption.HOSTNAME:
        return sorted(hosts, key=lambda h: h.hostname or h.address)
    if option == SortOption.SIGNAL_STRENGTH:
        return sorted(hosts, key=lambda h: h.signal_strength, reverse=True)
    if option == SortOption.RESPONSE_TIME:
        return sorted(hosts, key=lambda h: h.response_time_ms)
    if option == SortOption.OPEN_PORTS:
        return sorted(hosts, key=lambda h: len(h.open_ports), reverse=True)
    if option == SortOption.LAST_SEEN:
        return sorted(hosts, key=lambda h: h.last_seen, reverse=True)
    if option == SortOption.DEVICE_TYPE:
        return sorted(hosts, key=lambda h: h.category.name)

    raise ValueError(f"Unknown sort option: {option}")
