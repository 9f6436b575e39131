"""
Device classification based on hostname, address, and open ports.

Two independent stages, composed by the scanner:

- classify_by_hostname: keyword groups on the resolved hostname, with an
  address-octet guess when no hostname is known
- refine_from_ports: open-port patterns, only consulted while the
  category is still UNKNOWN
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ._types import DeviceCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationResult:
    """Best-guess OS label and device category."""
    os_label: str
    category: DeviceCategory


# Ordered keyword groups; the first group with a matching keyword wins
HOSTNAME_RULES: tuple[tuple[tuple[str, ...], str, DeviceCategory], ...] = (
    (("macbook", "imac", "mac-", "apple"), "macOS", DeviceCategory.COMPUTER),
    (("iphone", "ipad", "ipod"), "iOS", DeviceCategory.MOBILE),
    (("win", "pc-", "desktop", "laptop", "workstation"), "Windows", DeviceCategory.COMPUTER),
    (("android", "samsung", "pixel", "nexus"), "Android", DeviceCategory.MOBILE),
    (("router", "gateway", "linksys", "netgear", "asus", "tplink"), "Network Device", DeviceCategory.ROUTER),
    (("printer", "canon", "epson", "hp", "brother"), "Printer", DeviceCategory.PRINTER),
    (("iot", "smart", "alexa", "nest", "ring"), "IoT Device", DeviceCategory.IOT),
    (("server", "srv", "nas", "database"), "Server", DeviceCategory.SERVER),
    (("ubuntu", "debian", "centos", "fedora", "linux"), "Linux", DeviceCategory.COMPUTER),
    (("computer", "host"), "Computer", DeviceCategory.COMPUTER),
)

SSH_PORT = 22
WEB_PORTS = frozenset({80, 443, 8080})
RDP_PORT = 3389
VNC_PORT = 5900
PRINTER_PORTS = frozenset({631, 9100})
DATABASE_PORTS = frozenset({1433, 3306, 5432, 27017})

# Heuristic tuning constant: a web UI with this many open ports or fewer
# is treated as a router admin page rather than a server
ROUTER_MAX_OPEN_PORTS = 3

UNKNOWN = ClassificationResult("Unknown", DeviceCategory.UNKNOWN)


def infer_from_address(address: str) -> ClassificationResult:
    """Guess a device role from the last octet of its address."""
    try:
        last_octet = int(address.rsplit(".", 1)[-1])
    except ValueError:
        last_octet = 0

    if last_octet == 1:
        return ClassificationResult("Gateway/Router", DeviceCategory.ROUTER)
    if 2 <= last_octet <= 10:
        return ClassificationResult("Network Device", DeviceCategory.ROUTER)
    if 200 <= last_octet <= 254:
        return ClassificationResult("DHCP Client", DeviceCategory.COMPUTER)
    return UNKNOWN


def classify_by_hostname(hostname: str, address: str) -> ClassificationResult:
    """
    Stage A: classify from the hostname text.

    An empty hostname falls back to infer_from_address. A non-empty
    hostname that matches no keyword group is UNKNOWN.
    """
    hostname_lower = (hostname or "").lower()

    if hostname_lower:
        for keywords, os_label, category in HOSTNAME_RULES:
            if any(keyword in hostname_lower for keyword in keywords):
                return ClassificationResult(os_label, category)
        return UNKNOWN

    return infer_from_address(address)


def refine_from_ports(
    category: DeviceCategory,
    open_ports: Iterable[int],
) -> DeviceCategory:
    """
    Stage B: refine an UNKNOWN category from open-port patterns.

    A category already set by stage A is returned unchanged.
    """
    if category != DeviceCategory.UNKNOWN:
        return category

    port_set = set(open_ports)

    if SSH_PORT in port_set and port_set & {80, 443}:
        return DeviceCategory.SERVER
    if RDP_PORT in port_set:
        return DeviceCategory.COMPUTER
    if VNC_PORT in port_set:
        return DeviceCategory.COMPUTER
    if port_set & PRINTER_PORTS:
        return DeviceCategory.PRINTER
    if port_set & DATABASE_PORTS:
        return DeviceCategory.SERVER
    if port_set & WEB_PORTS:
        if len(port_set) <= ROUTER_MAX_OPEN_PORTS:
            return DeviceCategory.ROUTER
        return DeviceCategory.SERVER
    if not port_set:
        return DeviceCategory.COMPUTER

    return DeviceCategory.UNKNOWN


def classify_host(
    hostname: str,
    address: str,
    open_ports: Iterable[int],
) -> ClassificationResult:
    """Run both stages and return the combined result."""
    result = classify_by_hostname(hostname, address)
    category = refine_from_ports(result.category, open_ports)

    if category != result.category:
        logger.debug(
            f"{address} refined from {result.category.value} to {category.value} by open ports"
        )
        return ClassificationResult(result.os_label, category)

    return result
