"""
LAN Scanner - host discovery and service assessment for local IPv4 subnets.

Finds active hosts on a subnet, probes each for open TCP services on a
fixed list of well-known ports, guesses the device type and OS from weak
signals (hostname, address, open ports), and scores the discovered
services against a small vulnerability rule set.

Pipeline:
    range expansion -> reachability sweep -> per-host deep scan
    (hostname, ports, banners, classification) -> vulnerability analysis

Nothing is persisted: each scan's results live in memory until the next
scan or clear_results().
"""

__version__ = "1.0.0"

from ._types import (
    DeviceCategory,
    HostRecord,
    ScanProgress,
    ScanState,
    ScanSummary,
    ServiceRecord,
    Severity,
    VulnerabilityRecord,
)
from .ranges import InvalidRangeError, expand_range
from .scanner_service import NetworkScanner, ScanError

__all__ = [
    "__version__",
    "DeviceCategory",
    "HostRecord",
    "ScanProgress",
    "ScanState",
    "ScanSummary",
    "ServiceRecord",
    "Severity",
    "VulnerabilityRecord",
    "InvalidRangeError",
    "expand_range",
    "NetworkScanner",
    "ScanError",
]
