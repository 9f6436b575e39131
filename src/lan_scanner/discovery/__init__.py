"""
Probing methods for network scanning.

- Reachability: is the host alive at the network layer (ping / TCP echo)
- Port scanning: TCP connect against the well-known port list
- Banner reading: passive greeting capture on open ports
- Hostname: reverse DNS lookup
- ARP cache: hardware address and vendor for hosts on the local link
"""

from .base import ReachabilityProbe
from .reachability import PingProbe, TCPEchoProbe, ReachabilityProber
from .port_scanner import PortScanner, PortScanResult
from .banner import BannerReader, parse_service_version
from .hostname import resolve_hostname
from .arp_cache import ARPCache, lookup_vendor

__all__ = [
    "ReachabilityProbe",
    "PingProbe",
    "TCPEchoProbe",
    "ReachabilityProber",
    "PortScanner",
    "PortScanResult",
    "BannerReader",
    "parse_service_version",
    "resolve_hostname",
    "ARPCache",
    "lookup_vendor",
]
