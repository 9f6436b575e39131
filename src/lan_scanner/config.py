"""
LAN scanner configuration.

Loaded from dataclass defaults, environment variables, or a YAML file.
Timeouts are kept in milliseconds here and converted to seconds by the
scanner.
"""

from __future__ import annotations

import ipaddress
import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ._types import COMMON_PORTS

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_RANGE = "192.168.1.0/24"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _is_private_lan(network: ipaddress.IPv4Network) -> bool:
    return any(
        network.subnet_of(ipaddress.IPv4Network(block))
        for block in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")
    )


def detect_local_network_range() -> str:
    """Auto-detect the scannable subnet from local network interfaces.

    Parses `ip -4 -o addr show` and returns the CIDR of the first
    non-loopback private network. Falls back to DEFAULT_NETWORK_RANGE.
    """
    try:
        result = subprocess.run(
            ["ip", "-4", "-o", "addr", "show"],
            capture_output=True, text=True, timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"Could not auto-detect network range: {e}")
        return DEFAULT_NETWORK_RANGE

    if result.returncode == 0:
        for line in result.stdout.splitlines():
            parts = line.split()
            # Format: "2: eth0    inet 192.168.88.241/24 brd ..."
            iface = parts[1] if len(parts) > 1 else ""
            if iface == "lo":
                continue
            for part in parts:
                if "/" not in part:
                    continue
                try:
                    network = ipaddress.IPv4Network(part, strict=False)
                except ValueError:
                    continue
                if not network.is_loopback and _is_private_lan(network):
                    logger.info(f"Auto-detected network range: {network}")
                    return str(network)
                break

    logger.warning(f"Could not auto-detect network range, using {DEFAULT_NETWORK_RANGE}")
    return DEFAULT_NETWORK_RANGE


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ScannerConfig:
    """Network scan configuration."""

    # CIDR to scan; empty or "auto" means detect from local interfaces
    network_range: str = ""

    # Ports probed on every reachable host
    ports: list[int] = field(default_factory=lambda: list(COMMON_PORTS))

    # Timeouts (milliseconds)
    reachability_timeout_ms: int = 500
    port_timeout_ms: int = 1500
    banner_connect_timeout_ms: int = 1000
    banner_read_timeout_ms: int = 1000

    # Concurrency
    discovery_batch_size: int = 25
    port_batch_size: int = 8

    # Enrichment
    resolve_hostnames: bool = True
    use_arp_cache: bool = True

    # Logging
    log_level: str = "INFO"

    def resolved_range(self) -> str:
        """The configured range, auto-detecting when unset."""
        if not self.network_range or self.network_range.strip().lower() == "auto":
            return detect_local_network_range()
        return self.network_range.strip()

    @classmethod
    def from_env(cls) -> "ScannerConfig":
        """Load configuration from environment variables."""
        config = cls()

        config.network_range = os.getenv("NETWORK_RANGE", "")

        if ports := os.getenv("SCAN_PORTS"):
            config.ports = [int(p) for p in ports.split(",") if p.strip()]

        config.reachability_timeout_ms = int(os.getenv("REACHABILITY_TIMEOUT_MS", "500"))
        config.port_timeout_ms = int(os.getenv("PORT_TIMEOUT_MS", "1500"))
        config.banner_connect_timeout_ms = int(os.getenv("BANNER_CONNECT_TIMEOUT_MS", "1000"))
        config.banner_read_timeout_ms = int(os.getenv("BANNER_READ_TIMEOUT_MS", "1000"))

        config.discovery_batch_size = int(os.getenv("DISCOVERY_BATCH_SIZE", "25"))
        config.port_batch_size = int(os.getenv("PORT_BATCH_SIZE", "8"))

        config.resolve_hostnames = _env_bool("RESOLVE_HOSTNAMES", True)
        config.use_arp_cache = _env_bool("USE_ARP_CACHE", True)

        config.log_level = os.getenv("LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "ScannerConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "network_range" in data:
            config.network_range = str(data["network_range"] or "")

        if "ports" in data:
            config.ports = [int(p) for p in data["ports"]]

        if "timeouts" in data:
            t = data["timeouts"]
            config.reachability_timeout_ms = t.get("reachability_ms", 500)
            config.port_timeout_ms = t.get("port_ms", 1500)
            config.banner_connect_timeout_ms = t.get("banner_connect_ms", 1000)
            config.banner_read_timeout_ms = t.get("banner_read_ms", 1000)

        if "batches" in data:
            b = data["batches"]
            config.discovery_batch_size = b.get("discovery", 25)
            config.port_batch_size = b.get("ports", 8)

        config.resolve_hostnames = data.get("resolve_hostnames", True)
        config.use_arp_cache = data.get("use_arp_cache", True)
        config.log_level = data.get("log_level", "INFO")

        return config

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if not self.ports:
            errors.append("No ports configured")

        bad_ports = [p for p in self.ports if p < 1 or p > 65535]
        if bad_ports:
            errors.append(f"Invalid ports: {bad_ports}")

        for name in (
            "reachability_timeout_ms",
            "port_timeout_ms",
            "banner_connect_timeout_ms",
            "banner_read_timeout_ms",
            "discovery_batch_size",
            "port_batch_size",
        ):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"Invalid log level: {self.log_level}")

        return errors


# Example scanner.yaml:
"""
network_range: "192.168.88.0/24"   # or "auto"

ports: [21, 22, 23, 80, 443, 3389, 8080]

timeouts:
  reachability_ms: 500
  port_ms: 1500
  banner_connect_ms: 1000
  banner_read_ms: 1000

batches:
  discovery: 25
  ports: 8

resolve_hostnames: true
use_arp_cache: true
log_level: "INFO"
"""
