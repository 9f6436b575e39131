"""
Type definitions for the LAN scanner.

These dataclasses define the core domain model for host discovery,
service probing, classification, and vulnerability findings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def now_utc() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class DeviceCategory(str, Enum):
    """Device classification categories."""
    ROUTER = "router"
    COMPUTER = "computer"
    MOBILE = "mobile"
    PRINTER = "printer"
    IOT = "iot"
    SERVER = "server"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """Finding severity, highest first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Numeric rank; larger is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}


class ScanState(str, Enum):
    """Orchestrator lifecycle."""
    IDLE = "idle"
    EXPANDING = "expanding"
    DISCOVERING = "discovering"
    DEEP_SCANNING = "deep_scanning"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class ServiceRecord:
    """A service answering on an open port."""
    port: int
    protocol: str = "tcp"
    service: str = "Unknown"
    version: Optional[str] = None
    banner: str = ""


@dataclass
class HostRecord:
    """
    A discovered host.

    The address is the identity key and cannot be changed once set.
    Open ports are always kept sorted ascending without duplicates.
    """
    address: str
    hostname: str = ""
    os_label: str = ""
    is_reachable: bool = False
    open_ports: list[int] = field(default_factory=list)
    services: dict[int, ServiceRecord] = field(default_factory=dict)
    response_time_ms: int = 0
    mac_address: str = ""
    vendor: str = ""
    signal_strength: int = -1  # dBm, -1 if unknown
    category: DeviceCategory = DeviceCategory.UNKNOWN
    last_seen: datetime = field(default_factory=now_utc)
    vulnerability_count: int = 0

    def __setattr__(self, name: str, value) -> None:
        if name == "address" and "address" in self.__dict__:
            raise AttributeError("HostRecord.address is immutable")
        if name == "open_ports":
            value = sorted(set(value))
        super().__setattr__(name, value)


@dataclass(frozen=True)
class ScanProgress:
    """Full snapshot of scan progress, re-emitted on every change."""
    current_host: str = ""
    completed_hosts: int = 0
    total_hosts: int = 0
    current_operation: str = ""
    is_complete: bool = False


@dataclass(frozen=True)
class VulnerabilityRecord:
    """A risk finding for one service on one host."""
    host: str
    port: int
    service: str
    severity: Severity
    description: str
    recommendation: str


@dataclass
class ScanSummary:
    """In-memory summary of the most recent scan."""
    network_range: str
    started_at: datetime = field(default_factory=now_utc)
    completed_at: Optional[datetime] = None
    candidates: int = 0
    hosts_found: int = 0
    state: ScanState = ScanState.IDLE

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


# Ports probed on every reachable host, in scan order
COMMON_PORTS = (
    21, 22, 23, 25, 53, 80, 110, 135, 139, 143, 443, 993, 995,
    1433, 3306, 3389, 5432, 5900, 8080, 8443, 9200, 27017,
)

SERVICE_NAMES = {
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    135: "RPC",
    139: "NetBIOS",
    143: "IMAP",
    443: "HTTPS",
    993: "IMAPS",
    995: "POP3S",
    1433: "MSSQL",
    3306: "MySQL",
    3389: "RDP",
    5432: "PostgreSQL",
    5900: "VNC",
    8080: "HTTP-Alt",
    8443: "HTTPS-Alt",
    9200: "Elasticsearch",
    27017: "MongoDB",
}


def service_name_for(port: int) -> str:
    """Static port to service-name lookup."""
    return SERVICE_NAMES.get(port, "Unknown")
