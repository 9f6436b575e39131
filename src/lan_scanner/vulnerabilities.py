"""
Rule-based vulnerability analysis.

Each discovered service is matched by lowercase service name against a
small static rule table. This is a minimal placeholder rule set for
common exposure problems, not a CVE database.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ._types import HostRecord, ServiceRecord, Severity, VulnerabilityRecord

logger = logging.getLogger(__name__)

STANDARD_HTTP_PORTS = frozenset({80, 8080})

# Banner substrings of SSH releases treated as outdated
OUTDATED_SSH_MARKERS = ("openssh_5", "openssh_6")


class VulnerabilityRule(ABC):
    """Base class for per-service rules."""

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Lowercase service name this rule applies to."""
        pass

    @abstractmethod
    def evaluate(self, host: str, service: ServiceRecord) -> Optional[VulnerabilityRecord]:
        """Return a finding for the service, or None."""
        pass

    def finding(
        self,
        host: str,
        service: ServiceRecord,
        severity: Severity,
        description: str,
        recommendation: str,
    ) -> VulnerabilityRecord:
        return VulnerabilityRecord(
            host=host,
            port=service.port,
            service=service.service,
            severity=severity,
            description=description,
            recommendation=recommendation,
        )


class TelnetRule(VulnerabilityRule):
    """Telnet sends everything, credentials included, in cleartext."""

    @property
    def service_name(self) -> str:
        return "telnet"

    def evaluate(self, host: str, service: ServiceRecord) -> Optional[VulnerabilityRecord]:
        return self.finding(
            host, service, Severity.HIGH,
            "Telnet service uses unencrypted communication.",
            "Disable Telnet and use SSH for secure remote access.",
        )


class FTPRule(VulnerabilityRule):
    """Plain FTP may expose credentials."""

    @property
    def service_name(self) -> str:
        return "ftp"

    def evaluate(self, host: str, service: ServiceRecord) -> Optional[VulnerabilityRecord]:
        return self.finding(
            host, service, Severity.MEDIUM,
            "FTP service may transmit credentials in plain text.",
            "Use SFTP or FTPS for secure file transfer. "
            "Ensure anonymous access is disabled if not needed.",
        )


class HTTPRule(VulnerabilityRule):
    """Unencrypted web traffic; informational when on an odd port."""

    @property
    def service_name(self) -> str:
        return "http"

    def evaluate(self, host: str, service: ServiceRecord) -> Optional[VulnerabilityRecord]:
        if service.port in STANDARD_HTTP_PORTS:
            return self.finding(
                host, service, Severity.LOW,
                "HTTP service transmits data unencrypted.",
                "Implement HTTPS for secure communication (SSL/TLS).",
            )
        return self.finding(
            host, service, Severity.INFO,
            "HTTP service running on a non-standard port.",
            "Ensure this is intended. Consider using HTTPS.",
        )


class SSHRule(VulnerabilityRule):
    """Flag old OpenSSH major versions; otherwise a configuration reminder."""

    @property
    def service_name(self) -> str:
        return "ssh"

    def evaluate(self, host: str, service: ServiceRecord) -> Optional[VulnerabilityRecord]:
        banner_lower = service.banner.lower()
        if any(marker in banner_lower for marker in OUTDATED_SSH_MARKERS):
            return self.finding(
                host, service, Severity.MEDIUM,
                f"Potentially outdated SSH version ({service.banner}).",
                "Ensure SSH server is updated to the latest version. "
                "Disable weak ciphers and use key-based authentication.",
            )
        return self.finding(
            host, service, Severity.INFO,
            "SSH service detected. Review configuration.",
            "Ensure strong configuration: disable root login, use key-based "
            "authentication, use strong ciphers and MACs, regularly update.",
        )


ALL_RULES: list[VulnerabilityRule] = [
    TelnetRule(),
    FTPRule(),
    HTTPRule(),
    SSHRule(),
]

RULES_BY_SERVICE = {rule.service_name: rule for rule in ALL_RULES}


def check_service(host: str, service: ServiceRecord) -> list[VulnerabilityRecord]:
    """Apply the matching rule, if any, to one service."""
    rule = RULES_BY_SERVICE.get(service.service.lower())
    if rule is None:
        return []
    record = rule.evaluate(host, service)
    return [record] if record else []


def sort_by_severity(findings: Iterable[VulnerabilityRecord]) -> list[VulnerabilityRecord]:
    """Most severe first; equal severities keep their original order."""
    return sorted(findings, key=lambda f: f.severity.rank, reverse=True)


def analyze_vulnerabilities(hosts: Iterable[HostRecord]) -> list[VulnerabilityRecord]:
    """
    Evaluate every open service on every host.

    Returns:
        All findings, sorted by severity descending (stable)
    """
    findings: list[VulnerabilityRecord] = []
    host_count = 0

    for host in hosts:
        host_count += 1
        for port in host.open_ports:
            service = host.services.get(port)
            if service is not None:
                findings.extend(check_service(host.address, service))

    logger.info(f"Vulnerability analysis: {len(findings)} findings across {host_count} hosts")
    return sort_by_severity(findings)


def vulnerabilities_by_host(
    findings: Iterable[VulnerabilityRecord],
    address: str,
) -> list[VulnerabilityRecord]:
    return [f for f in findings if f.host == address]


def vulnerabilities_by_severity(
    findings: Iterable[VulnerabilityRecord],
    severity: Severity,
) -> list[VulnerabilityRecord]:
    return [f for f in findings if f.severity == severity]
