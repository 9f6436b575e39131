"""
Network Scanner - scan orchestration.

Sequences one scan through its phases:

    IDLE -> EXPANDING -> DISCOVERING -> DEEP_SCANNING -> COMPLETE

with CANCELLED reachable from discovery or deep scan, and ERROR on an
unexpected failure. Discovery probes candidates in concurrent batches;
deep scanning visits active hosts one at a time (port probing inside a
host is concurrent).
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
import time
from dataclasses import asdict
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from ._types import (
    HostRecord,
    ScanProgress,
    ScanState,
    ScanSummary,
    VulnerabilityRecord,
    now_utc,
)
from .classifier import classify_host
from .config import ScannerConfig
from .discovery import (
    ARPCache,
    BannerReader,
    PortScanner,
    ReachabilityProber,
    resolve_hostname,
)
from .events import HostListener, ProgressListener, ScanEvents
from .host_registry import HostRegistry
from .ranges import expand_range
from .vulnerabilities import analyze_vulnerabilities, sort_by_severity

logger = logging.getLogger(__name__)

OP_STARTING = "Starting network scan..."
OP_DISCOVERING = "Discovering hosts..."
OP_SCANNING = "Scanning ports..."
OP_COMPLETED = "Scan completed"
OP_STOPPED = "Scan stopped"


class ScanError(Exception):
    """Raised when a scan cannot run or fails unexpectedly."""


class NetworkScanner:
    """
    Discovers hosts on a subnet, probes their services, and classifies them.

    Collaborators are injectable so tests can substitute fakes for the
    network-facing parts.
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        prober: Optional[ReachabilityProber] = None,
        port_scanner: Optional[PortScanner] = None,
        resolver: Optional[Callable[[str], Awaitable[str]]] = None,
        arp_cache: Optional[ARPCache] = None,
    ):
        """
        Initialize the scanner.

        Args:
            config: Scan configuration (defaults if None)
            prober: Reachability prober for the discovery phase
            port_scanner: Per-host port scanner for the deep-scan phase
            resolver: Async address -> hostname lookup
            arp_cache: ARP table reader for hardware addresses
        """
        self.config = config or ScannerConfig()
        self.events = ScanEvents()

        self.prober = prober or ReachabilityProber()
        self.port_scanner = port_scanner or PortScanner(
            ports=self.config.ports,
            timeout=self.config.port_timeout_ms / 1000,
            batch_size=self.config.port_batch_size,
            banner_reader=BannerReader(
                connect_timeout=self.config.banner_connect_timeout_ms / 1000,
                read_timeout=self.config.banner_read_timeout_ms / 1000,
            ),
        )
        self.resolver = resolver or resolve_hostname
        self.arp_cache = arp_cache or ARPCache()

        self.state = ScanState.IDLE
        self.last_summary: Optional[ScanSummary] = None

        self._hosts = HostRegistry()
        self._vulnerabilities: list[VulnerabilityRecord] = []
        self._cancel_event = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def vulnerabilities(self) -> list[VulnerabilityRecord]:
        """Findings from the latest analysis."""
        return list(self._vulnerabilities)

    def cancel(self) -> None:
        """Request a cooperative stop. Safe to call repeatedly."""
        if self._running and not self._cancel_event.is_set():
            logger.info("Scan cancellation requested")
        self._cancel_event.set()

    def get_discovered_hosts(self) -> dict[str, HostRecord]:
        return self._hosts.snapshot()

    def clear_results(self) -> None:
        self._hosts.clear()
        self._vulnerabilities = []

    # -------------------------------------------------------------------------
    # Scan
    # -------------------------------------------------------------------------

    async def scan(
        self,
        network_range: str,
        on_progress: Optional[ProgressListener] = None,
        on_host_discovered: Optional[HostListener] = None,
    ) -> list[HostRecord]:
        """
        Run a full scan of network_range.

        Args:
            network_range: CIDR string; invalid ranges fall back to the
                default /24 rather than failing
            on_progress: Listener for progress snapshots during this scan
            on_host_discovered: Listener for host records during this scan

        Returns:
            Fully probed hosts in deep-scan completion order. After
            cancel(), only hosts finished before the stop are returned.

        Raises:
            ScanError: a scan is already running, or the scan failed
        """
        if self._running:
            raise ScanError("A scan is already running")

        self._running = True
        self._cancel_event.clear()
        if on_progress:
            self.events.add_progress_listener(on_progress)
        if on_host_discovered:
            self.events.add_host_listener(on_host_discovered)

        try:
            return await self._run_scan(network_range)
        finally:
            if on_progress:
                self.events.remove_progress_listener(on_progress)
            if on_host_discovered:
                self.events.remove_host_listener(on_host_discovered)
            self._running = False

    async def _run_scan(self, network_range: str) -> list[HostRecord]:
        summary = ScanSummary(network_range=network_range)
        self.last_summary = summary
        self._hosts.clear()
        self._vulnerabilities = []

        active: list[str] = []
        results: list[HostRecord] = []

        logger.info(f"Starting scan of {network_range}")

        try:
            self._set_state(ScanState.EXPANDING)
            self.events.emit_progress(ScanProgress(current_operation=OP_STARTING, total_hosts=0))
            candidates = expand_range(network_range)
            summary.candidates = len(candidates)

            self._set_state(ScanState.DISCOVERING)
            active = await self._discover(candidates)
            logger.info(f"Discovery found {len(active)} active hosts out of {len(candidates)}")

            if not self._cancel_event.is_set():
                self._set_state(ScanState.DEEP_SCANNING)
                if self.config.use_arp_cache:
                    await self.arp_cache.refresh()
                await self._deep_scan(active, results)

            if self._cancel_event.is_set():
                self._finish_cancelled(results, active)
            else:
                self._set_state(ScanState.COMPLETE)
                self.events.emit_progress(ScanProgress(
                    completed_hosts=len(active),
                    total_hosts=len(active),
                    current_operation=OP_COMPLETED,
                    is_complete=True,
                ))
                logger.info(f"Scan completed: {len(results)} hosts scanned")

            return results

        except asyncio.CancelledError:
            self._finish_cancelled(results, active)
            raise

        except Exception as e:
            self._set_state(ScanState.ERROR)
            logger.error(f"Scan failed: {e}")
            raise ScanError(f"Scan of {network_range} failed: {e}") from e

        finally:
            summary.completed_at = now_utc()
            summary.hosts_found = len(results)
            summary.state = self.state

    def _set_state(self, state: ScanState) -> None:
        logger.debug(f"Scan state {self.state.value} -> {state.value}")
        self.state = state

    def _finish_cancelled(self, results: list[HostRecord], active: list[str]) -> None:
        self._set_state(ScanState.CANCELLED)
        self.events.emit_progress(ScanProgress(
            completed_hosts=len(results),
            total_hosts=len(active),
            current_operation=OP_STOPPED,
            is_complete=True,
        ))
        logger.info(f"Scan stopped: {len(results)} of {len(active)} hosts fully scanned")

    async def _discover(self, candidates: list[str]) -> list[str]:
        """Probe candidates in batches; return active addresses in discovery order."""
        total = len(candidates)
        timeout = self.config.reachability_timeout_ms / 1000
        batch_size = self.config.discovery_batch_size
        active: list[str] = []
        completed = 0

        async def probe(address: str) -> None:
            nonlocal completed
            if self._cancel_event.is_set():
                return
            try:
                if await self.prober.is_reachable(address, timeout):
                    record = HostRecord(address=address, is_reachable=True)
                    if self._hosts.add_if_absent(record):
                        active.append(address)
                        logger.debug(f"Host {address} is up")
                        self.events.emit_host(record)
            except Exception as e:
                logger.debug(f"Probe of {address} failed: {e}")
            finally:
                completed += 1
                self.events.emit_progress(ScanProgress(
                    current_host=address,
                    completed_hosts=completed,
                    total_hosts=total,
                    current_operation=OP_DISCOVERING,
                ))

        for start in range(0, total, batch_size):
            if self._cancel_event.is_set():
                logger.info("Discovery stopped early")
                break
            batch = candidates[start:start + batch_size]
            await asyncio.gather(*(probe(address) for address in batch))

        return active

    async def _deep_scan(self, active: list[str], results: list[HostRecord]) -> None:
        """Scan active hosts one at a time, appending finished records to results."""
        for index, address in enumerate(active):
            if self._cancel_event.is_set():
                break

            self.events.emit_progress(ScanProgress(
                current_host=address,
                completed_hosts=index,
                total_hosts=len(active),
                current_operation=OP_SCANNING,
            ))

            host = await self.scan_host_detailed(address)

            # A host still in flight when cancel() arrived is dropped
            if self._cancel_event.is_set():
                logger.debug(f"Discarding partial scan of {address}")
                break

            results.append(host)
            self._hosts.replace(host)
            self.events.emit_host(host)

    async def scan_host_detailed(self, address: str) -> HostRecord:
        """Resolve, port scan, and classify a single host."""
        started = time.monotonic()
        try:
            hostname = ""
            if self.config.resolve_hostnames:
                hostname = await self.resolver(address)

            port_result = await self.port_scanner.scan(address, cancel_event=self._cancel_event)
            response_time_ms = int((time.monotonic() - started) * 1000)

            classification = classify_host(hostname, address, port_result.open_ports)

            mac_address, vendor = "", ""
            if self.config.use_arp_cache:
                mac_address, vendor = self.arp_cache.lookup(address)

        except Exception as e:
            logger.warning(f"Deep scan of {address} failed: {e}")
            return HostRecord(address=address, is_reachable=False)

        logger.debug(
            f"{address}: {classification.category.value} ({classification.os_label}), "
            f"ports {port_result.open_ports}"
        )

        return HostRecord(
            address=address,
            hostname=hostname,
            os_label=classification.os_label,
            is_reachable=True,
            open_ports=port_result.open_ports,
            services=port_result.services,
            response_time_ms=response_time_ms,
            mac_address=mac_address,
            vendor=vendor,
            category=classification.category,
            last_seen=now_utc(),
        )

    # -------------------------------------------------------------------------
    # Vulnerability analysis
    # -------------------------------------------------------------------------

    def analyze_vulnerabilities(
        self,
        hosts: Optional[Iterable[HostRecord]] = None,
    ) -> list[VulnerabilityRecord]:
        """
        Analyse hosts (default: all discovered hosts) and keep the result
        as the latest analysis. Each host's vulnerability_count is updated.
        """
        hosts = list(hosts) if hosts is not None else list(self._hosts.snapshot().values())
        findings = analyze_vulnerabilities(hosts)

        for host in hosts:
            host.vulnerability_count = sum(1 for f in findings if f.host == host.address)

        self._vulnerabilities = findings
        return findings

    def scan_host_vulnerabilities(self, address: str) -> list[VulnerabilityRecord]:
        """
        Re-analyse one discovered host, replacing its previous findings.

        Returns the host's findings; [] if the address is unknown.
        """
        host = self._hosts.get(address)
        if host is None:
            logger.warning(f"No discovered host {address} to analyse")
            return []

        findings = analyze_vulnerabilities([host])
        host.vulnerability_count = len(findings)

        kept = [f for f in self._vulnerabilities if f.host != address]
        self._vulnerabilities = sort_by_severity(kept + findings)
        return findings


# -----------------------------------------------------------------------------
# CLI
# -----------------------------------------------------------------------------


def _format_host(host: HostRecord) -> str:
    ports = ",".join(str(p) for p in host.open_ports) or "-"
    name = host.hostname or "-"
    return (
        f"{host.address:<16} {name:<30} {host.category.value:<9} "
        f"{host.os_label or '-':<15} {ports}"
    )


def _to_json(hosts: list[HostRecord], findings: list[VulnerabilityRecord]) -> str:
    return json.dumps(
        {
            "hosts": [asdict(h) for h in hosts],
            "vulnerabilities": [asdict(f) for f in findings],
        },
        indent=2,
        default=str,
    )


async def _run_cli(scanner: NetworkScanner, network_range: str, args) -> int:
    def log_progress(progress: ScanProgress) -> None:
        logger.debug(
            f"{progress.current_operation} {progress.completed_hosts}/{progress.total_hosts} "
            f"{progress.current_host}"
        )

    try:
        hosts = await scanner.scan(network_range, on_progress=log_progress)
    except ScanError as e:
        logger.error(str(e))
        return 1

    findings = scanner.analyze_vulnerabilities(hosts) if args.vulns else []

    if args.json:
        print(_to_json(hosts, findings))
        return 0

    for host in hosts:
        print(_format_host(host))

    for finding in findings:
        print(
            f"[{finding.severity.value.upper():<8}] {finding.host}:{finding.port} "
            f"{finding.service} - {finding.description}"
        )

    if scanner.state == ScanState.CANCELLED:
        print("Scan stopped before completion", file=sys.stderr)

    return 0


def main():
    """Entry point for the lan-scanner command."""
    import argparse

    parser = argparse.ArgumentParser(description="Scan a local IPv4 subnet for hosts and services")
    parser.add_argument("range", nargs="?", help="CIDR range to scan (default: auto-detect)")
    parser.add_argument("--config", type=str, help="Path to YAML config file")
    parser.add_argument("--log-level", type=str, default=None, help="Log level")
    parser.add_argument("--vulns", action="store_true", help="Analyse discovered services")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    args = parser.parse_args()

    # Load configuration
    if args.config:
        config = ScannerConfig.from_yaml(Path(args.config))
    else:
        config = ScannerConfig.from_env()

    # Override with CLI args
    if args.range:
        config.network_range = args.range
    if args.log_level:
        config.log_level = args.log_level

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        sys.exit(1)

    network_range = config.resolved_range()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    scanner = NetworkScanner(config)

    def signal_handler():
        logger.info("Received shutdown signal")
        scanner.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        exit_code = loop.run_until_complete(_run_cli(scanner, network_range, args))
    finally:
        loop.close()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
