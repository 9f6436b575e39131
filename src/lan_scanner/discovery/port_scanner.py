"""
TCP connect port scanning.

Probes a fixed list of well-known ports on a single host in small
concurrent batches, then grabs a banner from every open port.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .._types import COMMON_PORTS, ServiceRecord, service_name_for
from .banner import BannerReader, parse_service_version
from .base import close_writer

logger = logging.getLogger(__name__)


@dataclass
class PortScanResult:
    """Open ports and their services for one host."""
    open_ports: list[int] = field(default_factory=list)
    services: dict[int, ServiceRecord] = field(default_factory=dict)


class PortScanner:
    """
    Scan a host for open TCP ports.

    Ports are probed in batches of batch_size; the scanner waits for a
    whole batch before starting the next one.
    """

    def __init__(
        self,
        ports: Sequence[int] = COMMON_PORTS,
        timeout: float = 1.5,
        batch_size: int = 8,
        banner_reader: Optional[BannerReader] = None,
    ):
        """
        Args:
            ports: Ports to probe, in scan order
            timeout: Seconds allowed per connect attempt
            batch_size: Number of ports probed concurrently
            banner_reader: Reader used on open ports
        """
        self.ports = list(ports)
        self.timeout = timeout
        self.batch_size = batch_size
        self.banner_reader = banner_reader or BannerReader()

    async def is_port_open(self, address: str, port: int) -> bool:
        """Attempt one TCP connect. Any failure means closed."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(address, port),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError):
            return False

        await close_writer(writer)
        return True

    async def _probe_port(self, address: str, port: int) -> Optional[ServiceRecord]:
        try:
            if not await self.is_port_open(address, port):
                return None
            banner = await self.banner_reader.read_banner(address, port)
        except Exception as e:
            logger.debug(f"Probe of {address}:{port} failed: {e}")
            return None

        logger.debug(f"{address}:{port} open")
        return ServiceRecord(
            port=port,
            service=service_name_for(port),
            version=parse_service_version(banner),
            banner=banner,
        )

    async def scan(
        self,
        address: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PortScanResult:
        """
        Scan all configured ports on one host.

        If cancel_event is set, no further batches are started; the batch
        already in flight is allowed to finish.
        """
        services: dict[int, ServiceRecord] = {}

        for start in range(0, len(self.ports), self.batch_size):
            if cancel_event is not None and cancel_event.is_set():
                logger.debug(f"Port scan of {address} stopped early")
                break

            batch = self.ports[start:start + self.batch_size]
            records = await asyncio.gather(
                *(self._probe_port(address, port) for port in batch)
            )
            for record in records:
                if record is not None:
                    services[record.port] = record

        open_ports = sorted(services)
        return PortScanResult(
            open_ports=open_ports,
            services={port: services[port] for port in open_ports},
        )
