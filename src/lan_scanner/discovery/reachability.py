"""
Host reachability probing.

Answers one question per candidate address: does anything reply at the
network layer within the timeout? Two strategies are provided:

- PingProbe: a single ICMP echo through the system ping binary
- TCPEchoProbe: a TCP connect to the echo port; a refused connection
  still proves the host is up

All failures are reported as "unreachable", never raised.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional

from .base import ReachabilityProbe, close_writer, command_available

logger = logging.getLogger(__name__)

ECHO_PORT = 7


class PingProbe(ReachabilityProbe):
    """ICMP echo via the system ping command."""

    def __init__(self, command: str = "ping"):
        self.command = command

    @property
    def name(self) -> str:
        return "ping"

    async def is_available(self) -> bool:
        return await command_available(self.command)

    async def probe(self, address: str, timeout: float) -> bool:
        # ping -W takes whole seconds on older iputils
        wait_seconds = max(1, math.ceil(timeout))
        process = None
        try:
            process = await asyncio.create_subprocess_exec(
                self.command, "-c", "1", "-W", str(wait_seconds), address,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await asyncio.wait_for(process.wait(), timeout=wait_seconds + 1)
            return returncode == 0
        except asyncio.TimeoutError:
            logger.debug(f"Ping to {address} timed out")
            return False
        except OSError as e:
            logger.debug(f"Ping to {address} failed: {e}")
            return False
        finally:
            if process is not None and process.returncode is None:
                process.kill()
                await process.wait()


class TCPEchoProbe(ReachabilityProbe):
    """Liveness via a TCP connect to the echo port."""

    def __init__(self, port: int = ECHO_PORT):
        self.port = port

    @property
    def name(self) -> str:
        return "tcp-echo"

    async def probe(self, address: str, timeout: float) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(address, self.port),
                timeout=timeout,
            )
        except ConnectionRefusedError:
            # RST means the host itself answered
            return True
        except (OSError, asyncio.TimeoutError):
            return False

        await close_writer(writer)
        return True


class ReachabilityProber:
    """
    Runs reachability checks with the first available probe.

    Availability is checked once, on first use.
    """

    def __init__(self, probes: Optional[list[ReachabilityProbe]] = None):
        self.probes = probes if probes is not None else [PingProbe(), TCPEchoProbe()]
        self._selected: Optional[ReachabilityProbe] = None
        self._select_lock = asyncio.Lock()

    async def _select_probe(self) -> Optional[ReachabilityProbe]:
        async with self._select_lock:
            if self._selected is None:
                for probe in self.probes:
                    if await probe.is_available():
                        logger.info(f"Using {probe.name} reachability probe")
                        self._selected = probe
                        break
                    logger.warning(f"Reachability probe {probe.name} not available")
            return self._selected

    async def is_reachable(self, address: str, timeout: float = 0.5) -> bool:
        """Return True if the host answered within timeout seconds."""
        try:
            probe = await self._select_probe()
            if probe is None:
                logger.error("No reachability probe available")
                return False
            return await probe.probe(address, timeout)
        except Exception as e:
            logger.debug(f"Reachability probe for {address} failed: {e}")
            return False
