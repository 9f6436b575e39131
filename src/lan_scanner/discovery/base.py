"""
Base classes for probing methods.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ReachabilityProbe(ABC):
    """Base class for network-layer liveness checks."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of this probe."""
        pass

    @abstractmethod
    async def probe(self, address: str, timeout: float) -> bool:
        """
        Check whether a host answers within timeout seconds.

        Implementations must not raise for unreachable hosts.
        """
        pass

    async def is_available(self) -> bool:
        """Check if this probe can run on this system."""
        return True


async def command_available(command: str) -> bool:
    """Check whether an executable is on PATH."""
    try:
        result = await asyncio.create_subprocess_exec(
            "which", command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        await result.wait()
        return result.returncode == 0
    except OSError:
        return False


async def close_writer(writer: asyncio.StreamWriter) -> None:
    """Close a stream, ignoring errors from an already-broken connection."""
    writer.close()
    try:
        await writer.wait_closed()
    except (OSError, asyncio.TimeoutError) as e:
        logger.debug(f"Error while closing connection: {e}")
