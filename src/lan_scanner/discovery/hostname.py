"""
Reverse DNS lookup for discovered hosts.
"""

from __future__ import annotations

import asyncio
import logging
import socket

logger = logging.getLogger(__name__)


async def resolve_hostname(address: str, timeout: float = 2.0) -> str:
    """
    Resolve an address to a hostname.

    The blocking resolver runs in the default executor. Returns "" when
    the lookup fails, times out, or only echoes the address back.
    """
    loop = asyncio.get_running_loop()
    try:
        hostname, _, _ = await asyncio.wait_for(
            loop.run_in_executor(None, socket.gethostbyaddr, address),
            timeout=timeout,
        )
    except (OSError, asyncio.TimeoutError) as e:
        logger.debug(f"Reverse lookup for {address} failed: {e}")
        return ""

    if not hostname or hostname == address:
        return ""
    return hostname
