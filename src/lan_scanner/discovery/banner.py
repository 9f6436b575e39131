"""
Service banner grabbing.

Opens a fresh connection to an open port and reads the greeting the
service sends. Web ports get a minimal HTTP request first; every other
port is read passively (no TLS or protocol handshake is attempted).
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from .base import close_writer

logger = logging.getLogger(__name__)

HTTP_PORTS = frozenset({80, 8080})
HTTP_PROBE = b"GET / HTTP/1.0\r\n\r\n"
MAX_BANNER_BYTES = 1024

_SSH_BANNER = re.compile(r"^SSH-[\d.]+-(\S+)")
_HTTP_SERVER = re.compile(r"^server:\s*(.+)$", re.IGNORECASE | re.MULTILINE)


class BannerReader:
    """Reads up to 1 KB of greeting text from a service."""

    def __init__(self, connect_timeout: float = 1.0, read_timeout: float = 1.0):
        """
        Args:
            connect_timeout: Seconds allowed for the TCP connect
            read_timeout: Seconds allowed for the first read
        """
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    async def read_banner(self, address: str, port: int) -> str:
        """Return the normalized banner, or "" on any error."""
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(address, port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Banner connect to {address}:{port} failed: {e}")
            return ""

        try:
            if port in HTTP_PORTS:
                writer.write(HTTP_PROBE)
                await asyncio.wait_for(writer.drain(), timeout=self.read_timeout)

            data = await asyncio.wait_for(
                reader.read(MAX_BANNER_BYTES),
                timeout=self.read_timeout,
            )
            return normalize_banner(data)
        except Exception as e:
            logger.debug(f"Banner read from {address}:{port} failed: {e}")
            return ""
        finally:
            await close_writer(writer)


def normalize_banner(data: bytes) -> str:
    """Decode, trim, and convert CRLF line endings to LF."""
    if not data:
        return ""
    text = data.decode("utf-8", errors="replace")
    return text.strip().replace("\r\n", "\n")


def parse_service_version(banner: str) -> Optional[str]:
    """
    Extract a software version from a banner when recognisable.

    "SSH-2.0-OpenSSH_8.9p1 Ubuntu" -> "OpenSSH_8.9p1"
    HTTP "Server: nginx/1.24.0" -> "nginx/1.24.0"
    """
    if not banner:
        return None

    match = _SSH_BANNER.match(banner)
    if match:
        return match.group(1)

    if banner.startswith("HTTP/"):
        match = _HTTP_SERVER.search(banner)
        if match:
            return match.group(1).strip()

    return None
