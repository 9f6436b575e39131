"""
ARP cache lookup.

After the discovery sweep the kernel has fresh neighbour entries for
every host that answered. Reading the cache once gives each host its
hardware address and, for well-known OUIs, a vendor label.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from .base import command_available

logger = logging.getLogger(__name__)

# Linux:  ? (192.168.1.1) at aa:bb:cc:dd:ee:ff [ether] on eth0
# macOS:  gateway (192.168.1.1) at 0:50:56:c0:0:8 on en0 ifscope [ethernet]
_ARP_LINE = re.compile(
    r"(?:(\S+)\s+)?\((\d+\.\d+\.\d+\.\d+)\)\s+at\s+([0-9a-fA-F:]+)"
)

# Common OUI prefixes (first 3 octets)
OUI_VENDORS = {
    "00:50:56": "VMware",
    "00:0c:29": "VMware",
    "00:1c:42": "Parallels",
    "08:00:27": "VirtualBox",
    "52:54:00": "QEMU/KVM",
    "00:15:5d": "Microsoft Hyper-V",
    "d4:be:d9": "Dell",
    "00:1e:67": "HP",
    "3c:d9:2b": "HP",
    "00:1a:a0": "Lenovo",
    "78:dd:12": "Lenovo",
    "f0:9f:c2": "Ubiquiti",
    "3c:22:fb": "Apple",
    "b8:27:eb": "Raspberry Pi",
    "dc:a6:32": "Raspberry Pi",
    "00:1b:63": "Apple",
    "00:26:cb": "Cisco",
    "00:17:88": "Philips Hue",
    "18:b4:30": "Nest Labs",
    "f0:27:2d": "Amazon",
    "50:c7:bf": "TP-Link",
    "00:00:5e": "IANA (VRRP)",
}


def normalize_mac(mac_address: str) -> str:
    """Zero-pad each octet: 0:50:56:c0:0:8 -> 00:50:56:c0:00:08."""
    return ":".join(part.zfill(2) for part in mac_address.lower().split(":"))


def lookup_vendor(mac_address: str) -> Optional[str]:
    """Vendor name for a MAC address, or None for unknown OUIs."""
    return OUI_VENDORS.get(normalize_mac(mac_address)[:8])


def parse_arp_line(line: str) -> Optional[tuple[str, str]]:
    """Parse one `arp -an` line into (ip, mac), skipping incomplete entries."""
    match = _ARP_LINE.search(line)
    if not match:
        return None

    mac_address = normalize_mac(match.group(3))
    if mac_address.count(":") != 5 or mac_address == "ff:ff:ff:ff:ff:ff":
        return None

    return match.group(2), mac_address


class ARPCache:
    """Snapshot of the local ARP table."""

    def __init__(self, command: str = "arp"):
        self.command = command
        self._entries: dict[str, str] = {}

    async def refresh(self) -> int:
        """
        Re-read the ARP table.

        Returns the number of entries loaded; 0 if the arp tool is missing
        or fails.
        """
        self._entries = {}

        if not await command_available(self.command):
            logger.warning("arp command not available, hardware addresses disabled")
            return 0

        try:
            result = await asyncio.create_subprocess_exec(
                self.command, "-an",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await result.communicate()
        except OSError as e:
            logger.warning(f"Could not read ARP table: {e}")
            return 0

        if result.returncode != 0:
            logger.warning(f"ARP command failed: {stderr.decode(errors='replace')}")
            return 0

        self.load(stdout.decode(errors="replace"))
        logger.debug(f"Loaded {len(self._entries)} ARP entries")
        return len(self._entries)

    def load(self, output: str) -> None:
        """Populate entries from `arp -an` output."""
        for line in output.splitlines():
            parsed = parse_arp_line(line)
            if parsed:
                ip_address, mac_address = parsed
                self._entries[ip_address] = mac_address

    def lookup(self, address: str) -> tuple[str, str]:
        """Return (mac, vendor) for an address; empty strings if unknown."""
        mac_address = self._entries.get(address, "")
        if not mac_address:
            return "", ""
        return mac_address, lookup_vendor(mac_address) or ""
