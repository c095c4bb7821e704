"""MAC to LAN IP lookups through the operating system's neighbour (ARP) table.

Linux exposes the table at /proc/net/arp; elsewhere ``arp -an`` is parsed.
A lookup never raises: any failure is reported as "no LAN address".
"""

from __future__ import annotations

import asyncio
import re
import shutil
from pathlib import Path
from typing import Protocol

from kumo_controller.const import KUMO_ARP_TIMEOUT
from kumo_controller.logging_abstraction import get_logger

logger = get_logger(__name__)

__all__ = ["AddressResolver", "ArpResolver", "normalize_mac", "parse_arp_output", "parse_proc_arp"]

PROC_ARP_PATH = Path("/proc/net/arp")
# "? (192.168.1.50) at a4:5f:1:2:3:4 [ether] on eth0"
_ARP_LINE = re.compile(r"\((?P<ip>[0-9.]+)\)\s+at\s+(?P<mac>[0-9A-Fa-f:.\-]+)")
# ATF_COM: entry is complete
_ATF_COM = 0x2


class AddressResolver(Protocol):
    async def resolve(self, mac: str) -> str | None: ...


def normalize_mac(mac: str | None) -> str | None:
    """Canonical ``aa:bb:cc:dd:ee:ff`` form, or None if ``mac`` is not a MAC address."""
    if not mac:
        return None
    mac = mac.strip().lower()
    parts = re.split(r"[:\-]", mac)
    if len(parts) == 6 and all(re.fullmatch(r"[0-9a-f]{1,2}", p) for p in parts):
        return ":".join(p.zfill(2) for p in parts)
    digits = re.sub(r"[^0-9a-f]", "", mac)
    if len(digits) == 12 and re.fullmatch(r"[0-9a-f.\-:]+", mac):
        return ":".join(digits[i : i + 2] for i in range(0, 12, 2))
    return None


def parse_proc_arp(text: str) -> dict[str, str]:
    """Map MAC -> IP from the contents of /proc/net/arp."""
    table: dict[str, str] = {}
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 4:
            continue
        ip, _hw_type, flags, hw_addr = fields[:4]
        try:
            complete = int(flags, 16) & _ATF_COM
        except ValueError:
            continue
        mac = normalize_mac(hw_addr)
        if complete and mac and mac != "00:00:00:00:00:00":
            table[mac] = ip
    return table


def parse_arp_output(text: str) -> dict[str, str]:
    """Map MAC -> IP from ``arp -an`` output."""
    table: dict[str, str] = {}
    for line in text.splitlines():
        match = _ARP_LINE.search(line)
        if not match:
            continue
        mac = normalize_mac(match.group("mac"))
        if mac:
            table[mac] = match.group("ip")
    return table


class ArpResolver:
    lp: str = "ArpResolver"

    def __init__(self, timeout: float = KUMO_ARP_TIMEOUT, proc_path: Path = PROC_ARP_PATH) -> None:
        self.timeout: float = timeout
        self.proc_path: Path = proc_path

    async def resolve(self, mac: str) -> str | None:
        lp = f"{self.lp}:resolve:"
        target = normalize_mac(mac)
        if target is None:
            logger.warning("%s Zone MAC %r is not a valid address", lp, mac)
            return None
        try:
            table = await asyncio.wait_for(self._read_table(), timeout=self.timeout)
        except TimeoutError:
            logger.warning("%s ARP lookup for %s timed out after %.1fs", lp, target, self.timeout)
            return None
        except OSError as e:
            logger.warning("%s ARP table unavailable: %s", lp, e)
            return None

        ip = table.get(target)
        if ip is None:
            logger.debug("%s %s not in ARP table", lp, target)
        return ip

    async def _read_table(self) -> dict[str, str]:
        if self.proc_path.exists():
            text = await asyncio.to_thread(self.proc_path.read_text, encoding="utf-8")
            return parse_proc_arp(text)

        arp_bin = shutil.which("arp")
        if arp_bin is None:
            msg = "no /proc/net/arp and no arp binary on PATH"
            raise OSError(msg)
        process = await asyncio.create_subprocess_exec(
            arp_bin,
            "-an",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            msg = f"arp exited with {process.returncode}: {stderr.decode('utf-8', errors='replace').strip()}"
            raise OSError(msg)
        return parse_arp_output(stdout.decode("utf-8", errors="replace"))
