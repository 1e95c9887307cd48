"""Collect phase - classify the target device and query system state."""

import os
import platform
import re
import socket
from pathlib import Path
from typing import List, Set, Optional

from . import blockio
from .models import TargetDevice, TransportFamily, SystemInfo
from .utils import CommandRunner, strip_partition_suffix

REQUIRED_TOOLS = ["lsblk", "findmnt", "hdparm"]
OPTIONAL_TOOLS = {
    "nvme": "nvme not found; NVMe sanitize may be unavailable.",
    "blkdiscard": "blkdiscard not found; SSD TRIM fallback unavailable.",
    "shred": "shred not found; direct zero-fill pass will be used.",
}

NVME_NAME = re.compile(r"^nvme")


def classify_transport(device_path: str) -> TransportFamily:
    """NVMe when the base name follows the nvme naming convention, otherwise ATA."""
    if NVME_NAME.match(Path(device_path).name):
        return TransportFamily.NVME
    return TransportFamily.ATA


class DeviceCollector:
    """Reads device and mount metadata; never modifies it."""

    def __init__(self, runner: Optional[CommandRunner] = None, query_timeout: float = 30):
        self.runner = runner or CommandRunner()
        self.query_timeout = query_timeout

    def is_privileged(self) -> bool:
        """True when running as root."""
        return os.geteuid() == 0

    def missing_tools(self) -> List[str]:
        """Required tools that are not installed."""
        return [tool for tool in REQUIRED_TOOLS if not self.runner.available(tool)]

    def optional_tool_warnings(self) -> List[str]:
        """Warnings for optional tools that are not installed."""
        return [msg for tool, msg in OPTIONAL_TOOLS.items() if not self.runner.available(tool)]

    def is_block_device(self, device_path: str) -> bool:
        """Check the path is a block special file."""
        return blockio.is_block_device(device_path)

    def root_source(self) -> Optional[str]:
        """Device backing the root filesystem (e.g. /dev/nvme0n1p3)."""
        result = self.runner.run(["findmnt", "-n", "-o", "SOURCE", "/"], timeout=self.query_timeout)
        if not result.success:
            return None
        source = result.output.strip().splitlines()[0] if result.output.strip() else ""
        # btrfs subvolumes show as /dev/sda2[/@]
        source = source.split("[", 1)[0]
        return source or None

    def base_disks(self, device_path: str) -> Set[str]:
        """Whole-disk names a device lives on.

        Walks the dependency tree with ``lsblk -s`` so LVM, RAID and crypt
        layers resolve to their physical disks; falls back to stripping the
        partition suffix from the name.
        """
        resolved = os.path.realpath(device_path)
        result = self.runner.run(["lsblk", "-nrso", "NAME,TYPE", resolved], timeout=self.query_timeout)
        disks = set()
        if result.success:
            for line in result.output.splitlines():
                parts = line.split()
                if len(parts) >= 2 and parts[1] == "disk":
                    disks.add(parts[0])
        if not disks:
            disks.add(strip_partition_suffix(resolved))
        return disks

    def mountpoints(self, device_path: str) -> Optional[List[str]]:
        """Mountpoints of the device and all its partitions, swap included.

        Returns None when the mount table could not be queried.
        """
        result = self.runner.run(["lsblk", "-nr", "-o", "MOUNTPOINT", device_path], timeout=self.query_timeout)
        if not result.success:
            return None
        mounts = []
        for line in result.output.splitlines():
            line = line.strip()
            if line.startswith("/") or line == "[SWAP]":
                mounts.append(line)
        return mounts

    def probe(self, device_path: str) -> TargetDevice:
        """Classify and size the target device."""
        try:
            size_bytes = blockio.get_size(device_path)
        except OSError as e:
            print(f"⚠️  Could not read size of {device_path}: {e}")
            size_bytes = 0

        return TargetDevice(
            path=device_path,
            transport=classify_transport(device_path),
            size_bytes=size_bytes,
            sector_size=blockio.get_sector_size(device_path)
        )

    def get_system_info(self) -> SystemInfo:
        """Collect host identity for the report."""
        system_info = SystemInfo(
            hostname=socket.gethostname() or "Unknown",
            kernel_version=platform.release() or "Unknown"
        )
        try:
            system_info.machine_id = Path("/etc/machine-id").read_text().strip() or "Unknown"
        except OSError:
            pass
        return system_info
