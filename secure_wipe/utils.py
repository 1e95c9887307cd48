"""
Utility functions shared by the wipe phases
"""

import re
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Outcome of one external command."""
    args: List[str]
    returncode: Optional[int] = None
    output: str = ""
    error: str = ""
    missing: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external tools and never raises for tool failures."""

    def available(self, tool: str) -> bool:
        return shutil.which(tool) is not None

    def run(self, args: List[str], timeout: Optional[float] = None) -> CommandResult:
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout
            )
            return CommandResult(
                args=args,
                returncode=result.returncode,
                output=result.stdout,
                error=result.stderr or ("" if result.returncode == 0
                                        else f"Command failed with return code {result.returncode}")
            )
        except subprocess.TimeoutExpired:
            return CommandResult(args=args, error=f"Command timed out after {timeout} seconds")
        except FileNotFoundError:
            return CommandResult(args=args, missing=True, error=f"Command not found: {args[0]}")
        except OSError as e:
            return CommandResult(args=args, error=f"Unexpected error: {e}")


def device_short(device_path: str) -> str:
    """Filesystem-safe short name of a device, e.g. /dev/nvme0n1 -> nvme0n1"""
    return re.sub(r"[^A-Za-z0-9_-]", "_", Path(device_path).name) or "device"


def strip_partition_suffix(name: str) -> str:
    """Base disk name for a partition name (nvme0n1p3 -> nvme0n1, sda3 -> sda)."""
    name = Path(name).name
    match = re.match(r"^((?:nvme\d+n\d+)|(?:mmcblk\d+)|(?:loop\d+))p\d+$", name)
    if match:
        return match.group(1)
    if re.match(r"^(nvme\d+n\d+|mmcblk\d+|loop\d+)$", name):
        return name
    return re.sub(r"\d+$", "", name) or name


def format_capacity(size_bytes: int) -> str:
    """Convert a byte count to a human-readable string"""
    if size_bytes >= 1024**4:
        return f"{size_bytes / (1024**4):.2f} TB"
    elif size_bytes >= 1024**3:
        return f"{size_bytes / (1024**3):.2f} GB"
    elif size_bytes >= 1024**2:
        return f"{size_bytes / (1024**2):.2f} MB"
    else:
        return f"{size_bytes:,} bytes"


def iso_utc(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def compact_utc(moment: datetime) -> str:
    return moment.strftime("%Y%m%dT%H%M%SZ")
