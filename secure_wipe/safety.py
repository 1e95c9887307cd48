"""Pre-flight safety checks run before anything touches the device."""

import re
from typing import List

from .collect import DeviceCollector
from .errors import (
    SafetyError, MissingDependencyError,
    EXIT_PLACEHOLDER, EXIT_NOT_BLOCK_DEVICE, EXIT_ROOT_DISK, EXIT_MOUNTED,
)

# Template/sample values that must never reach a destructive command.
PLACEHOLDER_PATTERNS = [
    re.compile(r"x{13}", re.IGNORECASE),
    re.compile(r"^/dev/sdX$"),
    re.compile(r"<[^>]*>"),
]


def is_placeholder(device_path: str) -> bool:
    return any(p.search(device_path) for p in PLACEHOLDER_PATTERNS)


class SafetyGuard:
    """Refuses placeholder, non-block, root-backing and mounted targets."""

    def __init__(self, collector: DeviceCollector):
        self.collector = collector

    def check_placeholder(self, device_path: str) -> None:
        if is_placeholder(device_path):
            raise SafetyError(
                f"Safety placeholder detected in device argument '{device_path}'. Refusing to run.",
                EXIT_PLACEHOLDER
            )

    def check_dependencies(self) -> List[str]:
        """Raise for missing required tools; return warnings for optional ones."""
        missing = self.collector.missing_tools()
        if missing:
            raise MissingDependencyError(f"Missing dependency: {', '.join(missing)}")
        return self.collector.optional_tool_warnings()

    def check_block_device(self, device_path: str) -> None:
        if not self.collector.is_block_device(device_path):
            raise SafetyError(f"{device_path} is not a block device.", EXIT_NOT_BLOCK_DEVICE)

    def check_not_root_disk(self, device_path: str) -> None:
        root_source = self.collector.root_source()
        if not root_source:
            raise SafetyError(
                "Could not determine the root filesystem device; refusing to continue.",
                EXIT_ROOT_DISK
            )
        root_disks = self.collector.base_disks(root_source)
        target_disks = self.collector.base_disks(device_path)
        shared = root_disks & target_disks
        if shared:
            raise SafetyError(
                f"Refusing to operate on the root/system disk: {', '.join(sorted(shared))}",
                EXIT_ROOT_DISK
            )

    def check_unmounted(self, device_path: str) -> None:
        mounts = self.collector.mountpoints(device_path)
        if mounts is None:
            raise SafetyError(f"Could not read mount state of {device_path}.", EXIT_MOUNTED)
        if mounts:
            raise SafetyError(
                f"Some partitions of {device_path} are mounted ({', '.join(mounts)}). "
                "Unmount all before proceeding.",
                EXIT_MOUNTED
            )

    def check(self, device_path: str) -> List[str]:
        """Run every check in order. Returns optional-tool warnings."""
        self.check_placeholder(device_path)
        warnings = self.check_dependencies()
        self.check_block_device(device_path)
        self.check_not_root_disk(device_path)
        self.check_unmounted(device_path)
        return warnings
