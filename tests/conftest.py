from pathlib import Path
from typing import List, Optional

import pytest

from secure_wipe.collect import DeviceCollector
from secure_wipe.config import WipeConfig
from secure_wipe.models import SystemInfo
from secure_wipe.utils import CommandRunner, CommandResult, strip_partition_suffix

ALL_TOOLS = {"lsblk", "findmnt", "hdparm", "nvme", "blkdiscard", "shred"}


class FakeRunner(CommandRunner):
    """Scripted command runner that records every invocation."""

    def __init__(self, installed=None, default_returncode: int = 0):
        self.installed = set(ALL_TOOLS if installed is None else installed)
        self.default_returncode = default_returncode
        self.calls: List[List[str]] = []
        self._rules = []

    def on(self, *tokens, returncode: int = 0, output: str = "", error: str = "", raises=None):
        """Script the result for commands containing all ``tokens``; later rules win.

        ``output`` may be a list: each matching call takes the next entry and
        the last one repeats.
        """
        outputs = list(output) if isinstance(output, list) else [output]
        self._rules.append((tokens, returncode, outputs, error, raises))
        return self

    def available(self, tool: str) -> bool:
        return tool in self.installed

    def run(self, args, timeout: Optional[float] = None) -> CommandResult:
        args = list(args)
        self.calls.append(args)
        if args[0] not in self.installed:
            return CommandResult(args=args, missing=True, error=f"Command not found: {args[0]}")
        for tokens, returncode, outputs, error, raises in reversed(self._rules):
            if all(t in args for t in tokens):
                if raises is not None:
                    raise raises
                output = outputs.pop(0) if len(outputs) > 1 else outputs[0]
                return CommandResult(args=args, returncode=returncode, output=output, error=error)
        return CommandResult(args=args, returncode=self.default_returncode)

    def calls_with(self, *tokens) -> List[List[str]]:
        return [c for c in self.calls if all(t in c for t in tokens)]


class FakeCollector(DeviceCollector):
    """Collector with scripted system state; probing still reads the image file."""

    def __init__(self, runner=None, privileged=True, block_device=True,
                 root_source="/dev/sda2", mounts=None, missing=None):
        super().__init__(runner or FakeRunner())
        self.privileged = privileged
        self.block_device = block_device
        self._root_source = root_source
        self._mounts = [] if mounts is None else mounts
        self._missing = missing or []
        self.io_calls = 0

    def is_privileged(self):
        return self.privileged

    def missing_tools(self):
        return list(self._missing)

    def optional_tool_warnings(self):
        return []

    def is_block_device(self, device_path):
        self.io_calls += 1
        return self.block_device

    def root_source(self):
        self.io_calls += 1
        return self._root_source

    def base_disks(self, device_path):
        return {strip_partition_suffix(device_path)}

    def mountpoints(self, device_path):
        self.io_calls += 1
        return self._mounts

    def get_system_info(self):
        return SystemInfo(hostname="testhost", kernel_version="6.1.0-test", machine_id="abc123")


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def config(tmp_path):
    return WipeConfig(
        verify_samples=64,
        verify_seed=1234,
        report_dir=tmp_path / "reports",
        lock_dir=tmp_path / "lock",
        boundary_bytes=4096,
        zero_chunk_bytes=4096,
        ata_password="testpass",
    )


@pytest.fixture
def make_disk(tmp_path):
    """Create an image file that stands in for a disk."""

    def _make(name: str = "sdb", size: int = 64 * 1024, fill: bytes = b"\x00") -> Path:
        path = tmp_path / "dev" / name
        path.parent.mkdir(exist_ok=True)
        path.write_bytes(fill * size)
        return path

    return _make


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append
