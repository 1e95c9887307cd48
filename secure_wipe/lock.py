"""Exclusive per-disk locks so two runs never race on one physical disk."""

import fcntl
import os
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import DeviceBusyError
from .utils import device_short, strip_partition_suffix


class DeviceLock:
    """Non-blocking flock on <lock_dir>/secure-wipe-<disk>.lock for every base disk.

    Locks are keyed on whole disks, so a run on /dev/sdb and a run on
    /dev/sdb1 exclude each other. Without ``disks`` the partition suffix is
    stripped from the resolved device name.
    """

    def __init__(self, device_path: str, lock_dir: Path, disks: Optional[Iterable[str]] = None):
        if not disks:
            disks = [strip_partition_suffix(os.path.realpath(device_path))]
        names = sorted({device_short(d) for d in disks})
        self.paths: List[Path] = [Path(lock_dir) / f"secure-wipe-{name}.lock" for name in names]
        self._fds: List[int] = []

    def acquire(self) -> None:
        try:
            for path in self.paths:
                self._fds.append(self._lock(path))
        except DeviceBusyError:
            self.release()
            raise

    @staticmethod
    def _lock(path: Path) -> int:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(fd)
            raise DeviceBusyError(f"Another run holds {path}; refusing concurrent wipe.")
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        return fd

    def release(self) -> None:
        while self._fds:
            fd = self._fds.pop()
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    @property
    def held(self) -> bool:
        return bool(self._fds) and len(self._fds) == len(self.paths)

    def __enter__(self) -> "DeviceLock":
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
