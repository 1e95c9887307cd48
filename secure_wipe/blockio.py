"""Raw block read/write/size primitives.

Block devices and regular files are handled alike so that image files can
stand in for disks.
"""

import fcntl
import os
import stat
import struct
from typing import List, Tuple

BLKGETSIZE64 = 0x80081272
BLKSSZGET = 0x1268
DEFAULT_SECTOR_SIZE = 512


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def get_size(path: str) -> int:
    """Size in bytes of a block device or regular file."""
    with open(path, "rb") as f:
        st = os.fstat(f.fileno())
        if stat.S_ISREG(st.st_mode):
            return st.st_size
        if stat.S_ISBLK(st.st_mode):
            buf = bytearray(8)
            fcntl.ioctl(f.fileno(), BLKGETSIZE64, buf)
            return struct.unpack("Q", buf)[0]
    raise OSError(f"{path} is neither a block device nor a regular file")


def get_sector_size(path: str) -> int:
    """Logical sector size, 512 when it cannot be probed."""
    try:
        with open(path, "rb") as f:
            if not stat.S_ISBLK(os.fstat(f.fileno()).st_mode):
                return DEFAULT_SECTOR_SIZE
            buf = bytearray(4)
            fcntl.ioctl(f.fileno(), BLKSSZGET, buf)
            size = struct.unpack("I", buf)[0]
            return size or DEFAULT_SECTOR_SIZE
    except OSError:
        return DEFAULT_SECTOR_SIZE


def drop_cache(fd: int) -> None:
    """Ask the kernel to forget cached pages so reads hit the media."""
    try:
        os.posix_fadvise(fd, 0, 0, os.POSIX_FADV_DONTNEED)
    except (AttributeError, OSError):
        # not supported for this file/platform; reads may come from cache
        pass


def read_at(f, offset: int, length: int) -> bytes:
    f.seek(offset)
    return f.read(length)


def zero_range(path: str, start: int, length: int, chunk_size: int) -> Tuple[int, List[str]]:
    """Write zeros over [start, start + length).

    A chunk that fails to write is recorded and skipped so one bad region
    does not stop the pass. Returns (bytes written, errors).
    """
    written = 0
    errors = []
    zeros = bytes(chunk_size)
    end = start + length
    with open(path, "r+b", buffering=0) as f:
        offset = start
        while offset < end:
            n = min(chunk_size, end - offset)
            try:
                f.seek(offset)
                f.write(zeros[:n])
                written += n
            except OSError as e:
                errors.append(f"offset {offset}: {e}")
            offset += n
        try:
            os.fsync(f.fileno())
        except OSError as e:
            errors.append(f"fsync: {e}")
    return written, errors
