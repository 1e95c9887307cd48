"""Run-aborting conditions raised before any destructive action."""

from typing import Optional


class WipeAbort(Exception):
    """Aborts the run with a process exit code and no report."""
    exit_code = 1

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class SafetyError(WipeAbort):
    pass


class MissingDependencyError(WipeAbort):
    exit_code = 127


class DeviceBusyError(WipeAbort):
    exit_code = 11


EXIT_OK = 0
EXIT_USAGE = 1
EXIT_PLACEHOLDER = 2
EXIT_NOT_BLOCK_DEVICE = 3
EXIT_ROOT_DISK = 9
EXIT_MOUNTED = 10
EXIT_LOCKED = 11
EXIT_VERIFY_FAILED = 20
EXIT_MISSING_DEPENDENCY = 127
EXIT_INTERRUPTED = 130
