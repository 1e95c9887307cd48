"""Erase mechanisms sharing one ``attempt(device) -> EraseAttempt`` contract."""

import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import SecretStr

from . import blockio
from .models import (
    TargetDevice, EraseAttempt, EraseTier, AttemptOutcome, StepResult, StepOutcome,
)
from .utils import CommandRunner, CommandResult

# SSTAT bits 2:0 of the NVMe sanitize status log
SANITIZE_STATUS_MASK = 0x7
SANITIZE_IN_PROGRESS = 0x2
SANITIZE_FAILED = 0x3


class EraseMechanism:
    """Base class: subclasses implement ``_execute``."""
    name = "mechanism"
    tier = EraseTier.FIRMWARE
    description = ""

    def attempt(self, device: TargetDevice, attempt: int = 1) -> EraseAttempt:
        # Failures never escape a mechanism; they become outcomes.
        try:
            outcome, detail = self._execute(device)
        except Exception as e:
            outcome, detail = AttemptOutcome.FAILED, f"{type(e).__name__}: {e}"
        return EraseAttempt(
            mechanism=self.name,
            tier=self.tier,
            outcome=outcome,
            attempt=attempt,
            detail=detail
        )

    def _execute(self, device: TargetDevice) -> Tuple[AttemptOutcome, str]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class CommandMechanism(EraseMechanism):
    """Mechanism backed by one external tool invocation."""
    tool = ""

    def __init__(self, runner: CommandRunner, timeout: Optional[float] = None):
        self.runner = runner
        self.timeout = timeout

    def build_args(self, device: TargetDevice) -> List[str]:
        """Argument vector for the tool."""
        raise NotImplementedError

    def _execute(self, device: TargetDevice) -> Tuple[AttemptOutcome, str]:
        if not self.runner.available(self.tool):
            return AttemptOutcome.UNAVAILABLE, f"{self.tool} not installed"
        result = self.runner.run(self.build_args(device), timeout=self.timeout)
        if result.missing:
            return AttemptOutcome.UNAVAILABLE, result.error
        if result.success:
            return AttemptOutcome.SUCCEEDED, ""
        return AttemptOutcome.FAILED, result.error.strip()


class NVMeSanitize(CommandMechanism):
    """NVMe sanitize block erase, waited on until the controller finishes.

    ``nvme sanitize`` returns once the command is accepted; the erase itself
    runs in the background, so the sanitize log is polled until it reports
    completion or failure. ``timeout`` bounds the wait as well.
    """
    name = "nvme_sanitize_block_erase"
    description = "NVMe sanitize (block erase)"
    tool = "nvme"

    def __init__(self, runner: CommandRunner, timeout: Optional[float] = None,
                 poll_interval: float = 10, sleep: Callable[[float], None] = time.sleep):
        super().__init__(runner, timeout)
        self.poll_interval = poll_interval
        self.sleep = sleep

    def build_args(self, device):
        return ["nvme", "sanitize", device.path, "--sanact=2"]

    def _execute(self, device):
        outcome, detail = super()._execute(device)
        if outcome is not AttemptOutcome.SUCCEEDED:
            return outcome, detail
        return self._wait_for_completion(device)

    def _sanitize_log(self, device: TargetDevice) -> Optional[Dict[str, Any]]:
        """Parsed ``nvme sanitize-log`` JSON, or None when it cannot be read."""
        result = self.runner.run(
            ["nvme", "sanitize-log", device.path, "--output-format=json"],
            timeout=self.timeout
        )
        if not result.success:
            return None
        try:
            log = json.loads(result.output)
        except json.JSONDecodeError:
            return None
        if not isinstance(log, dict):
            return None
        # Older nvme-cli nests the log under the device name
        if "sstat" not in log:
            nested = [v for v in log.values() if isinstance(v, dict) and "sstat" in v]
            return nested[0] if nested else None
        return log

    def _wait_for_completion(self, device: TargetDevice) -> Tuple[AttemptOutcome, str]:
        waited = 0.0
        while True:
            log = self._sanitize_log(device)
            if log is None:
                return AttemptOutcome.SUCCEEDED, "sanitize accepted; sanitize log unavailable"
            state = parse_int(log.get("sstat", 0)) & SANITIZE_STATUS_MASK
            if state == SANITIZE_FAILED:
                return AttemptOutcome.FAILED, "sanitize log reports the operation failed"
            if state != SANITIZE_IN_PROGRESS:
                return AttemptOutcome.SUCCEEDED, f"sanitize completed after {waited:g}s"
            if self.timeout is not None and waited >= self.timeout:
                return AttemptOutcome.FAILED, f"sanitize still in progress after {waited:g}s"

            progress = parse_int(log.get("sprog", 0)) * 100 // 65536
            print(f"   ⏳ Sanitize in progress ({progress}%)")
            self.sleep(self.poll_interval)
            waited += self.poll_interval


class NVMeCryptoFormat(CommandMechanism):
    """NVMe format with a cryptographic erase (SES=2)."""
    name = "nvme_format_crypto_erase"
    description = "NVMe format --ses=2 (crypto erase)"
    tool = "nvme"

    def build_args(self, device):
        return ["nvme", "format", device.path, "--ses=2", "--force"]


class NVMeUserFormat(CommandMechanism):
    """NVMe format with a user-data erase (SES=1)."""
    name = "nvme_format_user_data_erase"
    description = "NVMe format --ses=1 (user-data erase)"
    tool = "nvme"

    def build_args(self, device):
        return ["nvme", "format", device.path, "--ses=1", "--force"]


class ATASecuritySession:
    """Temporary ATA user password around the security-erase attempts."""

    def __init__(self, runner: CommandRunner, password: SecretStr, timeout: Optional[float] = 30):
        self.runner = runner
        self.password = password
        self.timeout = timeout

    def _hdparm(self, name: str, option: str, device: TargetDevice) -> StepResult:
        try:
            result = self.runner.run(
                ["hdparm", "--user-master", "u", option,
                 self.password.get_secret_value(), device.path],
                timeout=self.timeout
            )
        except Exception as e:
            return StepResult(name=name, outcome=StepOutcome.FAILURE, detail=redact(str(e), self.password))
        step = step_from_result(name, result)
        step.detail = redact(step.detail, self.password)
        return step

    def set_password(self, device: TargetDevice) -> StepResult:
        """Install the temporary user password, enabling ATA security."""
        return self._hdparm("ata_set_password", "--security-set-pass", device)

    def clear_password(self, device: TargetDevice) -> StepResult:
        """Disable ATA security again with the same password."""
        return self._hdparm("ata_clear_password", "--security-disable", device)


class ATASecurityErase(CommandMechanism):
    """ATA SECURITY ERASE UNIT using the session password; needs it set first."""
    name = "ata_security_erase"
    description = "ATA security erase"
    tool = "hdparm"
    option = "--security-erase"

    def __init__(self, runner: CommandRunner, password: SecretStr, timeout: Optional[float] = None):
        super().__init__(runner, timeout)
        self.password = password

    def build_args(self, device):
        return ["hdparm", "--user-master", "u", self.option,
                self.password.get_secret_value(), device.path]

    def _execute(self, device):
        outcome, detail = super()._execute(device)
        return outcome, redact(detail, self.password)


class ATAEnhancedErase(ATASecurityErase):
    """Enhanced mode, which also overwrites reallocated sectors."""
    name = "ata_security_erase_enhanced"
    description = "ATA enhanced security erase"
    option = "--security-erase-enhanced"


class ATAStandardErase(ATASecurityErase):
    """Normal-mode ATA security erase."""


class Discard(CommandMechanism):
    """Discard (TRIM) every block on the device."""
    name = "blkdiscard"
    description = "TRIM entire device"
    tier = EraseTier.FALLBACK
    tool = "blkdiscard"

    def build_args(self, device):
        return ["blkdiscard", "-f", device.path]


class ShredOverwrite(CommandMechanism):
    """Random overwrite passes followed by a zero pass."""
    name = "shred"
    tier = EraseTier.FALLBACK
    tool = "shred"

    def __init__(self, runner: CommandRunner, passes: int = 3, timeout: Optional[float] = None):
        super().__init__(runner, timeout)
        self.passes = passes
        self.description = f"shred -n {passes} -z"

    def build_args(self, device):
        return ["shred", "-n", str(self.passes), "-z", device.path]


class ZeroFillOverwrite(EraseMechanism):
    """Direct full-device zero pass, used when shred is not installed."""
    name = "zero_fill"
    description = "full zero pass"
    tier = EraseTier.FALLBACK

    def __init__(self, chunk_size: int = 16 * 1024 * 1024):
        self.chunk_size = chunk_size

    def _execute(self, device):
        size = blockio.get_size(device.path)
        written, errors = blockio.zero_range(device.path, 0, size, self.chunk_size)
        if errors:
            return AttemptOutcome.FAILED, f"{len(errors)} region(s) not written; first: {errors[0]}"
        return AttemptOutcome.SUCCEEDED, f"{written} bytes zeroed"


class BoundaryZero(EraseMechanism):
    """Zero the first and last ``boundary_bytes`` of the device."""
    name = "boundary_zero"
    description = "zero header and tail"
    tier = EraseTier.FALLBACK

    def __init__(self, boundary_bytes: int = 100 * 1024 * 1024, chunk_size: int = 1024 * 1024):
        self.boundary_bytes = boundary_bytes
        self.chunk_size = chunk_size

    def regions(self, size: int) -> List[Tuple[int, int]]:
        """(start, length) pairs; they never overlap."""
        head = min(self.boundary_bytes, size)
        regions = [(0, head)] if head else []
        if size > self.boundary_bytes:
            tail_start = max(size - self.boundary_bytes, head)
            if tail_start < size:
                regions.append((tail_start, size - tail_start))
        return regions

    def _execute(self, device):
        size = blockio.get_size(device.path)
        errors = []
        written = 0
        for start, length in self.regions(size):
            n, errs = blockio.zero_range(device.path, start, length, self.chunk_size)
            written += n
            errors.extend(errs)
        if errors:
            return AttemptOutcome.FAILED, f"{len(errors)} region(s) not written; first: {errors[0]}"
        return AttemptOutcome.SUCCEEDED, f"{written} bytes zeroed"


def step_from_result(name: str, result: CommandResult) -> StepResult:
    if result.missing:
        return StepResult(name=name, outcome=StepOutcome.UNSUPPORTED, detail=result.error)
    if result.success:
        return StepResult(name=name, outcome=StepOutcome.SUCCESS)
    return StepResult(name=name, outcome=StepOutcome.FAILURE, detail=result.error.strip())


def parse_int(value: Any) -> int:
    """Int from a JSON number or a "0x.." string, 0 when unparseable."""
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 0)
    except ValueError:
        return 0


def redact(text: str, secret: SecretStr) -> str:
    raw = secret.get_secret_value()
    return text.replace(raw, "******") if raw else text
