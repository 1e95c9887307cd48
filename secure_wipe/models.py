"""Data models for device sanitization runs."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class TransportFamily(str, Enum):
    NVME = "nvme"
    ATA = "ata"


class EraseTier(str, Enum):
    FIRMWARE = "firmware"
    FALLBACK = "fallback"


class AttemptOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNAVAILABLE = "unavailable"


class StepOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    UNSUPPORTED = "unsupported"


class EraseStatus(str, Enum):
    FIRMWARE_OK = "FirmwareEraseOK"
    FALLBACK_OK = "FallbackOK"
    FALLBACK_DEGRADED = "FallbackDegraded"


class TargetDevice(BaseModel):
    """Block device under sanitization. Probed once per run."""
    model_config = ConfigDict(frozen=True)

    path: str
    transport: TransportFamily
    size_bytes: int = 0
    sector_size: int = 512

    @property
    def total_sectors(self) -> int:
        # Trailing partial sector is never sampled.
        return self.size_bytes // self.sector_size if self.sector_size else 0

    @property
    def is_nvme(self) -> bool:
        return self.transport is TransportFamily.NVME


class EraseAttempt(BaseModel):
    """One invocation of one erase mechanism."""
    mechanism: str
    tier: EraseTier
    outcome: AttemptOutcome
    attempt: int = 1
    timestamp: datetime = Field(default_factory=utc_now)
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCEEDED


class StepResult(BaseModel):
    """Result of a best-effort step that is never fatal to the run."""
    name: str
    outcome: StepOutcome
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome is StepOutcome.SUCCESS


class UnlockResult(BaseModel):
    """Hidden-area (HPA/DCO) unlock results."""
    hpa_present: Optional[bool] = None
    current_max_sectors: Optional[int] = None
    native_max_sectors: Optional[int] = None
    steps: List[StepResult] = Field(default_factory=list)

    def step(self, name: str) -> Optional[StepResult]:
        for step in self.steps:
            if step.name == name:
                return step
        return None


class EraseResult(BaseModel):
    """Terminal state reached by the erase engine."""
    status: EraseStatus
    method: str
    attempts: List[EraseAttempt] = Field(default_factory=list)
    password_steps: List[StepResult] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)


class VerificationResult(BaseModel):
    """Aggregate of the random sector sample."""
    samples: int
    blank: int = 0
    non_blank: int = 0
    unreadable: int = 0
    seed: Optional[int] = None
    error: Optional[str] = None

    @property
    def failed_samples(self) -> int:
        return self.non_blank + self.unreadable

    @property
    def passed(self) -> bool:
        return self.samples > 0 and self.failed_samples == 0 and self.error is None

    @property
    def summary(self) -> str:
        return (f"{self.blank}/{self.samples} OK, "
                f"{self.failed_samples}/{self.samples} FAIL")


class SystemInfo(BaseModel):
    hostname: str = "Unknown"
    kernel_version: str = "Unknown"
    machine_id: str = "Unknown"


class RunOutcome(BaseModel):
    """Accumulated state of a whole sanitization run."""
    device: TargetDevice
    method_used: str = "none"
    status: str = "Pending"
    notes: List[str] = Field(default_factory=list)
    start_time: datetime = Field(default_factory=utc_now)
    end_time: Optional[datetime] = None
    attempts: List[EraseAttempt] = Field(default_factory=list)
    unlock: Optional[UnlockResult] = None
    verification: Optional[VerificationResult] = None

    def add_note(self, note: str) -> None:
        self.notes.append(note)

    @property
    def verify_failed(self) -> bool:
        return self.status.endswith("+VerifyFail")


class WipeReport(BaseModel):
    """Fixed-schema record written once per completed run."""
    problem_code: str
    device: str
    method_used: str
    start_time_utc: str
    end_time_utc: str
    status: str
    notes: str
    host: str
    kernel: str
    tool: str
    verify_samples: int
    transport: str
    size_bytes: int
    sector_size: int
    machine_id: str
    attempts: List[dict] = Field(default_factory=list)
    hidden_area: Optional[dict] = None
    verification: Optional[dict] = None
