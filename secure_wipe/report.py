"""Report phase - write the JSON wipe report for a finished run."""

import json
import os
from pathlib import Path
from typing import Optional

from .errors import WipeAbort
from .models import RunOutcome, SystemInfo, WipeReport, utc_now
from .utils import device_short, iso_utc, compact_utc

PROBLEM_CODE = "SIH25070"
TOOL_NAME = "secure-wipe"
TOOL_VERSION = "0.1.0"


def prepare_report_dir(report_dir: Path) -> Path:
    """Create the report directory and make sure it is writable.

    Runs before anything touches the device: an erase whose report cannot
    be written must not start.
    """
    report_dir = Path(report_dir)
    try:
        report_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WipeAbort(f"Report directory {report_dir} cannot be created: {e}")
    if not report_dir.is_dir() or not os.access(report_dir, os.W_OK | os.X_OK):
        raise WipeAbort(f"Report directory {report_dir} is not writable.")
    return report_dir


class ReportGenerator:
    """Serializes a finished run outcome into a write-once report file."""

    def __init__(self, report_dir: Path, system_info: SystemInfo, verify_samples: int,
                 software_only: bool = False, tool: Optional[str] = None):
        self.report_dir = Path(report_dir)
        self.system_info = system_info
        self.verify_samples = verify_samples
        self.software_only = software_only
        self.tool = tool or f"{TOOL_NAME} {TOOL_VERSION}"

    def build_report(self, outcome: RunOutcome) -> WipeReport:
        """Assemble the fixed-schema record."""
        device = outcome.device
        end_time = outcome.end_time or utc_now()
        return WipeReport(
            problem_code=PROBLEM_CODE,
            device=device.path,
            method_used=outcome.method_used,
            start_time_utc=iso_utc(outcome.start_time),
            end_time_utc=iso_utc(end_time),
            status=outcome.status,
            notes="\n".join(outcome.notes),
            host=self.system_info.hostname,
            kernel=self.system_info.kernel_version,
            tool=self.tool,
            verify_samples=self.verify_samples,
            transport=device.transport.value,
            size_bytes=device.size_bytes,
            sector_size=device.sector_size,
            machine_id=self.system_info.machine_id,
            attempts=[a.model_dump(mode="json") for a in outcome.attempts],
            hidden_area=outcome.unlock.model_dump(mode="json") if outcome.unlock else None,
            verification=self._verification(outcome),
        )

    def _verification(self, outcome: RunOutcome) -> Optional[dict]:
        verification = outcome.verification
        if verification is None:
            return None
        data = verification.model_dump(mode="json")
        data["passed"] = verification.passed
        data["summary"] = verification.summary
        return data

    def report_name(self, outcome: RunOutcome, suffix: int = 0) -> str:
        prefix = "wipe_report_sw" if self.software_only else "wipe_report"
        stamp = compact_utc(outcome.end_time or utc_now())
        extra = f"_{suffix}" if suffix else ""
        return f"{prefix}_{device_short(outcome.device.path)}_{stamp}{extra}.json"

    def write_report(self, outcome: RunOutcome) -> Path:
        """Write the report once; never replaces an existing file."""
        report = self.build_report(outcome)
        self.report_dir.mkdir(parents=True, exist_ok=True)

        suffix = 0
        while True:
            path = self.report_dir / self.report_name(outcome, suffix)
            try:
                f = open(path, "x")
            except FileExistsError:
                suffix += 1
                continue
            with f:
                json.dump(report.model_dump(mode="json"), f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            break

        os.chmod(path, 0o444)
        print(f"📄 Wipe report: {path}")
        return path
