"""State management for a single wipe run.

State lives only for the duration of the process; the report file is the
sole durable artifact.
"""

from typing import Dict, Any, Optional

from .models import RunOutcome, TargetDevice, utc_now

PHASES = ["safety", "collect", "unlock", "erase", "verify", "report"]


class StateManager:
    """Tracks phase status and the run outcome as the phases progress."""

    def __init__(self):
        self._phases: Dict[str, Dict[str, Any]] = {
            phase: {"status": "pending", "data": {}} for phase in PHASES
        }
        self.outcome: Optional[RunOutcome] = None

    def start_run(self, device: TargetDevice) -> RunOutcome:
        if self.outcome is not None:
            raise ValueError("A run outcome already exists for this invocation")
        self.outcome = RunOutcome(device=device, start_time=utc_now())
        return self.outcome

    def finish_run(self) -> RunOutcome:
        if self.outcome is None:
            raise ValueError("No run in progress")
        self.outcome.end_time = utc_now()
        return self.outcome

    def update_phase(self, phase: str, status: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Update a specific phase with status and data."""
        if phase not in self._phases:
            raise ValueError(f"Unknown phase: {phase}")

        self._phases[phase]["status"] = status
        if data:
            self._phases[phase]["data"].update(data)

    def fail_running(self) -> None:
        """Mark whichever phase was in progress as failed."""
        for info in self._phases.values():
            if info["status"] == "running":
                info["status"] = "failed"

    def show_status(self) -> None:
        """Print one line per phase, then the run result if there is one."""
        print("📊 Secure Wipe - Status")
        print("=" * 30)
        for phase in PHASES:
            status = self.get_phase_status(phase)
            status_icon = "✅" if status == "completed" else "⏳" if status == "running" else "❌" if status == "failed" else "⭕"
            print(f"{status_icon} {phase.capitalize()}: {status}")

        # later phases carry the more complete status string
        for phase in ("verify", "erase"):
            status = self.get_phase_data(phase).get("status")
            if status:
                print(f"\n🧹 Result: {status}")
                break
        report_data = self.get_phase_data("report")
        if report_data.get("path"):
            print(f"📄 Report: {report_data['path']}")

    def get_phase_data(self, phase: str) -> Dict[str, Any]:
        return self._phases.get(phase, {}).get("data", {})

    def get_phase_status(self, phase: str) -> str:
        return self._phases.get(phase, {}).get("status", "pending")

    def get_state(self) -> Dict[str, Any]:
        """Get a snapshot of all phases."""
        return {phase: dict(info) for phase, info in self._phases.items()}
