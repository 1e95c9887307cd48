"""Best-effort HPA/DCO unlock so hidden sectors are erased too."""

import re
from typing import Callable

from .mechanisms import step_from_result
from .models import TargetDevice, StepResult, StepOutcome, UnlockResult
from .utils import CommandRunner, CommandResult

MAX_SECTORS = re.compile(r"max sectors\s*=\s*(\d+)\s*/\s*(\d+)", re.IGNORECASE)
FORCE = "--yes-i-know-what-i-am-doing"


def parse_max_sectors(output: str):
    """(current, native) from ``hdparm -N`` output, or None."""
    match = MAX_SECTORS.search(output)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class HiddenAreaUnlocker:
    """Reveals HPA and DCO reserved sectors. Never fails the run."""

    def __init__(self, runner: CommandRunner, timeout: float = 30):
        self.runner = runner
        self.timeout = timeout

    def _step(self, name: str, action: Callable[[], CommandResult]) -> StepResult:
        try:
            result = action()
        except Exception as e:
            return StepResult(name=name, outcome=StepOutcome.FAILURE, detail=str(e))
        return step_from_result(name, result)

    def unlock(self, device: TargetDevice) -> UnlockResult:
        print(f"📋 [HPA/DCO] Probing {device.path}")
        unlock = UnlockResult()
        path = device.path

        query_output = {}

        def query():
            result = self.runner.run(["hdparm", "-N", path], timeout=self.timeout)
            query_output["text"] = result.output
            return result

        query_step = self._step("hpa_query", query)
        unlock.steps.append(query_step)

        sectors = parse_max_sectors(query_output.get("text", "")) if query_step.succeeded else None
        if sectors:
            unlock.current_max_sectors, unlock.native_max_sectors = sectors
            unlock.hpa_present = sectors[0] != sectors[1]

        if unlock.hpa_present:
            native = unlock.native_max_sectors
            print(f"⚠️  [HPA] Forcing native max sectors: {native}")
            unlock.steps.append(self._step(
                "hpa_restore",
                lambda: self.runner.run(["hdparm", FORCE, "-N", f"p{native}", path], timeout=self.timeout)
            ))
        else:
            unlock.steps.append(StepResult(
                name="hpa_restore", outcome=StepOutcome.UNSUPPORTED,
                detail="no host protected area reported"
            ))

        # DCO restore may need a power cycle on some drives
        unlock.steps.append(self._step(
            "dco_identify",
            lambda: self.runner.run(["hdparm", "--dco-identify", path], timeout=self.timeout)
        ))
        unlock.steps.append(self._step(
            "dco_restore",
            lambda: self.runner.run(["hdparm", FORCE, "--dco-restore", path], timeout=self.timeout)
        ))
        return unlock
