"""Execute phase - run the tiered erase state machine."""

import time
from typing import Callable, List, Optional, Set, Tuple

from .config import WipeConfig
from .mechanisms import EraseMechanism
from .models import (
    TargetDevice, EraseAttempt, EraseResult, EraseStatus, AttemptOutcome, StepResult,
)
from .plan import ErasePlan


class EraseEngine:
    """Firmware tier with bounded retry, then the full fallback tier.

    Start -> FirmwareTier -> {Success | FallbackTier}
    FallbackTier -> {FallbackOK | FallbackDegraded}
    """

    def __init__(self, config: WipeConfig, sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.sleep = sleep

    def run(self, device: TargetDevice, plan: ErasePlan) -> EraseResult:
        attempts: List[EraseAttempt] = []
        password_steps: List[StepResult] = []
        notes: List[str] = []

        if plan.firmware:
            winner, sweeps = self._run_firmware_tier(device, plan, attempts, password_steps)
            if winner is not None:
                print(f"✅ Firmware erase succeeded: {winner.mechanism}")
                notes.append(f"{winner.mechanism} succeeded on attempt {winner.attempt}.")
                self._note_password(password_steps, notes)
                return EraseResult(
                    status=EraseStatus.FIRMWARE_OK,
                    method=winner.mechanism,
                    attempts=attempts,
                    password_steps=password_steps,
                    notes=notes
                )
            print("⚠️  Firmware path failed, engaging fallback.")
            notes.append(f"Firmware tier failed after {sweeps} attempt(s); engaging fallback.")
            self._note_password(password_steps, notes)
        else:
            notes.append("Firmware tier skipped; software fallback only.")

        status = self._run_fallback_tier(device, plan, attempts, notes)
        return EraseResult(
            status=status,
            method=plan.fallback_method,
            attempts=attempts,
            password_steps=password_steps,
            notes=notes
        )

    def _run_firmware_tier(self, device: TargetDevice, plan: ErasePlan,
                           attempts: List[EraseAttempt],
                           password_steps: List[StepResult]) -> Tuple[Optional[EraseAttempt], int]:
        remaining = list(plan.firmware)
        delays = self.config.backoff_delays()
        sweeps = 0

        for number in range(1, self.config.retry_max + 1):
            sweeps = number
            print(f"📋 Firmware tier attempt {number}/{self.config.retry_max}")
            winner, unavailable = self._sweep(device, plan, remaining, number, attempts, password_steps)
            if winner is not None:
                return winner, sweeps

            remaining = [m for m in remaining if m.name not in unavailable]
            if not remaining:
                print("⚠️  No firmware erase mechanism is available on this system.")
                break
            if number < self.config.retry_max:
                delay = next(delays)
                print(f"⏳ Retrying firmware tier in {delay:g}s")
                self.sleep(delay)

        return None, sweeps

    def _sweep(self, device: TargetDevice, plan: ErasePlan, mechanisms: List[EraseMechanism],
               number: int, attempts: List[EraseAttempt],
               password_steps: List[StepResult]) -> Tuple[Optional[EraseAttempt], Set[str]]:
        """One pass over the firmware mechanisms; first success wins."""
        unavailable = set()
        if plan.session is not None:
            password_steps.append(plan.session.set_password(device))
        try:
            for mechanism in mechanisms:
                attempt = mechanism.attempt(device, number)
                attempts.append(attempt)
                if attempt.succeeded:
                    return attempt, unavailable
                if attempt.outcome is AttemptOutcome.UNAVAILABLE:
                    unavailable.add(mechanism.name)
                print(f"   ❌ {mechanism.name}: {attempt.outcome.value} {attempt.detail}".rstrip())
        finally:
            # The temporary password must not survive the attempt.
            if plan.session is not None:
                password_steps.append(plan.session.clear_password(device))
        return None, unavailable

    def _run_fallback_tier(self, device: TargetDevice, plan: ErasePlan,
                           attempts: List[EraseAttempt], notes: List[str]) -> EraseStatus:
        """Every fallback step runs, whatever the earlier steps returned."""
        print(f"📋 [Fallback] {plan.discard.description} on {device.path}")
        discard = plan.discard.attempt(device)
        attempts.append(discard)

        for mechanism in plan.overwrite:
            print(f"📋 [Fallback] {mechanism.description or mechanism.name} on {device.path}")
            attempt = mechanism.attempt(device)
            attempts.append(attempt)
            if not attempt.succeeded:
                print(f"   ⚠️  {mechanism.name}: {attempt.outcome.value} {attempt.detail}".rstrip())
                notes.append(f"{mechanism.name} {attempt.outcome.value}: {attempt.detail}".rstrip(": "))

        overwrite_names = "+".join(m.name for m in plan.overwrite)
        if discard.succeeded:
            notes.append(f"{discard.mechanism} succeeded; {overwrite_names} added redundancy.")
            return EraseStatus.FALLBACK_OK
        notes.append(f"{discard.mechanism} {discard.outcome.value}; performed {overwrite_names} only.")
        return EraseStatus.FALLBACK_DEGRADED

    @staticmethod
    def _note_password(password_steps: List[StepResult], notes: List[str]) -> None:
        if password_steps and not password_steps[-1].succeeded:
            notes.append(
                f"ATA password clear {password_steps[-1].outcome.value}; "
                "check drive security state."
            )
