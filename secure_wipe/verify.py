"""Statistical post-erase verification by random sector sampling."""

import random
import secrets

from . import blockio
from .config import WipeConfig
from .models import TargetDevice, VerificationResult, RunOutcome


def is_blank(data: bytes) -> bool:
    """True when the sector is all 0x00 or all 0xFF."""
    if not data:
        return False
    return data == bytes(len(data)) or data == b"\xff" * len(data)


class Verifier:
    """Reads ``verify_samples`` random sectors and fails closed on any doubt."""

    def __init__(self, config: WipeConfig):
        self.config = config

    def verify(self, device: TargetDevice) -> VerificationResult:
        samples = self.config.verify_samples
        seed = self.config.verify_seed
        if seed is None:
            seed = secrets.randbits(64)
        rng = random.Random(seed)

        total_sectors = device.total_sectors
        if total_sectors <= 0:
            return VerificationResult(
                samples=samples, unreadable=samples, seed=seed,
                error="device has no whole sectors to sample"
            )

        sector_size = device.sector_size
        result = VerificationResult(samples=samples, seed=seed)
        try:
            f = open(device.path, "rb", buffering=0)
        except OSError as e:
            result.unreadable = samples
            result.error = f"cannot open device: {e}"
            return result

        with f:
            blockio.drop_cache(f.fileno())
            for _ in range(samples):
                index = rng.randrange(total_sectors)
                try:
                    data = blockio.read_at(f, index * sector_size, sector_size)
                except OSError:
                    result.unreadable += 1
                    continue
                if len(data) != sector_size:
                    result.unreadable += 1
                elif is_blank(data):
                    result.blank += 1
                else:
                    result.non_blank += 1
        return result


def apply_verification(outcome: RunOutcome, verification: VerificationResult) -> None:
    """Suffix the run status and note failures."""
    outcome.verification = verification
    if verification.passed:
        outcome.status = f"{outcome.status}+Verified"
        return
    outcome.status = f"{outcome.status}+VerifyFail"
    if verification.error:
        reason = verification.error
    else:
        found = []
        if verification.non_blank:
            found.append(f"{verification.non_blank} non-blank")
        if verification.unreadable:
            found.append(f"{verification.unreadable} unreadable")
        reason = " and ".join(found) + " sample(s)"
    outcome.add_note(f"Random-sector verify failed: {reason} ({verification.summary}).")
