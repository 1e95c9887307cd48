"""Plan phase - choose the ordered erase mechanisms for a device."""

import time
from typing import Callable, List, Optional

from .config import WipeConfig
from .mechanisms import (
    EraseMechanism, ATASecuritySession,
    NVMeSanitize, NVMeCryptoFormat, NVMeUserFormat,
    ATAEnhancedErase, ATAStandardErase,
    Discard, ShredOverwrite, ZeroFillOverwrite, BoundaryZero,
)
from .models import TargetDevice
from .utils import CommandRunner


class ErasePlan:
    """Ordered capability attempts for one device.

    ``firmware`` mechanisms are tried in order with the first success
    winning; ``discard`` and ``overwrite`` make up the fallback tier, all of
    which always run.
    """

    def __init__(self, firmware: List[EraseMechanism], discard: EraseMechanism,
                 overwrite: List[EraseMechanism], session: Optional[ATASecuritySession] = None,
                 fallback_method: str = ""):
        self.firmware = firmware
        self.discard = discard
        self.overwrite = overwrite
        self.session = session
        self.fallback_method = fallback_method or "fallback_" + "+".join(
            m.name for m in [discard] + overwrite
        )

    @property
    def fallback(self) -> List[EraseMechanism]:
        return [self.discard] + self.overwrite


class WipePlanner:
    """Builds erase plans from device transport and installed tools."""

    def __init__(self, config: WipeConfig, runner: CommandRunner,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.runner = runner
        self.sleep = sleep

    def create_plan(self, device: TargetDevice) -> ErasePlan:
        if self.config.fallback_only:
            firmware, session = [], None
        elif device.is_nvme:
            firmware, session = self._nvme_firmware(), None
        else:
            firmware, session = self._ata_firmware()

        plan = ErasePlan(
            firmware=firmware,
            discard=Discard(self.runner, timeout=self.config.command_timeout),
            overwrite=[self._overwrite(), BoundaryZero(self.config.boundary_bytes)],
            session=session,
        )
        if self.config.fallback_only:
            plan.fallback_method = "software_fallback_" + "+".join(m.name for m in plan.fallback)
        return plan

    def _nvme_firmware(self) -> List[EraseMechanism]:
        timeout = self.config.command_timeout
        return [
            NVMeSanitize(self.runner, timeout, self.config.sanitize_poll_interval, self.sleep),
            NVMeCryptoFormat(self.runner, timeout),
            NVMeUserFormat(self.runner, timeout),
        ]

    def _ata_firmware(self):
        timeout = self.config.command_timeout
        password = self.config.ata_password
        session = ATASecuritySession(self.runner, password, self.config.query_timeout)
        firmware = [
            ATAEnhancedErase(self.runner, password, timeout),
            ATAStandardErase(self.runner, password, timeout),
        ]
        return firmware, session

    def _overwrite(self) -> EraseMechanism:
        if self.runner.available("shred"):
            return ShredOverwrite(self.runner, self.config.shred_passes, self.config.command_timeout)
        return ZeroFillOverwrite(self.config.zero_chunk_bytes)
