"""Run configuration for secure-wipe."""

import os
import secrets
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator

MIB = 1024 * 1024


def generate_ata_password() -> SecretStr:
    """Fresh temporary ATA security password, never persisted."""
    # hdparm accepts at most 32 characters
    return SecretStr(secrets.token_hex(8))


class WipeConfig(BaseModel):
    """Explicit configuration handed to every stage of a run."""
    retry_max: int = Field(default=10, ge=1)
    initial_delay: float = Field(default=2, ge=0)
    max_delay: float = Field(default=30, ge=0)
    verify_samples: int = Field(default=256, ge=1)
    verify_seed: Optional[int] = None
    report_dir: Path = Field(default_factory=Path.cwd)
    lock_dir: Path = Path("/run/lock")
    shred_passes: int = Field(default=3, ge=1)
    boundary_bytes: int = Field(default=100 * MIB, ge=0)
    zero_chunk_bytes: int = Field(default=16 * MIB, ge=512)
    command_timeout: Optional[float] = None
    query_timeout: float = 30
    sanitize_poll_interval: float = Field(default=10, gt=0)
    fallback_only: bool = False
    ata_password: SecretStr = Field(default_factory=generate_ata_password)

    @field_validator("ata_password")
    @classmethod
    def _check_password(cls, value: SecretStr) -> SecretStr:
        raw = value.get_secret_value()
        if not raw or len(raw) > 32 or any(c.isspace() for c in raw):
            raise ValueError("ATA password must be 1-32 characters without whitespace")
        return value

    @classmethod
    def from_env(cls, **overrides) -> "WipeConfig":
        """Build a config from WIPE_* environment variables (and a .env file).

        Keyword overrides win over the environment; ``None`` overrides are
        ignored so unset CLI flags fall through.
        """
        load_dotenv()

        values = {}
        env_map = {
            "retry_max": "WIPE_RETRY_MAX",
            "verify_samples": "WIPE_VERIFY_SAMPLES",
            "report_dir": "WIPE_REPORT_DIR",
            "lock_dir": "WIPE_LOCK_DIR",
            "shred_passes": "WIPE_SHRED_PASSES",
            "command_timeout": "WIPE_COMMAND_TIMEOUT",
        }
        for field, env_name in env_map.items():
            raw = os.getenv(env_name)
            if raw:
                values[field] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def backoff_delays(self):
        """Waits between consecutive firmware-tier attempts."""
        delay = self.initial_delay
        for _ in range(self.retry_max - 1):
            yield min(delay, self.max_delay)
            delay = min(delay * 2, self.max_delay)
