from pathlib import Path

import pytest
from pydantic import ValidationError

from secure_wipe.config import WipeConfig, generate_ata_password


def test_defaults():
    config = WipeConfig()
    assert config.retry_max == 10
    assert config.verify_samples == 256
    assert config.boundary_bytes == 100 * 1024 * 1024
    assert config.fallback_only is False


def test_backoff_schedule():
    assert list(WipeConfig().backoff_delays()) == [2, 4, 8, 16, 30, 30, 30, 30, 30]
    assert list(WipeConfig(retry_max=3).backoff_delays()) == [2, 4]
    assert list(WipeConfig(retry_max=1).backoff_delays()) == []


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("WIPE_RETRY_MAX", "4")
    monkeypatch.setenv("WIPE_VERIFY_SAMPLES", "1024")
    monkeypatch.setenv("WIPE_REPORT_DIR", str(tmp_path))

    config = WipeConfig.from_env()

    assert config.retry_max == 4
    assert config.verify_samples == 1024
    assert config.report_dir == Path(tmp_path)


def test_cli_overrides_win_and_none_falls_through(monkeypatch):
    monkeypatch.setenv("WIPE_RETRY_MAX", "4")
    monkeypatch.setenv("WIPE_SHRED_PASSES", "7")

    config = WipeConfig.from_env(retry_max=2, shred_passes=None)

    assert config.retry_max == 2
    assert config.shred_passes == 7


def test_password_is_never_read_from_environment(monkeypatch):
    monkeypatch.setenv("WIPE_ATA_PASSWORD", "fromenv")
    config = WipeConfig.from_env()
    assert config.ata_password.get_secret_value() != "fromenv"


def test_passwords_are_fresh_and_hidden():
    first, second = generate_ata_password(), generate_ata_password()
    assert first.get_secret_value() != second.get_secret_value()
    assert first.get_secret_value() not in repr(WipeConfig(ata_password=first))


@pytest.mark.parametrize("password", ["", "has space", "x" * 33])
def test_bad_passwords_rejected(password):
    with pytest.raises(ValidationError):
        WipeConfig(ata_password=password)


@pytest.mark.parametrize("field,value", [("retry_max", 0), ("verify_samples", 0), ("shred_passes", 0)])
def test_bad_values_rejected(field, value):
    with pytest.raises(ValidationError):
        WipeConfig(**{field: value})
