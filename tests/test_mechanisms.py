import pytest
from pydantic import SecretStr

from secure_wipe.mechanisms import (
    NVMeSanitize, NVMeCryptoFormat, NVMeUserFormat,
    ATAEnhancedErase, ATAStandardErase, ATASecuritySession,
    Discard, ShredOverwrite, ZeroFillOverwrite, BoundaryZero,
)
from secure_wipe.models import TargetDevice, TransportFamily, AttemptOutcome, EraseTier, StepOutcome

from conftest import FakeRunner

PASSWORD = SecretStr("s3cret")


@pytest.fixture
def nvme():
    return TargetDevice(path="/dev/nvme0n1", transport=TransportFamily.NVME)


@pytest.fixture
def ata():
    return TargetDevice(path="/dev/sdb", transport=TransportFamily.ATA)


def test_nvme_commands(runner, nvme):
    NVMeSanitize(runner).attempt(nvme)
    NVMeCryptoFormat(runner).attempt(nvme)
    NVMeUserFormat(runner).attempt(nvme)

    assert runner.calls == [
        ["nvme", "sanitize", "/dev/nvme0n1", "--sanact=2"],
        ["nvme", "sanitize-log", "/dev/nvme0n1", "--output-format=json"],
        ["nvme", "format", "/dev/nvme0n1", "--ses=2", "--force"],
        ["nvme", "format", "/dev/nvme0n1", "--ses=1", "--force"],
    ]


def test_ata_commands(runner, ata):
    ATAEnhancedErase(runner, PASSWORD).attempt(ata)
    ATAStandardErase(runner, PASSWORD).attempt(ata)

    assert runner.calls == [
        ["hdparm", "--user-master", "u", "--security-erase-enhanced", "s3cret", "/dev/sdb"],
        ["hdparm", "--user-master", "u", "--security-erase", "s3cret", "/dev/sdb"],
    ]


def test_security_session_commands(runner, ata):
    session = ATASecuritySession(runner, PASSWORD)
    assert session.set_password(ata).outcome is StepOutcome.SUCCESS
    assert session.clear_password(ata).outcome is StepOutcome.SUCCESS
    assert runner.calls == [
        ["hdparm", "--user-master", "u", "--security-set-pass", "s3cret", "/dev/sdb"],
        ["hdparm", "--user-master", "u", "--security-disable", "s3cret", "/dev/sdb"],
    ]


def test_password_is_redacted_from_details(ata):
    runner = FakeRunner().on("--security-erase", returncode=5, error="bad password s3cret")
    attempt = ATAStandardErase(runner, PASSWORD).attempt(ata)

    assert attempt.outcome is AttemptOutcome.FAILED
    assert "s3cret" not in attempt.detail

    runner.on("--security-disable", returncode=5, error="s3cret rejected")
    step = ATASecuritySession(runner, PASSWORD).clear_password(ata)
    assert step.outcome is StepOutcome.FAILURE
    assert "s3cret" not in step.detail


def test_missing_tool_is_unavailable(nvme):
    runner = FakeRunner(installed={"hdparm"})
    attempt = NVMeSanitize(runner).attempt(nvme)

    assert attempt.outcome is AttemptOutcome.UNAVAILABLE
    assert runner.calls == []


def test_failed_command_is_failed(nvme):
    runner = FakeRunner().on("sanitize", returncode=1, error="sanitize not supported\n")
    attempt = NVMeSanitize(runner).attempt(nvme, attempt=4)

    assert attempt.outcome is AttemptOutcome.FAILED
    assert attempt.detail == "sanitize not supported"
    assert attempt.attempt == 4
    assert attempt.tier is EraseTier.FIRMWARE


SANITIZE_RUNNING = '{"sprog": 32768, "sstat": 2, "cdw10_info": 2}'
SANITIZE_DONE = '{"sprog": 65535, "sstat": 257, "cdw10_info": 2}'
SANITIZE_FAILED = '{"sprog": 0, "sstat": 3, "cdw10_info": 2}'


def test_sanitize_waits_until_log_reports_completion(nvme):
    slept = []
    runner = FakeRunner().on("sanitize-log", output=[SANITIZE_RUNNING, SANITIZE_RUNNING, SANITIZE_DONE])

    attempt = NVMeSanitize(runner, poll_interval=5, sleep=slept.append).attempt(nvme)

    assert attempt.outcome is AttemptOutcome.SUCCEEDED
    assert slept == [5, 5]
    assert len(runner.calls_with("sanitize-log")) == 3
    assert "completed after 10s" in attempt.detail


def test_sanitize_log_nested_under_device_name(nvme):
    slept = []
    nested_running = '{"nvme0n1": {"sprog": 100, "sstat": "0x2"}}'
    nested_done = '{"nvme0n1": {"sprog": 65535, "sstat": "0x101"}}'
    runner = FakeRunner().on("sanitize-log", output=[nested_running, nested_done])

    attempt = NVMeSanitize(runner, poll_interval=1, sleep=slept.append).attempt(nvme)

    assert attempt.outcome is AttemptOutcome.SUCCEEDED
    assert slept == [1]


def test_sanitize_failure_in_log_fails_attempt(nvme):
    runner = FakeRunner().on("sanitize-log", output=[SANITIZE_RUNNING, SANITIZE_FAILED])
    attempt = NVMeSanitize(runner, sleep=lambda s: None).attempt(nvme)

    assert attempt.outcome is AttemptOutcome.FAILED
    assert "failed" in attempt.detail


def test_sanitize_wait_is_bounded_by_timeout(nvme):
    slept = []
    runner = FakeRunner().on("sanitize-log", output=SANITIZE_RUNNING)

    attempt = NVMeSanitize(runner, timeout=30, poll_interval=10, sleep=slept.append).attempt(nvme)

    assert attempt.outcome is AttemptOutcome.FAILED
    assert slept == [10, 10, 10]
    assert "still in progress" in attempt.detail


def test_unreadable_sanitize_log_keeps_success(nvme):
    runner = FakeRunner().on("sanitize-log", returncode=1, error="not supported")
    attempt = NVMeSanitize(runner, sleep=lambda s: pytest.fail("should not wait")).attempt(nvme)

    assert attempt.outcome is AttemptOutcome.SUCCEEDED
    assert "log unavailable" in attempt.detail


def test_fallback_commands(runner, ata):
    assert Discard(runner).attempt(ata).tier is EraseTier.FALLBACK
    ShredOverwrite(runner, passes=5).attempt(ata)
    assert runner.calls == [
        ["blkdiscard", "-f", "/dev/sdb"],
        ["shred", "-n", "5", "-z", "/dev/sdb"],
    ]


def test_zero_fill_overwrites_whole_image(make_disk):
    disk = make_disk(size=10_000, fill=b"\xaa")
    device = TargetDevice(path=str(disk), transport=TransportFamily.ATA, size_bytes=10_000)

    attempt = ZeroFillOverwrite(chunk_size=4096).attempt(device)

    assert attempt.outcome is AttemptOutcome.SUCCEEDED
    assert disk.read_bytes() == bytes(10_000)


def test_zero_fill_on_missing_device_fails(tmp_path):
    device = TargetDevice(path=str(tmp_path / "gone"), transport=TransportFamily.ATA)
    attempt = ZeroFillOverwrite().attempt(device)
    assert attempt.outcome is AttemptOutcome.FAILED


@pytest.mark.parametrize("size,regions", [
    (0, []),
    (50, [(0, 50)]),
    (100, [(0, 100)]),
    (150, [(0, 100), (100, 50)]),
    (1000, [(0, 100), (900, 100)]),
])
def test_boundary_regions(size, regions):
    assert BoundaryZero(boundary_bytes=100).regions(size) == regions


def test_boundary_zero_leaves_middle_untouched(make_disk):
    disk = make_disk(size=1000, fill=b"\xaa")
    device = TargetDevice(path=str(disk), transport=TransportFamily.ATA, size_bytes=1000)

    attempt = BoundaryZero(boundary_bytes=100, chunk_size=64).attempt(device)

    data = disk.read_bytes()
    assert attempt.outcome is AttemptOutcome.SUCCEEDED
    assert data[:100] == bytes(100)
    assert data[900:] == bytes(100)
    assert data[100:900] == b"\xaa" * 800
