"""Main entry point for the secure wipe tool."""

import argparse
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from .collect import DeviceCollector
from .config import WipeConfig
from .errors import WipeAbort, EXIT_OK, EXIT_USAGE, EXIT_VERIFY_FAILED, EXIT_INTERRUPTED
from .execute import EraseEngine
from .lock import DeviceLock
from .plan import WipePlanner
from .report import ReportGenerator, prepare_report_dir
from .safety import SafetyGuard
from .state import StateManager
from .unlock import HiddenAreaUnlocker
from .utils import CommandRunner, format_capacity
from .verify import Verifier, apply_verification


def run_full_workflow(device_path: str, config: WipeConfig,
                      runner: Optional[CommandRunner] = None,
                      collector: Optional[DeviceCollector] = None,
                      sleep: Callable[[float], None] = time.sleep,
                      state_manager: Optional[StateManager] = None) -> int:
    """Run every phase against one device and return the process exit code."""
    runner = runner or CommandRunner()
    collector = collector or DeviceCollector(runner, config.query_timeout)
    state_manager = state_manager or StateManager()

    print("🚀 Starting secure wipe")
    print("=" * 50)

    if not collector.is_privileged():
        print("❌ Run as root.")
        return EXIT_USAGE

    try:
        # Phase 1: Safety
        print("\n📋 Phase 1: Safety checks...")
        state_manager.update_phase("safety", "running")
        guard = SafetyGuard(collector)
        for warning in guard.check(device_path):
            print(f"⚠️  {warning}")
        report_dir = prepare_report_dir(config.report_dir)
        print(f"✓ Reports go to {report_dir}")
        state_manager.update_phase("safety", "completed")

        with DeviceLock(device_path, config.lock_dir, collector.base_disks(device_path)):
            return _run_locked(device_path, config, runner, collector, sleep, state_manager)

    except WipeAbort as e:
        print(f"❌ {e}")
        state_manager.fail_running()
        return e.exit_code
    except OSError as e:
        print(f"❌ Error during wipe: {e}")
        state_manager.fail_running()
        return EXIT_USAGE
    except KeyboardInterrupt:
        print("\n❌ Interrupted. Device state is unknown and no report was written.")
        state_manager.fail_running()
        return EXIT_INTERRUPTED
    finally:
        print()
        state_manager.show_status()


def _run_locked(device_path: str, config: WipeConfig, runner: CommandRunner,
                collector: DeviceCollector, sleep: Callable[[float], None],
                state_manager: StateManager) -> int:
    # Phase 2: Collect
    print("\n📋 Phase 2: Classifying device...")
    state_manager.update_phase("collect", "running")
    device = collector.probe(device_path)
    system_info = collector.get_system_info()
    print(f"✓ {device.path}: {device.transport.value.upper()}, "
          f"{format_capacity(device.size_bytes)}, {device.sector_size}-byte sectors")
    state_manager.update_phase("collect", "completed", {"device": device.model_dump()})
    outcome = state_manager.start_run(device)

    # Phase 3: Hidden areas (best effort)
    print("\n📋 Phase 3: Unlocking hidden areas...")
    state_manager.update_phase("unlock", "running")
    outcome.unlock = HiddenAreaUnlocker(runner, config.query_timeout).unlock(device)
    if outcome.unlock.hpa_present:
        outcome.add_note(
            f"HPA detected: {outcome.unlock.current_max_sectors}/"
            f"{outcome.unlock.native_max_sectors} sectors; restore "
            f"{outcome.unlock.step('hpa_restore').outcome.value}."
        )
    state_manager.update_phase("unlock", "completed")

    # Phase 4: Erase
    print("\n📋 Phase 4: Erasing...")
    print("⚠️  WARNING: This permanently destroys all data on the selected device!")
    state_manager.update_phase("erase", "running")
    plan = WipePlanner(config, runner, sleep).create_plan(device)
    erase = EraseEngine(config, sleep).run(device, plan)
    outcome.method_used = erase.method
    outcome.status = erase.status.value
    outcome.attempts = erase.attempts
    outcome.notes.extend(erase.notes)
    state_manager.update_phase("erase", "completed", {"status": outcome.status})

    # Phase 5: Verify
    print("\n📋 Phase 5: Random sector sampling...")
    state_manager.update_phase("verify", "running")
    verification = Verifier(config).verify(device)
    apply_verification(outcome, verification)
    if verification.passed:
        print(f"✅ Verify PASS ({verification.summary})")
    else:
        print(f"❌ Verify FAIL ({verification.summary})")
    state_manager.update_phase("verify", "completed", {"passed": verification.passed, "status": outcome.status})

    # Phase 6: Report
    print("\n📋 Phase 6: Writing report...")
    state_manager.update_phase("report", "running")
    state_manager.finish_run()
    generator = ReportGenerator(
        config.report_dir, system_info, config.verify_samples,
        software_only=config.fallback_only
    )
    report_path = generator.write_report(outcome)
    state_manager.update_phase("report", "completed", {"path": str(report_path)})

    print(f"\n📊 Status: {outcome.status}")
    print(f"   Method: {outcome.method_used}")
    if outcome.verify_failed:
        print("❌ WARNING: Verification failed. Consider rerunning sanitize or add manual review.")
        return EXIT_VERIFY_FAILED
    print("✅ Completed.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secure-wipe",
        description="Firmware-first block device sanitization with verified fallback."
    )
    parser.add_argument("device", nargs="?", help="block device to erase, e.g. /dev/nvme1n1")
    parser.add_argument("--retry-max", type=int, help="firmware-tier attempts (default: 10)")
    parser.add_argument("--verify-samples", type=int, help="random sectors to verify (default: 256)")
    parser.add_argument("--verify-seed", type=int, help="seed for reproducible sampling")
    parser.add_argument("--report-dir", type=Path, help="report output directory (default: cwd)")
    parser.add_argument("--lock-dir", type=Path, help="directory for the per-device lock file")
    parser.add_argument("--shred-passes", type=int, help="overwrite passes in the fallback tier")
    parser.add_argument("--ata-password", help="temporary ATA password (default: random per run)")
    parser.add_argument("--fallback-only", action="store_true", default=None,
                        help="skip firmware erase and run the software fallback only")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.device:
        print("❌ Usage: secure-wipe /dev/<disk>")
        return EXIT_USAGE

    try:
        config = WipeConfig.from_env(
            retry_max=args.retry_max,
            verify_samples=args.verify_samples,
            verify_seed=args.verify_seed,
            report_dir=args.report_dir,
            lock_dir=args.lock_dir,
            shred_passes=args.shred_passes,
            ata_password=args.ata_password,
            fallback_only=args.fallback_only,
        )
    except ValidationError as e:
        print(f"❌ Invalid configuration: {e}")
        return EXIT_USAGE

    return run_full_workflow(args.device, config)


if __name__ == "__main__":
    sys.exit(main())
