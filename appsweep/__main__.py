import argparse
import sys

from appsweep.discovery import DiscoveryEngine
from appsweep.formatting import format_entry, format_size
from appsweep.logger import DiagnosticLog
from appsweep.models import TaskState
from appsweep.scheduler import ScanTask, TaskScheduler


def list_apps(engine=None, folders=None):
    """Runs one headless scan and prints every record with its related files."""
    if engine is None:
        engine = DiscoveryEngine(logger=DiagnosticLog(echo=False))
    scheduler = TaskScheduler(logger=engine.logger)
    scheduler.start(ScanTask(engine, folders))
    scheduler.wait()
    if scheduler.state is not TaskState.COMPLETED:
        print(f"Scan {scheduler.state.value}: {scheduler.last_finished.error}", file=sys.stderr)
        return 1

    for record in scheduler.shared_state.records:
        running = " [running]" if record.is_running else ""
        print(f"{record.display_name} ({record.identifier or 'no identifier'}){running}")
        print(f"    {record.bundle_path}")
        for entry in record.related_files:
            print(f"    {format_entry(entry)}")
        if record.related_files:
            print(f"    total: {format_size(record.total_size)}")

    warnings = engine.logger.warnings() if isinstance(engine.logger, DiagnosticLog) else []
    for warning in warnings:
        print(f"WARNING: {warning}", file=sys.stderr)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="appsweep", description="Uninstall applications together with their leftovers.")
    parser.add_argument("--list", action="store_true", help="scan and print applications instead of opening the window")
    args = parser.parse_args(argv)

    if args.list:
        return list_apps()

    from appsweep.gui import run
    run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
