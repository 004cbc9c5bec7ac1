import os

from appsweep.bundles import BundleReader, name_from_filename
from appsweep.config import BUNDLE_EXTENSION, installation_roots, search_roots
from appsweep.correlator import PathCorrelator
from appsweep.errors import ReadError
from appsweep.logger import DiagnosticLog, warn
from appsweep.models import AppRecord
from appsweep.processes import ProcessInspector


def sort_key(record):
    return (record.display_name.lower(), record.bundle_path)


class DiscoveryEngine:
    """
    Scans installation roots for application bundles and builds one
    AppRecord per bundle, with running state and related files filled in.
    """

    def __init__(self, reader=None, inspector=None, roots=None, logger=None):
        self.logger = logger or DiagnosticLog()
        self.reader = reader or BundleReader()
        self.inspector = inspector or ProcessInspector(self.reader)
        self.roots = roots
        self.last_correlator = None

    def log(self, msg):
        if self.logger:
            self.logger.log(msg)

    def new_correlator(self):
        roots = self.roots if self.roots is not None else search_roots()
        return PathCorrelator(roots, logger=self.logger)

    def find_bundles(self, folders):
        """Every bundle directly inside the given roots, in a stable order."""
        found = []
        seen = set()
        for folder in folders:
            if not os.path.isdir(folder):
                continue
            try:
                entries = sorted(os.listdir(folder))
            except OSError as e:
                warn(self.logger, f"AccessError: skipping installation root {folder}: {e.strerror or e}")
                continue
            for entry in entries:
                full_path = os.path.join(folder, entry)
                if not entry.endswith(BUNDLE_EXTENSION) or not os.path.isdir(full_path):
                    continue
                real = os.path.realpath(full_path)
                if real in seen:
                    continue
                seen.add(real)
                found.append(full_path)
        return found

    def build_record(self, bundle_path, snapshot, correlator):
        """Returns an AppRecord, or None for a bundle with no usable name."""
        identifier = None
        display_name = None
        version = None
        executable = None
        try:
            info = self.reader.read(bundle_path)
            identifier = info.identifier
            display_name = info.display_name
            version = info.version
            executable = info.executable
        except ReadError as e:
            warn(self.logger, f"ReadError: {e}")

        display_name = display_name or name_from_filename(bundle_path)
        if not identifier and not display_name:
            warn(self.logger, f"Discarding unnamed bundle {bundle_path}")
            return None

        record = AppRecord(
            identifier=identifier or "",
            display_name=display_name or "",
            bundle_path=bundle_path,
            is_running=snapshot.is_running(identifier, display_name, executable, bundle_path),
            version=version,
            executable=executable,
        )
        record.related_files = correlator.correlate(identifier, display_name, exclude=bundle_path)
        return record

    def scan(self, folders=None, progress_callback=None, checkpoint=None):
        """
        Scans standard application directories.

        progress_callback(current, total, message) fires once per bundle with
        current counting from 1. checkpoint() is called before each bundle
        and may raise TaskCancelled to stop the scan.
        """
        if folders is None:
            folders = installation_roots()
        bundle_paths = self.find_bundles(folders)
        total = len(bundle_paths)
        self.log(f"Scanning {total} bundles in {', '.join(folders)}")

        snapshot = self.inspector.snapshot()
        correlator = self.new_correlator()
        self.last_correlator = correlator

        records = []
        for i, full_path in enumerate(bundle_paths):
            if checkpoint:
                checkpoint()
            record = self.build_record(full_path, snapshot, correlator)
            if record is not None:
                records.append(record)
            if progress_callback:
                progress_callback(i + 1, total, f"Scanning: {os.path.basename(full_path)}")

        return sorted(records, key=sort_key)

    def refresh_related(self, record):
        """Re-runs correlation for one record against the live filesystem."""
        return self.new_correlator().correlate(record.identifier or None, record.display_name, exclude=record.bundle_path)

