"""
Process snapshots for the running-app check.

A snapshot is taken once per scan (and afresh for every removal check) and
passed around explicitly, so all verdicts within one scan agree with each
other. Ambiguous matches are reported as running.
"""
import os
from dataclasses import dataclass
from typing import Optional

import psutil

from appsweep.bundles import BundleReader
from appsweep.config import BUNDLE_EXTENSION, EXECUTABLE_DIR

_BUNDLE_MARKER = BUNDLE_EXTENSION + os.sep + EXECUTABLE_DIR + os.sep


def strip_extension(name):
    if name and name.lower().endswith(BUNDLE_EXTENSION):
        return name[:-len(BUNDLE_EXTENSION)]
    return name


def enclosing_bundle(exe_path):
    """'/Applications/Foo.app/Contents/MacOS/Foo' -> '/Applications/Foo.app'."""
    if not exe_path:
        return None
    idx = exe_path.find(_BUNDLE_MARKER)
    if idx == -1:
        return None
    return exe_path[:idx + len(BUNDLE_EXTENSION)]


@dataclass(frozen=True)
class ProcessEntry:
    name: str
    bundle_identifier: Optional[str] = None
    exe: Optional[str] = None

    @property
    def bundle_path(self):
        return enclosing_bundle(self.exe)


class ProcessSnapshot:
    """Immutable view of the process table at one instant."""

    def __init__(self, entries=()):
        self.entries = frozenset(entries)
        self._names = {strip_extension(e.name).lower() for e in self.entries if e.name}
        self._identifiers = {e.bundle_identifier for e in self.entries if e.bundle_identifier}
        self._bundles = {os.path.normpath(e.bundle_path) for e in self.entries if e.bundle_path}

    def __len__(self):
        return len(self.entries)

    def is_running(self, identifier, display_name, executable=None, bundle_path=None):
        if identifier and identifier in self._identifiers:
            return True

        for candidate in (display_name, executable):
            candidate = strip_extension(candidate)
            if candidate and candidate.lower() in self._names:
                return True

        if bundle_path and os.path.normpath(bundle_path) in self._bundles:
            return True

        # "com.acme.Foo" is frequently a process called "Foo".
        if identifier and "." in identifier:
            last = identifier.rsplit(".", 1)[1].lower()
            if last and last in self._names:
                return True

        return False

    def owns_path(self, path):
        """
        True if path looks like it belongs to a running process: it is (or is
        inside) a running bundle, or its name starts with a running identifier
        or matches a running process name. Used when the path's app is unknown.
        """
        path = os.path.abspath(path)
        for bundle in self._bundles:
            if path == bundle or os.path.commonpath([path, bundle]) == bundle:
                return True

        base = os.path.basename(path)
        if any(base.startswith(identifier) for identifier in self._identifiers):
            return True

        stem = os.path.splitext(strip_extension(base))[0].lower()
        if stem in self._names or strip_extension(base).lower() in self._names:
            return True
        # com.acme.Foo.plist while a process called "Foo" runs
        return "." in stem and stem.rsplit(".", 1)[1] in self._names


class ProcessInspector:
    """Builds ProcessSnapshot objects from the live process table via psutil."""

    def __init__(self, reader=None, logger=None):
        self.reader = reader or BundleReader()
        self.logger = logger

    def snapshot(self):
        identifiers = {}
        entries = []
        for proc in psutil.process_iter(["name", "exe"]):
            try:
                name = proc.info.get("name")
                exe = proc.info.get("exe")
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if not name:
                continue

            bundle_id = None
            bundle_path = enclosing_bundle(exe)
            if bundle_path:
                if bundle_path not in identifiers:
                    identifiers[bundle_path] = self.reader.identifier_of(bundle_path)
                bundle_id = identifiers[bundle_path]

            entries.append(ProcessEntry(name=name, bundle_identifier=bundle_id, exe=exe))

        if self.logger:
            self.logger.log(f"Process snapshot: {len(entries)} processes")
        return ProcessSnapshot(entries)

    def running_identifiers(self, snapshot=None):
        """
        (name, bundle identifier) pairs of running processes. Pass the scan's
        snapshot to get answers consistent with it; without one this takes a
        fresh snapshot and is meant for one-off checks.
        """
        if snapshot is None:
            snapshot = self.snapshot()
        return {(entry.name, entry.bundle_identifier) for entry in snapshot.entries}

    def is_running(self, identifier, display_name, executable=None, bundle_path=None):
        """Live check against a fresh snapshot."""
        return self.snapshot().is_running(identifier, display_name, executable, bundle_path)
