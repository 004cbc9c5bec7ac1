"""Shared fixtures: throwaway home/system trees, fake bundles and fake collaborators."""

import os
import plistlib
import shutil

import pytest

from appsweep import config
from appsweep.errors import RelocationError
from appsweep.logger import DiagnosticLog
from appsweep.processes import ProcessEntry, ProcessSnapshot


def make_bundle(folder, filename, identifier=None, name=None, executable=None, version=None, manifest=True):
    bundle = os.path.join(str(folder), filename)
    os.makedirs(os.path.join(bundle, "Contents", "MacOS"), exist_ok=True)
    if manifest:
        pl = {}
        if identifier:
            pl["CFBundleIdentifier"] = identifier
        if name:
            pl["CFBundleName"] = name
        if executable:
            pl["CFBundleExecutable"] = executable
        if version:
            pl["CFBundleShortVersionString"] = version
        with open(os.path.join(bundle, "Contents", "Info.plist"), "wb") as fp:
            plistlib.dump(pl, fp)
    return bundle


def touch(path, content=b"x"):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as fp:
        fp.write(content)
    return path


class StubInspector:
    def __init__(self, entries=()):
        self.entries = list(entries)
        self.calls = 0

    def snapshot(self):
        self.calls += 1
        return ProcessSnapshot(self.entries)


class FakeGuard:
    """Running check by display name; bare paths count as in use when they mention a running name."""

    def __init__(self, *running):
        self.running = set(running)
        self.paths = []

    def __call__(self, owner):
        return owner.display_name in self.running

    def path_in_use(self, path):
        self.paths.append(path)
        return any(name in os.path.basename(path) for name in self.running)


class FakeTrash:
    """Relocator that moves into a temp folder and can be told to fail."""

    def __init__(self, trash_dir, available=True, fail=()):
        self.trash_dir = str(trash_dir)
        self.is_available = available
        self.fail = set(fail)
        self.calls = []
        os.makedirs(self.trash_dir, exist_ok=True)

    def available(self):
        return self.is_available

    def relocate(self, path):
        self.calls.append(path)
        if path in self.fail:
            raise RelocationError(path, "Permission denied")
        target = os.path.join(self.trash_dir, f"{len(self.calls)}-{os.path.basename(path)}")
        shutil.move(path, target)


class Sandbox:
    def __init__(self, base):
        self.base = str(base)
        self.home = os.path.join(self.base, "home")
        self.system = os.path.join(self.base, "system")
        os.makedirs(self.home)
        os.makedirs(self.system)

    @property
    def user_apps(self):
        return os.path.join(self.home, "Applications")

    @property
    def system_apps(self):
        return os.path.join(self.system, "Applications")

    def installation_roots(self):
        return config.installation_roots(self.home, self.system)

    def search_roots(self):
        return config.search_roots(self.home, self.system)

    def user_library(self, *parts):
        return os.path.join(self.home, "Library", *parts)

    def system_library(self, *parts):
        return os.path.join(self.system, "Library", *parts)


@pytest.fixture
def sandbox(tmp_path):
    return Sandbox(tmp_path / "fs")


@pytest.fixture
def diagnostics():
    return DiagnosticLog(echo=False)


@pytest.fixture
def acme(sandbox):
    """Foo (running) and Bar (not running) with one Bar preference and one unrelated one."""
    foo = make_bundle(sandbox.system_apps, "Foo.app", identifier="com.acme.Foo", name="Foo", executable="Foo")
    bar = make_bundle(sandbox.system_apps, "Bar.app", identifier="com.acme.Bar", name="Bar", executable="Bar")
    prefs = sandbox.user_library("Preferences")
    bar_plist = touch(os.path.join(prefs, "com.acme.Bar.plist"))
    touch(os.path.join(prefs, "com.acme.Unrelated.plist"))
    inspector = StubInspector([ProcessEntry("Foo", "com.acme.Foo", os.path.join(foo, "Contents", "MacOS", "Foo"))])
    return {"foo": foo, "bar": bar, "bar_plist": bar_plist, "inspector": inspector}
