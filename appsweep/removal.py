import os
import shutil
import subprocess

import psutil

from appsweep.config import TRASH_COMMAND, protected_paths
from appsweep.errors import RelocationError, RemovalUnsupported
from appsweep.formatting import format_outcome
from appsweep.logger import SweepLogger, warn
from appsweep.models import OutcomeKind, RemovalOutcome, RemovalRequest
from appsweep.processes import ProcessInspector


class FinderTrash:
    """
    Moves items to the Trash through Finder so they can be put back.
    Exactly one path per relocate() call; nothing is ever deleted outright.
    """
    def __init__(self, timeout=30):
        self.timeout = timeout

    def available(self):
        return shutil.which(TRASH_COMMAND) is not None

    def relocate(self, path):
        clean_path = path.replace('\\', '\\\\').replace('"', '\\"')
        cmd = [TRASH_COMMAND, "-e", f'tell application "Finder" to delete POSIX file "{clean_path}"']
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise RelocationError(path, "Finder did not respond")
        except OSError as e:
            raise RelocationError(path, e.strerror or str(e))

        if result.returncode != 0:
            reason = (result.stderr or "").strip() or f"osascript exited with {result.returncode}"
            raise RelocationError(path, reason)
        if os.path.lexists(path):
            raise RelocationError(path, "item is still in place after moving")


class RunningGuard:
    """Answers 'is the owner of this path running right now?' from a fresh snapshot."""

    def __init__(self, inspector=None):
        self.inspector = inspector or ProcessInspector()

    def _snapshot(self):
        try:
            return self.inspector.snapshot()
        except (psutil.Error, OSError):
            return None

    def __call__(self, owner):
        snapshot = self._snapshot()
        if snapshot is None:
            return True
        return snapshot.is_running(owner.identifier, owner.display_name, owner.executable, owner.bundle_path)

    def path_in_use(self, path):
        """Same question for a path whose owning app is unknown."""
        snapshot = self._snapshot()
        if snapshot is None:
            return True
        return snapshot.owns_path(path)


def _as_request(item):
    if isinstance(item, RemovalRequest):
        return item
    return RemovalRequest(str(item))


class RemovalExecutor:
    """
    Relocates selected paths to the Trash, one at a time.

    Every path gets exactly one RemovalOutcome. Running owners and vanished
    paths are skipped, relocation errors become FAILED and the batch carries
    on. Without a holding area the batch is refused as a whole.
    """

    def __init__(self, relocator=None, running_guard=None, logger=None, protected=None):
        self.relocator = relocator or FinderTrash()
        self.running_guard = running_guard or RunningGuard()
        self.logger = logger or SweepLogger()
        self.protected = {os.path.normpath(p) for p in (protected if protected is not None else protected_paths())}

    def log(self, msg):
        if self.logger:
            self.logger.log(msg)

    def check_supported(self):
        if not self.relocator.available():
            raise RemovalUnsupported("No Trash is available; refusing to delete permanently.")

    def remove_one(self, request):
        path = request.path
        owner = request.owner

        if owner is not None:
            if self.running_guard(owner):
                return RemovalOutcome(path, OutcomeKind.SKIPPED_RUNNING, f"{owner.display_name} is running")
        elif self.running_guard.path_in_use(path):
            return RemovalOutcome(path, OutcomeKind.SKIPPED_RUNNING, "a running app may be using it")

        if not os.path.lexists(path):
            return RemovalOutcome(path, OutcomeKind.SKIPPED_MISSING)

        if os.path.normpath(path) in self.protected:
            return RemovalOutcome(path, OutcomeKind.FAILED, "protected location")

        self.log(f"Moving to trash: {path}")
        try:
            self.relocator.relocate(path)
        except RelocationError as e:
            warn(self.logger, str(e))
            return RemovalOutcome(path, OutcomeKind.FAILED, e.reason)
        except OSError as e:
            warn(self.logger, f"Error moving {path} to trash: {e}")
            return RemovalOutcome(path, OutcomeKind.FAILED, e.strerror or str(e))
        return RemovalOutcome(path, OutcomeKind.MOVED)

    def remove(self, selected, progress_callback=None, checkpoint=None):
        """
        selected holds RemovalRequest objects or bare paths. A bare path has no
        known owner, so it is checked against every running process instead.
        Raises RemovalUnsupported before touching anything.
        """
        self.check_supported()
        requests = [_as_request(item) for item in selected]
        total = len(requests)

        outcomes = []
        for i, request in enumerate(requests):
            if checkpoint:
                checkpoint()
            outcome = self.remove_one(request)
            outcomes.append(outcome)
            if progress_callback:
                progress_callback(i + 1, total, format_outcome(outcome))

        moved = sum(1 for o in outcomes if o.succeeded)
        self.log(f"Removal finished: {moved} of {total} items moved to Trash")
        return outcomes
