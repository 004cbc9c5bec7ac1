class AppSweepError(Exception):
    """Base class for engine errors."""


class ReadError(AppSweepError):
    """A bundle manifest could not be read. Degrades a record, never fatal."""
    kind = "unreadable"

    def __init__(self, bundle_path, detail=""):
        self.bundle_path = bundle_path
        self.detail = detail
        message = f"{self.kind} manifest in {bundle_path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MissingManifest(ReadError):
    kind = "missing"


class MalformedManifest(ReadError):
    kind = "malformed"


class AccessError(AppSweepError):
    """A root or bundle directory could not be listed."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot read {path}: {reason}")


class RelocationError(AppSweepError):
    """Moving one path to the holding area failed."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"could not move {path} to Trash: {reason}")


class RemovalUnsupported(AppSweepError):
    """No reversible holding area is available on this system."""


class AlreadyRunning(AppSweepError):
    """A task was started while another one is still active."""


class SelectionLocked(AppSweepError):
    """Selection changed while a task is running."""


class TaskCancelled(AppSweepError):
    """Raised at a checkpoint once cancellation was requested."""
