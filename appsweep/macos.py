import os
import subprocess

FULL_DISK_ACCESS_URL = "x-apple.systempreferences:com.apple.preference.security?Privacy_AllFiles"


def fda_probe_paths(home=None):
    home = home or os.path.expanduser("~")
    return [
        os.path.join(home, "Library", "Safari"),
        os.path.join(home, "Library", "Mail"),
        os.path.join(home, "Library", "Messages"),
    ]


def has_full_disk_access(probe_paths=None):
    """
    Checks Full Disk Access by listing several protected dirs.
    Returns False as soon as one of them refuses; True if none could be tested.
    """
    for path in probe_paths if probe_paths is not None else fda_probe_paths():
        if not os.path.exists(path):
            continue
        try:
            os.listdir(path)
        except PermissionError:
            return False
        except OSError:
            continue
    return True


def open_full_disk_access_settings():
    """Opens System Settings at the Full Disk Access page."""
    subprocess.run(["open", FULL_DISK_ACCESS_URL], stderr=subprocess.DEVNULL)


def reveal_in_finder(path):
    """Selects path in a Finder window. False if Finder could not show it."""
    result = subprocess.run(["open", "-R", path], stderr=subprocess.DEVNULL)
    return result.returncode == 0
