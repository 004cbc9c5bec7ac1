import os

from appsweep.config import search_roots
from appsweep.logger import SweepLogger, warn
from appsweep.models import FileEntry


def get_size(path):
    """Recursive size in bytes. Anything unreadable counts as zero."""
    total_size = 0
    try:
        if os.path.islink(path):
            return os.lstat(path).st_size
        if os.path.isfile(path):
            total_size = os.path.getsize(path)
        elif os.path.isdir(path):
            with os.scandir(path) as it:
                for entry in it:
                    try:
                        if entry.is_file(follow_symlinks=False):
                            total_size += entry.stat(follow_symlinks=False).st_size
                        elif entry.is_dir(follow_symlinks=False):
                            total_size += get_size(entry.path)
                    except OSError:
                        continue
    except OSError:
        pass
    return total_size


def is_within(path, root):
    path = os.path.normpath(path)
    root = os.path.normpath(root)
    return path != root and os.path.commonpath([path, root]) == root


def _usable_name(name):
    return bool(name) and name not in (".", "..") and os.sep not in name


def match_key(rule, identifier, display_name):
    if rule.uses_identifier:
        return identifier
    return display_name


def matches_prefix(rule, entry_name, key):
    """Identifiers compare case-sensitively, display names do not."""
    if rule.uses_identifier:
        return entry_name.startswith(key)
    return entry_name.lower().startswith(key.lower())


class PathCorrelator:
    """
    Maps an app's identifier and display name to existing auxiliary paths.

    Works through a table of SearchRoot entries (see config.SEARCH_TABLE).
    Root listings are cached for the lifetime of the correlator, so one
    instance should live for exactly one scan. Unreadable roots are skipped
    and reported once to the diagnostic log.
    """

    def __init__(self, roots=None, logger=None, sizer=get_size):
        self.roots = list(roots) if roots is not None else search_roots()
        self.logger = logger or SweepLogger()
        self.sizer = sizer
        self._listings = {}
        self._inaccessible = set()

    def _list_root(self, root):
        """Sorted child names of root, or None if missing or unreadable."""
        if root in self._listings:
            return self._listings[root]

        listing = None
        if os.path.isdir(root):
            try:
                listing = sorted(os.listdir(root))
            except OSError as e:
                self._report_inaccessible(root, e)
        self._listings[root] = listing
        return listing

    def _report_inaccessible(self, root, error):
        if root in self._inaccessible:
            return
        self._inaccessible.add(root)
        reason = error.strerror or str(error)
        warn(self.logger, f"AccessError: skipping search root {root}: {reason}")

    @property
    def inaccessible_roots(self):
        return sorted(self._inaccessible)

    def candidates(self, search_root, identifier, display_name):
        """Yields candidate paths under one search root for one rule."""
        key = match_key(search_root.rule, identifier, display_name)
        if not key:
            return

        listing = self._list_root(search_root.path)
        if listing is None:
            return

        if search_root.rule.is_wildcard:
            for name in listing:
                if matches_prefix(search_root.rule, name, key):
                    yield os.path.join(search_root.path, name)
        else:
            name = key + search_root.suffix
            if _usable_name(name):
                yield os.path.join(search_root.path, name)

    def correlate(self, identifier, display_name, exclude=None):
        """
        Returns FileEntry objects for every existing path any table rule
        produces. Order follows the table; a path is reported once, under
        the first rule that found it.
        """
        seen = set()
        results = []
        for search_root in self.roots:
            for path in self.candidates(search_root, identifier, display_name):
                if path in seen or not is_within(path, search_root.path):
                    continue
                if exclude and os.path.normpath(path) == os.path.normpath(exclude):
                    continue
                if not os.path.lexists(path):
                    continue
                seen.add(path)
                results.append(FileEntry(
                    path=path,
                    category=search_root.category,
                    size_bytes=self.sizer(path),
                    rule=search_root.rule,
                ))
        return results

