import math
import os

from appsweep.config import PROTECTED_RECEIPTS_ROOT
from appsweep.models import Category, OutcomeKind


def format_size(size_bytes):
    if size_bytes <= 0: return "0 B"
    size_name = ("B", "KB", "MB", "GB", "TB")
    i = min(int(math.floor(math.log(size_bytes, 1024))), len(size_name) - 1)
    p = math.pow(1024, i)
    s = round(size_bytes / p, 2)
    return f"{s} {size_name[i]}"


def format_outcome(outcome):
    """One status-log line per outcome. Only MOVED reads as a success."""
    if outcome.kind is OutcomeKind.MOVED:
        return f"Moved to Trash: {outcome.path}"
    if outcome.kind is OutcomeKind.SKIPPED_RUNNING:
        return f"Skipped (app is running): {outcome.path}"
    if outcome.kind is OutcomeKind.SKIPPED_MISSING:
        return f"Skipped (no longer exists): {outcome.path}"
    return f"Failed: {outcome.path} ({outcome.reason or 'unknown error'})"


def format_entry(entry):
    line = f"[{entry.category.value.upper()}] {entry.path} ({format_size(entry.size_bytes)})"
    if entry.low_confidence:
        line += " [name match]"
    return line


def summarize_categories(entries):
    """Counts per category, every category present, in declaration order."""
    counts = {category: 0 for category in Category}
    for entry in entries:
        counts[entry.category] += 1
    return counts


def format_summary(app_count, entries):
    counts = summarize_categories(entries)
    parts = ", ".join(f"{category.value} {count}" for category, count in counts.items())
    return f"Applications: {app_count}  •  Related: {len(entries)} ({parts})"


def needs_full_disk_access(paths, system_root="/"):
    """True when any path lives in the receipts database, which needs Full Disk Access."""
    receipts = os.path.join(system_root, *PROTECTED_RECEIPTS_ROOT.split("/"))
    for path in paths:
        path = os.path.normpath(path)
        if path == receipts or path.startswith(receipts + os.sep):
            return True
    return False
