import os
from collections import namedtuple

from appsweep.models import Category, MatchingRule

# ==========================
# CONSTANTS & CONFIG
# ==========================
BUNDLE_EXTENSION = ".app"
MANIFEST_RELATIVE_PATH = os.path.join("Contents", "Info.plist")
EXECUTABLE_DIR = os.path.join("Contents", "MacOS")

# Bump whenever SEARCH_TABLE changes shape or content.
SEARCH_TABLE_VERSION = 1

# Finder moves items to the Trash, where they can be put back.
TRASH_COMMAND = "osascript"

# Receipts under this root are only readable with Full Disk Access.
PROTECTED_RECEIPTS_ROOT = "private/var/db/receipts"

SearchRoot = namedtuple("SearchRoot", ["path", "category", "rule", "suffix"])

# (relative root, category, rule, suffix). "~" roots hang off the user's
# home, the rest off the system root. Identifier rules come first so an
# identifier match claims a path before a name rule can.
SEARCH_TABLE = [
    ("~/Library/Preferences", Category.PREFERENCES, MatchingRule.EXACT_ID, ".plist"),
    ("~/Library/Preferences", Category.PREFERENCES, MatchingRule.PREFIX_ID, ""),
    ("~/Library/Application Support", Category.SUPPORT, MatchingRule.EXACT_ID, ""),
    ("~/Library/Application Support", Category.SUPPORT, MatchingRule.EXACT_NAME, ""),
    ("~/Library/Caches", Category.CACHE, MatchingRule.EXACT_ID, ""),
    ("~/Library/Caches", Category.CACHE, MatchingRule.PREFIX_ID, ""),
    ("~/Library/Caches", Category.CACHE, MatchingRule.EXACT_NAME, ""),
    ("~/Library/Logs", Category.LOGS, MatchingRule.PREFIX_ID, ""),
    ("~/Library/Logs", Category.LOGS, MatchingRule.PREFIX_NAME, ""),
    ("~/Library/LaunchAgents", Category.AGENT, MatchingRule.PREFIX_ID, ""),
    ("~/Library/Containers", Category.CONTAINER, MatchingRule.EXACT_ID, ""),
    ("Library/Preferences", Category.PREFERENCES, MatchingRule.EXACT_ID, ".plist"),
    ("Library/Preferences", Category.PREFERENCES, MatchingRule.PREFIX_ID, ""),
    ("Library/Application Support", Category.SUPPORT, MatchingRule.EXACT_ID, ""),
    ("Library/Application Support", Category.SUPPORT, MatchingRule.EXACT_NAME, ""),
    ("Library/Receipts", Category.RECEIPT, MatchingRule.PREFIX_ID, ""),
    ("Library/Receipts", Category.RECEIPT, MatchingRule.PREFIX_NAME, ""),
    (PROTECTED_RECEIPTS_ROOT, Category.RECEIPT, MatchingRule.PREFIX_ID, ""),
]


def user_home(home=None):
    return home or os.path.expanduser("~")


def installation_roots(home=None, system_root="/"):
    """The user's personal Applications folder and the system-wide one."""
    return [
        os.path.join(user_home(home), "Applications"),
        os.path.join(system_root, "Applications"),
    ]


def search_roots(home=None, system_root="/"):
    """Expands SEARCH_TABLE into absolute SearchRoot entries."""
    home = user_home(home)
    roots = []
    for rel, category, rule, suffix in SEARCH_TABLE:
        if rel.startswith("~/"):
            path = os.path.join(home, *rel[2:].split("/"))
        else:
            path = os.path.join(system_root, *rel.split("/"))
        roots.append(SearchRoot(path, category, rule, suffix))
    return roots


def protected_paths(home=None, system_root="/"):
    """Locations that must never be moved to the Trash themselves."""
    home = user_home(home)
    return [
        home,
        os.path.join(home, "Desktop"),
        os.path.join(home, "Documents"),
        os.path.join(home, "Downloads"),
        os.path.join(system_root, "Applications"),
        os.path.join(home, "Applications"),
    ]
