"""
Records produced by discovery and removal.

AppRecord and FileEntry are written by the engine only; the presentation
layer may flip FileEntry.selected and nothing else.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Category(Enum):
    PREFERENCES = "preferences"
    CACHE = "cache"
    LOGS = "logs"
    SUPPORT = "support"
    AGENT = "agent"
    RECEIPT = "receipt"
    CONTAINER = "container"


class MatchingRule(Enum):
    EXACT_ID = "exact-by-identifier"
    EXACT_NAME = "exact-by-name"
    PREFIX_ID = "prefix-wildcard-by-identifier"
    PREFIX_NAME = "prefix-wildcard-by-name"

    @property
    def uses_identifier(self):
        return self in (MatchingRule.EXACT_ID, MatchingRule.PREFIX_ID)

    @property
    def is_wildcard(self):
        return self in (MatchingRule.PREFIX_ID, MatchingRule.PREFIX_NAME)


class OutcomeKind(Enum):
    MOVED = "moved"
    SKIPPED_RUNNING = "skipped_running"
    SKIPPED_MISSING = "skipped_missing"
    FAILED = "failed"


class TaskState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self):
        return self in (TaskState.COMPLETED, TaskState.CANCELLED, TaskState.FAILED)


@dataclass(frozen=True)
class BundleInfo:
    identifier: Optional[str]
    display_name: Optional[str]
    version: Optional[str] = None
    executable: Optional[str] = None


@dataclass
class FileEntry:
    path: str
    category: Category
    size_bytes: int = 0
    rule: Optional[MatchingRule] = None
    selected: bool = False

    @property
    def low_confidence(self):
        """Name-only matches may belong to another app with the same name."""
        return self.rule is not None and not self.rule.uses_identifier


@dataclass
class AppRecord:
    identifier: str
    display_name: str
    bundle_path: str
    is_running: bool = False
    version: Optional[str] = None
    executable: Optional[str] = None
    related_files: List[FileEntry] = field(default_factory=list)

    @property
    def bundle_name(self):
        return os.path.basename(self.bundle_path)

    @property
    def total_size(self):
        return sum(entry.size_bytes for entry in self.related_files)

    def selected_paths(self):
        return [entry.path for entry in self.related_files if entry.selected]

    def identity(self):
        return (
            self.identifier,
            self.display_name,
            self.bundle_path,
            frozenset(entry.path for entry in self.related_files),
        )


@dataclass
class RemovalRequest:
    path: str
    owner: Optional[AppRecord] = None


@dataclass(frozen=True)
class RemovalOutcome:
    path: str
    kind: OutcomeKind
    reason: Optional[str] = None

    @property
    def succeeded(self):
        return self.kind is OutcomeKind.MOVED


@dataclass(frozen=True)
class TaskProgress:
    phase: str
    current_index: int
    total: int
    message: str = ""
    task_id: int = 0

    @property
    def fraction(self):
        return self.current_index / self.total if self.total else 1.0


def plan_removal(record, include_bundle=True):
    """Bundle first, then every selected related file, all owned by record."""
    requests = []
    if include_bundle:
        requests.append(RemovalRequest(record.bundle_path, record))
    for path in record.selected_paths():
        requests.append(RemovalRequest(path, record))
    return requests
