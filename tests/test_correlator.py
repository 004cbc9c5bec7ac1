import os

import pytest

from appsweep import config
from appsweep.correlator import PathCorrelator, get_size, is_within
from appsweep.models import Category, MatchingRule

from conftest import touch


@pytest.fixture
def correlator(sandbox, diagnostics):
    return PathCorrelator(sandbox.search_roots(), logger=diagnostics)


def paths_of(entries):
    return [entry.path for entry in entries]


class TestSearchTable:
    def test_every_rule_kind_is_used(self):
        assert {rule for _, _, rule, _ in config.SEARCH_TABLE} == set(MatchingRule)

    def test_every_category_is_covered(self):
        assert {category for _, category, _, _ in config.SEARCH_TABLE} == set(Category)

    def test_roots_are_rebased_on_home_and_system_root(self, sandbox):
        for root in sandbox.search_roots():
            assert root.path.startswith(sandbox.home) or root.path.startswith(sandbox.system)

    def test_receipts_database_root(self, sandbox):
        paths = {root.path for root in sandbox.search_roots()}
        assert os.path.join(sandbox.system, "private", "var", "db", "receipts") in paths


def test_exact_identifier_preference_is_found(sandbox, correlator):
    plist = touch(sandbox.user_library("Preferences", "com.acme.Bar.plist"))
    touch(sandbox.user_library("Preferences", "com.acme.Unrelated.plist"))

    entries = correlator.correlate("com.acme.Bar", "Bar")

    assert paths_of(entries) == [plist]
    assert entries[0].category is Category.PREFERENCES
    assert entries[0].rule is MatchingRule.EXACT_ID
    assert not entries[0].low_confidence
    assert entries[0].selected is False


def test_identifier_prefix_is_case_sensitive(sandbox, correlator):
    helper = touch(sandbox.user_library("Caches", "com.acme.Bar.helper", "data"))
    touch(sandbox.user_library("Caches", "COM.ACME.BAR.shout", "data"))

    entries = correlator.correlate("com.acme.Bar", None)

    assert paths_of(entries) == [os.path.dirname(helper)]
    assert entries[0].category is Category.CACHE


def test_name_prefix_is_case_insensitive_and_flagged(sandbox, correlator):
    log = touch(sandbox.user_library("Logs", "bar-2024-01-01.log"))

    entries = correlator.correlate(None, "Bar")

    assert paths_of(entries) == [log]
    assert entries[0].rule is MatchingRule.PREFIX_NAME
    assert entries[0].low_confidence


def test_exact_name_support_folder(sandbox, correlator):
    support = sandbox.user_library("Application Support", "Bar")
    touch(os.path.join(support, "state.db"), b"12345")

    entries = correlator.correlate("com.acme.Bar", "Bar")

    assert paths_of(entries) == [support]
    assert entries[0].category is Category.SUPPORT
    assert entries[0].size_bytes == 5


def test_path_found_by_two_rules_is_reported_once_under_identifier_rule(sandbox, correlator):
    plist = touch(sandbox.user_library("Preferences", "com.acme.Bar.plist"))

    entries = correlator.correlate("com.acme.Bar", "Bar")

    assert paths_of(entries) == [plist]
    assert entries[0].rule is MatchingRule.EXACT_ID


def test_system_roots_and_receipts(sandbox, correlator):
    sys_pref = touch(sandbox.system_library("Preferences", "com.acme.Bar.plist"))
    receipt = touch(os.path.join(sandbox.system, "private", "var", "db", "receipts", "com.acme.Bar.pkg.bom"))
    legacy = touch(sandbox.system_library("Receipts", "Bar Installer.pkg"))

    entries = correlator.correlate("com.acme.Bar", "Bar")

    by_path = {entry.path: entry for entry in entries}
    assert set(by_path) == {sys_pref, receipt, legacy}
    assert by_path[receipt].category is Category.RECEIPT
    assert by_path[legacy].category is Category.RECEIPT


def test_launch_agents_and_containers(sandbox, correlator):
    agent = touch(sandbox.user_library("LaunchAgents", "com.acme.Bar.updater.plist"))
    container = sandbox.user_library("Containers", "com.acme.Bar")
    touch(os.path.join(container, "Data", "file"))

    entries = correlator.correlate("com.acme.Bar", "Bar")

    categories = {entry.path: entry.category for entry in entries}
    assert categories == {agent: Category.AGENT, container: Category.CONTAINER}


def test_missing_candidates_are_silently_omitted(correlator, diagnostics):
    assert correlator.correlate("com.acme.Nothing", "Nothing") == []
    assert diagnostics.warnings() == []


def test_nothing_to_match_with(sandbox, correlator):
    touch(sandbox.user_library("Preferences", "com.acme.Bar.plist"))
    assert correlator.correlate(None, None) == []
    assert correlator.correlate("", "") == []


def test_identifier_cannot_escape_search_root(sandbox, correlator):
    touch(os.path.join(sandbox.home, "Library", "secret.plist"))
    touch(os.path.join(sandbox.home, "Library", "Preferences", "ok.plist"))

    assert correlator.correlate("../secret", None) == []
    assert correlator.correlate("..", "..") == []


def test_every_entry_exists_and_lives_under_a_search_root(sandbox, correlator):
    touch(sandbox.user_library("Preferences", "com.acme.Bar.plist"))
    touch(sandbox.user_library("Caches", "com.acme.Bar", "blob"))
    touch(sandbox.user_library("Logs", "Bar", "today.log"))
    touch(sandbox.system_library("Application Support", "Bar", "x"))

    entries = correlator.correlate("com.acme.Bar", "Bar")

    assert len(entries) == 4
    roots = [root.path for root in sandbox.search_roots()]
    for entry in entries:
        assert os.path.lexists(entry.path)
        assert any(is_within(entry.path, root) for root in roots)


def test_unreadable_root_is_skipped_and_logged(sandbox, diagnostics, monkeypatch):
    prefs = sandbox.user_library("Preferences")
    touch(os.path.join(prefs, "com.acme.Bar.plist"))
    cache = touch(sandbox.user_library("Caches", "com.acme.Bar", "blob"))
    real_listdir = os.listdir

    def listdir(path):
        if os.path.normpath(path) == os.path.normpath(prefs):
            raise PermissionError(13, "Permission denied", path)
        return real_listdir(path)

    monkeypatch.setattr(os, "listdir", listdir)
    correlator = PathCorrelator(sandbox.search_roots(), logger=diagnostics)

    entries = correlator.correlate("com.acme.Bar", "Bar")

    assert [entry.path for entry in entries] == [os.path.dirname(cache)]
    assert correlator.inaccessible_roots == [prefs]
    warnings = diagnostics.warnings()
    assert len(warnings) == 1
    assert prefs in warnings[0]
    assert "Permission denied" in warnings[0]


def test_get_size_sums_directories_recursively(tmp_path):
    touch(str(tmp_path / "a" / "one"), b"123")
    touch(str(tmp_path / "a" / "b" / "two"), b"4567")

    assert get_size(str(tmp_path / "a")) == 7
    assert get_size(str(tmp_path / "a" / "one")) == 3
    assert get_size(str(tmp_path / "missing")) == 0


def test_is_within():
    assert is_within("/a/b/c", "/a/b")
    assert not is_within("/a/b", "/a/b")
    assert not is_within("/a/bc", "/a/b")
    assert not is_within("/a/b/../c", "/a/b")
