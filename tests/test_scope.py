from __future__ import annotations

import logging

from core.rewriter import in_scope
from core.rules import split_scope_entry


def test_empty_scope_matches_everything() -> None:
    assert in_scope("", "", [])
    assert in_scope("team", "town-square", ())


def test_team_entry_matches_any_channel() -> None:
    assert in_scope("TestTeam", "TestChannel", ["TestTeam"])
    assert in_scope("TestTeam", "", ["testteam"])
    assert not in_scope("Other", "TestChannel", ["TestTeam"])


def test_team_channel_entry_needs_both() -> None:
    assert in_scope("TestTeam", "TestChannel", ["testteam/testchannel"])
    assert not in_scope("TestTeam", "Other", ["TestTeam/TestChannel"])
    assert not in_scope("TestTeam", "", ["TestTeam/TestChannel"])


def test_missing_team_never_matches_a_scope() -> None:
    assert not in_scope("", "TestChannel", ["TestTeam"])
    assert not in_scope("", "", ["/"])


def test_empty_team_entry_is_ignored() -> None:
    assert not in_scope("TestTeam", "TestChannel", [""])


def test_malformed_entries_are_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="core.rewriter"):
        assert not in_scope("a", "b", ["a/b/c"])
        assert in_scope("a", "b", ["a/b/c", "a/b"])

    assert "a/b/c" in caplog.text


def test_split_scope_entry() -> None:
    assert split_scope_entry("team") == ("team",)
    assert split_scope_entry("team/channel") == ("team", "channel")
    assert split_scope_entry("a/b/c") is None
