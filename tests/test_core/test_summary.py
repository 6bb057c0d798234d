"""Tests for the summary view model."""

from __future__ import annotations

from trackgate.core.base import ACTION_PRIORITY, Action, EditAction
from trackgate.core.ledger import LedgerTable
from trackgate.core.summary import (
    NO_DATA_MESSAGE,
    NO_TRACKERS_MESSAGE,
    build_settings_dict,
    status_title,
    summarize_table,
    summary_message,
)


def test_action_helpers() -> None:
    assert Action.USERBLOCK.is_user_set is True
    assert Action.USERBLOCK.base is Action.BLOCK
    assert Action.USERNOACTION.base is Action.NOACTION
    assert Action.COOKIEBLOCK.base is Action.COOKIEBLOCK
    assert Action.BLOCK.is_user_set is False


def test_priority_table_covers_every_action() -> None:
    assert set(ACTION_PRIORITY) == set(Action)
    assert Action.USERBLOCK.priority > Action.USERCOOKIEBLOCK.priority
    assert Action.USERCOOKIEBLOCK.priority > Action.USERNOACTION.priority
    assert Action.USERNOACTION.priority > Action.BLOCK.priority


def test_status_titles() -> None:
    assert status_title(Action.BLOCK, "a.com") == "Blocked a.com."
    assert status_title(Action.USERCOOKIEBLOCK, "a.com") == "Blocked cookies from a.com."
    assert status_title(Action.NOACTION) == "Allowed this tracker."


def test_summarize_table_orders_by_priority() -> None:
    table = LedgerTable(
        {
            "z.com": Action.NOACTION,
            "b.com": Action.BLOCK,
            "a.com": Action.BLOCK,
            "u.com": Action.USERBLOCK,
        }
    )
    rows = summarize_table(table)
    assert [r.origin for r in rows] == ["u.com", "a.com", "b.com", "z.com"]
    assert rows[0].action is Action.BLOCK
    assert rows[0].user_set is True
    assert rows[1].user_set is False
    assert rows[3].status_title == "Allowed z.com."


def test_summary_message() -> None:
    assert summary_message(LedgerTable(cleared=True)) == NO_DATA_MESSAGE
    assert summary_message(LedgerTable()) == NO_TRACKERS_MESSAGE
    assert summary_message(LedgerTable({"a.com": Action.BLOCK})) is None


class TestBuildSettingsDict:
    def test_unchanged_choices_are_dropped(self) -> None:
        originals = {"a.com": Action.BLOCK, "b.com": Action.USERCOOKIEBLOCK}
        chosen = {"a.com": "block", "b.com": "cookieblock"}
        assert build_settings_dict(originals, chosen) == {}

    def test_changed_choices_are_kept(self) -> None:
        originals = {"a.com": Action.BLOCK, "b.com": Action.NOACTION}
        chosen = {"a.com": "noaction", "b.com": "cookieblock"}
        assert build_settings_dict(originals, chosen) == {
            "a.com": EditAction.NOACTION,
            "b.com": EditAction.COOKIEBLOCK,
        }

    def test_reset_only_for_user_set(self) -> None:
        originals = {"a.com": Action.USERBLOCK, "b.com": Action.BLOCK}
        chosen = {"a.com": "reset", "b.com": "reset", "c.com": "reset"}
        assert build_settings_dict(originals, chosen) == {"a.com": EditAction.RESET}

    def test_unknown_origin_defaults_to_noaction(self) -> None:
        chosen = {"new.com": "noaction", "other.com": "block"}
        assert build_settings_dict({}, chosen) == {"other.com": EditAction.BLOCK}

    def test_invalid_choice_is_ignored(self) -> None:
        assert build_settings_dict({}, {"a.com": "explode"}) == {}
