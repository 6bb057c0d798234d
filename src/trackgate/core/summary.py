"""Summary view model for a context's ledger table."""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel

from trackgate.core.base import Action, EditAction
from trackgate.core.ledger import LedgerTable

NO_DATA_MESSAGE = "Reload the page to see its trackers."
NO_TRACKERS_MESSAGE = "Could not detect any tracking cookies."

_STATUS_PREFIX: dict[Action, str] = {
    Action.BLOCK: "Blocked",
    Action.COOKIEBLOCK: "Blocked cookies from",
    Action.NOACTION: "Allowed",
}


class OriginSummary(BaseModel):
    """One row of the summary: an origin and how it is being treated."""

    origin: str
    action: Action  # without the user prefix
    user_set: bool
    status_title: str


def status_title(action: Action, origin: str | None = None) -> str:
    postfix = f" {origin}." if origin else " this tracker."
    return _STATUS_PREFIX[action.base] + postfix


def summarize_table(table: Mapping[str, Action]) -> list[OriginSummary]:
    """Rows ordered by action priority (strongest first), then origin."""
    ordered = sorted(table.items(), key=lambda item: (-item[1].priority, item[0]))
    return [
        OriginSummary(
            origin=origin,
            action=action.base,
            user_set=action.is_user_set,
            status_title=status_title(action, origin),
        )
        for origin, action in ordered
    ]


def summary_message(table: LedgerTable) -> str | None:
    """Message to show instead of rows, or None when there are rows."""
    if table.cleared:
        return NO_DATA_MESSAGE
    if not table:
        return NO_TRACKERS_MESSAGE
    return None


def build_settings_dict(
    originals: Mapping[str, Action],
    chosen: Mapping[str, EditAction | str],
) -> dict[str, EditAction]:
    """Keep only the user choices that differ from what was displayed.

    Choosing the action already shown for an origin is not an edit. "reset"
    is passed through so the origin goes back under heuristic control.
    """
    edits: dict[str, EditAction] = {}
    for origin, choice in chosen.items():
        try:
            action = EditAction(choice)
        except ValueError:
            continue
        original = originals.get(origin)
        if action is EditAction.RESET:
            if original is not None and original.is_user_set:
                edits[origin] = action
            continue
        shown = original.base.value if original is not None else EditAction.NOACTION.value
        if action.value != shown:
            edits[origin] = action
    return edits
