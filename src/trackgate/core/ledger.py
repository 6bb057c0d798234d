"""Per-context settings ledger.

Tracks which action was applied to each third-party origin inside every
top-level browsing context, so the summary view can show and edit them.
Ways an origin's entry gets set for a context:

  * third-party origin on the preload list, not flagged  -> noaction
  * preloaded origin flagged by the heuristic            -> cookieblock
  * origin flagged by the heuristic                      -> block
  * user allowed / cookie-blocked / blocked the origin   -> user*

A context that was just navigated holds a *cleared* table: the page has not
been evaluated yet, which is different from "no trackers found".
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping

from trackgate.core.base import Action, BrowsingContext, DecisionEvent, EditAction
from trackgate.core.rules import RuleLists

logger = logging.getLogger(__name__)


class LedgerTable(Mapping[str, Action]):
    """Read-only origin -> action table for one top-level context."""

    def __init__(self, entries: Mapping[str, Action] | None = None, cleared: bool = False) -> None:
        self._entries = dict(entries or {})
        self.cleared = cleared

    def __getitem__(self, origin: str) -> Action:
        return self._entries[origin]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        if self.cleared:
            return "LedgerTable(cleared=True)"
        return f"LedgerTable({self._entries!r})"


class SettingsLedger:
    def __init__(
        self,
        rules: RuleLists,
        reload: Callable[[], None] | None = None,
    ) -> None:
        self.rules = rules
        self.reload = reload
        self._tables: dict[str, dict[str, Action]] = {}
        self._cleared: set[str] = set()
        self._staged: dict[str, EditAction | str] = {}
        self._lock = threading.Lock()

    # -- decision events ------------------------------------------------------

    def record(self, event: DecisionEvent | None) -> None:
        """Forward target for the events returned by the policy engine."""
        if event is None:
            return
        self._upsert(event.context_id, event.origin, event.tag)

    def record_decision(
        self, context: BrowsingContext | None, origin: str | None, tag: Action
    ) -> None:
        if context is None:
            logger.debug("Can't record %s without a browsing context", tag)
            return
        if not origin:
            logger.debug("Missing origin for %s decision", tag)
            return
        self._upsert(context.top.context_id, origin, tag)

    def _upsert(self, context_id: str, origin: str, tag: Action) -> None:
        with self._lock:
            if context_id in self._cleared:
                self._cleared.discard(context_id)
                self._tables[context_id] = {}
            self._tables.setdefault(context_id, {})[origin] = tag

    def read(self, context: BrowsingContext | str) -> LedgerTable:
        context_id = _context_id(context)
        with self._lock:
            if context_id in self._cleared:
                return LedgerTable(cleared=True)
            return LedgerTable(self._tables.get(context_id, {}))

    # -- lifecycle ------------------------------------------------------------

    def clear(self, context: BrowsingContext | str) -> None:
        """Drop the decisions for a context and mark it awaiting evaluation."""
        context_id = _context_id(context)
        with self._lock:
            self._tables.pop(context_id, None)
            self._cleared.add(context_id)

    def on_location_change(
        self, context: BrowsingContext | str, same_document: bool = False
    ) -> None:
        # Anchor changes keep the document, and its decisions.
        if same_document:
            return
        self.clear(context)

    def clear_all(self) -> None:
        """Mark every known context cleared (activate, deactivate, reset)."""
        with self._lock:
            self._cleared.update(self._tables)
            self._tables.clear()

    def forget(self, context: BrowsingContext | str) -> None:
        """The context was destroyed; release its table."""
        context_id = _context_id(context)
        with self._lock:
            self._tables.pop(context_id, None)
            self._cleared.discard(context_id)

    def contexts(self) -> list[str]:
        with self._lock:
            return sorted(set(self._tables) | self._cleared)

    # -- user edits -----------------------------------------------------------

    def stage_edit(self, origin: str, tag: EditAction | str) -> None:
        """Hold a user edit until :meth:`commit`; rule lists are not touched."""
        with self._lock:
            self._staged[origin] = tag

    @property
    def staged(self) -> dict[str, EditAction | str]:
        with self._lock:
            return dict(self._staged)

    def discard_staged(self) -> None:
        with self._lock:
            self._staged.clear()

    def commit(
        self, staged_edits: Mapping[str, EditAction | str] | Iterable[tuple[str, str]] | None = None
    ) -> list[tuple[str, EditAction]]:
        """Apply staged edits to the user rule lists.

        With no argument the edits staged through :meth:`stage_edit` are
        committed and the staging area is emptied once they are applied. If
        the rule store fails the edits stay staged. Unknown tags are skipped.
        Calls the reload hook when anything was applied, since recorded
        decisions reflect the old rules.
        """
        from_staged = staged_edits is None
        if staged_edits is None:
            with self._lock:
                edits = list(self._staged.items())
        elif isinstance(staged_edits, Mapping):
            edits = list(staged_edits.items())
        else:
            edits = list(staged_edits)

        if not edits:
            return []
        logger.debug("Handling new settings: %s", edits)
        applied = self.rules.apply_edits((origin, str(tag)) for origin, tag in edits)
        if from_staged:
            with self._lock:
                for origin, tag in edits:
                    # An edit restaged during the commit stays staged.
                    if self._staged.get(origin) == tag:
                        del self._staged[origin]
        if applied and self.reload is not None:
            self.reload()
        return applied


def _context_id(context: BrowsingContext | str) -> str:
    if isinstance(context, BrowsingContext):
        return context.top.context_id
    return context
