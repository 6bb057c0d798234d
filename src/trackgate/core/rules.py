"""Rule lists consulted by the policy engine.

All lists live in one immutable :class:`RuleSnapshot`. Writers build a new
snapshot and swap it in under a lock, so readers holding a snapshot always
see a consistent set of lists, even while a multi-list commit is running.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from trackgate.core.base import EditAction

if TYPE_CHECKING:
    from trackgate.core.store import RuleStore

logger = logging.getLogger(__name__)


class RuleList(StrEnum):
    PRELOADS = "preloads"
    BLOCKED_ORIGINS = "blocked_origins"
    USER_RED = "user_red"
    USER_YELLOW = "user_yellow"
    USER_GREEN = "user_green"


USER_LISTS: tuple[RuleList, ...] = (RuleList.USER_RED, RuleList.USER_YELLOW, RuleList.USER_GREEN)
# Preloads ship with the package and are rebuilt on every load.
PERSISTED_LISTS: tuple[RuleList, ...] = (RuleList.BLOCKED_ORIGINS, *USER_LISTS)

# Which user list an edit lands in. RESET only removes.
_EDIT_TARGETS: dict[EditAction, RuleList] = {
    EditAction.BLOCK: RuleList.USER_RED,
    EditAction.COOKIEBLOCK: RuleList.USER_YELLOW,
    EditAction.NOACTION: RuleList.USER_GREEN,
}


@dataclass(frozen=True)
class RuleSnapshot:
    preloads: frozenset[str] = field(default_factory=frozenset)
    blocked_origins: frozenset[str] = field(default_factory=frozenset)
    user_red: frozenset[str] = field(default_factory=frozenset)
    user_yellow: frozenset[str] = field(default_factory=frozenset)
    user_green: frozenset[str] = field(default_factory=frozenset)

    def get(self, name: RuleList) -> frozenset[str]:
        return getattr(self, name.value)

    def as_dict(self) -> dict[RuleList, frozenset[str]]:
        return {name: self.get(name) for name in RuleList}


def _normalize(key: str) -> str:
    return key.strip().rstrip(".").lower()


class RuleLists:
    """Process-wide rule lists with copy-on-write updates.

    Lists may overlap; evaluation order in the policy engine breaks ties.
    When a store is attached every mutation is persisted, except preloads.
    """

    def __init__(
        self,
        snapshot: RuleSnapshot | None = None,
        store: RuleStore | None = None,
    ) -> None:
        self._snapshot = snapshot or RuleSnapshot()
        self._lock = threading.Lock()
        self.store = store

    @classmethod
    def load(cls, store: RuleStore, preloads: Iterable[str] = ()) -> RuleLists:
        """Build rule lists from persisted state plus the shipped preload list.

        Preloads come only from *preloads*; the store never holds them.
        """
        stored = store.load()
        lists = {name.value: frozenset(stored.get(name, ())) for name in PERSISTED_LISTS}
        lists[RuleList.PRELOADS.value] = frozenset(_normalize(p) for p in preloads if p.strip())
        rules = cls(RuleSnapshot(**lists), store=store)
        logger.debug(
            "Loaded rule lists: %s",
            {name.value: len(entries) for name, entries in rules.snapshot().as_dict().items()},
        )
        return rules

    def snapshot(self) -> RuleSnapshot:
        return self._snapshot

    def contains(self, name: RuleList, key: str) -> bool:
        return _normalize(key) in self._snapshot.get(name)

    def entries(self, name: RuleList) -> list[str]:
        return sorted(self._snapshot.get(name))

    # -- writers -------------------------------------------------------------

    def _swap(self, **changes: frozenset[str]) -> None:
        # Caller holds the lock. A failed save leaves the current snapshot.
        snapshot = replace(self._snapshot, **changes)
        if self.store is not None:
            self.store.save(snapshot)
        self._snapshot = snapshot

    def _without_user(self, snap: RuleSnapshot, origin: str) -> dict[str, frozenset[str]]:
        return {name.value: snap.get(name) - {origin} for name in USER_LISTS}

    def set_preloads(self, origins: Iterable[str]) -> None:
        preloads = frozenset(_normalize(o) for o in origins if o.strip())
        with self._lock:
            self._snapshot = replace(self._snapshot, preloads=preloads)

    def block_origin(self, base_domain: str) -> None:
        """Heuristic detector entry point: mark a base domain as a tracker."""
        key = _normalize(base_domain)
        with self._lock:
            if key in self._snapshot.blocked_origins:
                return
            self._swap(blocked_origins=self._snapshot.blocked_origins | {key})

    def unblock_origin(self, base_domain: str) -> None:
        key = _normalize(base_domain)
        with self._lock:
            if key not in self._snapshot.blocked_origins:
                return
            self._swap(blocked_origins=self._snapshot.blocked_origins - {key})

    def _add_user(self, target: RuleList, origin: str) -> None:
        key = _normalize(origin)
        with self._lock:
            lists = self._without_user(self._snapshot, key)
            lists[target.value] = lists[target.value] | {key}
            self._swap(**lists)

    def add_red(self, origin: str) -> None:
        self._add_user(RuleList.USER_RED, origin)

    def add_yellow(self, origin: str) -> None:
        self._add_user(RuleList.USER_YELLOW, origin)

    def add_green(self, origin: str) -> None:
        self._add_user(RuleList.USER_GREEN, origin)

    def clear_origin(self, origin: str) -> None:
        """Remove an origin from every user list."""
        key = _normalize(origin)
        with self._lock:
            self._swap(**self._without_user(self._snapshot, key))

    def apply_edits(
        self, edits: Iterable[tuple[str, str]]
    ) -> list[tuple[str, EditAction]]:
        """Apply a batch of user edits as a single swap.

        Unknown edit tags are logged and skipped; the rest of the batch is
        still applied. Returns the edits that were applied.
        """
        applied: list[tuple[str, EditAction]] = []
        with self._lock:
            snap = self._snapshot
            lists = {name.value: snap.get(name) for name in USER_LISTS}
            for origin, tag in edits:
                try:
                    action = EditAction(tag)
                except ValueError:
                    logger.warning("Skipping unknown action %r for %s", tag, origin)
                    continue
                key = _normalize(origin)
                if not key:
                    logger.warning("Skipping %s edit with empty origin", action)
                    continue
                for name in USER_LISTS:
                    lists[name.value] = lists[name.value] - {key}
                target = _EDIT_TARGETS.get(action)
                if target is not None:
                    lists[target.value] = lists[target.value] | {key}
                applied.append((key, action))
            if applied:
                self._swap(**lists)
        return applied

    def empty_user(self) -> None:
        """Delete every user setting."""
        with self._lock:
            self._swap(**{name.value: frozenset() for name in USER_LISTS})

    def empty(self) -> None:
        """Delete user settings and everything the heuristic has learned."""
        with self._lock:
            changes = {name.value: frozenset() for name in USER_LISTS}
            changes[RuleList.BLOCKED_ORIGINS.value] = frozenset()
            self._swap(**changes)
