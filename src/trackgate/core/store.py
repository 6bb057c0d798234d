"""Persistent storage for rule lists (SQLite)."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Protocol

from trackgate.core.rules import PERSISTED_LISTS, RuleList, RuleSnapshot


class StoreError(Exception):
    """Raised when the rule database cannot be read or written."""

    def __init__(self, db_path: Path, reason: str) -> None:
        self.db_path = db_path
        super().__init__(f"Rule store {db_path}: {reason}")


class RuleStore(Protocol):
    def load(self) -> dict[RuleList, set[str]]: ...

    def save(self, snapshot: RuleSnapshot) -> None: ...


class SqliteRuleStore:
    """Heuristic and user lists are stored as rows of (list_name, entry)."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=3)
        conn.execute("PRAGMA journal_mode=WAL;")
        return conn

    def init_db(self) -> None:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreError(self.db_path, str(e)) from e
        try:
            with conn:
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS rules("
                    "  list_name TEXT NOT NULL,"
                    "  entry TEXT NOT NULL,"
                    "  PRIMARY KEY (list_name, entry)"
                    ")"
                )
        except sqlite3.Error as e:
            raise StoreError(self.db_path, str(e)) from e
        finally:
            conn.close()

    def load(self) -> dict[RuleList, set[str]]:
        if not self.db_path.exists():
            return {}
        self.init_db()
        result: dict[RuleList, set[str]] = {}
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreError(self.db_path, str(e)) from e
        try:
            for list_name, entry in conn.execute("SELECT list_name, entry FROM rules"):
                try:
                    name = RuleList(list_name)
                except ValueError:
                    continue  # written by a newer version
                if name not in PERSISTED_LISTS:
                    continue  # preloads saved by older versions
                result.setdefault(name, set()).add(entry)
        except sqlite3.Error as e:
            raise StoreError(self.db_path, str(e)) from e
        finally:
            conn.close()
        return result

    def save(self, snapshot: RuleSnapshot) -> None:
        """Replace the stored lists with *snapshot* in one transaction."""
        rows = [
            (name.value, entry)
            for name in PERSISTED_LISTS
            for entry in sorted(snapshot.get(name))
        ]
        self.init_db()
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreError(self.db_path, str(e)) from e
        try:
            with conn:
                conn.execute("DELETE FROM rules")
                conn.executemany("INSERT INTO rules(list_name, entry) VALUES (?, ?)", rows)
        except sqlite3.Error as e:
            raise StoreError(self.db_path, str(e)) from e
        finally:
            conn.close()
