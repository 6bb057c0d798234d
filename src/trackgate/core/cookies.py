"""Clear stored cookies for a host in a Firefox cookies.sqlite database."""

from __future__ import annotations

import logging
import os
import shutil
import sqlite3
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class SqliteCookieStripper:
    """Deletes cookies set for exactly one host (``host`` and ``.host``).

    Uses copy-modify-replace to avoid corrupting a live database. A missing
    database, or a host with no cookies, is a no-op.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)

    def clobber(self, origin: str) -> None:
        deleted = self._delete_host_cookies(origin.strip().lstrip(".").lower())
        if deleted:
            logger.debug("Cleared %d cookies for %s", deleted, origin)

    def _delete_host_cookies(self, host: str) -> int:
        db_path = self.db_path
        if not host or not db_path.exists():
            return 0

        tmp_dir = tempfile.mkdtemp()
        tmp_db = Path(tmp_dir) / db_path.name
        try:
            shutil.copy2(db_path, tmp_db)
            # Copy WAL/SHM for consistency, skip symlinks
            for suffix in ("-wal", "-shm"):
                wal = db_path.parent / (db_path.name + suffix)
                if wal.exists() and not wal.is_symlink():
                    shutil.copy2(wal, Path(tmp_dir) / (db_path.name + suffix))

            conn = sqlite3.connect(str(tmp_db))
            try:
                cursor = conn.execute(
                    "DELETE FROM moz_cookies WHERE host IN (?, ?)", (host, "." + host)
                )
                deleted = cursor.rowcount
                if deleted > 0:
                    conn.commit()
            except sqlite3.OperationalError:
                logger.warning("No cookie table in %s", db_path)
                return 0
            finally:
                conn.close()

            if deleted > 0:
                os.replace(str(tmp_db), str(db_path))
                # WAL/SHM are stale after the replace
                for suffix in ("-wal", "-shm"):
                    (db_path.parent / (db_path.name + suffix)).unlink(missing_ok=True)
            return max(deleted, 0)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)
