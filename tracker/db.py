import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from .settings import Settings

logger = logging.getLogger(__name__)


def connect(db_path: str | Path):
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _column_exists(conn: sqlite3.Connection, table_name: str, column_name: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table_name})").fetchall()
    return any(row["name"] == column_name for row in rows)


class Store:
    """Handle on the transaction database.

    One connection is opened by :meth:`open` and released by :meth:`close`.
    Repository functions borrow it through :meth:`transaction`, which
    serializes access and commits or rolls back as a unit.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @classmethod
    def open(cls, settings: Settings) -> "Store":
        init_db(settings)
        store = cls(settings.db_path)
        store._conn = connect(settings.db_path)
        logger.info("opened transaction store at %s", settings.db_path)
        return store

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @contextmanager
    def transaction(self):
        if self._conn is None:
            raise RuntimeError("store is closed")
        with self._lock:
            with self._conn:
                yield self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("closed transaction store at %s", self.db_path)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def init_db(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(settings.db_path)
    try:
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  owner_id TEXT NOT NULL,
                  type TEXT NOT NULL CHECK(type IN ('income','expense')),
                  amount_cents INTEGER NOT NULL CHECK(amount_cents > 0),
                  category TEXT NOT NULL,
                  from_party TEXT NOT NULL DEFAULT '',
                  to_party TEXT NOT NULL DEFAULT '',
                  date TEXT NOT NULL,
                  note TEXT NOT NULL DEFAULT '',
                  media_url TEXT NOT NULL DEFAULT '',
                  created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
                );
                """
            )
            if not _column_exists(conn, "transactions", "media_url"):
                conn.execute(
                    """
                    ALTER TABLE transactions
                    ADD COLUMN media_url TEXT NOT NULL DEFAULT ''
                    """
                )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_transactions_owner_date
                ON transactions(owner_id, date DESC, id DESC)
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_transactions_owner_type_category
                ON transactions(owner_id, type, category)
                """
            )
    finally:
        conn.close()
