from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List

from reiseveteran.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _normalize_path(db_path: str) -> str:
    p = (db_path or "").strip()
    # Support sqlite:///path style
    if p.lower().startswith("sqlite:///"):
        p = p[len("sqlite:///") :]
    return p or "./reiseveteran.sqlite"


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """Open a SQLite connection that commits on success and rolls back on error.

    Rows come back as sqlite3.Row so callers can index by column name.
    """
    path = _normalize_path(db_path)
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str) -> None:
    """Create all tables and run lightweight migrations."""
    _debug(f"Initializing DB at {_normalize_path(db_path)}")
    with connect(db_path) as conn:
        conn.executescript(get_schema_sql())
        _migrate(conn)


def _table_columns(conn: Any, table: str) -> List[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return [str(r["name"]) for r in rows]


def _migrate(conn: Any) -> None:
    """Lightweight forward-only migrations for existing DBs."""
    cols = _table_columns(conn, "users")
    # users: billing columns were added after the first release
    user_cols_to_add = [
        ("billing_interval", "TEXT NOT NULL DEFAULT 'monthly'"),
        ("subscription_expires_at", "TEXT"),
        ("stripe_customer_id", "TEXT"),
        ("stripe_subscription_id", "TEXT"),
    ]
    for col, ctype in user_cols_to_add:
        if col not in cols:
            _debug(f"Adding users.{col}")
            conn.execute(f"ALTER TABLE users ADD COLUMN {col} {ctype}")
