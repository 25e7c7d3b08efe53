"""Database helpers backed by SQLAlchemy."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

from booking_app.extensions import db as sa_db


def db() -> sqlite3.Connection:
    """Return a raw sqlite3 connection with PRAGMAs applied."""

    return sa_db.raw_connection()


@contextmanager
def immediate_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Hold the database write lock for the duration of the block."""

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?",
        (table,),
    ).fetchone()
    return bool(row)
