"""Schema setup for the mind-map store.

``init_db(conn)`` applies the bundled ``schema.sql`` (tables, indexes, the FTS
index and its triggers) and then any pending entries of :data:`MIGRATIONS`.
It runs on every API and CLI startup, so everything it does is repeatable.
"""

from __future__ import annotations

import sqlite3

from ebad.config import settings


def _read_schema() -> str:
    return settings.schema_path.read_text(encoding="utf-8")


def init_db(conn: sqlite3.Connection) -> None:
    """Bring *conn*'s database up to the current schema.

    Args:
        conn: An open connection from :func:`ebad.db.connection.get_connection`.
    """
    # executescript() commits first and can split trigger bodies (BEGIN...END).
    conn.executescript(_read_schema())
    _ensure_version_table(conn)
    migrate(conn)


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
            )
            """
        )


def current_version(conn: sqlite3.Connection) -> int:
    """Highest recorded migration, or 0 for a database built from schema.sql only."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


# (version, sql) pairs.  Append only; a recorded version is never re-run.
MIGRATIONS: list[tuple[int, str]] = []


def migrate(conn: sqlite3.Connection) -> None:
    """Apply the migrations newer than :func:`current_version`, oldest first."""
    applied = current_version(conn)
    for version, sql in sorted(MIGRATIONS):
        if version <= applied:
            continue
        with conn:
            conn.execute(sql)
            conn.execute("INSERT INTO schema_version(version) VALUES (?)", (version,))
