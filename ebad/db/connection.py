"""SQLite connection factory and transaction helper.

Usage::

    from ebad.db.connection import get_connection, transaction

    conn = get_connection()
    with transaction(conn):
        conn.execute("UPDATE mindmap_nodes SET ...")
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from ebad.config import settings
from ebad.errors import InternalError

logger = logging.getLogger(__name__)


class SharedConnection(sqlite3.Connection):
    """A connection that several threads may share (the API opens one).

    Write transactions are serialised on :attr:`tx_lock`; the nesting depth
    is tracked per thread so one thread never joins another's transaction.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.tx_lock = threading.RLock()
        self._tx_local = threading.local()

    @property
    def tx_depth(self) -> int:
        return getattr(self._tx_local, "depth", 0)

    @tx_depth.setter
    def tx_depth(self, value: int) -> None:
        self._tx_local.depth = value


def get_connection(db_path: Optional[Path] = None) -> SharedConnection:
    """Open and configure a SQLite connection.

    Steps performed on every new connection:
    1. Enable ``PRAGMA foreign_keys = ON`` (cascading deletes rely on it).
    2. Switch to WAL journal mode for concurrent readers.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A :class:`SharedConnection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.
    """
    path = db_path or settings.db_path

    # Create parent directory if needed (no-op for `:memory:`)
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(
        str(path), check_same_thread=False, factory=SharedConnection
    )
    conn.row_factory = sqlite3.Row

    # PRAGMAs
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")

    return conn


@contextmanager
def transaction(conn: SharedConnection) -> Iterator[SharedConnection]:
    """Run the enclosed statements as one write transaction.

    Opens ``BEGIN IMMEDIATE`` so the reads a mutation performs before writing
    (cycle checks, subtree collection) see the same state the writes apply to.
    The connection's lock is held until commit or rollback, so a second thread
    waits instead of writing into this transaction.  Nested use on the same
    thread joins the outer transaction instead of committing early.

    ``sqlite3.IntegrityError`` propagates unchanged so callers can map
    constraint violations; any other ``sqlite3.Error`` is logged and raised as
    :class:`~ebad.errors.InternalError`.
    """
    with conn.tx_lock:
        if conn.tx_depth:
            conn.tx_depth += 1
            try:
                yield conn
            finally:
                conn.tx_depth -= 1
            return

        conn.execute("BEGIN IMMEDIATE")
        conn.tx_depth = 1
        try:
            yield conn
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as exc:
            conn.rollback()
            logger.exception("Storage failure, transaction rolled back")
            raise InternalError("Storage failure") from exc
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()
        finally:
            conn.tx_depth = 0
