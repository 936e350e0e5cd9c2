"""Database layer package.

Public re-exports so callers can write::

    from ebad.db import get_connection, init_db, transaction
"""

from ebad.db.connection import get_connection, transaction
from ebad.db.migrations import init_db

__all__ = ["get_connection", "init_db", "transaction"]
