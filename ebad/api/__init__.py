"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from ebad.api import app

    uvicorn ebad.api:app --reload
"""

from ebad.api.app import app

__all__ = ["app"]
