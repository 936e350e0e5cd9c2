"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging, opens a single SQLite connection
(shared across all requests via ``request.app.state.db``) and initialises the
schema.  On shutdown it closes the connection cleanly.

Routers
-------
    /admin/mindmap    : tree and graph editor endpoints (reads and writes)
    /student/mindmap  : read-only viewer endpoints (published content only)

Errors
------
Any :class:`~ebad.errors.MindMapError` becomes ``{"error", "kind"}`` with the
error's status code; request-body validation failures become a 400 with the
pydantic details.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ebad.config import configure_logging
from ebad.db import get_connection, init_db
from ebad.errors import MindMapError

from ebad.api.routers import mindmap as mindmap_router
from ebad.api.routers import student as student_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    configure_logging()
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    try:
        yield
    finally:
        conn.close()


async def mindmap_error_handler(request: Request, exc: MindMapError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation failed",
            "kind": "Validation",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Ebad Academy Mind Map API",
        description=(
            "Bilingual lesson mind maps: hierarchy and relationship editing "
            "for admins, published read-only views for students."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MindMapError, mindmap_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]

    app.include_router(mindmap_router.router, prefix="/admin/mindmap", tags=["admin"])
    app.include_router(student_router.router, prefix="/student/mindmap", tags=["student"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn ebad.api.app:app --reload
app = create_app()
