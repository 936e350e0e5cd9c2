"""Persistent state management for the Ebad mind-map CLI.

Tracks the "active lesson" and the display locale so commands do not need
``--lesson`` every time.  Stored in ``<workspace>/.ebad_cli/context.json``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional

import typer

from ebad.config import settings
from ebad.errors import MindMapError

logger = logging.getLogger(__name__)


@dataclass
class CliContext:
    active_lesson_id: Optional[int] = None
    locale: str = "en"

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Ignoring unreadable CLI context")
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk.  Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()
    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def resolve_lesson(lesson_id: Optional[int]) -> int:
    """Return *lesson_id*, or the active lesson when it is ``None``.

    Aborts the command when neither is set.
    """
    if lesson_id is not None:
        return lesson_id
    ctx = load_context()
    if ctx.active_lesson_id is None:
        typer.echo("No lesson selected. Pass --lesson or run 'lesson use <id>' first.")
        raise typer.Exit(code=1)
    return ctx.active_lesson_id


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn a :class:`MindMapError` into a one-line message and exit code 1."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except MindMapError as exc:
            typer.echo(f"Error ({exc.kind}): {exc.message}", err=True)
            raise typer.Exit(code=1) from exc

    return wrapper
