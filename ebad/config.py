"""Centralised settings for the Ebad Academy mind-map backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("EBAD_WORKSPACE", Path.home() / ".ebad_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "mindmap.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    @property
    def cli_config_dir(self) -> Path:
        """Directory holding the CLI's persisted context (active lesson)."""
        return self.workspace_dir / ".ebad_cli"

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )

    # ------------------------------------------------------------------
    # Radial layout (shared by the admin graph editor and student viewer)
    # ------------------------------------------------------------------
    layout_center_x: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_CENTER_X", "400"))
    )
    layout_center_y: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_CENTER_Y", "300"))
    )
    layout_radius_increment: float = field(
        default_factory=lambda: float(os.environ.get("LAYOUT_RADIUS_INCREMENT", "200"))
    )

    # ------------------------------------------------------------------
    # Tree limits
    # ------------------------------------------------------------------
    nodes_page_limit: int = field(
        default_factory=lambda: int(os.environ.get("NODES_PAGE_LIMIT", "1000"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the API and the CLI."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Module-level singleton, import this everywhere:
#   from ebad.config import settings
settings = Settings()
