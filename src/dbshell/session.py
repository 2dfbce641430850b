"""Per-invocation shell state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from dbshell.engine import Database

logger = logging.getLogger(__name__)


class DisplayMode(Enum):
    """How query results are laid out."""

    LIST = "list"  # Values delimited by |
    COLUMN = "column"  # Left-aligned fixed-width columns


@dataclass
class OpenDatabase:
    """An open database paired with the path it was opened from."""

    database: Database
    path: str

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("An open database needs a non-empty path")

    def close(self) -> None:
        self.database.close()


@dataclass
class Session:
    """Mutable state shared by the command handlers.

    Headers are shown and results use list mode until changed.
    """

    current: OpenDatabase | None = None
    header_visible: bool = True
    display_mode: DisplayMode = DisplayMode.LIST

    @property
    def database(self) -> Database | None:
        return self.current.database if self.current else None

    @property
    def database_path(self) -> str | None:
        return self.current.path if self.current else None

    def replace_database(self, database: Database, path: str) -> None:
        """Install a newly opened database, closing the previous one first."""
        replacement = OpenDatabase(database, path)
        self.close_database()
        self.current = replacement
        logger.info("Switched to database %s", path)

    def close_database(self) -> None:
        """Close the open database, if any."""
        if self.current is None:
            return
        previous, self.current = self.current, None
        previous.close()
        logger.debug("Released database %s", previous.path)
