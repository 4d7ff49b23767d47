"""Versioned schema management for the graph store.

The recorded schema version is SQLite's ``PRAGMA user_version``; there is no
separate ledger of applied steps. Every step is therefore written to be safe
to re-run (``IF NOT EXISTS`` / ``OR IGNORE`` / presence checks), and a whole
upgrade pass runs in one transaction so a failing step leaves the recorded
version untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import sqlite3
from typing import Callable, Dict, Optional, Sequence

from ..models.settings import APP_SETTINGS_KEY
from .database import DatabaseService, table_exists

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Raised when the store cannot be brought to the current schema (fatal at startup)."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


V1_DDL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS spaces (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        icon TEXT NOT NULL DEFAULT '',
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        view TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_spaces_name ON spaces(name)",
    "CREATE INDEX IF NOT EXISTS idx_spaces_updated ON spaces(updated_at)",
    """
    CREATE TABLE IF NOT EXISTS nodes (
        id TEXT PRIMARY KEY,
        space_id TEXT NOT NULL,
        title TEXT NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        importance INTEGER NOT NULL DEFAULT 3,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        position TEXT NOT NULL,
        blocks TEXT NOT NULL DEFAULT '[]'
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_nodes_space ON nodes(space_id)",
    "CREATE INDEX IF NOT EXISTS idx_nodes_title ON nodes(title)",
    "CREATE INDEX IF NOT EXISTS idx_nodes_updated ON nodes(updated_at)",
    """
    CREATE TABLE IF NOT EXISTS edges (
        id TEXT PRIMARY KEY,
        space_id TEXT NOT NULL,
        from_id TEXT NOT NULL,
        to_id TEXT NOT NULL,
        relation TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_edges_space ON edges(space_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_from ON edges(from_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(to_id)",
    """
    CREATE TABLE IF NOT EXISTS views (
        space_id TEXT PRIMARY KEY,
        data TEXT NOT NULL
    )
    """,
)

V2_DDL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS space_view_state (
        space_id TEXT PRIMARY KEY,
        data TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key TEXT PRIMARY KEY,
        schema_version INTEGER NOT NULL,
        last_opened_space_id TEXT
    )
    """,
)


@dataclass(frozen=True)
class Migration:
    """One forward step from ``version - 1`` to ``version``."""

    version: int
    description: str
    apply: Callable[[sqlite3.Connection], None]

    @property
    def from_version(self) -> int:
        return self.version - 1


def _create_v1_layout(conn: sqlite3.Connection) -> None:
    for statement in V1_DDL:
        conn.execute(statement)


def _split_views_and_settings(conn: sqlite3.Connection) -> None:
    for statement in V2_DDL:
        conn.execute(statement)

    if table_exists(conn, "views"):
        copied = conn.execute(
            "INSERT OR IGNORE INTO space_view_state (space_id, data) SELECT space_id, data FROM views"
        ).rowcount
        conn.execute("DROP TABLE views")
        logger.info("Moved %s view records into space_view_state", copied)

    conn.execute(
        """
        INSERT INTO app_settings (key, schema_version, last_opened_space_id)
        VALUES (?, 2, NULL)
        ON CONFLICT(key) DO UPDATE SET schema_version = excluded.schema_version
        """,
        (APP_SETTINGS_KEY,),
    )


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "spaces, nodes, edges and views tables", _create_v1_layout),
    Migration(2, "rename views to space_view_state; add app_settings", _split_views_and_settings),
)

CURRENT_SCHEMA_VERSION = MIGRATIONS[-1].version


class MigrationManager:
    """Apply pending migrations in ascending order, one transaction per pass."""

    def __init__(
        self,
        db: DatabaseService,
        migrations: Sequence[Migration] = MIGRATIONS,
    ) -> None:
        versions = [migration.version for migration in migrations]
        if versions != sorted(set(versions)):
            raise ValueError("Migration versions must be unique and ascending")
        self.db = db
        self.migrations = tuple(migrations)

    @property
    def target_version(self) -> int:
        return self.migrations[-1].version if self.migrations else 0

    def pending(self, current: int) -> list[Migration]:
        return [migration for migration in self.migrations if migration.version > current]

    def upgrade(self) -> int:
        """Bring the store to the target version and return the recorded version.

        Raises MigrationError if any step fails; nothing from the pass is kept.
        """
        try:
            with self.db.transaction() as conn:
                current = int(conn.execute("PRAGMA user_version").fetchone()[0])
                if current > self.target_version:
                    raise MigrationError(
                        f"Store schema v{current} is newer than supported v{self.target_version}",
                        {"current": current, "target": self.target_version},
                    )
                for migration in self.pending(current):
                    if current != migration.from_version:
                        raise MigrationError(
                            f"Migration to v{migration.version} requires v{migration.from_version}, found v{current}",
                            {"current": current, "step": migration.version},
                        )
                    logger.info("Applying migration v%s: %s", migration.version, migration.description)
                    migration.apply(conn)
                    conn.execute(f"PRAGMA user_version = {int(migration.version)}")
                    current = migration.version
                return current
        except MigrationError:
            logger.exception("Schema upgrade aborted")
            raise
        except Exception as e:
            logger.exception("Schema upgrade failed")
            raise MigrationError(f"Schema upgrade failed: {e}", {"db_path": str(self.db.db_path)}) from e


__all__ = [
    "Migration",
    "MigrationError",
    "MigrationManager",
    "MIGRATIONS",
    "CURRENT_SCHEMA_VERSION",
    "V1_DDL",
    "V2_DDL",
]
