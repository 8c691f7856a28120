# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""SQLite-backed leaderboard — persistent ``LeaderboardBackend``.

Uses ``aiosqlite`` with a single long-lived connection.  WAL journal mode
enables concurrent reads with serialized writes.  Schema versioned via
``PRAGMA user_version``.

``write()`` replaces the whole collection inside one transaction, so readers
see either the old board or the new one, never a mix.

Dependencies: leaderboard.py (ScoreEntry), errors.py.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from .errors import PersistenceError
from .leaderboard import ScoreEntry

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

_COLUMNS = "id, player_name, start_page, target_page, clicks, time, score, difficulty, mode, timestamp"


def _entry_to_row(position: int, entry: ScoreEntry) -> tuple:
    return (
        position,
        entry.id,
        entry.player_name,
        entry.start_page,
        entry.target_page,
        entry.clicks,
        entry.time,
        entry.score,
        entry.difficulty,
        entry.mode.value,
        entry.timestamp,
    )


def _row_to_entry(row: aiosqlite.Row) -> ScoreEntry:
    """Convert a positional row to a ``ScoreEntry``."""
    return ScoreEntry(
        id=row[0],
        player_name=row[1],
        start_page=row[2],
        target_page=row[3],
        clicks=row[4],
        time=row[5],
        score=row[6],
        difficulty=row[7],
        mode=row[8],
        timestamp=row[9],
    )


# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_CREATE_SCORE_ENTRIES = """
CREATE TABLE IF NOT EXISTS score_entries (
    position    INTEGER NOT NULL,
    id          TEXT PRIMARY KEY,
    player_name TEXT NOT NULL,
    start_page  TEXT NOT NULL,
    target_page TEXT NOT NULL,
    clicks      INTEGER NOT NULL,
    time        INTEGER NOT NULL,
    score       INTEGER NOT NULL,
    difficulty  REAL NOT NULL,
    mode        TEXT NOT NULL DEFAULT 'normal',
    timestamp   INTEGER NOT NULL
)
"""

_CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_score_entries_position ON score_entries(position)",
    "CREATE INDEX IF NOT EXISTS idx_score_entries_mode ON score_entries(mode)",
]


# ---------------------------------------------------------------------------
# SqliteBackend
# ---------------------------------------------------------------------------


class SqliteBackend:
    """SQLite-backed leaderboard implementing ``LeaderboardBackend``.

    Use the ``create()`` async classmethod factory — never instantiate directly.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    @classmethod
    async def create(cls, db_path: str | Path) -> SqliteBackend:
        """Open (or create) a SQLite database and initialise the schema.

        Resolves ``~`` and creates parent directories automatically.

        Raises:
            ValueError: If the existing database has a newer schema version.
        """
        path = Path(db_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)

        db = await aiosqlite.connect(str(path))
        try:
            await db.execute("PRAGMA journal_mode = WAL")

            cursor = await db.execute("PRAGMA user_version")
            row = await cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version > _SCHEMA_VERSION:
                raise ValueError(
                    f"Database schema version {current_version} is newer than supported version {_SCHEMA_VERSION}"
                )

            if current_version < _SCHEMA_VERSION:
                await db.execute(_CREATE_SCORE_ENTRIES)
                for idx_sql in _CREATE_INDEXES:
                    await db.execute(idx_sql)
                await db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
                await db.commit()
        except BaseException:
            await db.close()
            raise

        logger.debug("SQLite leaderboard opened: %s", path)
        return cls(db)

    # ── LeaderboardBackend methods ────────────────────────────────

    async def read(self) -> list[ScoreEntry]:
        """All entries in stored order; malformed rows are skipped."""
        try:
            cursor = await self._db.execute(f"SELECT {_COLUMNS} FROM score_entries ORDER BY position")
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"sqlite read failed: {e}", backend="sqlite") from e
        entries: list[ScoreEntry] = []
        for row in rows:
            try:
                entries.append(_row_to_entry(row))
            except ValidationError as e:
                logger.warning("Skipping invalid leaderboard row %r: %d error(s)", row[0], e.error_count())
        return entries

    async def write(self, entries: Sequence[ScoreEntry]) -> None:
        """Replace the stored collection in a single transaction."""
        try:
            await self._db.execute("BEGIN")
            await self._db.execute("DELETE FROM score_entries")
            await self._db.executemany(
                f"INSERT OR REPLACE INTO score_entries (position, {_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [_entry_to_row(i, entry) for i, entry in enumerate(entries)],
            )
            await self._db.commit()
        except aiosqlite.Error as e:
            await self._db.rollback()
            raise PersistenceError(f"sqlite write failed: {e}", backend="sqlite") from e

    async def close(self) -> None:
        """Close the underlying database connection."""
        await self._db.close()

    # ── Convenience accessors (not part of Protocol) ──────────────

    async def count(self) -> int:
        cursor = await self._db.execute("SELECT COUNT(*) FROM score_entries")
        row = await cursor.fetchone()
        return row[0] if row else 0
