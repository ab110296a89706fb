# chargebot/services/db.py
from __future__ import annotations

import logging
import aiosqlite
from pathlib import Path

from chargebot.core.timecore import now_utc_ts

log = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

-- The whole persistent tree as one JSON document.
-- Exactly one row (id = 1), rewritten wholesale after every durable mutation.
CREATE TABLE IF NOT EXISTS state_document(
  id INTEGER PRIMARY KEY CHECK (id = 1),
  body TEXT NOT NULL,
  updated_at INTEGER NOT NULL
);
"""

# sqlite keeps these next to the main file in WAL mode
SIDECAR_SUFFIXES = ("", "-wal", "-shm")


class Database:
    def __init__(self, db_path: str):
        self.db_path = db_path
        self.conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._open()
        except aiosqlite.DatabaseError:
            log.exception("Database %s is unreadable, starting a fresh one", self.db_path)
            await self._reset()

    async def _open(self) -> None:
        self.conn = await aiosqlite.connect(self.db_path)
        await self.conn.executescript(SCHEMA_SQL)
        await self.conn.commit()

    async def _reset(self) -> None:
        """Close, move the broken file (and its WAL sidecars) aside, recreate the schema."""
        await self.close()

        stamp = now_utc_ts()
        for suffix in SIDECAR_SUFFIXES:
            path = Path(self.db_path + suffix)
            if path.exists():
                moved = path.with_name(f"{path.name}.corrupt-{stamp}")
                path.replace(moved)
                log.warning("Moved %s to %s", path, moved)

        await self._open()

    async def close(self) -> None:
        if self.conn:
            try:
                await self.conn.close()
            finally:
                self.conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn

    async def load_document(self) -> str | None:
        """The stored body, or None if there is none (or it can't be read and the file was reset)."""
        conn = self._require_conn()
        try:
            cur = await conn.execute("SELECT body FROM state_document WHERE id=1")
            row = await cur.fetchone()
        except aiosqlite.DatabaseError:
            log.exception("Couldn't read the state document from %s", self.db_path)
            await self._reset()
            return None
        return None if not row else str(row[0])

    async def save_document(self, body: str, now_ts: int) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT INTO state_document(id, body, updated_at)
            VALUES(1, ?, ?)
            ON CONFLICT(id)
            DO UPDATE SET body=excluded.body, updated_at=excluded.updated_at
            """,
            (body, now_ts),
        )
        await conn.commit()
