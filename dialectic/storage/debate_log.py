"""SQLite durable log for debate records."""

import json
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import DebateRecord
from .serializer import debate_from_dict, debate_to_dict


class IDebateLog(Protocol):
    """Durable log of debate records (SQLite)."""

    async def init(self) -> None:
        """Open the database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def write_debate_log(self, record: DebateRecord) -> None:
        """Write a new debate record."""
        ...

    async def update_debate_log(self, debate_id: str, record: DebateRecord) -> None:
        """Overwrite the stored record for debate_id."""
        ...

    async def read_debate_log(self, debate_id: str) -> DebateRecord | None:
        """Read a debate record by id."""
        ...

    async def list_debate_logs(self, limit: int = 100) -> list[DebateRecord]:
        """Most recently updated records first."""
        ...

    async def clear(self) -> None:
        """Delete all records."""
        ...


class DebateLog:
    """SQLite implementation of the debate log."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def write_debate_log(self, record: DebateRecord) -> None:
        if not self._conn:
            raise RuntimeError("Debate log not initialized")

        await self._conn.execute(
            """
            INSERT OR REPLACE INTO debate_logs
            (id, version, domain, team, topic, phase, record_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
            """,
            (
                record.id,
                record.version,
                record.domain.value,
                record.team.value,
                record.topic,
                record.current_phase.value,
                json.dumps(debate_to_dict(record), ensure_ascii=False),
            ),
        )
        await self._conn.commit()

    async def update_debate_log(self, debate_id: str, record: DebateRecord) -> None:
        """Overwrite the stored record; writes a fresh row if none exists."""
        if not self._conn:
            raise RuntimeError("Debate log not initialized")

        cursor = await self._conn.execute(
            """
            UPDATE debate_logs
            SET phase = ?, record_json = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (
                record.current_phase.value,
                json.dumps(debate_to_dict(record), ensure_ascii=False),
                debate_id,
            ),
        )
        if cursor.rowcount == 0:
            await self.write_debate_log(record)
            return
        await self._conn.commit()

    async def read_debate_log(self, debate_id: str) -> DebateRecord | None:
        if not self._conn:
            raise RuntimeError("Debate log not initialized")

        cursor = await self._conn.execute(
            "SELECT record_json FROM debate_logs WHERE id = ?",
            (debate_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return debate_from_dict(json.loads(row[0]))

    async def list_debate_logs(self, limit: int = 100) -> list[DebateRecord]:
        if not self._conn:
            raise RuntimeError("Debate log not initialized")

        cursor = await self._conn.execute(
            """
            SELECT record_json
            FROM debate_logs
            ORDER BY updated_at DESC, rowid DESC
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()

        return [debate_from_dict(json.loads(row[0])) for row in rows]

    async def clear(self) -> None:
        if not self._conn:
            raise RuntimeError("Debate log not initialized")

        await self._conn.execute("DELETE FROM debate_logs")
        await self._conn.commit()
