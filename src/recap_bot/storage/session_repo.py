"""Session state repository: one JSON record per session."""

from __future__ import annotations

import json
from typing import Optional

import aiosqlite

from recap_bot.errors import StorageFailure
from recap_bot.log import get_logger
from recap_bot.storage.database import Database
from recap_bot.storage.models import SessionLog

logger = get_logger(__name__)


class SessionStateRepository:
    """Read-modify-write persistence of SessionLog records keyed by session id."""

    def __init__(self, db: Database):
        self._db = db

    async def load(self, session_id: str) -> Optional[SessionLog]:
        """Return the stored log for a session, or None if it was never saved."""
        try:
            cursor = await self._db.conn.execute(
                "SELECT state_json FROM session_state WHERE session_id = ?",
                (session_id,),
            )
            row = await cursor.fetchone()
            await cursor.close()
        except aiosqlite.Error as e:
            logger.error("session_load_failed", session_id=session_id, error=str(e))
            raise StorageFailure(session_id, "load", e) from e

        if row is None:
            return None
        try:
            return SessionLog.from_dict(json.loads(row["state_json"]))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.error("session_state_corrupt", session_id=session_id, error=str(e))
            raise StorageFailure(session_id, "load", e) from e

    async def save(self, session_id: str, log: SessionLog) -> None:
        """Persist the full session record and commit before returning."""
        state_json = json.dumps(log.to_dict(), ensure_ascii=False)
        try:
            await self._db.conn.execute(
                """INSERT INTO session_state (session_id, state_json)
                   VALUES (?, ?)
                   ON CONFLICT(session_id)
                   DO UPDATE SET state_json = excluded.state_json,
                                 updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
                (session_id, state_json),
            )
            await self._db.conn.commit()
        except aiosqlite.Error as e:
            logger.error("session_save_failed", session_id=session_id, error=str(e))
            raise StorageFailure(session_id, "save", e) from e

    async def list_sessions(self) -> list[str]:
        """List stored session ids, most recently updated first."""
        try:
            cursor = await self._db.conn.execute(
                "SELECT session_id FROM session_state ORDER BY updated_at DESC"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageFailure("*", "list", e) from e
        return [row["session_id"] for row in rows]
