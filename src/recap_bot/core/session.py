"""Per-session conversation store with serialized access and lazy loading."""

from __future__ import annotations

import asyncio

from recap_bot.log import get_logger
from recap_bot.storage.models import ConversationEntry, SessionLog, SessionStats, utcnow
from recap_bot.storage.session_repo import SessionStateRepository

logger = get_logger(__name__)


class _SessionHandle:
    """Exclusive owner of one session's in-memory log.

    Every operation runs under ``lock``. The first holder loads the stored
    state, so later callers queue behind the load instead of seeing an empty
    log. A failed load leaves ``log`` unset and the next caller retries it.
    """

    __slots__ = ("session_id", "lock", "log")

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.lock = asyncio.Lock()
        self.log: SessionLog | None = None


class ConversationStore:
    """Durable, append-only conversation logs keyed by session id.

    Operations on one session are linearized; different sessions never wait
    on each other. Handles are created on first reference and live for the
    lifetime of the store.
    """

    def __init__(self, repo: SessionStateRepository):
        self._repo = repo
        self._handles: dict[str, _SessionHandle] = {}

    def _handle(self, session_id: str) -> _SessionHandle:
        handle = self._handles.get(session_id)
        if handle is None:
            handle = _SessionHandle(session_id)
            self._handles[session_id] = handle
        return handle

    async def _ensure_loaded(self, handle: _SessionHandle) -> SessionLog:
        """Load the stored log once. Caller must hold ``handle.lock``."""
        if handle.log is None:
            stored = await self._repo.load(handle.session_id)
            if stored is None:
                handle.log = SessionLog()
                logger.info("session_created", session_id=handle.session_id)
            else:
                handle.log = stored
                logger.info(
                    "session_loaded",
                    session_id=handle.session_id,
                    entries=len(stored.entries),
                )
        return handle.log

    async def append(self, session_id: str, entry: ConversationEntry) -> int:
        """Stamp and append an entry, persist it, and return the new entry count.

        Raises StorageFailure if the write does not commit; the log is then
        left exactly as it was.
        """
        handle = self._handle(session_id)
        async with handle.lock:
            log = await self._ensure_loaded(handle)

            now = utcnow()
            if log.entries and log.entries[-1].created_at and log.entries[-1].created_at > now:
                now = log.entries[-1].created_at

            updated = SessionLog(
                entries=[*log.entries, entry.stamped(now)],
                created_at=log.created_at,
                last_accessed_at=now,
            )
            await self._repo.save(session_id, updated)
            handle.log = updated

            logger.debug(
                "entry_appended",
                session_id=session_id,
                role=entry.role.value,
                kind=entry.kind.value if entry.kind else None,
                count=len(updated.entries),
            )
            return len(updated.entries)

    async def recent(self, session_id: str, limit: int) -> list[ConversationEntry]:
        """Return the last ``limit`` entries, oldest first."""
        handle = self._handle(session_id)
        async with handle.lock:
            log = await self._ensure_loaded(handle)

            touched = SessionLog(
                entries=log.entries,
                created_at=log.created_at,
                last_accessed_at=utcnow(),
            )
            await self._repo.save(session_id, touched)
            handle.log = touched

            if limit <= 0:
                return []
            return list(touched.entries[-limit:])

    async def clear(self, session_id: str) -> None:
        """Drop every entry but keep the session's creation time."""
        handle = self._handle(session_id)
        async with handle.lock:
            log = await self._ensure_loaded(handle)

            cleared = SessionLog(
                entries=[],
                created_at=log.created_at,
                last_accessed_at=utcnow(),
            )
            await self._repo.save(session_id, cleared)
            handle.log = cleared
            logger.info("session_cleared", session_id=session_id, dropped=len(log.entries))

    async def stats(self, session_id: str) -> SessionStats:
        handle = self._handle(session_id)
        async with handle.lock:
            log = await self._ensure_loaded(handle)
            return SessionStats(
                count=len(log.entries),
                created_at=log.created_at,
                last_accessed_at=log.last_accessed_at,
            )
