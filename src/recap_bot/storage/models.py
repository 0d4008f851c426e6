"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from recap_bot.core.types import EntryKind, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ConversationEntry:
    """One immutable line of a session's conversation log."""

    role: Role
    content: str
    kind: Optional[EntryKind] = None
    source_url: Optional[str] = None
    created_at: Optional[datetime] = None  # assigned by the store on append

    def __post_init__(self) -> None:
        if not self.role:
            raise ValueError("Conversation entry requires a role")
        if not self.content:
            raise ValueError("Conversation entry requires content")
        if self.source_url is not None and self.kind != EntryKind.URL_SUMMARY:
            raise ValueError("source_url is only allowed on url-summary entries")
        # Accept raw strings from callers and storage
        object.__setattr__(self, "role", Role(self.role))
        if self.kind is not None:
            object.__setattr__(self, "kind", EntryKind(self.kind))

    def stamped(self, at: datetime) -> ConversationEntry:
        return replace(self, created_at=at)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.kind is not None:
            data["type"] = self.kind.value
        if self.source_url is not None:
            data["url"] = self.source_url
        if self.created_at is not None:
            data["createdAt"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationEntry:
        created_at = data.get("createdAt")
        return cls(
            role=Role(data["role"]),
            content=data["content"],
            kind=EntryKind(data["type"]) if data.get("type") else None,
            source_url=data.get("url"),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )


@dataclass
class SessionLog:
    """In-memory state of one session, owned by the store's session handle."""

    entries: list[ConversationEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    last_accessed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "createdAt": self.created_at.isoformat(),
            "lastAccessedAt": self.last_accessed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionLog:
        log = cls()
        log.entries = [ConversationEntry.from_dict(item) for item in data.get("entries") or []]
        if data.get("createdAt"):
            log.created_at = datetime.fromisoformat(data["createdAt"])
        if data.get("lastAccessedAt"):
            log.last_accessed_at = datetime.fromisoformat(data["lastAccessedAt"])
        return log


@dataclass(frozen=True, slots=True)
class SessionStats:
    count: int
    created_at: datetime
    last_accessed_at: datetime
