"""Core data models for aichat-assistant."""

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

ROLES = ("user", "assistant")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return a fresh opaque identifier for a session or message."""
    return uuid.uuid4().hex


@dataclass
class ChatSession:
    """A named conversation thread."""

    id: str
    name: str
    model: str  # e.g. "gpt-4o-mini"
    created_at: datetime
    updated_at: datetime
    message_count: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data


@dataclass
class ChatMessage:
    """A single message within a chat session. Immutable once stored."""

    id: str
    session_id: str
    role: str  # "user" | "assistant"
    content: str
    created_at: datetime

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid role: {self.role!r}")
        if not self.session_id:
            raise ValueError("Message must belong to a session")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass
class StorageSize:
    """Approximate bytes used by each collection."""

    sessions: int
    messages: int
    total: int

    def usage(self, quota: int) -> float:
        """Fraction of ``quota`` in use, capped at 1.0."""
        if quota <= 0:
            return 1.0
        return min(self.total / quota, 1.0)
