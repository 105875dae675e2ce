"""Local chat store backed by a single SQLite database.

Two tables:
- sessions: one row per ChatSession, keyed by id.
- messages: one row per ChatMessage, keyed by id, indexed on session_id.

The connection is opened lazily by any operation and can be closed and
reopened at will. Timestamps are stored as ISO 8601 text.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from .core import ChatMessage, ChatSession, StorageSize
from .exceptions import OpenError, StorageError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    model TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    message_count INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_session_id ON messages (session_id);
"""


class ChatStore:
    """CRUD over chat sessions and messages.

    Pass ``":memory:"`` as the path for an isolated, non-durable store.
    """

    def __init__(self, path: str | Path):
        self.path = str(path)
        self._conn: sqlite3.Connection | None = None

    # ── Lifecycle ────────────────────────────────────────────────────

    def init(self) -> None:
        """Open the database, creating the schema if needed. Idempotent."""
        if self._conn is not None:
            return

        if self.path != ":memory:":
            try:
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise OpenError(f"Cannot create database directory for {self.path}: {e}") from e

        try:
            conn = sqlite3.connect(self.path, check_same_thread=False)
        except sqlite3.Error as e:
            raise OpenError(f"Cannot open database {self.path}: {e}") from e

        try:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version > SCHEMA_VERSION:
                raise OpenError(
                    f"Database {self.path} has schema version {version}, "
                    f"expected {SCHEMA_VERSION}"
                )
            if version < SCHEMA_VERSION:
                conn.executescript(_SCHEMA)
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                conn.commit()
                logger.info("Created chat database schema v%d at %s", SCHEMA_VERSION, self.path)
        except sqlite3.Error as e:
            conn.close()
            raise OpenError(f"Cannot initialize database {self.path}: {e}") from e
        except OpenError:
            conn.close()
            raise

        conn.row_factory = sqlite3.Row
        self._conn = conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            self.init()
        return self._conn

    # ── Sessions ─────────────────────────────────────────────────────

    def save_session(self, session: ChatSession) -> None:
        """Insert or fully replace a session record."""
        self._write(
            "INSERT OR REPLACE INTO sessions "
            "(id, name, model, created_at, updated_at, message_count) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                session.id,
                session.name,
                session.model,
                session.created_at.isoformat(),
                session.updated_at.isoformat(),
                session.message_count,
            ),
        )

    def get_session(self, session_id: str) -> ChatSession | None:
        rows = self._read("SELECT * FROM sessions WHERE id = ?", (session_id,))
        return _row_to_session(rows[0]) if rows else None

    def get_sessions(self) -> list[ChatSession]:
        """Return all sessions, most recently active first."""
        sessions = [_row_to_session(r) for r in self._read("SELECT * FROM sessions")]
        sessions.sort(key=lambda s: _sort_key(s.updated_at), reverse=True)
        return sessions

    def delete_session(self, session_id: str) -> None:
        """Delete a session and every message that belongs to it."""
        db = self._db()
        try:
            with db:
                cur = db.execute("DELETE FROM messages WHERE session_id = ?", (session_id,))
                db.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete session {session_id}: {e}") from e
        logger.info("Deleted session %s and %d messages", session_id, cur.rowcount)

    # ── Messages ─────────────────────────────────────────────────────

    def save_message(self, message: ChatMessage) -> None:
        """Insert or fully replace a message record."""
        self._write(
            "INSERT OR REPLACE INTO messages (id, session_id, role, content, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            _message_params(message),
        )

    def append_message(self, message: ChatMessage) -> None:
        """Store a new message and bump its session's count and updated_at.

        Appending a message id that already exists changes nothing.
        """
        db = self._db()
        try:
            with db:
                cur = db.execute(
                    "UPDATE sessions SET message_count = message_count + 1, updated_at = ? "
                    "WHERE id = ? AND NOT EXISTS (SELECT 1 FROM messages WHERE id = ?)",
                    (message.created_at.isoformat(), message.session_id, message.id),
                )
                if cur.rowcount == 0:
                    exists = db.execute(
                        "SELECT 1 FROM sessions WHERE id = ?", (message.session_id,)
                    ).fetchone()
                    if exists is None:
                        raise StorageError(f"Unknown session: {message.session_id}")
                    return
                db.execute(
                    "INSERT INTO messages (id, session_id, role, content, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    _message_params(message),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to append message {message.id}: {e}") from e

    def get_session_messages(self, session_id: str) -> list[ChatMessage]:
        """Return a session's messages, oldest first."""
        rows = self._read(
            "SELECT * FROM messages INDEXED BY idx_messages_session_id WHERE session_id = ?",
            (session_id,),
        )
        messages = [_row_to_message(r) for r in rows]
        messages.sort(key=lambda m: _sort_key(m.created_at))
        return messages

    def get_all_messages(self) -> list[ChatMessage]:
        return [_row_to_message(r) for r in self._read("SELECT * FROM messages")]

    # ── Maintenance ──────────────────────────────────────────────────

    def get_storage_size(self) -> StorageSize:
        """Estimate storage use by serializing each collection as JSON.

        This reads every record, so it is O(total data).
        """
        sessions = json.dumps([s.to_dict() for s in self.get_sessions()], ensure_ascii=False)
        messages = json.dumps([m.to_dict() for m in self.get_all_messages()], ensure_ascii=False)
        sessions_size = len(sessions.encode("utf-8"))
        messages_size = len(messages.encode("utf-8"))
        return StorageSize(
            sessions=sessions_size,
            messages=messages_size,
            total=sessions_size + messages_size,
        )

    def clear_all_data(self) -> None:
        """Delete every session and message. Irreversible."""
        db = self._db()
        try:
            with db:
                db.execute("DELETE FROM messages")
                db.execute("DELETE FROM sessions")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to clear data: {e}") from e
        logger.warning("Cleared all chat data in %s", self.path)

    # ── Private helpers ──────────────────────────────────────────────

    def _write(self, sql: str, params: tuple) -> None:
        db = self._db()
        try:
            with db:
                db.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"Write failed: {e}") from e

    def _read(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        db = self._db()
        try:
            return db.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Read failed: {e}") from e


def _message_params(message: ChatMessage) -> tuple:
    return (
        message.id,
        message.session_id,
        message.role,
        message.content,
        message.created_at.isoformat(),
    )


def _row_to_session(row: sqlite3.Row) -> ChatSession:
    return ChatSession(
        id=row["id"],
        name=row["name"],
        model=row["model"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        message_count=row["message_count"],
    )


def _row_to_message(row: sqlite3.Row) -> ChatMessage:
    return ChatMessage(
        id=row["id"],
        session_id=row["session_id"],
        role=row["role"],
        content=row["content"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _sort_key(ts: datetime) -> datetime:
    """Make naive timestamps comparable with aware ones (naive = UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts
