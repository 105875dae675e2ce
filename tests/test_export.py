"""Tests for export functionality."""

import json
from datetime import datetime, timezone

import pytest

from aichat_assistant.core import ChatMessage, ChatSession
from aichat_assistant.export import (
    content_disposition,
    export_filename,
    session_to_json,
    session_to_markdown,
)


@pytest.fixture
def sample_session():
    return ChatSession(
        id="s-123",
        name="Fix authentication bug",
        model="gpt-4o-mini",
        created_at=datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc),
        updated_at=datetime(2025, 1, 15, 11, 0, 0, tzinfo=timezone.utc),
        message_count=3,
    )


@pytest.fixture
def sample_messages():
    return [
        ChatMessage(
            id="m1",
            session_id="s-123",
            role="user",
            content="Fix the login bug in auth.ts",
            created_at=datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc),
        ),
        ChatMessage(
            id="m2",
            session_id="s-123",
            role="assistant",
            content="I'll fix the authentication bug. Here's the change:\n\n```typescript\nconst token = await validateToken(input);\n```",
            created_at=datetime(2025, 1, 15, 10, 0, 30, tzinfo=timezone.utc),
        ),
        ChatMessage(
            id="m3",
            session_id="s-123",
            role="user",
            content="Looks good, thanks!",
            created_at=datetime(2025, 1, 15, 10, 1, 0, tzinfo=timezone.utc),
        ),
    ]


class TestMarkdownExport:
    def test_includes_session_name(self, sample_session, sample_messages):
        result = session_to_markdown(sample_session, sample_messages)
        assert "# Fix authentication bug" in result

    def test_includes_metadata(self, sample_session, sample_messages):
        result = session_to_markdown(sample_session, sample_messages)
        assert "**Model:** gpt-4o-mini" in result
        assert "**Messages:** 3" in result

    def test_includes_role_headers(self, sample_session, sample_messages):
        result = session_to_markdown(sample_session, sample_messages)
        assert "## User (2025-01-15 10:00)" in result
        assert "## Assistant" in result

    def test_preserves_code_blocks(self, sample_session, sample_messages):
        result = session_to_markdown(sample_session, sample_messages)
        assert "```typescript" in result
        assert "validateToken" in result

    def test_empty_messages(self, sample_session):
        result = session_to_markdown(sample_session, [])
        assert "# Fix authentication bug" in result
        assert "## User" not in result


class TestJsonExport:
    def test_produces_valid_json(self, sample_session, sample_messages):
        data = json.loads(session_to_json(sample_session, sample_messages))
        assert "session" in data
        assert "messages" in data

    def test_session_fields(self, sample_session, sample_messages):
        data = json.loads(session_to_json(sample_session, sample_messages))
        s = data["session"]
        assert s["id"] == "s-123"
        assert s["name"] == "Fix authentication bug"
        assert s["message_count"] == 3
        assert s["created_at"] == "2025-01-15T10:00:00+00:00"

    def test_message_fields(self, sample_session, sample_messages):
        data = json.loads(session_to_json(sample_session, sample_messages))
        assert len(data["messages"]) == 3
        msg = data["messages"][0]
        assert msg["role"] == "user"
        assert msg["session_id"] == "s-123"
        assert msg["content"] == "Fix the login bug in auth.ts"

    def test_unicode_preserved(self, sample_session):
        messages = [
            ChatMessage(
                id="u1",
                session_id="s-123",
                role="user",
                content="Привет 🌍",
                created_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
            )
        ]
        assert "Привет 🌍" in session_to_json(sample_session, messages)


class TestFilename:
    def test_strips_unsafe_characters(self, sample_session):
        sample_session.name = 'Bug: "auth" / login?'
        assert export_filename(sample_session, "md") == "Bug auth  login.md"

    def test_falls_back_to_id(self, sample_session):
        sample_session.name = "???"
        assert export_filename(sample_session, "json") == "s-123.json"

    def test_keeps_non_ascii_letters(self, sample_session):
        sample_session.name = "Чат 1"
        assert export_filename(sample_session, "md") == "Чат 1.md"


class TestContentDisposition:
    def test_ascii_name(self, sample_session):
        assert content_disposition(sample_session, "md") == 'attachment; filename="Fix authentication bug.md"'

    def test_non_ascii_name_gets_encoded_variant(self, sample_session):
        sample_session.name = "Чат 1"
        header = content_disposition(sample_session, "json")
        assert header.startswith('attachment; filename="1.json"')
        assert header.endswith("filename*=UTF-8''%D0%A7%D0%B0%D1%82%201.json")
        header.encode("latin-1")

    def test_fully_non_ascii_name_falls_back_to_id(self, sample_session):
        sample_session.name = "Привет"
        assert 'filename="s-123.md"' in content_disposition(sample_session, "md")
