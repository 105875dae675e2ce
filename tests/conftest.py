"""Shared test fixtures for aichat-assistant."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from aichat_assistant.api_client import ChatAPIClient
from aichat_assistant.core import ChatMessage, ChatSession
from aichat_assistant.store import ChatStore

T0 = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    """A fresh on-disk store in a temp directory."""
    s = ChatStore(tmp_path / "chat.db")
    yield s
    s.close()


@pytest.fixture
def make_session():
    def _make(id="s1", name="Chat 1", model="gpt-4o-mini", updated=T0, message_count=0):
        return ChatSession(
            id=id,
            name=name,
            model=model,
            created_at=T0,
            updated_at=updated,
            message_count=message_count,
        )

    return _make


@pytest.fixture
def make_message():
    def _make(id="m1", session_id="s1", role="user", content="hi", minutes=0):
        return ChatMessage(
            id=id,
            session_id=session_id,
            role=role,
            content=content,
            created_at=T0 + timedelta(minutes=minutes),
        )

    return _make


@pytest.fixture
def populated_store(store, make_session, make_message):
    """Two sessions; s1 has three messages saved out of order, s2 has one."""
    store.save_session(make_session("s1", "Fix auth bug", updated=T0 + timedelta(hours=1), message_count=3))
    store.save_session(make_session("s2", "Dark mode", updated=T0 + timedelta(hours=3), message_count=1))
    store.save_message(make_message("m2", "s1", "assistant", "Updated token validation", minutes=1))
    store.save_message(make_message("m3", "s1", "user", "Thanks!", minutes=2))
    store.save_message(make_message("m1", "s1", "user", "Fix the login bug", minutes=0))
    store.save_message(make_message("m4", "s2", "user", "Add dark mode", minutes=5))
    return store


PLAN_JSON = {
    "title": "Landing page",
    "description": "Build and publish a landing page",
    "steps": [
        {
            "id": "step_1",
            "title": "Generate HTML",
            "description": "Create the landing page HTML markup",
            "type": "code-generation",
        },
        {
            "id": "step_2",
            "title": "Publish via hosting API",
            "description": "Upload the site through the hosting API",
            "type": "api-request",
            "requiredInput": {
                "type": "api-key",
                "prompt": "Hosting API key",
                "placeholder": "sk-...",
            },
        },
        {
            "id": "step_3",
            "title": "Review",
            "description": "Check the page for broken links",
            "type": "analysis",
        },
    ],
}


@pytest.fixture
def plan_json():
    return json.loads(json.dumps(PLAN_JSON))


class FakeChatAPI:
    """In-process stand-in for the remote text-generation service."""

    def __init__(self, reply="Hello from the model", models=None, fail_chat=False):
        self.reply = reply
        self.models = models
        self.fail_chat = fail_chat
        self.requests: list[tuple[str, str, dict | None]] = []
        self._next = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        path = request.url.path

        if path.endswith("/models"):
            if self.models is None:
                return httpx.Response(500)
            return httpx.Response(200, json={"success": True, "models": self.models})
        if path.endswith("/sessions"):
            self._next += 1
            return httpx.Response(200, json={"success": True, "session_id": f"remote-{self._next}"})
        if path.endswith("/chat"):
            if self.fail_chat:
                return httpx.Response(200, json={"success": False, "error": "overloaded"})
            reply = self.reply(body["message"]) if callable(self.reply) else self.reply
            return httpx.Response(200, json={"success": True, "response": reply})
        return httpx.Response(404)


@pytest.fixture
def fake_api():
    return FakeChatAPI()


@pytest.fixture
def api_client(fake_api):
    return ChatAPIClient(base_url="http://ai.test/api", transport=httpx.MockTransport(fake_api))
