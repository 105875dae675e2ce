"""Tests for the FastAPI server."""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from aichat_assistant.server import create_app


@pytest.fixture
def app(store, api_client):
    return create_app(store=store, client=api_client)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_session_lifecycle(client):
    resp = await client.post("/api/sessions", json={"model": "gpt-4"})
    assert resp.status_code == 201
    session = resp.json()
    assert session["name"] == "Chat 1"
    assert session["model"] == "gpt-4"

    resp = await client.patch(f"/api/sessions/{session['id']}", json={"name": "Work"})
    assert resp.json()["name"] == "Work"

    resp = await client.get("/api/sessions")
    assert [s["id"] for s in resp.json()] == [session["id"]]

    resp = await client.delete(f"/api/sessions/{session['id']}")
    assert resp.status_code == 204
    assert (await client.get("/api/sessions")).json() == []


@pytest.mark.asyncio
async def test_send_message_and_read_history(client):
    session = (await client.post("/api/sessions", json={})).json()

    resp = await client.post(f"/api/sessions/{session['id']}/messages", json={"text": "Hi there"})
    assert resp.status_code == 201
    assert resp.json()["content"] == "Hello from the model"

    resp = await client.get(f"/api/sessions/{session['id']}/messages")
    data = resp.json()
    assert data["session_id"] == session["id"]
    assert [m["role"] for m in data["messages"]] == ["user", "assistant"]

    sessions = (await client.get("/api/sessions")).json()
    assert sessions[0]["message_count"] == 2


@pytest.mark.asyncio
async def test_send_message_with_bad_attachment(client):
    session = (await client.post("/api/sessions", json={})).json()
    resp = await client.post(
        f"/api/sessions/{session['id']}/messages",
        json={"text": "look", "attachment": {"name": "pic.png", "content": "x", "mime_type": "image/png"}},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_send_message_api_failure(client, fake_api):
    fake_api.fail_chat = True
    session = (await client.post("/api/sessions", json={})).json()
    resp = await client.post(f"/api/sessions/{session['id']}/messages", json={"text": "Hi"})
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_unknown_session_is_404(client):
    assert (await client.get("/api/sessions/nope/messages")).status_code == 404
    assert (await client.delete("/api/sessions/nope")).status_code == 404
    assert (await client.post("/api/sessions/nope/messages", json={"text": "x"})).status_code == 404
    assert (await client.get("/api/export/nope")).status_code == 404


@pytest.mark.asyncio
async def test_export(client):
    session = (await client.post("/api/sessions", json={"name": "My chat"})).json()
    await client.post(f"/api/sessions/{session['id']}/messages", json={"text": "Hi"})

    resp = await client.get(f"/api/export/{session['id']}")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/markdown")
    assert 'filename="My chat.md"' in resp.headers["content-disposition"]
    assert "# My chat" in resp.text

    resp = await client.get(f"/api/export/{session['id']}?format=json")
    assert resp.json()["session"]["name"] == "My chat"


@pytest.mark.asyncio
async def test_export_non_ascii_name(client):
    session = (await client.post("/api/sessions", json={"name": "Чат 1"})).json()

    resp = await client.get(f"/api/export/{session['id']}")
    assert resp.status_code == 200
    disposition = resp.headers["content-disposition"]
    assert 'filename="1.md"' in disposition
    assert "filename*=UTF-8''%D0%A7%D0%B0%D1%82%201.md" in disposition
    assert "# Чат 1" in resp.text


@pytest.mark.asyncio
async def test_run_past_waiting_step_is_409(client, fake_api, plan_json):
    fake_api.reply = json.dumps(plan_json)
    plan_id = (await client.post("/api/plans", json={"task": "Landing page"})).json()["id"]
    await client.post(f"/api/plans/{plan_id}/run")

    resp = await client.post(f"/api/plans/{plan_id}/run", json={"start_index": 2})
    assert resp.status_code == 409

    data = (await client.get(f"/api/plans/{plan_id}")).json()
    assert data["waiting_index"] == 1
    assert [s["status"] for s in data["plan"]["steps"]] == ["completed", "waiting-input", "pending"]


@pytest.mark.asyncio
async def test_storage_and_clear(client):
    session = (await client.post("/api/sessions", json={})).json()
    await client.post(f"/api/sessions/{session['id']}/messages", json={"text": "Hi"})

    data = (await client.get("/api/storage")).json()
    assert data["total"] == data["sessions"] + data["messages"]
    assert data["quota"] == 50 * 1024 * 1024
    assert 0 < data["usage"] < 1

    assert (await client.delete("/api/storage")).status_code == 204
    assert (await client.get("/api/sessions")).json() == []


@pytest.mark.asyncio
async def test_storage_error_is_503(client, store):
    store.init()
    store._conn.execute("DROP TABLE sessions")
    resp = await client.get("/api/sessions")
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_models_fallback(client):
    resp = await client.get("/api/models")
    assert "gpt-4o-mini" in [m["id"] for m in resp.json()]


@pytest.mark.asyncio
async def test_plan_flow(client, fake_api, plan_json):
    fake_api.reply = json.dumps(plan_json)
    resp = await client.post("/api/plans", json={"task": "Build a landing page"})
    assert resp.status_code == 201
    plan_id = resp.json()["id"]

    resp = await client.post(f"/api/plans/{plan_id}/run")
    data = resp.json()
    assert data["state"] == "waiting-input"
    assert data["waiting_index"] == 1
    statuses = [s["status"] for s in data["plan"]["steps"]]
    assert statuses == ["completed", "waiting-input", "pending"]
    assert "index.html" in data["files"]

    resp = await client.post(f"/api/plans/{plan_id}/steps/1/input", json={"value": "host-key-0001"})
    data = resp.json()
    assert data["state"] == "finished"
    assert data["finished"] is True
    assert [s["status"] for s in data["plan"]["steps"]] == ["completed"] * 3


@pytest.mark.asyncio
async def test_plan_skip_and_edit(client, fake_api, plan_json):
    fake_api.reply = json.dumps(plan_json)
    plan_id = (await client.post("/api/plans", json={"task": "Landing page"})).json()["id"]

    resp = await client.patch(f"/api/plans/{plan_id}/steps/2", json={"description": "Check spelling"})
    assert resp.json()["plan"]["steps"][2]["description"] == "Check spelling"

    await client.post(f"/api/plans/{plan_id}/run")
    resp = await client.post(f"/api/plans/{plan_id}/steps/1/skip")
    data = resp.json()
    assert [s["status"] for s in data["plan"]["steps"]] == ["completed", "skipped", "completed"]

    resp = await client.post(f"/api/plans/{plan_id}/steps/1/skip")
    assert resp.status_code == 409
    resp = await client.post(f"/api/plans/{plan_id}/steps/9/skip")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_plan_input_when_not_waiting_is_409(client, fake_api, plan_json):
    fake_api.reply = json.dumps(plan_json)
    plan_id = (await client.post("/api/plans", json={"task": "Landing page"})).json()["id"]
    resp = await client.post(f"/api/plans/{plan_id}/steps/0/input", json={"value": "x"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_plan_parse_failure_is_502(client, fake_api):
    fake_api.reply = "Sorry, I can't help with that."
    resp = await client.post("/api/plans", json={"task": "Anything"})
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_blank_plan_task_is_400(client):
    resp = await client.post("/api/plans", json={"task": "  "})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_plan_is_404(client):
    assert (await client.get("/api/plans/nope")).status_code == 404
