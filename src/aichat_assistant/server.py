"""FastAPI web server for aichat-assistant."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .api_client import ChatAPIClient
from .attachments import Attachment, validate_attachment
from .chat import ChatService
from .config import get_db_path, get_default_model, get_storage_quota
from .core import new_id
from .exceptions import (
    AttachmentError,
    ChatAPIError,
    PlanParseError,
    PlanStateError,
    SessionNotFoundError,
    StorageError,
)
from .export import content_disposition, session_to_json, session_to_markdown
from .planner import PlanExecutor, RunState, generate_plan
from .store import ChatStore

logger = logging.getLogger(__name__)


# ── Request bodies ───────────────────────────────────────────────


class CreateSessionRequest(BaseModel):
    name: str | None = None
    model: str | None = None


class RenameSessionRequest(BaseModel):
    name: str


class AttachmentBody(BaseModel):
    name: str
    content: str
    mime_type: str = ""


class SendMessageRequest(BaseModel):
    text: str
    attachment: AttachmentBody | None = None


class CreatePlanRequest(BaseModel):
    task: str
    model: str | None = None


class RunPlanRequest(BaseModel):
    start_index: int = 0


class StepInputRequest(BaseModel):
    value: str


class EditStepRequest(BaseModel):
    description: str


# ── App factory ──────────────────────────────────────────────────


def create_app(store: ChatStore | None = None, client: ChatAPIClient | None = None) -> FastAPI:
    """Build the app around an injected store and API client."""
    store = store or ChatStore(get_db_path())
    client = client or ChatAPIClient()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init()
        yield
        store.close()

    app = FastAPI(title="aichat-assistant", version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.state.client = client
    app.state.chat = ChatService(store, client)
    # Plans are per-process only; a restart loses them.
    app.state.plans = {}

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": f"Local storage unavailable: {exc}"})

    @app.exception_handler(ChatAPIError)
    async def chat_api_error_handler(request: Request, exc: ChatAPIError):
        logger.error("Chat API error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=502, content={"detail": f"AI service error: {exc}"})

    _register_session_routes(app)
    _register_plan_routes(app)
    return app


def _register_session_routes(app: FastAPI) -> None:
    store: ChatStore = app.state.store
    chat: ChatService = app.state.chat

    @app.get("/api/models")
    async def get_models():
        """Return the models the AI service offers."""
        return await app.state.client.list_models()

    @app.get("/api/sessions")
    async def get_sessions():
        """Return all sessions, most recently active first."""
        return [s.to_dict() for s in store.get_sessions()]

    @app.post("/api/sessions", status_code=201)
    async def create_session(body: CreateSessionRequest):
        return chat.create_session(name=body.name, model=body.model).to_dict()

    @app.patch("/api/sessions/{session_id}")
    async def rename_session(session_id: str, body: RenameSessionRequest):
        try:
            return chat.rename_session(session_id, body.name).to_dict()
        except SessionNotFoundError:
            raise HTTPException(status_code=404, detail="Session not found")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.delete("/api/sessions/{session_id}", status_code=204)
    async def delete_session(session_id: str):
        if store.get_session(session_id) is None:
            raise HTTPException(status_code=404, detail="Session not found")
        store.delete_session(session_id)
        return Response(status_code=204)

    @app.get("/api/sessions/{session_id}/messages")
    async def get_session_messages(session_id: str):
        if store.get_session(session_id) is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return {
            "session_id": session_id,
            "messages": [m.to_dict() for m in store.get_session_messages(session_id)],
        }

    @app.post("/api/sessions/{session_id}/messages", status_code=201)
    async def send_message(session_id: str, body: SendMessageRequest):
        """Send a user message and return the assistant's reply."""
        attachment = None
        if body.attachment is not None:
            attachment = Attachment(
                name=body.attachment.name,
                content=body.attachment.content,
                mime_type=body.attachment.mime_type,
            )
            try:
                validate_attachment(attachment.name, attachment.size, attachment.mime_type)
            except AttachmentError as e:
                raise HTTPException(status_code=400, detail=str(e))

        try:
            reply = await chat.send_message(session_id, body.text, attachment)
        except SessionNotFoundError:
            raise HTTPException(status_code=404, detail="Session not found")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return reply.to_dict()

    @app.get("/api/export/{session_id}")
    async def export_session(
        session_id: str,
        format: str = Query("md", description="Export format: md or json"),
    ):
        """Export a session as Markdown or JSON."""
        session = store.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        messages = store.get_session_messages(session_id)

        if format == "json":
            content = session_to_json(session, messages)
            media_type = "application/json"
        else:
            format = "md"
            content = session_to_markdown(session, messages)
            media_type = "text/markdown"
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": content_disposition(session, format)},
        )

    @app.get("/api/storage")
    async def get_storage():
        """Return approximate storage use and the share of the quota it takes."""
        size = store.get_storage_size()
        quota = get_storage_quota()
        return {
            "sessions": size.sessions,
            "messages": size.messages,
            "total": size.total,
            "quota": quota,
            "usage": size.usage(quota),
        }

    @app.delete("/api/storage", status_code=204)
    async def clear_storage():
        store.clear_all_data()
        return Response(status_code=204)


def _register_plan_routes(app: FastAPI) -> None:
    plans: dict[str, PlanExecutor] = app.state.plans

    def _get_executor(plan_id: str) -> PlanExecutor:
        executor = plans.get(plan_id)
        if executor is None:
            raise HTTPException(status_code=404, detail="Plan not found")
        return executor

    def _state(plan_id: str, executor: PlanExecutor, state: RunState | None = None) -> dict:
        data = {"id": plan_id, **executor.to_dict()}
        if state is not None:
            data["state"] = state.value
        return data

    @app.post("/api/plans", status_code=201)
    async def create_plan(body: CreatePlanRequest):
        """Ask the AI service for a plan for the given task."""
        try:
            plan = await generate_plan(app.state.client, body.task, body.model or get_default_model())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except PlanParseError as e:
            logger.error("Failed to parse plan for %r: %s", body.task, e)
            raise HTTPException(status_code=502, detail="The AI service did not return a usable plan")

        plan_id = new_id()
        plans[plan_id] = PlanExecutor(plan)
        return _state(plan_id, plans[plan_id])

    @app.get("/api/plans/{plan_id}")
    async def get_plan(plan_id: str):
        return _state(plan_id, _get_executor(plan_id))

    @app.post("/api/plans/{plan_id}/run")
    async def run_plan(plan_id: str, body: RunPlanRequest | None = None):
        executor = _get_executor(plan_id)
        start = body.start_index if body else 0
        try:
            state = executor.run(start)
        except IndexError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except PlanStateError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return _state(plan_id, executor, state)

    @app.post("/api/plans/{plan_id}/steps/{step_index}/input")
    async def supply_step_input(plan_id: str, step_index: int, body: StepInputRequest):
        executor = _get_executor(plan_id)
        try:
            state = executor.supply_input(step_index, body.value)
        except IndexError:
            raise HTTPException(status_code=404, detail="Step not found")
        except PlanStateError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _state(plan_id, executor, state)

    @app.post("/api/plans/{plan_id}/steps/{step_index}/skip")
    async def skip_step(plan_id: str, step_index: int):
        executor = _get_executor(plan_id)
        try:
            state = executor.skip(step_index)
        except IndexError:
            raise HTTPException(status_code=404, detail="Step not found")
        except PlanStateError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return _state(plan_id, executor, state)

    @app.patch("/api/plans/{plan_id}/steps/{step_index}")
    async def edit_step(plan_id: str, step_index: int, body: EditStepRequest):
        executor = _get_executor(plan_id)
        try:
            executor.edit(step_index, body.description)
        except IndexError:
            raise HTTPException(status_code=404, detail="Step not found")
        except PlanStateError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _state(plan_id, executor)


app = create_app()
