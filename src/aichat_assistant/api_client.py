"""Async client for the remote text-generation API.

Protocol:
- POST /sessions           {"settings": {"model", "temperature"}} -> {"success", "session_id"}
- POST /sessions/{id}/chat {"message"}                            -> {"success", "response"}
- GET  /models                                                    -> {"success", "models": [...]}
"""

import logging

import httpx

from .config import get_api_base, get_api_timeout
from .exceptions import ChatAPIError

logger = logging.getLogger(__name__)

FALLBACK_MODELS = [
    {"id": "gpt-4o-mini", "name": "GPT-4O Mini", "description": "Fast and efficient"},
    {"id": "gpt-4", "name": "GPT-4", "description": "Advanced reasoning"},
    {"id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo", "description": "Quick responses"},
]


class ChatAPIClient:
    """Thin wrapper over httpx.AsyncClient for the chat-completion service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or get_api_base()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_api_timeout()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        async with self._client() as client:
            try:
                resp = await client.request(method, path, json=payload)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise ChatAPIError(f"{method} {path} returned HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ChatAPIError(f"{method} {path} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ChatAPIError(f"{method} {path} returned a non-JSON body") from e
        if not isinstance(data, dict) or not data.get("success"):
            raise ChatAPIError(f"{method} {path} was not successful")
        return data

    async def create_session(self, model: str, temperature: float = 0.7) -> str:
        """Open a remote chat session and return its id."""
        data = await self._request(
            "POST", "/sessions", {"settings": {"model": model, "temperature": temperature}}
        )
        session_id = data.get("session_id")
        if not session_id:
            raise ChatAPIError("POST /sessions returned no session_id")
        logger.debug("Opened remote session %s (model=%s)", session_id, model)
        return str(session_id)

    async def chat(self, session_id: str, message: str) -> str:
        """Send a message in a remote session and return the reply text."""
        data = await self._request("POST", f"/sessions/{session_id}/chat", {"message": message})
        response = data.get("response")
        if not isinstance(response, str):
            raise ChatAPIError(f"Chat in session {session_id} returned no response text")
        return response

    async def ask(self, message: str, model: str, temperature: float = 0.7) -> str:
        """One-shot question: open a fresh remote session and chat once."""
        session_id = await self.create_session(model, temperature)
        return await self.chat(session_id, message)

    async def list_models(self) -> list[dict]:
        """Return available models, or the built-in list if the API is unreachable."""
        try:
            data = await self._request("GET", "/models")
            models = data.get("models")
            if isinstance(models, list) and models:
                return models
        except ChatAPIError as e:
            logger.warning("Failed to fetch models, using fallback list: %s", e)
        return list(FALLBACK_MODELS)
