"""Conversation service: persists every chat turn around a remote API call."""

import logging

from .api_client import ChatAPIClient
from .attachments import Attachment, render_message
from .config import get_default_model
from .core import ChatMessage, ChatSession, new_id, utcnow
from .exceptions import SessionNotFoundError
from .store import ChatStore

logger = logging.getLogger(__name__)

CHAT_TEMPERATURE = 0.7


class ChatService:
    def __init__(self, store: ChatStore, client: ChatAPIClient):
        self.store = store
        self.client = client

    def create_session(self, name: str | None = None, model: str | None = None) -> ChatSession:
        if not name:
            name = f"Chat {len(self.store.get_sessions()) + 1}"
        now = utcnow()
        session = ChatSession(
            id=new_id(),
            name=name,
            model=model or get_default_model(),
            created_at=now,
            updated_at=now,
            message_count=0,
        )
        self.store.save_session(session)
        logger.info("Created session %s (%s)", session.id, session.name)
        return session

    def rename_session(self, session_id: str, name: str) -> ChatSession:
        if not name.strip():
            raise ValueError("Session name must not be empty")
        session = self._require_session(session_id)
        session.name = name.strip()
        self.store.save_session(session)
        return session

    async def send_message(
        self,
        session_id: str,
        text: str,
        attachment: Attachment | None = None,
    ) -> ChatMessage:
        """Store the user's turn, ask the model, store and return its reply.

        If the remote call fails the user turn stays stored and ChatAPIError
        propagates.
        """
        if not text.strip() and attachment is None:
            raise ValueError("Message must not be empty")
        session = self._require_session(session_id)

        content = render_message(text, attachment)
        user_msg = ChatMessage(
            id=new_id(),
            session_id=session.id,
            role="user",
            content=content,
            created_at=utcnow(),
        )
        self.store.append_message(user_msg)

        reply = await self.client.ask(content, model=session.model, temperature=CHAT_TEMPERATURE)

        assistant_msg = ChatMessage(
            id=new_id(),
            session_id=session.id,
            role="assistant",
            content=reply,
            created_at=utcnow(),
        )
        self.store.append_message(assistant_msg)
        return assistant_msg

    def _require_session(self, session_id: str) -> ChatSession:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session
