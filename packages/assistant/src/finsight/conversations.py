"""Conversation transcript persistence."""

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

import structlog

logger = structlog.get_logger(__name__)

TITLE_MAX_LENGTH = 50
DEFAULT_TITLE = "New conversation"


class ConversationNotFound(Exception):
    """No conversation with this id exists for the user."""

    def __init__(self, user_id: str, conversation_id: str):
        super().__init__(f"Conversation {conversation_id} not found")
        self.user_id = user_id
        self.conversation_id = conversation_id


@dataclass
class ConversationSummary:
    id: str
    title: str
    updated_at: datetime
    message_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "updatedAt": self.updated_at.isoformat(),
            "messageCount": self.message_count,
        }


class ConversationStore(Protocol):
    """Per-user key-value store of conversation transcripts."""

    async def save(
        self,
        user_id: str,
        messages: list[dict[str, str]],
        conversation_id: str | None = None,
    ) -> str:
        """Create a conversation, or replace the messages of an existing one.

        Returns the conversation id.
        """
        ...

    async def get(self, user_id: str, conversation_id: str) -> list[dict[str, str]] | None: ...

    async def list_recent(self, user_id: str, limit: int = 20) -> list[ConversationSummary]: ...


def conversation_title(messages: list[dict[str, str]]) -> str:
    """First user message, truncated to 50 characters."""
    for message in messages:
        if message.get("role") == "user":
            content = message.get("content", "")
            if len(content) > TITLE_MAX_LENGTH:
                return content[:TITLE_MAX_LENGTH] + "..."
            return content
    return DEFAULT_TITLE


@dataclass
class _StoredConversation:
    messages: list[dict[str, str]]
    created_at: datetime
    updated_at: datetime
    sequence: int = field(default=0)


class InMemoryConversationStore:
    """Process-local conversation store."""

    def __init__(self) -> None:
        self._conversations: dict[str, dict[str, _StoredConversation]] = {}
        # Breaks updated_at ties so list order follows write order.
        self._sequence = itertools.count()

    async def save(
        self,
        user_id: str,
        messages: list[dict[str, str]],
        conversation_id: str | None = None,
    ) -> str:
        user_conversations = self._conversations.setdefault(user_id, {})
        now = datetime.now(timezone.utc)

        if conversation_id is None:
            conversation_id = uuid4().hex
            user_conversations[conversation_id] = _StoredConversation(
                messages=list(messages),
                created_at=now,
                updated_at=now,
                sequence=next(self._sequence),
            )
            logger.info("conversation_created", user_id=user_id, conversation_id=conversation_id)
            return conversation_id

        stored = user_conversations.get(conversation_id)
        if stored is None:
            raise ConversationNotFound(user_id, conversation_id)
        stored.messages = list(messages)
        stored.updated_at = now
        stored.sequence = next(self._sequence)
        logger.debug(
            "conversation_updated",
            user_id=user_id,
            conversation_id=conversation_id,
            message_count=len(messages),
        )
        return conversation_id

    async def get(self, user_id: str, conversation_id: str) -> list[dict[str, str]] | None:
        stored = self._conversations.get(user_id, {}).get(conversation_id)
        if stored is None:
            return None
        return list(stored.messages)

    async def list_recent(self, user_id: str, limit: int = 20) -> list[ConversationSummary]:
        ordered = sorted(
            self._conversations.get(user_id, {}).items(),
            key=lambda item: (item[1].updated_at, item[1].sequence),
            reverse=True,
        )
        return [
            ConversationSummary(
                id=conversation_id,
                title=conversation_title(stored.messages),
                updated_at=stored.updated_at,
                message_count=len(stored.messages),
            )
            for conversation_id, stored in ordered[:limit]
        ]
