"""HTTP chat API.

Routes:
    POST /api/chat                      answer a message, persist the exchange
    GET  /api/chat                      list recent conversations
    GET  /api/chat?conversationId=...   fetch one conversation
    GET  /api/chat/{conversation_id}    fetch one conversation
"""

import json
from typing import Any, Literal, Protocol

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from finsight.clients import UpstreamErrorKind, UpstreamModelError
from finsight.config import bind_request_context, get_settings
from finsight.conversations import ConversationNotFound, ConversationStore
from finsight.orchestrator import ConversationOrchestrator

logger = structlog.get_logger(__name__)

UPSTREAM_ERRORS: dict[UpstreamErrorKind, tuple[int, str]] = {
    UpstreamErrorKind.AUTH_INVALID: (500, "AI service API key is invalid or expired"),
    UpstreamErrorKind.RATE_LIMITED: (429, "AI service rate limit exceeded. Please try again later."),
}
UPSTREAM_GENERIC_ERROR = (500, "Failed to connect to AI service. Please try again.")


class InvalidToken(Exception):
    """The bearer token could not be resolved to a user."""


class TokenVerifier(Protocol):
    async def verify_token(self, id_token: str) -> str:
        """Resolve a bearer token to a user id, raising InvalidToken on rejection."""
        ...


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    history: list[HistoryTurn] = Field(default_factory=list)
    conversation_id: str | None = Field(default=None, alias="conversationId")


def _validation_details(error: ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in item["loc"]), "message": item["msg"]}
        for item in error.errors()
    ]


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_app(
    verifier: TokenVerifier,
    orchestrator: ConversationOrchestrator,
    store: ConversationStore,
    conversation_list_limit: int | None = None,
    lifespan: Any = None,
) -> FastAPI:
    """Build the chat application around injected collaborators."""
    list_limit = conversation_list_limit or get_settings().conversation_list_limit
    app = FastAPI(title="FinSight Assistant", lifespan=lifespan)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    async def current_user(authorization: str | None = Header(default=None)) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized - Missing or invalid Authorization header",
            )
        token = authorization.removeprefix("Bearer ").strip()
        if not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized - Missing token",
            )
        try:
            user_id = await verifier.verify_token(token)
        except Exception as e:
            logger.warning("token_verification_failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized - Invalid token",
            ) from e
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized - Invalid user ID",
            )
        bind_request_context(user_id=user_id)
        return user_id

    @app.post("/api/chat")
    async def chat(request: Request, user_id: str = Depends(current_user)) -> JSONResponse:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(
                400,
                "Invalid request body",
                details=[{"field": "body", "message": "Body must be valid JSON"}],
            )

        try:
            chat_request = ChatRequest.model_validate(body)
        except ValidationError as e:
            logger.warning("invalid_chat_request", user_id=user_id, errors=e.errors())
            return _error(400, "Invalid request body", details=_validation_details(e))

        try:
            outcome = await orchestrator.handle_message(
                user_id,
                chat_request.message,
                history=[turn.model_dump() for turn in chat_request.history],
                conversation_id=chat_request.conversation_id,
            )
        except UpstreamModelError as e:
            logger.error(
                "upstream_model_error",
                user_id=user_id,
                kind=e.kind.value,
                status=e.status_code,
                error=str(e),
            )
            status_code, message = UPSTREAM_ERRORS.get(e.kind, UPSTREAM_GENERIC_ERROR)
            return _error(status_code, message)
        except ConversationNotFound:
            logger.warning(
                "unknown_conversation",
                user_id=user_id,
                conversation_id=chat_request.conversation_id,
            )
            return _error(404, "Conversation not found")
        except Exception:
            logger.exception("chat_request_failed", user_id=user_id)
            return _error(500, "Internal server error")

        return JSONResponse(
            content={"response": outcome.response, "conversationId": outcome.conversation_id}
        )

    async def _conversation(user_id: str, conversation_id: str) -> JSONResponse:
        try:
            messages = await store.get(user_id, conversation_id)
        except Exception:
            logger.exception(
                "conversation_fetch_failed", user_id=user_id, conversation_id=conversation_id
            )
            return _error(500, "Internal server error")
        if messages is None:
            return _error(404, "Conversation not found")
        return JSONResponse(content={"messages": messages, "conversationId": conversation_id})

    @app.get("/api/chat")
    async def list_or_get(
        conversationId: str | None = None,  # noqa: N803 - public query name
        user_id: str = Depends(current_user),
    ) -> JSONResponse:
        if conversationId:
            return await _conversation(user_id, conversationId)

        try:
            summaries = await store.list_recent(user_id, limit=list_limit)
        except Exception:
            logger.exception("conversation_list_failed", user_id=user_id)
            return _error(500, "Internal server error")
        return JSONResponse(content={"conversations": [s.to_dict() for s in summaries]})

    @app.get("/api/chat/{conversation_id}")
    async def get_conversation(
        conversation_id: str, user_id: str = Depends(current_user)
    ) -> JSONResponse:
        return await _conversation(user_id, conversation_id)

    return app
