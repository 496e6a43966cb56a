"""Provider-neutral response and error types for LLM clients."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from finsight.models import ChatMessage, ToolCall


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str = "end_turn"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class UpstreamErrorKind(str, Enum):
    AUTH_INVALID = "auth_invalid"
    RATE_LIMITED = "rate_limited"
    MODEL_NOT_FOUND = "model_not_found"
    OTHER = "other"


class UpstreamModelError(Exception):
    """The language-model provider failed to produce a response."""

    def __init__(
        self,
        kind: UpstreamErrorKind,
        message: str,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class LLMClient(Protocol):
    """Anything that can run one tool-calling chat completion."""

    async def generate(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str = "auto",
    ) -> LLMResponse: ...
