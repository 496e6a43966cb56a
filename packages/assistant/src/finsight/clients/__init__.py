"""LLM client implementations for the FinSight assistant."""

from finsight.clients.base import (
    LLMClient,
    LLMResponse,
    UpstreamErrorKind,
    UpstreamModelError,
)
from finsight.clients.claude import ClaudeClient
from finsight.clients.openai_client import OpenAIClient

__all__ = [
    "LLMClient",
    "LLMResponse",
    "UpstreamErrorKind",
    "UpstreamModelError",
    "ClaudeClient",
    "OpenAIClient",
]
