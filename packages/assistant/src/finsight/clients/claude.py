"""Claude (Anthropic) LLM client with function calling and vision support."""

from typing import Any

import anthropic
import structlog

from finsight.clients.base import LLMResponse, UpstreamErrorKind, UpstreamModelError
from finsight.config import get_settings
from finsight.models import ChatMessage, ToolCall

logger = structlog.get_logger(__name__)


def translate_anthropic_error(error: anthropic.APIError) -> UpstreamModelError:
    """Map an Anthropic SDK error onto the provider-neutral taxonomy."""
    status_code = getattr(error, "status_code", None)
    if isinstance(error, anthropic.AuthenticationError):
        kind = UpstreamErrorKind.AUTH_INVALID
    elif isinstance(error, anthropic.RateLimitError):
        kind = UpstreamErrorKind.RATE_LIMITED
    elif isinstance(error, anthropic.NotFoundError):
        kind = UpstreamErrorKind.MODEL_NOT_FOUND
    else:
        kind = UpstreamErrorKind.OTHER
    return UpstreamModelError(kind, str(error), status_code=status_code)


class ClaudeClient:
    """Client for Anthropic's Claude API with tool use support."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ):
        settings = get_settings()
        self._api_key = api_key or settings.anthropic_api_key.get_secret_value()
        self._model = model or settings.claude_model
        self._max_tokens = max_tokens or settings.llm_max_tokens
        self._temperature = settings.llm_temperature if temperature is None else temperature

        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        self._logger = logger.bind(client="claude", model=self._model)

    def _convert_tools_to_anthropic_format(
        self, tools: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Anthropic takes the catalog's ``input_schema`` shape as is."""
        return [
            {
                "name": tool["name"],
                "description": tool["description"],
                "input_schema": tool["input_schema"],
            }
            for tool in tools
        ]

    def _convert_messages_to_anthropic_format(
        self, messages: list[ChatMessage]
    ) -> list[dict[str, Any]]:
        """Convert conversation history to Anthropic's message format.

        Consecutive tool results are merged into a single user turn, since
        Anthropic expects every result for an assistant turn together.
        """
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "user":
                if msg.image_url:
                    anthropic_messages.append({
                        "role": "user",
                        "content": [
                            {"type": "text", "text": msg.content},
                            {"type": "image", "source": {"type": "url", "url": msg.image_url}},
                        ],
                    })
                else:
                    anthropic_messages.append({"role": "user", "content": msg.content})
            elif msg.role == "assistant":
                content_blocks: list[dict[str, Any]] = []

                if msg.content:
                    content_blocks.append({"type": "text", "text": msg.content})

                for tool_call in msg.tool_calls:
                    content_blocks.append({
                        "type": "tool_use",
                        "id": tool_call.id,
                        "name": tool_call.name,
                        "input": tool_call.arguments,
                    })

                anthropic_messages.append({
                    "role": "assistant",
                    "content": content_blocks if content_blocks else msg.content,
                })
            elif msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                previous = anthropic_messages[-1] if anthropic_messages else None
                if (
                    previous
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and previous["content"]
                    and previous["content"][0].get("type") == "tool_result"
                ):
                    previous["content"].append(block)
                else:
                    anthropic_messages.append({"role": "user", "content": [block]})

        return anthropic_messages

    def _parse_response(self, response: anthropic.types.Message) -> LLMResponse:
        """Parse Anthropic response into our format."""
        text_parts = []
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {}))
                )

        return LLMResponse(
            content="\n".join(text_parts),
            tool_calls=tool_calls,
            stop_reason=response.stop_reason or "end_turn",
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )

    async def generate(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str = "auto",
    ) -> LLMResponse:
        """Generate a response from Claude.

        Raises:
            UpstreamModelError: If the provider call fails.
        """
        self._logger.debug(
            "generating_response",
            message_count=len(messages),
            tool_count=len(tools) if tools else 0,
        )

        system_parts = [system_prompt]
        system_parts.extend(msg.content for msg in messages if msg.role == "system")
        anthropic_messages = self._convert_messages_to_anthropic_format(messages)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "system": "\n\n".join(system_parts),
            "messages": anthropic_messages,
            "temperature": self._temperature,
        }

        if tools:
            kwargs["tools"] = self._convert_tools_to_anthropic_format(tools)
            kwargs["tool_choice"] = {"type": tool_choice}

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            self._logger.error("api_error", error=str(e))
            raise translate_anthropic_error(e) from e

        parsed = self._parse_response(response)

        self._logger.info(
            "response_generated",
            stop_reason=parsed.stop_reason,
            tool_calls=len(parsed.tool_calls),
            input_tokens=parsed.usage["input_tokens"],
            output_tokens=parsed.usage["output_tokens"],
        )

        return parsed
