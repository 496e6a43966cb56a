"""OpenAI GPT client with function calling and vision support."""

import json
from typing import Any

import openai
import structlog

from finsight.clients.base import LLMResponse, UpstreamErrorKind, UpstreamModelError
from finsight.config import get_settings
from finsight.models import ChatMessage, ToolCall

logger = structlog.get_logger(__name__)


def translate_openai_error(error: openai.APIError) -> UpstreamModelError:
    """Map an OpenAI SDK error onto the provider-neutral taxonomy."""
    status_code = getattr(error, "status_code", None)
    if isinstance(error, openai.AuthenticationError):
        kind = UpstreamErrorKind.AUTH_INVALID
    elif isinstance(error, openai.RateLimitError):
        kind = UpstreamErrorKind.RATE_LIMITED
    elif isinstance(error, openai.NotFoundError) or error.code == "model_not_found":
        kind = UpstreamErrorKind.MODEL_NOT_FOUND
    else:
        kind = UpstreamErrorKind.OTHER
    return UpstreamModelError(kind, str(error), status_code=status_code)


class OpenAIClient:
    """Client for OpenAI's chat completions API with tool use support.

    When the configured model does not exist for the account, the request is
    repeated once with the fallback model.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        fallback_model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ):
        settings = get_settings()
        self._api_key = api_key or settings.openai_api_key.get_secret_value()
        self._model = model or settings.chat_model
        self._fallback_model = fallback_model or settings.chat_fallback_model
        self._max_tokens = max_tokens or settings.llm_max_tokens
        self._temperature = settings.llm_temperature if temperature is None else temperature

        self._client = openai.AsyncOpenAI(api_key=self._api_key)
        self._logger = logger.bind(client="openai", model=self._model)

    def _convert_tools_to_openai_format(
        self, tools: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Convert our tool format to OpenAI's expected format.

        OpenAI expects:
        {
            "type": "function",
            "function": {
                "name": "...",
                "description": "...",
                "parameters": {...}  # JSON Schema
            }
        }
        """
        openai_tools = []
        for tool in tools:
            openai_tools.append({
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool["description"],
                    "parameters": tool["input_schema"],
                },
            })
        return openai_tools

    def _convert_messages_to_openai_format(
        self, system_prompt: str, messages: list[ChatMessage]
    ) -> list[dict[str, Any]]:
        """Convert conversation history to OpenAI's message format."""
        openai_messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]

        for msg in messages:
            if msg.role == "system":
                openai_messages.append({"role": "system", "content": msg.content})
            elif msg.role == "user":
                if msg.image_url:
                    openai_messages.append({
                        "role": "user",
                        "content": [
                            {"type": "text", "text": msg.content},
                            {"type": "image_url", "image_url": {"url": msg.image_url}},
                        ],
                    })
                else:
                    openai_messages.append({"role": "user", "content": msg.content})
            elif msg.role == "assistant":
                assistant_msg: dict[str, Any] = {"role": "assistant"}

                if msg.content:
                    assistant_msg["content"] = msg.content

                if msg.tool_calls:
                    assistant_msg["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ]

                openai_messages.append(assistant_msg)
            elif msg.role == "tool":
                openai_messages.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content,
                })

        return openai_messages

    def _parse_arguments(self, raw: str | None, tool_name: str) -> dict[str, Any]:
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            self._logger.warning("tool_arguments_unparseable", tool=tool_name, raw=raw)
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _parse_response(
        self, response: openai.types.chat.ChatCompletion
    ) -> LLMResponse:
        """Parse OpenAI response into our format."""
        message = response.choices[0].message
        content = message.content or ""
        tool_calls = []

        if message.tool_calls:
            for tc in message.tool_calls:
                tool_calls.append(
                    ToolCall(
                        id=tc.id,
                        name=tc.function.name,
                        arguments=self._parse_arguments(tc.function.arguments, tc.function.name),
                    )
                )

        # Map OpenAI finish reasons to our format
        finish_reason = response.choices[0].finish_reason
        stop_reason_map = {
            "stop": "end_turn",
            "tool_calls": "tool_use",
            "length": "max_tokens",
            "content_filter": "content_filter",
        }
        stop_reason = stop_reason_map.get(finish_reason or "stop", "end_turn")

        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            stop_reason=stop_reason,
            usage={
                "input_tokens": response.usage.prompt_tokens if response.usage else 0,
                "output_tokens": response.usage.completion_tokens if response.usage else 0,
            },
        )

    def _build_request(
        self,
        model: str,
        openai_messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        tool_choice: str,
    ) -> dict[str, Any]:
        # GPT-5 and o-series models take max_completion_tokens and only
        # accept the default temperature.
        is_reasoning = model.startswith(("gpt-5", "o1", "o3", "o4"))
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": openai_messages,
        }
        if is_reasoning:
            kwargs["max_completion_tokens"] = self._max_tokens
        else:
            kwargs["max_tokens"] = self._max_tokens
            kwargs["temperature"] = self._temperature

        if tools:
            kwargs["tools"] = self._convert_tools_to_openai_format(tools)
            kwargs["tool_choice"] = tool_choice
        return kwargs

    async def generate(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str = "auto",
    ) -> LLMResponse:
        """Generate a response from GPT.

        Args:
            system_prompt: The system prompt defining assistant behavior.
            messages: Conversation history, oldest first.
            tools: Optional list of tool definitions for function calling.
            tool_choice: Tool selection mode sent with the tools.

        Returns:
            LLMResponse with content, tool calls, and usage info.

        Raises:
            UpstreamModelError: If the provider call fails.
        """
        self._logger.debug(
            "generating_response",
            message_count=len(messages),
            tool_count=len(tools) if tools else 0,
        )

        openai_messages = self._convert_messages_to_openai_format(system_prompt, messages)

        try:
            try:
                response = await self._client.chat.completions.create(
                    **self._build_request(self._model, openai_messages, tools, tool_choice)
                )
            except openai.APIError as e:
                upstream = translate_openai_error(e)
                if (
                    upstream.kind != UpstreamErrorKind.MODEL_NOT_FOUND
                    or not self._fallback_model
                    or self._fallback_model == self._model
                ):
                    raise
                self._logger.warning("model_unavailable_using_fallback", fallback=self._fallback_model)
                response = await self._client.chat.completions.create(
                    **self._build_request(
                        self._fallback_model, openai_messages, tools, tool_choice
                    )
                )
        except openai.APIError as e:
            self._logger.error("api_error", error=str(e))
            raise translate_openai_error(e) from e

        parsed = self._parse_response(response)

        self._logger.info(
            "response_generated",
            stop_reason=parsed.stop_reason,
            tool_calls=len(parsed.tool_calls),
            input_tokens=parsed.usage["input_tokens"],
            output_tokens=parsed.usage["output_tokens"],
        )

        return parsed
