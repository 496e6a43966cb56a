"""Tests for Claude LLM client."""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from finsight.clients import UpstreamErrorKind, UpstreamModelError
from finsight.clients.claude import ClaudeClient
from finsight.models import ChatMessage, ToolCall


def _status_error(cls, status_code: int):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status_code, request=request)
    return cls("upstream failure", response=response, body=None)


class TestClaudeClient:
    """Tests for ClaudeClient."""

    def test_client_initialization_with_defaults(self):
        """Test client initializes with settings defaults."""
        client = ClaudeClient()

        assert client._model == "claude-haiku-4-5"
        assert client._max_tokens > 0

    def test_client_initialization_with_custom_params(self):
        """Test client accepts custom parameters."""
        client = ClaudeClient(
            api_key="test-key",
            model="claude-sonnet-4-5",
            max_tokens=2048,
            temperature=0.5,
        )

        assert client._api_key == "test-key"
        assert client._model == "claude-sonnet-4-5"
        assert client._max_tokens == 2048
        assert client._temperature == 0.5

    def test_zero_temperature_is_kept(self):
        """An explicit temperature of zero is not replaced by the default."""
        client = ClaudeClient(api_key="test-key", temperature=0.0)

        assert client._temperature == 0.0

    def test_convert_tools_to_anthropic_format(self):
        """Test tool format conversion."""
        client = ClaudeClient()
        tools = [
            {
                "name": "get_net_worth",
                "description": "Net worth",
                "input_schema": {"type": "object", "properties": {}},
            }
        ]

        converted = client._convert_tools_to_anthropic_format(tools)

        assert converted == tools

    def test_convert_assistant_message_with_tool_calls(self):
        """Test assistant message with tool calls conversion."""
        client = ClaudeClient()
        messages = [
            ChatMessage(
                role="assistant",
                content="Let me check",
                tool_calls=[ToolCall(id="call_123", name="get_net_worth")],
            )
        ]

        converted = client._convert_messages_to_anthropic_format(messages)

        content = converted[0]["content"]
        assert converted[0]["role"] == "assistant"
        assert content[0] == {"type": "text", "text": "Let me check"}
        assert content[1]["type"] == "tool_use"
        assert content[1]["id"] == "call_123"
        assert content[1]["input"] == {}

    def test_consecutive_tool_results_share_one_user_turn(self):
        """Test tool results for one assistant turn are merged."""
        client = ClaudeClient()
        messages = [
            ChatMessage(role="tool", content='{"a": 1}', tool_call_id="call_1"),
            ChatMessage(role="tool", content='{"b": 2}', tool_call_id="call_2"),
        ]

        converted = client._convert_messages_to_anthropic_format(messages)

        assert len(converted) == 1
        assert converted[0]["role"] == "user"
        assert [block["tool_use_id"] for block in converted[0]["content"]] == [
            "call_1",
            "call_2",
        ]

    def test_convert_vision_message(self):
        """Test user message with an image becomes text and image blocks."""
        client = ClaudeClient()
        messages = [
            ChatMessage(role="user", content="Read this", image_url="https://x.test/r.png")
        ]

        converted = client._convert_messages_to_anthropic_format(messages)

        content = converted[0]["content"]
        assert content[0] == {"type": "text", "text": "Read this"}
        assert content[1] == {
            "type": "image",
            "source": {"type": "url", "url": "https://x.test/r.png"},
        }

    def test_parse_tool_use_response(self):
        """Test parsing response with tool calls."""
        client = ClaudeClient()

        tool_block = MagicMock()
        tool_block.type = "tool_use"
        tool_block.id = "call_abc"
        tool_block.name = "get_recent_transactions"
        tool_block.input = {"limit": 10}

        mock_response = MagicMock()
        mock_response.content = [MagicMock(type="text", text="Checking"), tool_block]
        mock_response.stop_reason = "tool_use"
        mock_response.usage = MagicMock(input_tokens=20, output_tokens=15)

        parsed = client._parse_response(mock_response)

        assert parsed.content == "Checking"
        assert parsed.tool_calls == [
            ToolCall(id="call_abc", name="get_recent_transactions", arguments={"limit": 10})
        ]
        assert parsed.stop_reason == "tool_use"
        assert parsed.usage == {"input_tokens": 20, "output_tokens": 15}


class TestClaudeGenerate:
    """Tests for ClaudeClient.generate."""

    @pytest.mark.asyncio
    async def test_generate_sends_tools_with_auto_choice(self):
        client = ClaudeClient()
        mock_response = MagicMock()
        mock_response.content = [MagicMock(type="text", text="Hi")]
        mock_response.stop_reason = "end_turn"
        mock_response.usage = MagicMock(input_tokens=1, output_tokens=1)
        client._client = MagicMock()
        client._client.messages.create = AsyncMock(return_value=mock_response)

        tools = [{"name": "t", "description": "d", "input_schema": {"type": "object"}}]
        result = await client.generate("system", [ChatMessage(role="user", content="hi")], tools)

        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["tool_choice"] == {"type": "auto"}
        assert result.content == "Hi"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error_cls", "status_code", "kind"),
        [
            (anthropic.AuthenticationError, 401, UpstreamErrorKind.AUTH_INVALID),
            (anthropic.RateLimitError, 429, UpstreamErrorKind.RATE_LIMITED),
            (anthropic.InternalServerError, 500, UpstreamErrorKind.OTHER),
        ],
    )
    async def test_errors_are_translated(self, error_cls, status_code, kind):
        client = ClaudeClient()
        client._client = MagicMock()
        client._client.messages.create = AsyncMock(
            side_effect=_status_error(error_cls, status_code)
        )

        with pytest.raises(UpstreamModelError) as exc_info:
            await client.generate("system", [ChatMessage(role="user", content="hi")])

        assert exc_info.value.kind == kind
        assert exc_info.value.status_code == status_code
