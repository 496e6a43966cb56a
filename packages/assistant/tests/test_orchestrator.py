"""Tests for the ConversationOrchestrator."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeDocuments
from finsight.clients import ClaudeClient, LLMResponse, UpstreamErrorKind, UpstreamModelError
from finsight.conversations import InMemoryConversationStore
from finsight.memory import MemoryEntry
from finsight.models import DocumentRecord, ToolCall
from finsight.orchestrator import (
    EMPTY_ANSWER,
    FINAL_ANSWER_FAILED,
    ConversationOrchestrator,
    ConversationPhase,
    build_vision_turn,
    create_llm_client,
)
from finsight.prompts import SYSTEM_PROMPT
from finsight.tools import DocumentSearcher, ToolExecutor, ToolResult

RECEIPT = DocumentRecord(
    id="d1",
    file_name="Grocery receipt.png",
    url="https://files.example.com/d1.png",
    file_type="image/png",
    category="receipts",
    uploaded_at=datetime(2024, 6, 10, tzinfo=timezone.utc),
)
STATEMENT = DocumentRecord(
    id="d2",
    file_name="Bank statement.pdf",
    url="https://files.example.com/d2.pdf",
    file_type="application/pdf",
    category="statements",
    uploaded_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
)


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.generate = AsyncMock(return_value=LLMResponse(content="Hello there"))
    return llm


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def executor(engine):
    return ToolExecutor(engine, DocumentSearcher(FakeDocuments([RECEIPT, STATEMENT])))


@pytest.fixture
def orchestrator(llm, executor, store):
    return ConversationOrchestrator(llm, executor, store, memory_limit=5)


def _tool_round(*calls: ToolCall) -> LLMResponse:
    return LLMResponse(content="", tool_calls=list(calls), stop_reason="tool_use")


class TestDirectAnswer:
    """Tests for messages answered without tools."""

    @pytest.mark.asyncio
    async def test_answer_without_tools(self, orchestrator, llm, store, executor):
        outcome = await orchestrator.handle_message("u1", "Hi")

        assert outcome.response == "Hello there"
        assert outcome.phase == ConversationPhase.DONE
        assert outcome.tool_results == []
        assert llm.generate.await_count == 1

        kwargs = llm.generate.call_args.kwargs
        assert kwargs["tools"] is executor.catalog
        assert kwargs["tool_choice"] == "auto"
        assert llm.generate.call_args.args[0] == SYSTEM_PROMPT

        saved = await store.get("u1", outcome.conversation_id)
        assert saved == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello there"},
        ]

    @pytest.mark.asyncio
    async def test_empty_answer_is_replaced(self, orchestrator, llm):
        llm.generate.return_value = LLMResponse(content="")

        outcome = await orchestrator.handle_message("u1", "Hi")

        assert outcome.response == EMPTY_ANSWER

    @pytest.mark.asyncio
    async def test_first_round_failure_propagates(self, orchestrator, llm, store):
        llm.generate.side_effect = UpstreamModelError(UpstreamErrorKind.RATE_LIMITED, "slow down")

        with pytest.raises(UpstreamModelError):
            await orchestrator.handle_message("u1", "Hi")

        assert await store.list_recent("u1") == []


class TestToolRound:
    """Tests for the tool-execution and follow-up rounds."""

    @pytest.mark.asyncio
    async def test_tool_results_are_sent_back(self, orchestrator, llm, linked):
        llm.generate.side_effect = [
            _tool_round(ToolCall(id="c1", name="get_net_worth")),
            LLMResponse(content="Your net worth is $0.00"),
        ]

        outcome = await orchestrator.handle_message("u1", "What am I worth?")

        assert outcome.response == "Your net worth is $0.00"
        assert [r.tool_call_id for r in outcome.tool_results] == ["c1"]
        assert outcome.tool_results[0].ok

        sequence = llm.generate.call_args_list[1].args[1]
        assert [m.role for m in sequence] == ["user", "assistant", "tool"]
        assert sequence[1].tool_calls[0].name == "get_net_worth"
        assert sequence[2].tool_call_id == "c1"

    @pytest.mark.asyncio
    async def test_failed_tool_is_reported_to_model(self, orchestrator, llm):
        llm.generate.side_effect = [
            _tool_round(ToolCall(id="c1", name="transfer_money")),
            LLMResponse(content="I can't do that"),
        ]

        outcome = await orchestrator.handle_message("u1", "Send $5")

        assert outcome.response == "I can't do that"
        tool_message = llm.generate.call_args_list[1].args[1][-1]
        assert "Unknown function: transfer_money" in tool_message.content

    @pytest.mark.asyncio
    async def test_image_document_adds_vision_turn(self, orchestrator, llm):
        llm.generate.side_effect = [
            _tool_round(ToolCall(id="c1", name="search_documents", arguments={"query": "grocery"})),
            LLMResponse(content="The receipt total is $42.10"),
        ]

        await orchestrator.handle_message("u1", "What did my grocery receipt say?")

        last = llm.generate.call_args_list[1].args[1][-1]
        assert last.role == "user"
        assert last.image_url == RECEIPT.url

    @pytest.mark.asyncio
    async def test_pdf_document_is_referenced_by_url(self, orchestrator, llm):
        llm.generate.side_effect = [
            _tool_round(ToolCall(id="c1", name="search_documents", arguments={"query": "statement"})),
            LLMResponse(content="Your statement shows..."),
        ]

        await orchestrator.handle_message("u1", "Summarize my bank statement")

        last = llm.generate.call_args_list[1].args[1][-1]
        assert last.image_url is None
        assert STATEMENT.url in last.content
        assert "application/pdf" in last.content

    @pytest.mark.asyncio
    async def test_final_round_failure_returns_apology(self, orchestrator, llm, store):
        llm.generate.side_effect = [
            _tool_round(ToolCall(id="c1", name="get_net_worth")),
            UpstreamModelError(UpstreamErrorKind.OTHER, "boom"),
        ]

        outcome = await orchestrator.handle_message("u1", "What am I worth?")

        assert outcome.response == FINAL_ANSWER_FAILED
        saved = await store.get("u1", outcome.conversation_id)
        assert saved[-1] == {"role": "assistant", "content": FINAL_ANSWER_FAILED}

    @pytest.mark.asyncio
    async def test_second_round_tool_calls_are_ignored(self, orchestrator, llm):
        llm.generate.side_effect = [
            _tool_round(ToolCall(id="c1", name="get_net_worth")),
            LLMResponse(
                content="Here is what I found",
                tool_calls=[ToolCall(id="c2", name="get_account_balances")],
            ),
        ]

        outcome = await orchestrator.handle_message("u1", "What am I worth?")

        assert outcome.response == "Here is what I found"
        assert llm.generate.await_count == 2
        assert [r.tool_call_id for r in outcome.tool_results] == ["c1"]


class TestPersistenceAndMemory:
    """Tests for conversation persistence and memory context."""

    @pytest.mark.asyncio
    async def test_follow_up_updates_same_conversation(self, orchestrator, llm, store):
        first = await orchestrator.handle_message("u1", "Hi")
        llm.generate.return_value = LLMResponse(content="Still here")

        second = await orchestrator.handle_message(
            "u1",
            "Are you there?",
            history=[
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello there"},
            ],
            conversation_id=first.conversation_id,
        )

        assert second.conversation_id == first.conversation_id
        saved = await store.get("u1", first.conversation_id)
        assert [m["content"] for m in saved] == ["Hi", "Hello there", "Are you there?", "Still here"]

        sequence = llm.generate.call_args.args[1]
        assert [m.role for m in sequence] == ["user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_saved_turns_keep_only_role_and_content(self, orchestrator, store):
        """Extra keys on history turns are not written to the store."""
        outcome = await orchestrator.handle_message(
            "u1",
            "And now?",
            history=[{"role": "user", "content": "Hi", "timestamp": "2024-06-01T00:00:00Z"}],
        )

        saved = await store.get("u1", outcome.conversation_id)
        assert saved == [
            {"role": "user", "content": "Hi"},
            {"role": "user", "content": "And now?"},
            {"role": "assistant", "content": "Hello there"},
        ]

    @pytest.mark.asyncio
    async def test_memory_is_added_to_system_prompt(self, llm, executor, store):
        memory = MagicMock()
        memory.retrieve_context = AsyncMock(return_value=[MemoryEntry("Saving for a car", "goal")])
        orchestrator = ConversationOrchestrator(llm, executor, store, memory=memory, memory_limit=5)

        await orchestrator.handle_message("u1", "How am I doing?")

        memory.retrieve_context.assert_awaited_once_with("u1", "How am I doing?", 5)
        system_prompt = llm.generate.call_args.args[0]
        assert system_prompt.startswith(SYSTEM_PROMPT)
        assert "- Saving for a car" in system_prompt

    @pytest.mark.asyncio
    async def test_memory_failure_is_ignored(self, llm, executor, store):
        memory = MagicMock()
        memory.retrieve_context = AsyncMock(side_effect=RuntimeError("memory offline"))
        orchestrator = ConversationOrchestrator(llm, executor, store, memory=memory, memory_limit=5)

        outcome = await orchestrator.handle_message("u1", "Hi")

        assert outcome.response == "Hello there"
        assert llm.generate.call_args.args[0] == SYSTEM_PROMPT


class TestBuildVisionTurn:
    """Tests for build_vision_turn."""

    def test_no_vision_signal(self):
        results = [ToolResult("c1", "get_net_worth", payload={"net_worth": 10})]

        assert build_vision_turn(results) is None

    def test_failed_results_are_skipped(self):
        results = [
            ToolResult("c1", "search_documents", error="Failed to execute function"),
            ToolResult(
                "c2",
                "search_documents",
                payload={"next_step": "vision_read", "url": "https://x.test/a.jpg", "file_type": "image/jpeg"},
            ),
        ]

        turn = build_vision_turn(results)

        assert turn.image_url == "https://x.test/a.jpg"


class TestCreateLLMClient:
    def test_claude_provider(self):
        assert isinstance(create_llm_client("claude"), ClaudeClient)
