"""Conversation orchestrator - drives the tool-calling chat protocol.

One user message is answered in at most two model round-trips:

1. AWAITING_MODEL: the model sees the system prompt, prior history, the new
   message and the full tool catalog.
2. EXECUTING_TOOLS: any requested tool calls run concurrently through the
   ToolExecutor; each result goes back to the model as a tool message, and a
   matched document may add one vision turn.
3. AWAITING_FINAL: the model answers from the tool results.

The finished exchange is appended to the conversation store.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

import structlog

from finsight.clients import ClaudeClient, LLMClient, OpenAIClient
from finsight.config import get_settings
from finsight.conversations import ConversationStore
from finsight.memory import MemoryEntry, MemoryProvider
from finsight.models import ChatMessage
from finsight.prompts import build_system_prompt
from finsight.tools import VISION_READ, ToolExecutor, ToolResult

logger = structlog.get_logger(__name__)

EMPTY_ANSWER = "Sorry, I couldn't process your request."
FINAL_ANSWER_FAILED = "Sorry, I encountered an error processing your request."

VISION_IMAGE_PROMPT = (
    "Here is the document you found. Read it and use its contents to answer my question."
)


class ConversationPhase(str, Enum):
    """Where a chat request is in the two-round protocol."""

    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_FINAL = "awaiting_final"
    DONE = "done"


class LLMProvider(str, Enum):
    OPENAI = "openai"
    CLAUDE = "claude"


def create_llm_client(provider: LLMProvider | str | None = None) -> LLMClient:
    """Create the LLM client for a provider, defaulting to settings."""
    settings = get_settings()
    provider = LLMProvider(provider or settings.llm_provider)
    if provider == LLMProvider.CLAUDE:
        return ClaudeClient()
    return OpenAIClient()


@dataclass
class ChatOutcome:
    """Result of handling one user message."""

    response: str
    conversation_id: str
    tool_results: list[ToolResult] = field(default_factory=list)
    phase: ConversationPhase = ConversationPhase.DONE


def build_vision_turn(results: list[ToolResult]) -> ChatMessage | None:
    """The extra user turn that shows a found document to the model.

    Uses the first result that asks for a vision read. Images are attached as
    image parts; other file types are referenced by URL in the text.
    """
    for result in results:
        payload = result.payload
        if not result.ok or not isinstance(payload, Mapping):
            continue
        if payload.get("next_step") != VISION_READ or not payload.get("url"):
            continue

        url = str(payload["url"])
        file_type = str(payload.get("file_type") or "")
        if file_type.startswith("image/"):
            return ChatMessage(role="user", content=VISION_IMAGE_PROMPT, image_url=url)
        return ChatMessage(
            role="user",
            content=(
                f"The document you found ({file_type or 'unknown type'}) is available at "
                f"{url}. Read it and use its contents to answer my question."
            ),
        )
    return None


class ConversationOrchestrator:
    """Answers user messages with the LLM and the financial tools.

    Usage:
        orchestrator = ConversationOrchestrator(llm, executor, store)
        outcome = await orchestrator.handle_message(user_id, "How much did I spend?")
    """

    def __init__(
        self,
        llm: LLMClient,
        executor: ToolExecutor,
        store: ConversationStore,
        memory: MemoryProvider | None = None,
        memory_limit: int | None = None,
    ):
        self._llm = llm
        self._executor = executor
        self._store = store
        self._memory = memory
        self._memory_limit = memory_limit or get_settings().memory_context_limit

    async def _recall(self, user_id: str, message: str) -> list[MemoryEntry]:
        if self._memory is None:
            return []
        try:
            return await self._memory.retrieve_context(user_id, message, self._memory_limit)
        except Exception as e:
            logger.warning("memory_retrieval_failed", user_id=user_id, error=str(e))
            return []

    async def _final_answer(
        self, system_prompt: str, sequence: list[ChatMessage], user_id: str
    ) -> str:
        """Second round; failures become a generic apology instead of raising."""
        try:
            response = await self._llm.generate(
                system_prompt, sequence, tools=self._executor.catalog, tool_choice="auto"
            )
        except Exception as e:
            logger.error("final_response_failed", user_id=user_id, error=str(e))
            return FINAL_ANSWER_FAILED

        if response.wants_tools:
            # Only one follow-up round is run; further tool requests are dropped.
            logger.info(
                "followup_tool_calls_ignored",
                user_id=user_id,
                tools=[call.name for call in response.tool_calls],
            )
        return response.content or FINAL_ANSWER_FAILED

    async def handle_message(
        self,
        user_id: str,
        message: str,
        history: list[Mapping[str, str]] | None = None,
        conversation_id: str | None = None,
    ) -> ChatOutcome:
        """Answer one user message and persist the exchange.

        Raises:
            UpstreamModelError: If the first model round-trip fails.
        """
        history = list(history or [])
        log = logger.bind(user_id=user_id, conversation_id=conversation_id)

        phase = ConversationPhase.AWAITING_MODEL
        system_prompt = build_system_prompt(await self._recall(user_id, message))
        sequence = [ChatMessage(role=turn["role"], content=turn["content"]) for turn in history]
        sequence.append(ChatMessage(role="user", content=message))

        log.info("chat_round_started", phase=phase.value, history_length=len(history))
        first = await self._llm.generate(
            system_prompt, sequence, tools=self._executor.catalog, tool_choice="auto"
        )

        results: list[ToolResult] = []
        if not first.wants_tools:
            answer = first.content or EMPTY_ANSWER
        else:
            phase = ConversationPhase.EXECUTING_TOOLS
            log.info(
                "executing_tool_calls",
                phase=phase.value,
                tools=[call.name for call in first.tool_calls],
            )
            sequence.append(
                ChatMessage(role="assistant", content=first.content, tool_calls=first.tool_calls)
            )
            results = await self._executor.execute_all(first.tool_calls, user_id)
            sequence.extend(
                ChatMessage(role="tool", content=result.content, tool_call_id=result.tool_call_id)
                for result in results
            )

            vision_turn = build_vision_turn(results)
            if vision_turn is not None:
                log.info("vision_turn_added", has_image=vision_turn.image_url is not None)
                sequence.append(vision_turn)

            phase = ConversationPhase.AWAITING_FINAL
            answer = await self._final_answer(system_prompt, sequence, user_id)

        phase = ConversationPhase.DONE
        exchange = [ChatMessage(role=turn["role"], content=turn["content"]) for turn in history]
        exchange.append(ChatMessage(role="user", content=message))
        exchange.append(ChatMessage(role="assistant", content=answer))
        transcript = [turn.to_dict() for turn in exchange]
        saved_id = await self._store.save(user_id, transcript, conversation_id)

        log.info(
            "chat_completed",
            saved_conversation_id=saved_id,
            tool_calls=len(results),
            failed_tools=sum(1 for result in results if not result.ok),
        )
        return ChatOutcome(
            response=answer,
            conversation_id=saved_id,
            tool_results=results,
            phase=phase,
        )
