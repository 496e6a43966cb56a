"""Entry point: wire collaborators together and serve the chat API.

Examples:
    python -m finsight.server
    python -m finsight.server --port=9000 --provider=claude
"""

import argparse
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from finsight.analytics import AnalyticsEngine
from finsight.api import create_app
from finsight.config import configure_logging, get_settings
from finsight.conversations import InMemoryConversationStore
from finsight.ledger import LedgerAPIClient
from finsight.orchestrator import ConversationOrchestrator, LLMProvider, create_llm_client
from finsight.tools import DocumentSearcher, ToolExecutor

logger = structlog.get_logger(__name__)


def build_app(provider: str | None = None) -> FastAPI:
    """Construct every client once and inject them into the app."""
    settings = get_settings()
    ledger = LedgerAPIClient()
    store = InMemoryConversationStore()

    executor = ToolExecutor(
        engine=AnalyticsEngine(ledger=ledger, portfolio=ledger),
        documents=DocumentSearcher(ledger),
    )
    orchestrator = ConversationOrchestrator(
        llm=create_llm_client(provider),
        executor=executor,
        store=store,
        memory=ledger,
        memory_limit=settings.memory_context_limit,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("assistant_started", provider=provider or settings.llm_provider)
        yield
        await ledger.close()
        logger.info("assistant_stopped")

    return create_app(
        verifier=ledger,
        orchestrator=orchestrator,
        store=store,
        conversation_list_limit=settings.conversation_list_limit,
        lifespan=lifespan,
    )


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="FinSight financial assistant API")
    parser.add_argument("--host", default=settings.api_host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.api_port, help="Bind port")
    parser.add_argument(
        "--provider",
        choices=[p.value for p in LLMProvider],
        default=None,
        help=f"LLM provider (default: {settings.llm_provider})",
    )
    parser.add_argument(
        "--log-format",
        choices=["console", "json"],
        default=settings.log_format,
        help="Log renderer",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level, args.log_format)
    uvicorn.run(build_app(args.provider), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
