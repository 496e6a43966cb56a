"""FinSight - conversational personal-finance assistant with analytics tools."""

__version__ = "0.1.0"

from finsight.analytics import AnalyticsEngine
from finsight.clients import ClaudeClient, OpenAIClient, UpstreamModelError
from finsight.config import configure_logging, get_settings
from finsight.conversations import ConversationStore, InMemoryConversationStore
from finsight.ledger import DataUnavailable, LedgerAPIClient
from finsight.orchestrator import ChatOutcome, ConversationOrchestrator, ConversationPhase
from finsight.tools import TOOL_CATALOG, DocumentSearcher, ToolExecutor

__all__ = [
    # Version
    "__version__",
    # Analytics
    "AnalyticsEngine",
    "DataUnavailable",
    # LLM Clients
    "ClaudeClient",
    "OpenAIClient",
    "UpstreamModelError",
    # Orchestration
    "ConversationOrchestrator",
    "ConversationPhase",
    "ChatOutcome",
    # Tools
    "TOOL_CATALOG",
    "ToolExecutor",
    "DocumentSearcher",
    # Persistence & data sources
    "ConversationStore",
    "InMemoryConversationStore",
    "LedgerAPIClient",
    # Config
    "get_settings",
    "configure_logging",
]
