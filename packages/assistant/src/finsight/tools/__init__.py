"""Tools module for the FinSight assistant."""

from finsight.tools.definitions import TOOL_CATALOG
from finsight.tools.documents import DocumentRepository, DocumentSearcher
from finsight.tools.executor import (
    EXECUTION_FAILED,
    VISION_READ,
    ToolBinding,
    ToolExecutor,
    ToolName,
    ToolRegistrationError,
    ToolResult,
    validate_registry,
)

__all__ = [
    # Tool Definitions
    "TOOL_CATALOG",
    # Documents
    "DocumentRepository",
    "DocumentSearcher",
    # Tool Executor
    "ToolExecutor",
    "ToolName",
    "ToolBinding",
    "ToolResult",
    "ToolRegistrationError",
    "validate_registry",
    "EXECUTION_FAILED",
    "VISION_READ",
]
