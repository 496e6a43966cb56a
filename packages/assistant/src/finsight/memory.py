"""Long-term financial memory used to enrich the system prompt."""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class MemoryEntry:
    """A remembered fact about the user (insight, goal, past transaction...)."""

    content: str
    type: str = "insight"
    metadata: dict[str, Any] = field(default_factory=dict)


class MemoryProvider(Protocol):
    async def retrieve_context(
        self, user_id: str, query: str, limit: int = 10
    ) -> list[MemoryEntry]:
        """Most recent memory entries for the user, newest first."""
        ...


def format_memory_context(entries: list[MemoryEntry]) -> str:
    """Render memory entries as a prompt section, or an empty string."""
    lines = [f"- {entry.content}" for entry in entries if entry.content.strip()]
    if not lines:
        return ""
    return "What you already know about this user:\n" + "\n".join(lines)
