"""Search over uploaded document metadata."""

from datetime import datetime, timezone
from typing import Protocol

import structlog

from finsight.models import DocumentRecord

logger = structlog.get_logger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class DocumentRepository(Protocol):
    """Read access to a user's uploaded document metadata."""

    async def list_documents(self, user_id: str) -> list[DocumentRecord]: ...


def _sort_key(document: DocumentRecord) -> datetime:
    uploaded_at = document.uploaded_at
    if uploaded_at is None:
        return _OLDEST
    if uploaded_at.tzinfo is None:
        return uploaded_at.replace(tzinfo=timezone.utc)
    return uploaded_at


class DocumentSearcher:
    """Matches query terms against document names and categories."""

    def __init__(self, repository: DocumentRepository):
        self._repository = repository

    async def search(
        self,
        user_id: str,
        query: str,
        category: str | None = None,
        limit: int = 5,
    ) -> list[DocumentRecord]:
        """Documents containing every query term, newest first."""
        terms = [term.lower() for term in query.split() if term]
        documents = await self._repository.list_documents(user_id)

        matches = []
        for document in documents:
            if category and document.category.lower() != category.lower():
                continue
            haystack = f"{document.file_name} {document.category}".lower()
            if all(term in haystack for term in terms):
                matches.append(document)

        matches.sort(key=_sort_key, reverse=True)
        logger.debug(
            "documents_searched",
            user_id=user_id,
            query=query,
            candidates=len(documents),
            matches=len(matches),
        )
        return matches[:limit]
