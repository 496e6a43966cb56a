"""Ledger service client over HTTP.

Implements the ledger, portfolio, document, memory and token-verification
collaborator interfaces against a single ledger service.
"""

import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
import structlog

from finsight.config import get_settings
from finsight.memory import MemoryEntry
from finsight.models import DocumentRecord, Holding, Liability, LinkedAccount

logger = structlog.get_logger(__name__)


DEFAULT_RETRY_AFTER = 60


def parse_retry_after(value: str | None) -> int:
    """Seconds to wait from a Retry-After header, given as seconds or an HTTP date."""
    if not value:
        return DEFAULT_RETRY_AFTER
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0, int((when - datetime.now(timezone.utc)).total_seconds()))


class LedgerAPIError(Exception):
    """Base exception for ledger service errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(LedgerAPIError):
    """Authentication failed."""

    pass


class RateLimitError(LedgerAPIError):
    """Rate limit exceeded."""

    pass


class LedgerAPIClient:
    """Async client for the ledger service."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.ledger_api_url).rstrip("/")
        self._api_key = api_key or settings.ledger_api_key.get_secret_value()
        self._timeout = timeout or settings.ledger_timeout
        self._max_retries = settings.ledger_max_retries if max_retries is None else max_retries

        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LedgerAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with the service key."""
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    # === Generic Request Methods ===

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        retry_count: int = 0,
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Make an API request, retrying transport failures with backoff."""
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=self._get_headers(),
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)
                return await self._request(method, path, params, json, retry_count + 1)
            raise LedgerAPIError(f"Request failed: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError("Invalid credentials", status_code=401)

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError(
                f"Rate limited, retry after {retry_after}s",
                status_code=429,
                details={"retry_after": retry_after},
            )

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except ValueError:
                error_detail = {"raw": response.text[:500] if response.text else "empty response"}
            raise LedgerAPIError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                details=error_detail,
            )

        return response.json() if response.content else {}

    async def get(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Make GET request."""
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | list[dict[str, Any]]:
        """Make POST request."""
        return await self._request("POST", path, params=params, json=json)

    @staticmethod
    def _extract_items(result: Any, key: str = "items") -> list[dict[str, Any]]:
        """Return list of items from a list or keyed response."""
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            items = result.get(key)
            if isinstance(items, list):
                return items
        return []

    # === Ledger Endpoints ===

    async def get_transactions(
        self, access_token: str, start_date: str, end_date: str
    ) -> list[dict[str, Any]]:
        """Get raw transactions for a linked account between two ISO dates."""
        result = await self.post(
            "/api/v1/transactions/get",
            json={
                "access_token": access_token,
                "start_date": start_date,
                "end_date": end_date,
            },
        )
        return self._extract_items(result, "transactions")

    async def get_balances(self, access_token: str) -> list[dict[str, Any]]:
        """Get raw account balances for a linked account."""
        result = await self.post(
            "/api/v1/accounts/balance/get",
            json={"access_token": access_token},
        )
        return self._extract_items(result, "accounts")

    # === Portfolio Endpoints ===

    async def list_linked_accounts(self, user_id: str) -> list[LinkedAccount]:
        """List bank connections for a user."""
        result = await self.get(f"/api/v1/users/{user_id}/linked-accounts")
        return [
            LinkedAccount(
                id=str(item.get("id", "")),
                access_token=str(item.get("access_token", "")),
                institution=str(item.get("institution", "")),
            )
            for item in self._extract_items(result)
            if item.get("access_token")
        ]

    async def list_holdings(self, user_id: str) -> list[Holding]:
        """List manually entered assets for a user."""
        result = await self.get(f"/api/v1/users/{user_id}/manual-assets")
        return [
            Holding(
                name=str(item.get("name", "")),
                amount=float(item.get("amount") or 0),
                type=str(item.get("type") or "manual"),
            )
            for item in self._extract_items(result)
        ]

    async def list_liabilities(self, user_id: str) -> list[Liability]:
        """List manually entered liabilities for a user."""
        result = await self.get(f"/api/v1/users/{user_id}/manual-liabilities")
        return [
            Liability(
                name=str(item.get("name", "")),
                amount=float(item.get("amount") or 0),
                type=str(item.get("type") or "loan"),
            )
            for item in self._extract_items(result)
        ]

    # === Documents ===

    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        """List uploaded document metadata for a user."""
        result = await self.get(f"/api/v1/users/{user_id}/documents")
        documents = []
        for item in self._extract_items(result):
            uploaded_at = item.get("uploaded_at")
            documents.append(
                DocumentRecord(
                    id=str(item.get("id", "")),
                    file_name=str(item.get("file_name", "")),
                    url=str(item.get("url", "")),
                    file_type=str(item.get("file_type", "")),
                    category=str(item.get("category", "")),
                    uploaded_at=datetime.fromisoformat(uploaded_at) if uploaded_at else None,
                )
            )
        return documents

    # === Memory ===

    async def retrieve_context(
        self, user_id: str, query: str, limit: int = 10
    ) -> list[MemoryEntry]:
        """Most recent long-term memory entries for a user."""
        result = await self.get(
            f"/api/v1/users/{user_id}/memory", params={"limit": limit, "query": query}
        )
        return [
            MemoryEntry(
                content=str(item.get("content") or ""),
                type=str(item.get("type") or "insight"),
                metadata=dict(item.get("metadata") or {}),
            )
            for item in self._extract_items(result)
        ]

    # === Authentication ===

    async def verify_token(self, id_token: str) -> str:
        """Resolve an end-user ID token to a user id.

        Raises:
            AuthenticationError: If the token is rejected.
        """
        result = await self.post("/api/v1/auth/verify", json={"id_token": id_token})
        user_id = result.get("uid") if isinstance(result, dict) else None
        if not user_id:
            raise AuthenticationError("Token did not resolve to a user", status_code=401)
        logger.debug("token_verified", user_id=user_id)
        return str(user_id)
