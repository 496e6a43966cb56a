"""Pytest configuration and fixtures."""

import os
from datetime import date
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test")
os.environ.setdefault("LEDGER_API_KEY", "ledger-test-key")

from finsight.analytics import AnalyticsEngine  # noqa: E402
from finsight.models import DocumentRecord, Holding, Liability, LinkedAccount  # noqa: E402

TODAY = date(2024, 6, 15)


def raw_txn(
    day: str,
    amount: float,
    category: str = "Food and Drink",
    name: str = "Corner Store",
    merchant: str | None = None,
    txn_id: str | None = None,
) -> dict[str, Any]:
    """Raw ledger transaction in the feed's sign convention (expenses positive)."""
    return {
        "transaction_id": txn_id or f"txn-{day}-{name}-{amount}",
        "date": day,
        "amount": amount,
        "category": [category],
        "name": name,
        "merchant_name": merchant,
    }


class FakeLedger:
    """In-memory LedgerReader keyed by access token."""

    def __init__(self) -> None:
        self.transactions: dict[str, list[dict[str, Any]]] = {}
        self.balances: dict[str, list[dict[str, Any]]] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, ...]] = []

    async def get_transactions(
        self, access_token: str, start_date: str, end_date: str
    ) -> list[dict[str, Any]]:
        self.calls.append(("transactions", access_token, start_date, end_date))
        if access_token in self.failing:
            raise ConnectionError(f"ledger unavailable for {access_token}")
        return list(self.transactions.get(access_token, []))

    async def get_balances(self, access_token: str) -> list[dict[str, Any]]:
        self.calls.append(("balances", access_token))
        if access_token in self.failing:
            raise ConnectionError(f"ledger unavailable for {access_token}")
        return list(self.balances.get(access_token, []))


class FakePortfolio:
    """In-memory PortfolioStore for a single user."""

    def __init__(self) -> None:
        self.linked_accounts: list[LinkedAccount] = []
        self.holdings: list[Holding] = []
        self.liabilities: list[Liability] = []

    async def list_linked_accounts(self, user_id: str) -> list[LinkedAccount]:
        return list(self.linked_accounts)

    async def list_holdings(self, user_id: str) -> list[Holding]:
        return list(self.holdings)

    async def list_liabilities(self, user_id: str) -> list[Liability]:
        return list(self.liabilities)


class FakeDocuments:
    """In-memory DocumentRepository."""

    def __init__(self, documents: list[DocumentRecord] | None = None) -> None:
        self.documents = documents or []

    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        return list(self.documents)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def portfolio() -> FakePortfolio:
    return FakePortfolio()


@pytest.fixture
def linked(ledger, portfolio):
    """Link one account ("tok-1") and return its transaction list for seeding."""
    portfolio.linked_accounts.append(LinkedAccount(id="acct-1", access_token="tok-1"))
    ledger.transactions["tok-1"] = []
    return ledger.transactions["tok-1"]


@pytest.fixture
def engine(ledger, portfolio) -> AnalyticsEngine:
    return AnalyticsEngine(ledger, portfolio, today=lambda: TODAY)


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.aclose = AsyncMock()
    return client
