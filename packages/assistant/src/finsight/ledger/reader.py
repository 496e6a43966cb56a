"""Ledger collaborator interfaces and ingestion normalization.

The ledger service reports transactions with the bank-feed sign convention:
expenses are positive and income is negative. ``normalize_transaction`` is the
single place where that convention is inverted; everything downstream sees
income as positive and expenses as negative.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any, Protocol

from finsight.models import AccountBalance, Holding, Liability, LinkedAccount, Transaction

UNCATEGORIZED = "Uncategorized"


class DataUnavailable(Exception):
    """A ledger or portfolio read failed and no data could be recovered."""

    def __init__(self, message: str, user_id: str | None = None):
        super().__init__(message)
        self.user_id = user_id


class LedgerReader(Protocol):
    """Read access to linked-account ledger data."""

    async def get_transactions(
        self, access_token: str, start_date: str, end_date: str
    ) -> list[Mapping[str, Any]]:
        """Return raw transactions between two ISO dates (inclusive)."""
        ...

    async def get_balances(self, access_token: str) -> list[Mapping[str, Any]]:
        """Return raw balances for every account behind the token."""
        ...


class PortfolioStore(Protocol):
    """Per-user portfolio records: linked accounts and manual entries."""

    async def list_linked_accounts(self, user_id: str) -> list[LinkedAccount]: ...

    async def list_holdings(self, user_id: str) -> list[Holding]: ...

    async def list_liabilities(self, user_id: str) -> list[Liability]: ...


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _category_hints(raw: Mapping[str, Any]) -> tuple[str, ...]:
    category = raw.get("category")
    if isinstance(category, str):
        hints = [category] if category else []
    elif isinstance(category, (list, tuple)):
        hints = [str(c) for c in category if c]
    else:
        hints = []

    pfc = raw.get("personal_finance_category")
    if isinstance(pfc, Mapping):
        hints.extend(str(v) for v in (pfc.get("primary"), pfc.get("detailed")) if v)
    return tuple(hints)


def normalize_transaction(raw: Mapping[str, Any]) -> Transaction:
    """Convert a raw ledger transaction into a canonical ``Transaction``."""
    hints = _category_hints(raw)
    amount = float(raw.get("amount") or 0)
    return Transaction(
        id=str(raw.get("transaction_id") or raw.get("id") or ""),
        date=_parse_date(raw["date"]),
        amount=-amount if amount else 0.0,
        category=hints[0] if hints else UNCATEGORIZED,
        merchant_name=str(raw.get("merchant_name") or ""),
        description=str(raw.get("name") or raw.get("description") or ""),
        category_hints=hints,
    )


def normalize_balance(raw: Mapping[str, Any]) -> AccountBalance:
    """Convert a raw balance record into an ``AccountBalance``.

    Accepts both the flat ``{name, type, balance}`` shape and the nested
    ``{balances: {current}}`` shape used by bank aggregators.
    """
    balance = raw.get("balance")
    if balance is None:
        balances = raw.get("balances")
        if isinstance(balances, Mapping):
            balance = balances.get("current")
    return AccountBalance(
        name=str(raw.get("name") or "Linked Account"),
        balance=float(balance or 0),
        type=str(raw.get("type") or "bank"),
    )
