"""Per-account fan-out with explicit success/failure results.

Each linked account is fetched on its own. A failing account yields an
``AccountFetch`` carrying the error instead of aborting the whole read, and
``fold_successes`` aggregates only the accounts that answered.
"""

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from finsight.ledger.reader import DataUnavailable
from finsight.models import LinkedAccount

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class AccountFetch(Generic[T]):
    """Outcome of fetching data for a single linked account."""

    account_id: str
    data: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def fetch_per_account(
    accounts: Iterable[LinkedAccount],
    fetch: Callable[[LinkedAccount], Awaitable[T]],
    *,
    user_id: str,
    operation: str,
) -> list[AccountFetch[T]]:
    """Fetch data for every account sequentially, isolating failures."""
    results: list[AccountFetch[T]] = []
    for account in accounts:
        try:
            data = await fetch(account)
        except Exception as e:
            logger.warning(
                "account_fetch_failed",
                user_id=user_id,
                account_id=account.id,
                operation=operation,
                error=str(e),
            )
            results.append(AccountFetch(account_id=account.id, error=str(e)))
        else:
            results.append(AccountFetch(account_id=account.id, data=data))
    return results


def fold_successes(
    results: list[AccountFetch[list[T]]], *, user_id: str, operation: str
) -> list[T]:
    """Concatenate the data of successful fetches.

    Raises:
        DataUnavailable: If there was at least one account and all failed.
    """
    if results and not any(r.ok for r in results):
        raise DataUnavailable(
            f"All {len(results)} linked accounts failed during {operation}",
            user_id=user_id,
        )

    items: list[T] = []
    for result in results:
        if result.ok and result.data:
            items.extend(result.data)
    return items
