"""Ledger access: collaborator interfaces, normalization and HTTP client."""

from finsight.ledger.fanout import AccountFetch, fetch_per_account, fold_successes
from finsight.ledger.http_client import (
    AuthenticationError,
    LedgerAPIClient,
    LedgerAPIError,
    RateLimitError,
)
from finsight.ledger.reader import (
    DataUnavailable,
    LedgerReader,
    PortfolioStore,
    normalize_balance,
    normalize_transaction,
)

__all__ = [
    # Interfaces
    "LedgerReader",
    "PortfolioStore",
    "DataUnavailable",
    # Normalization
    "normalize_transaction",
    "normalize_balance",
    # Fan-out
    "AccountFetch",
    "fetch_per_account",
    "fold_successes",
    # HTTP client
    "LedgerAPIClient",
    "LedgerAPIError",
    "AuthenticationError",
    "RateLimitError",
]
