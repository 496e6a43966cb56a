"""Financial analytics computed from ledger and portfolio data."""

from finsight.analytics.engine import (
    AnalyticsEngine,
    aggregate_by_category,
    build_monthly_buckets,
    detect_anomalies,
    find_opportunities,
    is_liability_balance,
)
from finsight.analytics.periods import DateWindow, lookback_window, parse_month

__all__ = [
    "AnalyticsEngine",
    "aggregate_by_category",
    "build_monthly_buckets",
    "detect_anomalies",
    "find_opportunities",
    "is_liability_balance",
    "DateWindow",
    "lookback_window",
    "parse_month",
]
