"""Financial analytics over a user's ledger and portfolio.

Every public method reads a fresh snapshot through the injected collaborators
and returns a JSON-ready dict. Nothing is cached between calls.
"""

from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from datetime import date
from typing import Any, TypeVar

import structlog

from finsight.analytics.periods import (
    ANALYSIS_PERIOD_MONTHS,
    DateWindow,
    add_months,
    future_month_keys,
    lookback_window,
    month_key,
    month_window,
    parse_month,
    trailing_days,
    trailing_month_starts,
    trailing_months_window,
)
from finsight.analytics.stats import (
    clamp,
    coefficient_of_variation,
    mean,
    percent_change,
    population_stddev,
    safe_divide,
)
from finsight.ledger.fanout import fetch_per_account, fold_successes
from finsight.ledger.reader import (
    DataUnavailable,
    LedgerReader,
    PortfolioStore,
    normalize_balance,
    normalize_transaction,
)
from finsight.models import (
    AccountBalance,
    Anomaly,
    CategoryAggregate,
    HealthScoreBreakdown,
    Holding,
    Liability,
    LinkedAccount,
    MonthlyBucket,
    RiskLevel,
    Transaction,
    TrendResult,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

ASSET_TYPES = frozenset({
    "checking",
    "savings",
    "depository",
    "investment",
    "brokerage",
    "retirement",
    "pension",
    "crypto",
    "real_estate",
    "vehicle",
    "other_asset",
})

LIABILITY_TYPES = frozenset({
    "credit",
    "credit_card",
    "loan",
    "mortgage",
    "student_loan",
    "auto_loan",
    "personal_loan",
    "other_liability",
})

EMERGENCY_FUND_KEYWORDS = ("savings", "cash")

# Estimated minimum payment as a share of each outstanding liability.
MONTHLY_DEBT_PAYMENT_RATE = 0.03
MAX_ANOMALIES = 10
RECENT_TRANSACTION_DAYS = 30
INCOME_ESTIMATE_MONTHS = 3
HEALTH_SCORE_FUND_MONTHS = 6

DTI_ADVICE = {
    RiskLevel.LOW: "Excellent debt-to-income ratio! You have good financial flexibility.",
    RiskLevel.MEDIUM: (
        "Good debt-to-income ratio, but consider paying down debt to improve "
        "financial health."
    ),
    RiskLevel.HIGH: "High debt-to-income ratio. Focus on debt reduction strategies immediately.",
}


def is_liability_balance(balance: AccountBalance) -> bool:
    """Classify a linked balance by account type, falling back to its sign."""
    account_type = balance.type.lower()
    if account_type in LIABILITY_TYPES:
        return True
    if account_type in ASSET_TYPES:
        return False
    return balance.balance < 0


def _mentions_emergency_fund(account_type: str) -> bool:
    lowered = account_type.lower()
    return any(keyword in lowered for keyword in EMERGENCY_FUND_KEYWORDS)


def build_monthly_buckets(
    transactions: Iterable[Transaction], month_keys: list[str]
) -> list[MonthlyBucket]:
    """One bucket per month key, oldest first, summing income and expenses."""
    buckets = {key: MonthlyBucket(month_key=key) for key in month_keys}
    for txn in transactions:
        bucket = buckets.get(month_key(txn.date))
        if bucket is None:
            continue
        if txn.is_income:
            bucket.income += txn.amount
        elif txn.is_expense:
            bucket.expenses += txn.magnitude
    return [buckets[key] for key in month_keys]


def aggregate_by_category(transactions: Iterable[Transaction]) -> list[CategoryAggregate]:
    """Sum expense magnitudes per category, largest first."""
    totals: dict[str, CategoryAggregate] = {}
    for txn in transactions:
        if not txn.is_expense:
            continue
        aggregate = totals.setdefault(txn.category, CategoryAggregate(category=txn.category))
        aggregate.total_amount += txn.magnitude
        aggregate.transaction_count += 1
    return sorted(totals.values(), key=lambda a: a.total_amount, reverse=True)


def detect_anomalies(
    transactions_by_category: dict[str, list[Transaction]], limit: int = MAX_ANOMALIES
) -> list[Anomaly]:
    """Flag expenses above mean + 2 population stddevs of their category."""
    anomalies: list[Anomaly] = []
    for category, transactions in transactions_by_category.items():
        amounts = [txn.magnitude for txn in transactions]
        threshold = mean(amounts) + 2 * population_stddev(amounts)
        for txn in transactions:
            if txn.magnitude > threshold:
                anomalies.append(
                    Anomaly(
                        date=txn.date,
                        amount=txn.magnitude,
                        category=category,
                        description=f"Unusually high {category} expense: {txn.display_name}",
                    )
                )
    anomalies.sort(key=lambda a: a.amount, reverse=True)
    return anomalies[:limit]


def find_opportunities(trends: Iterable[TrendResult]) -> list[dict[str, Any]]:
    """Savings opportunities for growing or volatile categories."""
    opportunities: list[dict[str, Any]] = []
    for trend in trends:
        if trend.trend_percent > 10 and trend.avg_monthly > 100:
            opportunities.append({
                "category": trend.category,
                "potential_savings": trend.avg_monthly * 0.15,
                "recommendation": (
                    f"{trend.category} spending has increased by "
                    f"{trend.trend_percent:.1f}%. Consider reviewing and optimizing "
                    "these expenses."
                ),
            })
        if trend.volatility_percent > 50 and trend.avg_monthly > 200:
            opportunities.append({
                "category": trend.category,
                "potential_savings": trend.avg_monthly * 0.10,
                "recommendation": (
                    f"{trend.category} spending is highly volatile. Better budgeting "
                    "could reduce unnecessary expenses."
                ),
            })
    opportunities.sort(key=lambda o: o["potential_savings"], reverse=True)
    return opportunities


def cash_flow_recommendations(
    income_growth: float, expense_growth: float, volatility: float, avg_net_flow: float
) -> list[str]:
    recommendations = []
    if income_growth < 0:
        recommendations.append(
            "Income is declining. Consider diversifying income sources or negotiating a raise."
        )
    if expense_growth > income_growth:
        recommendations.append(
            "Expenses are growing faster than income. Review and optimize your spending."
        )
    if volatility > 20:
        recommendations.append(
            "Income volatility is high. Build a larger emergency fund for stability."
        )
    if avg_net_flow < 0:
        recommendations.append(
            "Average monthly cash flow is negative. Focus on expense reduction or income increase."
        )
    return recommendations


class AnalyticsEngine:
    """Computes derived financial metrics for a user."""

    def __init__(
        self,
        ledger: LedgerReader,
        portfolio: PortfolioStore,
        today: Callable[[], date] | None = None,
    ):
        self._ledger = ledger
        self._portfolio = portfolio
        self._today = today or date.today

    # === Data access ===

    async def _portfolio_read(
        self, user_id: str, operation: str, read: Callable[[], Awaitable[list[T]]]
    ) -> list[T]:
        try:
            return await read()
        except Exception as e:
            logger.error("portfolio_read_failed", user_id=user_id, operation=operation, error=str(e))
            raise DataUnavailable(f"Could not read {operation}", user_id=user_id) from e

    async def _linked_accounts(self, user_id: str) -> list[LinkedAccount]:
        return await self._portfolio_read(
            user_id, "linked_accounts", lambda: self._portfolio.list_linked_accounts(user_id)
        )

    async def _holdings(self, user_id: str) -> list[Holding]:
        return await self._portfolio_read(
            user_id, "holdings", lambda: self._portfolio.list_holdings(user_id)
        )

    async def _liabilities(self, user_id: str) -> list[Liability]:
        return await self._portfolio_read(
            user_id, "liabilities", lambda: self._portfolio.list_liabilities(user_id)
        )

    async def _transactions(
        self, user_id: str, window: DateWindow, operation: str
    ) -> list[Transaction]:
        """All normalized transactions inside the window across linked accounts."""
        accounts = await self._linked_accounts(user_id)

        async def fetch(account: LinkedAccount) -> list[Transaction]:
            raw = await self._ledger.get_transactions(
                account.access_token, window.start_iso, window.end_iso
            )
            return [normalize_transaction(item) for item in raw]

        results = await fetch_per_account(accounts, fetch, user_id=user_id, operation=operation)
        transactions = fold_successes(results, user_id=user_id, operation=operation)
        return [txn for txn in transactions if window.contains(txn.date)]

    async def _linked_balances(self, user_id: str, operation: str) -> list[AccountBalance]:
        accounts = await self._linked_accounts(user_id)

        async def fetch(account: LinkedAccount) -> list[AccountBalance]:
            raw = await self._ledger.get_balances(account.access_token)
            return [normalize_balance(item) for item in raw]

        results = await fetch_per_account(accounts, fetch, user_id=user_id, operation=operation)
        return fold_successes(results, user_id=user_id, operation=operation)

    async def _total_liabilities(self, user_id: str, operation: str) -> float:
        manual = sum(abs(liability.amount) for liability in await self._liabilities(user_id))
        linked = sum(
            abs(balance.balance)
            for balance in await self._linked_balances(user_id, operation)
            if is_liability_balance(balance)
        )
        return manual + linked

    # === Balances ===

    async def net_worth(self, user_id: str) -> dict[str, float]:
        """Assets minus liabilities across manual entries and linked accounts."""
        holdings = await self._holdings(user_id)
        liabilities = await self._liabilities(user_id)
        balances = await self._linked_balances(user_id, "net_worth")

        assets = sum(holding.amount for holding in holdings)
        total_liabilities = sum(abs(liability.amount) for liability in liabilities)
        for balance in balances:
            if is_liability_balance(balance):
                total_liabilities += abs(balance.balance)
            else:
                assets += balance.balance

        return {
            "net_worth": assets - total_liabilities,
            "assets": assets,
            "liabilities": total_liabilities,
        }

    async def account_balances(self, user_id: str) -> list[dict[str, Any]]:
        """Every manual and linked account with its balance, unaggregated."""
        accounts = [
            {"name": holding.name, "balance": holding.amount, "type": holding.type}
            for holding in await self._holdings(user_id)
        ]
        accounts.extend(
            {"name": balance.name, "balance": balance.balance, "type": balance.type}
            for balance in await self._linked_balances(user_id, "account_balances")
        )
        return accounts

    # === Transactions ===

    async def spending_by_category(
        self, user_id: str, period: str = "month", category: str | None = None
    ) -> list[dict[str, Any]]:
        """Expense totals per category over a lookback period."""
        window = lookback_window(self._today(), period)
        transactions = await self._transactions(user_id, window, "spending_by_category")
        if category:
            needle = category.lower()
            transactions = [txn for txn in transactions if needle in txn.category.lower()]

        return [
            {"category": aggregate.category, "amount": aggregate.total_amount}
            for aggregate in aggregate_by_category(transactions)
        ]

    async def recent_transactions(
        self,
        user_id: str,
        limit: int = 10,
        category: str | None = None,
        merchant: str | None = None,
        amount_min: float | None = None,
        amount_max: float | None = None,
    ) -> list[dict[str, Any]]:
        """Most recent transactions from the last 30 days matching every filter."""
        window = trailing_days(self._today(), RECENT_TRANSACTION_DAYS)
        transactions = await self._transactions(user_id, window, "recent_transactions")

        def matches(txn: Transaction) -> bool:
            if category:
                needle = category.lower()
                labels = (txn.category, *txn.category_hints)
                if not any(needle in label.lower() for label in labels):
                    return False
            if merchant:
                needle = merchant.lower()
                if needle not in txn.merchant_name.lower() and needle not in txn.description.lower():
                    return False
            if amount_min is not None and txn.magnitude < amount_min:
                return False
            if amount_max is not None and txn.magnitude > amount_max:
                return False
            return True

        selected = sorted(
            (txn for txn in transactions if matches(txn)), key=lambda t: t.date, reverse=True
        )
        return [txn.to_dict() for txn in selected[:limit]]

    async def search_by_merchant(
        self, user_id: str, merchant: str, period: str = "month", limit: int = 50
    ) -> dict[str, Any]:
        """Transactions whose description or merchant contains ``merchant``."""
        window = lookback_window(self._today(), period)
        transactions = await self._transactions(user_id, window, "search_by_merchant")

        needle = merchant.lower()
        matches = [
            txn
            for txn in transactions
            if needle in txn.description.lower() or needle in txn.merchant_name.lower()
        ]
        ordered = sorted(matches, key=lambda t: t.date, reverse=True)

        return {
            "transactions": [txn.to_dict() for txn in ordered[:limit]],
            "total_spent": sum(txn.magnitude for txn in matches if txn.is_expense),
            "total_transactions": len(matches),
        }

    async def monthly_summary(self, user_id: str, month: str | None = None) -> dict[str, Any]:
        """Income, expenses and savings for one calendar month."""
        anchor = parse_month(month) if month else self._today()
        window = month_window(anchor)
        transactions = await self._transactions(user_id, window, "monthly_summary")

        income = sum(txn.amount for txn in transactions if txn.is_income)
        expenses = sum(txn.magnitude for txn in transactions if txn.is_expense)
        return {
            "month": month_key(anchor),
            "income": income,
            "expenses": expenses,
            "savings": income - expenses,
        }

    # === Advisory analyses ===

    async def debt_to_income_ratio(
        self, user_id: str, annual_income: float | None = None
    ) -> dict[str, Any]:
        """Estimated monthly debt service as a percentage of monthly income."""
        if annual_income and annual_income > 0:
            monthly_income = annual_income / 12
        else:
            today = self._today()
            window = DateWindow(start=add_months(today, -INCOME_ESTIMATE_MONTHS), end=today)
            transactions = await self._transactions(user_id, window, "debt_to_income_ratio")
            total_income = sum(txn.amount for txn in transactions if txn.is_income)
            monthly_income = total_income / INCOME_ESTIMATE_MONTHS

        total_debt = await self._total_liabilities(user_id, "debt_to_income_ratio")
        monthly_debt_payments = total_debt * MONTHLY_DEBT_PAYMENT_RATE
        ratio = safe_divide(monthly_debt_payments, monthly_income) * 100

        if ratio <= 20:
            risk_level = RiskLevel.LOW
        elif ratio <= 36:
            risk_level = RiskLevel.MEDIUM
        else:
            risk_level = RiskLevel.HIGH

        return {
            "ratio": ratio,
            "monthly_debt_payments": monthly_debt_payments,
            "monthly_income": monthly_income,
            "recommendation": DTI_ADVICE[risk_level],
            "risk_level": risk_level.value,
        }

    async def cash_flow_analysis(
        self, user_id: str, months: int = 6, projection_months: int = 3
    ) -> dict[str, Any]:
        """Trailing monthly cash flow with growth trends and a flat projection."""
        today = self._today()
        starts = trailing_month_starts(today, max(months, 0))
        keys = [month_key(start) for start in starts]

        if starts:
            window = DateWindow(start=starts[0], end=month_window(today).end)
            transactions = await self._transactions(user_id, window, "cash_flow_analysis")
        else:
            transactions = []
        historical = build_monthly_buckets(transactions, keys)

        incomes = [bucket.income for bucket in historical]
        expenses = [bucket.expenses for bucket in historical]
        income_growth = percent_change(incomes)
        expense_growth = percent_change(expenses)
        volatility = coefficient_of_variation(incomes)
        avg_income = mean(incomes)
        avg_expenses = mean(expenses)
        avg_net_flow = mean([bucket.net_flow for bucket in historical])

        projected = []
        for key in future_month_keys(today, max(projection_months, 0)):
            projected_income = avg_income * (1 + income_growth / 100 / 12)
            projected_expenses = avg_expenses * (1 + expense_growth / 100 / 12)
            projected.append({
                "month": key,
                "projected_income": projected_income,
                "projected_expenses": projected_expenses,
                "projected_net_flow": projected_income - projected_expenses,
            })

        return {
            "historical": [bucket.to_dict() for bucket in historical],
            "projected": projected,
            "trends": {
                "income_growth": income_growth,
                "expense_growth": expense_growth,
                "volatility": volatility,
            },
            "recommendations": cash_flow_recommendations(
                income_growth, expense_growth, volatility, avg_net_flow
            ),
        }

    async def spending_pattern_analysis(
        self, user_id: str, period: str = "6_months"
    ) -> dict[str, Any]:
        """Category trends, anomalies, savings opportunities and monthly patterns."""
        today = self._today()
        months = ANALYSIS_PERIOD_MONTHS.get(period, ANALYSIS_PERIOD_MONTHS["6_months"])
        starts = trailing_month_starts(today, months)
        keys = [month_key(start) for start in starts]
        window = trailing_months_window(today, months)

        transactions = await self._transactions(user_id, window, "spending_pattern_analysis")

        by_category: dict[str, list[Transaction]] = defaultdict(list)
        monthly: dict[str, dict[str, float]] = defaultdict(lambda: dict.fromkeys(keys, 0.0))
        seasonal: dict[str, dict[str, float]] = {key: {} for key in keys}
        for txn in transactions:
            if not txn.is_expense:
                continue
            key = month_key(txn.date)
            by_category[txn.category].append(txn)
            monthly[txn.category][key] += txn.magnitude
            seasonal[key][txn.category] = seasonal[key].get(txn.category, 0.0) + txn.magnitude

        trends = []
        for category, per_month in monthly.items():
            amounts = [per_month[key] for key in keys]
            trends.append(
                TrendResult(
                    category=category,
                    trend_percent=percent_change(amounts),
                    avg_monthly=mean(amounts),
                    volatility_percent=coefficient_of_variation(amounts),
                )
            )
        trends.sort(key=lambda t: t.avg_monthly, reverse=True)

        return {
            "category_trends": [
                {
                    "category": t.category,
                    "trend": t.trend_percent,
                    "avg_monthly": t.avg_monthly,
                    "volatility": t.volatility_percent,
                }
                for t in trends
            ],
            "anomalies": [anomaly.to_dict() for anomaly in detect_anomalies(by_category)],
            "opportunities": find_opportunities(trends),
            "seasonal_patterns": [
                {
                    "month": key,
                    "total_spending": sum(seasonal[key].values()),
                    "categories": seasonal[key],
                }
                for key in keys
            ],
        }

    async def emergency_fund_status(
        self, user_id: str, target_months: int = 6
    ) -> dict[str, Any]:
        """How many months of expenses liquid savings would cover."""
        holdings = await self._holdings(user_id)
        balances = await self._linked_balances(user_id, "emergency_fund_status")

        current_fund = sum(h.amount for h in holdings if _mentions_emergency_fund(h.type))
        current_fund += sum(b.balance for b in balances if _mentions_emergency_fund(b.type))
        if current_fund == 0:
            current_fund = sum(h.amount for h in holdings) * 0.5

        window = trailing_days(self._today(), RECENT_TRANSACTION_DAYS)
        transactions = await self._transactions(user_id, window, "emergency_fund_status")
        monthly_expenses = sum(txn.magnitude for txn in transactions if txn.is_expense)

        months_covered = safe_divide(current_fund, monthly_expenses)
        target_amount = monthly_expenses * target_months
        shortfall = max(0.0, target_amount - current_fund)

        if monthly_expenses > 0 and months_covered >= target_months:
            risk_level = RiskLevel.LOW
            recommendation = (
                f"Excellent! You have {months_covered:.1f} months of expenses saved. "
                "Your emergency fund is well-funded."
            )
        elif months_covered >= 3:
            risk_level = RiskLevel.MEDIUM
            recommendation = (
                f"Good progress! You have {months_covered:.1f} months of expenses saved. "
                f"Consider building it up to {target_months} months."
            )
        else:
            risk_level = RiskLevel.HIGH
            recommendation = (
                f"Emergency fund needs attention. You only have {months_covered:.1f} months "
                "of expenses saved. This is a financial priority."
            )

        return {
            "current_fund": current_fund,
            "monthly_expenses": monthly_expenses,
            "months_covered": months_covered,
            "target_amount": target_amount,
            "shortfall": shortfall,
            "recommendation": recommendation,
            "risk_level": risk_level.value,
        }

    async def financial_health_score(self, user_id: str) -> dict[str, Any]:
        """Weighted composite of fund, debt, savings, net worth and budget scores."""
        log = logger.bind(user_id=user_id)

        emergency = await self.emergency_fund_status(user_id)
        emergency_score = clamp(emergency["months_covered"] / HEALTH_SCORE_FUND_MONTHS * 100)

        dti = await self.debt_to_income_ratio(user_id)
        debt_score = clamp(100 - dti["ratio"] * 2)

        cash_flow = await self.cash_flow_analysis(user_id, months=3, projection_months=1)
        recent = cash_flow["historical"][-3:]
        savings_rates = [safe_divide(m["net_flow"], m["income"]) * 100 for m in recent]
        savings_score = clamp(mean(savings_rates) * 5)

        # Placeholder: sign of net worth rather than a true growth rate.
        worth = await self.net_worth(user_id)
        net_worth_score = 75.0 if worth["net_worth"] > 0 else 25.0

        patterns = await self.spending_pattern_analysis(user_id, "3_months")
        avg_volatility = mean([t["volatility"] for t in patterns["category_trends"]])
        budget_score = clamp(100 - avg_volatility)

        breakdown = HealthScoreBreakdown.from_scores(
            emergency_fund=emergency_score,
            debt_to_income=debt_score,
            savings_rate=savings_score,
            net_worth_growth=net_worth_score,
            budget_adherence=budget_score,
        )
        overall = breakdown.overall_score

        recommendations = []
        if emergency_score < 50:
            recommendations.append(
                "Priority: Build your emergency fund to cover 3-6 months of expenses."
            )
        if debt_score < 60:
            recommendations.append("Focus on reducing debt to improve your debt-to-income ratio.")
        if savings_score < 40:
            recommendations.append(
                "Increase your savings rate by reducing expenses or increasing income."
            )
        if budget_score < 60:
            recommendations.append(
                "Work on more consistent budgeting to reduce spending volatility."
            )

        if overall < 40:
            risk_level = RiskLevel.HIGH
        elif overall < 70:
            risk_level = RiskLevel.MEDIUM
        else:
            risk_level = RiskLevel.LOW

        log.info(
            "health_score_computed",
            overall_score=round(overall, 2),
            total_weight=breakdown.total_weight,
            risk=risk_level.value,
        )
        return {
            "overall_score": overall,
            "breakdown": breakdown.to_dict(),
            "recommendations": recommendations,
            "risk_level": risk_level.value,
        }
