"""Domain models shared by the analytics engine, tools and orchestrator."""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class TransactionType(str, Enum):
    """Direction of money movement, derived from the signed amount."""

    INCOME = "income"
    EXPENSE = "expense"
    NEUTRAL = "neutral"


class RiskLevel(str, Enum):
    """Risk bands used by advisory results."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Transaction:
    """A normalized ledger transaction.

    Amounts are signed with income positive and expenses negative.
    """

    id: str
    date: date
    amount: float
    category: str = "Uncategorized"
    merchant_name: str = ""
    description: str = ""
    category_hints: tuple[str, ...] = ()

    @property
    def type(self) -> TransactionType:
        if self.amount < 0:
            return TransactionType.EXPENSE
        if self.amount > 0:
            return TransactionType.INCOME
        return TransactionType.NEUTRAL

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def magnitude(self) -> float:
        return abs(self.amount)

    @property
    def display_name(self) -> str:
        return self.merchant_name or self.description or "Unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "amount": self.amount,
            "category": self.category,
            "merchant_name": self.merchant_name,
            "description": self.description,
            "type": self.type.value,
        }


@dataclass(frozen=True)
class LinkedAccount:
    """A bank connection whose token unlocks ledger reads."""

    id: str
    access_token: str
    institution: str = ""


@dataclass(frozen=True)
class AccountBalance:
    """Balance of a single account as reported by the ledger."""

    name: str
    balance: float
    type: str


@dataclass(frozen=True)
class Holding:
    """A manually entered asset (cash, investment or real holding)."""

    name: str
    amount: float
    type: str = "manual"


@dataclass(frozen=True)
class Liability:
    """A manually entered liability such as a loan or card balance."""

    name: str
    amount: float
    type: str = "loan"


@dataclass
class CategoryAggregate:
    category: str
    total_amount: float = 0.0
    transaction_count: int = 0


@dataclass
class MonthlyBucket:
    """Income and expenses for one calendar month."""

    month_key: str
    income: float = 0.0
    expenses: float = 0.0

    @property
    def net_flow(self) -> float:
        return self.income - self.expenses

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month_key,
            "income": self.income,
            "expenses": self.expenses,
            "net_flow": self.net_flow,
        }


@dataclass
class TrendResult:
    category: str
    trend_percent: float
    avg_monthly: float
    volatility_percent: float


@dataclass
class Anomaly:
    date: date
    amount: float
    category: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
        }


@dataclass
class ScoreComponent:
    score: float
    weight: float


@dataclass
class HealthScoreBreakdown:
    """The five weighted components of the financial health score."""

    emergency_fund: ScoreComponent
    debt_to_income: ScoreComponent
    savings_rate: ScoreComponent
    net_worth_growth: ScoreComponent
    budget_adherence: ScoreComponent

    @classmethod
    def from_scores(
        cls,
        emergency_fund: float,
        debt_to_income: float,
        savings_rate: float,
        net_worth_growth: float,
        budget_adherence: float,
    ) -> "HealthScoreBreakdown":
        return cls(
            emergency_fund=ScoreComponent(emergency_fund, 0.25),
            debt_to_income=ScoreComponent(debt_to_income, 0.25),
            savings_rate=ScoreComponent(savings_rate, 0.25),
            net_worth_growth=ScoreComponent(net_worth_growth, 0.15),
            budget_adherence=ScoreComponent(budget_adherence, 0.10),
        )

    def components(self) -> list[ScoreComponent]:
        return [
            self.emergency_fund,
            self.debt_to_income,
            self.savings_rate,
            self.net_worth_growth,
            self.budget_adherence,
        ]

    @property
    def total_weight(self) -> float:
        # Weights are fixed tenths/quarters; round away float noise.
        return round(sum(c.weight for c in self.components()), 10)

    @property
    def overall_score(self) -> float:
        return sum(c.score * c.weight for c in self.components())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DocumentRecord:
    """Metadata for an uploaded document."""

    id: str
    file_name: str
    url: str
    file_type: str = ""
    category: str = ""
    uploaded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "url": self.url,
            "file_type": self.file_type,
            "category": self.category,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the language model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatMessage:
    """A message in the conversation sequence replayed to the model."""

    role: str  # "system", "user", "assistant", or "tool"
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Plain form persisted by conversation stores."""
        return {"role": self.role, "content": self.content}
