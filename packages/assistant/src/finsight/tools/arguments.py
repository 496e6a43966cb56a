"""Argument models for each tool.

Field names and required-ness must mirror the JSON schemas in
``finsight.tools.definitions``; the executor checks this at construction.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

LookbackPeriod = Literal["week", "month", "quarter", "year"]
AnalysisPeriod = Literal["3_months", "6_months", "1_year"]


class ToolArguments(BaseModel):
    """Base for tool arguments; unknown keys sent by the model are dropped."""

    model_config = ConfigDict(extra="ignore")


class NoArguments(ToolArguments):
    pass


class SpendingByCategoryArgs(ToolArguments):
    period: LookbackPeriod
    category: str | None = None


class RecentTransactionsArgs(ToolArguments):
    limit: int = Field(default=10, ge=1, le=100)
    category: str | None = None
    merchant: str | None = None
    amount_min: float | None = Field(default=None, ge=0)
    amount_max: float | None = Field(default=None, ge=0)


class MerchantSearchArgs(ToolArguments):
    merchant: str = Field(..., min_length=1)
    period: LookbackPeriod = "month"
    limit: int = Field(default=50, ge=1, le=500)


class MonthlySummaryArgs(ToolArguments):
    month: str | None = Field(default=None, pattern=r"^\d{4}-\d{2}$")


class DebtToIncomeArgs(ToolArguments):
    annual_income: float | None = None


class CashFlowArgs(ToolArguments):
    months: int = Field(default=6, ge=1, le=36)
    projection_months: int = Field(default=3, ge=0, le=24)


class SpendingPatternsArgs(ToolArguments):
    analysis_period: AnalysisPeriod = "6_months"


class EmergencyFundArgs(ToolArguments):
    target_months: int = Field(default=6, ge=1, le=24)


class DocumentSearchArgs(ToolArguments):
    query: str = Field(..., min_length=1)
    category: str | None = None
