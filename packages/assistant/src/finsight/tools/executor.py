"""Tool executor that bridges LLM tool calls to the analytics engine."""

import asyncio
import json
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from finsight.analytics.engine import AnalyticsEngine
from finsight.models import ToolCall
from finsight.tools.arguments import (
    CashFlowArgs,
    DebtToIncomeArgs,
    DocumentSearchArgs,
    EmergencyFundArgs,
    MerchantSearchArgs,
    MonthlySummaryArgs,
    NoArguments,
    RecentTransactionsArgs,
    SpendingByCategoryArgs,
    SpendingPatternsArgs,
    ToolArguments,
)
from finsight.tools.definitions import TOOL_CATALOG
from finsight.tools.documents import DocumentSearcher

logger = structlog.get_logger(__name__)

EXECUTION_FAILED = "Failed to execute function"
VISION_READ = "vision_read"


class ToolName(str, Enum):
    """Every tool the assistant can call."""

    GET_NET_WORTH = "get_net_worth"
    GET_ACCOUNT_BALANCES = "get_account_balances"
    GET_SPENDING_BY_CATEGORY = "get_spending_by_category"
    GET_RECENT_TRANSACTIONS = "get_recent_transactions"
    SEARCH_TRANSACTIONS_BY_MERCHANT = "search_transactions_by_merchant"
    GET_MONTHLY_SUMMARY = "get_monthly_summary"
    ANALYZE_DEBT_TO_INCOME_RATIO = "analyze_debt_to_income_ratio"
    ANALYZE_CASH_FLOW = "analyze_cash_flow"
    ANALYZE_SPENDING_PATTERNS = "analyze_spending_patterns"
    CALCULATE_EMERGENCY_FUND_STATUS = "calculate_emergency_fund_status"
    ANALYZE_FINANCIAL_HEALTH_SCORE = "analyze_financial_health_score"
    SEARCH_DOCUMENTS = "search_documents"


Handler = Callable[[str, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolBinding:
    """Argument model and handler for one tool."""

    arguments: type[ToolArguments]
    handler: Handler


@dataclass
class ToolResult:
    """Outcome of one tool call; exactly one of payload or error is meaningful."""

    tool_call_id: str
    name: str
    payload: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def content(self) -> str:
        """JSON text sent back to the model as the tool message."""
        body = self.payload if self.ok else {"error": self.error}
        return json.dumps(body, default=str)


class ToolRegistrationError(Exception):
    """The tool catalog and the handler registry disagree."""


def validate_registry(
    catalog: Iterable[Mapping[str, Any]], bindings: Mapping[ToolName, ToolBinding]
) -> None:
    """Check that every catalog schema matches its binding's argument model.

    Raises:
        ToolRegistrationError: On missing tools, extra tools, or schema drift.
    """
    descriptors = {tool["name"]: tool for tool in catalog}
    bound = {name.value for name in bindings}

    missing = sorted(set(descriptors) - bound)
    if missing:
        raise ToolRegistrationError(f"Tools without a handler: {', '.join(missing)}")
    unlisted = sorted(bound - set(descriptors))
    if unlisted:
        raise ToolRegistrationError(f"Handlers without a catalog entry: {', '.join(unlisted)}")

    for name, binding in bindings.items():
        schema = descriptors[name.value]["input_schema"]
        fields = binding.arguments.model_fields
        properties = set(schema.get("properties", {}))
        if properties != set(fields):
            raise ToolRegistrationError(
                f"{name.value}: schema properties {sorted(properties)} "
                f"do not match arguments {sorted(fields)}"
            )
        required = set(schema.get("required", []))
        model_required = {field for field, info in fields.items() if info.is_required()}
        if required != model_required:
            raise ToolRegistrationError(
                f"{name.value}: schema requires {sorted(required)} "
                f"but arguments require {sorted(model_required)}"
            )


class ToolExecutor:
    """Executes LLM tool calls against the analytics engine and documents."""

    def __init__(
        self,
        engine: AnalyticsEngine,
        documents: DocumentSearcher,
        catalog: list[dict[str, Any]] | None = None,
    ):
        self.engine = engine
        self.documents = documents
        self.catalog = catalog if catalog is not None else TOOL_CATALOG
        self._tool_handlers: dict[ToolName, ToolBinding] = {
            # Balances
            ToolName.GET_NET_WORTH: ToolBinding(NoArguments, self._get_net_worth),
            ToolName.GET_ACCOUNT_BALANCES: ToolBinding(NoArguments, self._get_account_balances),
            # Transactions
            ToolName.GET_SPENDING_BY_CATEGORY: ToolBinding(
                SpendingByCategoryArgs, self._get_spending_by_category
            ),
            ToolName.GET_RECENT_TRANSACTIONS: ToolBinding(
                RecentTransactionsArgs, self._get_recent_transactions
            ),
            ToolName.SEARCH_TRANSACTIONS_BY_MERCHANT: ToolBinding(
                MerchantSearchArgs, self._search_transactions_by_merchant
            ),
            ToolName.GET_MONTHLY_SUMMARY: ToolBinding(
                MonthlySummaryArgs, self._get_monthly_summary
            ),
            # Advisory
            ToolName.ANALYZE_DEBT_TO_INCOME_RATIO: ToolBinding(
                DebtToIncomeArgs, self._analyze_debt_to_income_ratio
            ),
            ToolName.ANALYZE_CASH_FLOW: ToolBinding(CashFlowArgs, self._analyze_cash_flow),
            ToolName.ANALYZE_SPENDING_PATTERNS: ToolBinding(
                SpendingPatternsArgs, self._analyze_spending_patterns
            ),
            ToolName.CALCULATE_EMERGENCY_FUND_STATUS: ToolBinding(
                EmergencyFundArgs, self._calculate_emergency_fund_status
            ),
            ToolName.ANALYZE_FINANCIAL_HEALTH_SCORE: ToolBinding(
                NoArguments, self._analyze_financial_health_score
            ),
            # Documents
            ToolName.SEARCH_DOCUMENTS: ToolBinding(DocumentSearchArgs, self._search_documents),
        }
        validate_registry(self.catalog, self._tool_handlers)

    async def execute(
        self,
        tool_name: str,
        user_id: str,
        arguments: Mapping[str, Any] | None = None,
        call_id: str = "",
    ) -> ToolResult:
        """Execute one tool call; errors are returned, never raised."""
        try:
            name = ToolName(tool_name)
        except ValueError:
            logger.warning("unknown_tool", tool=tool_name, user_id=user_id)
            return ToolResult(call_id, tool_name, error=f"Unknown function: {tool_name}")

        binding = self._tool_handlers[name]
        logger.info("executing_tool", tool=tool_name, user_id=user_id, args=arguments)

        try:
            args = binding.arguments.model_validate(dict(arguments or {}))
            payload = await binding.handler(user_id, args)
        except ValidationError as e:
            logger.warning(
                "tool_arguments_invalid", tool=tool_name, user_id=user_id, errors=e.errors()
            )
            return ToolResult(call_id, tool_name, error=EXECUTION_FAILED)
        except Exception:
            logger.exception("tool_execution_error", tool=tool_name, user_id=user_id)
            return ToolResult(call_id, tool_name, error=EXECUTION_FAILED)

        logger.info("tool_executed", tool=tool_name, user_id=user_id, success=True)
        return ToolResult(call_id, tool_name, payload=payload)

    async def execute_all(self, calls: list[ToolCall], user_id: str) -> list[ToolResult]:
        """Run every call of a round concurrently; results keep call order."""
        return list(
            await asyncio.gather(
                *(self.execute(call.name, user_id, call.arguments, call.id) for call in calls)
            )
        )

    # === Balance Handlers ===

    async def _get_net_worth(self, user_id: str, args: NoArguments) -> dict[str, Any]:
        return await self.engine.net_worth(user_id)

    async def _get_account_balances(
        self, user_id: str, args: NoArguments
    ) -> list[dict[str, Any]]:
        return await self.engine.account_balances(user_id)

    # === Transaction Handlers ===

    async def _get_spending_by_category(
        self, user_id: str, args: SpendingByCategoryArgs
    ) -> list[dict[str, Any]]:
        return await self.engine.spending_by_category(user_id, args.period, args.category)

    async def _get_recent_transactions(
        self, user_id: str, args: RecentTransactionsArgs
    ) -> list[dict[str, Any]]:
        return await self.engine.recent_transactions(
            user_id,
            limit=args.limit,
            category=args.category,
            merchant=args.merchant,
            amount_min=args.amount_min,
            amount_max=args.amount_max,
        )

    async def _search_transactions_by_merchant(
        self, user_id: str, args: MerchantSearchArgs
    ) -> dict[str, Any]:
        return await self.engine.search_by_merchant(
            user_id, args.merchant, period=args.period, limit=args.limit
        )

    async def _get_monthly_summary(
        self, user_id: str, args: MonthlySummaryArgs
    ) -> dict[str, Any]:
        return await self.engine.monthly_summary(user_id, args.month)

    # === Advisory Handlers ===

    async def _analyze_debt_to_income_ratio(
        self, user_id: str, args: DebtToIncomeArgs
    ) -> dict[str, Any]:
        return await self.engine.debt_to_income_ratio(user_id, args.annual_income)

    async def _analyze_cash_flow(self, user_id: str, args: CashFlowArgs) -> dict[str, Any]:
        return await self.engine.cash_flow_analysis(
            user_id, months=args.months, projection_months=args.projection_months
        )

    async def _analyze_spending_patterns(
        self, user_id: str, args: SpendingPatternsArgs
    ) -> dict[str, Any]:
        return await self.engine.spending_pattern_analysis(user_id, args.analysis_period)

    async def _calculate_emergency_fund_status(
        self, user_id: str, args: EmergencyFundArgs
    ) -> dict[str, Any]:
        return await self.engine.emergency_fund_status(user_id, args.target_months)

    async def _analyze_financial_health_score(
        self, user_id: str, args: NoArguments
    ) -> dict[str, Any]:
        return await self.engine.financial_health_score(user_id)

    # === Document Handlers ===

    async def _search_documents(self, user_id: str, args: DocumentSearchArgs) -> dict[str, Any]:
        matches = await self.documents.search(user_id, args.query, category=args.category)
        payload: dict[str, Any] = {
            "documents": [document.to_dict() for document in matches],
            "count": len(matches),
        }
        if matches:
            # Signals the orchestrator to show the first match to the model.
            payload["next_step"] = VISION_READ
            payload["url"] = matches[0].url
            payload["file_type"] = matches[0].file_type
        return payload
