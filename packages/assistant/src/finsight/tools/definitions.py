"""Tool definitions for LLM function calling against the analytics engine.

These schemas define the tools available to the assistant. Each tool maps to
one ``AnalyticsEngine`` operation, except ``search_documents`` which reads
document metadata.
"""

from typing import Any

_LOOKBACK_PERIODS = ["week", "month", "quarter", "year"]

# === Balance Tools ===

GET_NET_WORTH_TOOL: dict[str, Any] = {
    "name": "get_net_worth",
    "description": "Get the user's current net worth (assets minus liabilities)",
    "input_schema": {
        "type": "object",
        "properties": {},
        "required": [],
    },
}

GET_ACCOUNT_BALANCES_TOOL: dict[str, Any] = {
    "name": "get_account_balances",
    "description": "Get balances for all user accounts (bank accounts, manual accounts)",
    "input_schema": {
        "type": "object",
        "properties": {},
        "required": [],
    },
}

# === Transaction Tools ===

GET_SPENDING_BY_CATEGORY_TOOL: dict[str, Any] = {
    "name": "get_spending_by_category",
    "description": "Get spending breakdown by category for a specific time period",
    "input_schema": {
        "type": "object",
        "properties": {
            "period": {
                "type": "string",
                "enum": _LOOKBACK_PERIODS,
                "description": "Time period to analyze",
            },
            "category": {
                "type": "string",
                "description": "Specific category to filter by (optional)",
            },
        },
        "required": ["period"],
    },
}

GET_RECENT_TRANSACTIONS_TOOL: dict[str, Any] = {
    "name": "get_recent_transactions",
    "description": "Get recent transactions from the last 30 days with optional filtering",
    "input_schema": {
        "type": "object",
        "properties": {
            "limit": {
                "type": "integer",
                "description": "Number of transactions to return (default: 10)",
                "default": 10,
            },
            "category": {
                "type": "string",
                "description": "Filter by category",
            },
            "amount_min": {
                "type": "number",
                "description": "Minimum transaction amount",
            },
            "amount_max": {
                "type": "number",
                "description": "Maximum transaction amount",
            },
            "merchant": {
                "type": "string",
                "description": 'Search by merchant/business name (e.g., "Uber", "Starbucks", "Amazon")',
            },
        },
        "required": [],
    },
}

SEARCH_TRANSACTIONS_BY_MERCHANT_TOOL: dict[str, Any] = {
    "name": "search_transactions_by_merchant",
    "description": "Search transactions by merchant/business name with spending totals",
    "input_schema": {
        "type": "object",
        "properties": {
            "merchant": {
                "type": "string",
                "description": 'Merchant name to search for (e.g., "Uber", "Starbucks", "Amazon")',
            },
            "period": {
                "type": "string",
                "enum": _LOOKBACK_PERIODS,
                "description": "Time period to search (default: month)",
                "default": "month",
            },
            "limit": {
                "type": "integer",
                "description": "Number of transactions to return (default: 50)",
                "default": 50,
            },
        },
        "required": ["merchant"],
    },
}

GET_MONTHLY_SUMMARY_TOOL: dict[str, Any] = {
    "name": "get_monthly_summary",
    "description": "Get monthly income, expenses, and savings summary",
    "input_schema": {
        "type": "object",
        "properties": {
            "month": {
                "type": "string",
                "description": "Month to analyze (YYYY-MM format, default: current month)",
            },
        },
        "required": [],
    },
}

# === Advisory Tools ===

ANALYZE_DEBT_TO_INCOME_TOOL: dict[str, Any] = {
    "name": "analyze_debt_to_income_ratio",
    "description": "Calculate debt-to-income ratio and provide recommendations",
    "input_schema": {
        "type": "object",
        "properties": {
            "annual_income": {
                "type": "number",
                "description": (
                    "Annual income (optional, will estimate from transaction data "
                    "if not provided)"
                ),
            },
        },
        "required": [],
    },
}

ANALYZE_CASH_FLOW_TOOL: dict[str, Any] = {
    "name": "analyze_cash_flow",
    "description": "Analyze cash flow patterns and provide projections",
    "input_schema": {
        "type": "object",
        "properties": {
            "months": {
                "type": "integer",
                "description": "Number of months to analyze (default: 6)",
                "default": 6,
            },
            "projection_months": {
                "type": "integer",
                "description": "Number of months to project forward (default: 3)",
                "default": 3,
            },
        },
        "required": [],
    },
}

ANALYZE_SPENDING_PATTERNS_TOOL: dict[str, Any] = {
    "name": "analyze_spending_patterns",
    "description": "Analyze spending patterns and identify trends, anomalies, and opportunities",
    "input_schema": {
        "type": "object",
        "properties": {
            "analysis_period": {
                "type": "string",
                "enum": ["3_months", "6_months", "1_year"],
                "description": "Period to analyze spending patterns",
                "default": "6_months",
            },
        },
        "required": [],
    },
}

CALCULATE_EMERGENCY_FUND_TOOL: dict[str, Any] = {
    "name": "calculate_emergency_fund_status",
    "description": "Calculate emergency fund adequacy and recommendations",
    "input_schema": {
        "type": "object",
        "properties": {
            "target_months": {
                "type": "integer",
                "description": "Target months of expenses to save (default: 6)",
                "default": 6,
            },
        },
        "required": [],
    },
}

ANALYZE_FINANCIAL_HEALTH_TOOL: dict[str, Any] = {
    "name": "analyze_financial_health_score",
    "description": "Calculate comprehensive financial health score with detailed breakdown",
    "input_schema": {
        "type": "object",
        "properties": {},
        "required": [],
    },
}

# === Document Tools ===

SEARCH_DOCUMENTS_TOOL: dict[str, Any] = {
    "name": "search_documents",
    "description": (
        "Search the user's uploaded documents (statements, receipts, tax forms) by "
        "name or category. When a match is found, its file is shown to you in the "
        "next turn so you can read it."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Words to look for in the document name or category",
            },
            "category": {
                "type": "string",
                "description": "Restrict the search to one document category (optional)",
            },
        },
        "required": ["query"],
    },
}

# === Tool Collections ===

TOOL_CATALOG: list[dict[str, Any]] = [
    # Balances
    GET_NET_WORTH_TOOL,
    GET_ACCOUNT_BALANCES_TOOL,
    # Transactions
    GET_SPENDING_BY_CATEGORY_TOOL,
    GET_RECENT_TRANSACTIONS_TOOL,
    SEARCH_TRANSACTIONS_BY_MERCHANT_TOOL,
    GET_MONTHLY_SUMMARY_TOOL,
    # Advisory
    ANALYZE_DEBT_TO_INCOME_TOOL,
    ANALYZE_CASH_FLOW_TOOL,
    ANALYZE_SPENDING_PATTERNS_TOOL,
    CALCULATE_EMERGENCY_FUND_TOOL,
    ANALYZE_FINANCIAL_HEALTH_TOOL,
    # Documents
    SEARCH_DOCUMENTS_TOOL,
]
