"""Monthly aggregation package."""

from kakeibo.aggregation.monthly import (
    BudgetStatus,
    CategoryBudgetStatus,
    MonthlySummary,
    UnclassifiedCategoryError,
    budget_status,
    category_budget_statuses,
    filter_by_month,
    summarize_month,
)
from kakeibo.aggregation.report import format_share_summary, format_yen

__all__ = [
    "BudgetStatus",
    "CategoryBudgetStatus",
    "MonthlySummary",
    "UnclassifiedCategoryError",
    "budget_status",
    "category_budget_statuses",
    "filter_by_month",
    "format_share_summary",
    "format_yen",
    "summarize_month",
]
