"""
Monthly Aggregation

Pure functions for the month view. No I/O, no side effects,
and inputs are never mutated; results are rebuilt on every call.

Given all records, a month, the budgets and the category -> type lookup,
this produces the monthly totals, the per-category breakdown, the
fixed/variable split and budget progress.

DESIGN DECISION: An expense whose category is not in the lookup
(a stale label from an older taxonomy) still counts toward the totals
and its category entry, is added to variable cost, and is reported
in `unclassified_categories` so the caller can log it.
With `strict=True` such an expense raises UnclassifiedCategoryError
instead (debug mode).
"""

from typing import Iterable, Mapping, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from kakeibo.models.records import (
    CATEGORY_EXPENSE_TYPE,
    Budgets,
    Category,
    Expense,
    ExpenseType,
    Income,
    MonthSelector,
)


R = TypeVar("R", Expense, Income)


class UnclassifiedCategoryError(ValueError):
    """An expense carries a category label outside the taxonomy."""

    def __init__(self, label: str, expense_id: str):
        self.label = label
        self.expense_id = expense_id
        super().__init__(f"Expense {expense_id} has unclassified category '{label}'")


class BudgetStatus(BaseModel):
    """Spending measured against one ceiling."""
    model_config = ConfigDict(frozen=True)

    spent: int
    limit: int = Field(ge=0, description="Ceiling in yen, 0 when unset")
    remaining: int
    progress: float = Field(description="Percent of the ceiling used, 0 when unset")

    @property
    def is_set(self) -> bool:
        return self.limit > 0

    @property
    def is_over(self) -> bool:
        return self.is_set and self.spent > self.limit


class CategoryBudgetStatus(BudgetStatus):
    category: str


class MonthlySummary(BaseModel):
    """Everything the month view shows, derived from the raw records."""
    model_config = ConfigDict(frozen=True)

    month: MonthSelector
    expenses: list[Expense]
    incomes: list[Income]

    total_spent: int
    total_income: int
    balance: int

    category_totals: dict[str, int]
    fixed_cost: int
    variable_cost: int
    unclassified_categories: list[str] = Field(default_factory=list)

    overall_budget: BudgetStatus
    category_budgets: list[CategoryBudgetStatus] = Field(default_factory=list)

    @property
    def remaining_budget(self) -> int:
        return self.overall_budget.remaining

    @property
    def budget_progress(self) -> float:
        return self.overall_budget.progress

    @property
    def is_empty(self) -> bool:
        return not self.expenses and not self.incomes

    def category_breakdown(self) -> list[tuple[str, int]]:
        """Category totals, largest first (ties keep taxonomy order)."""
        order = {c.value: i for i, c in enumerate(Category)}
        return sorted(
            self.category_totals.items(),
            key=lambda item: (-item[1], order.get(item[0], len(order)), item[0]),
        )


def filter_by_month(records: Iterable[R], month: MonthSelector) -> list[R]:
    """Records dated within the month, first and last day included."""
    start, end = month.first_day, month.last_day
    return [r for r in records if start <= r.date <= end]


def budget_status(spent: int, limit: int) -> BudgetStatus:
    """
    Remaining amount and percent used for one ceiling.

    A limit of 0 means "unset": progress is 0 rather than a division error.
    """
    progress = (spent / limit) * 100 if limit > 0 else 0.0
    return BudgetStatus(
        spent=spent,
        limit=limit,
        remaining=limit - spent,
        progress=progress,
    )


def category_budget_statuses(
    category_totals: Mapping[str, int],
    budgets: Budgets,
) -> list[CategoryBudgetStatus]:
    """
    One status per category that has a ceiling or has spending.

    Taxonomy order first, then any stale labels alphabetically.
    """
    labels = [c.value for c in Category]
    labels += sorted(set(category_totals) - set(labels))

    statuses = []
    for label in labels:
        spent = category_totals.get(label, 0)
        limit = budgets.limit_for(label)
        if spent == 0 and limit == 0:
            continue
        status = budget_status(spent, limit)
        statuses.append(CategoryBudgetStatus(category=label, **status.model_dump()))
    return statuses


def summarize_month(
    expenses: Sequence[Expense],
    incomes: Sequence[Income],
    month: MonthSelector,
    budgets: Optional[Budgets] = None,
    type_lookup: Mapping[Category, ExpenseType] = CATEGORY_EXPENSE_TYPE,
    strict: bool = False,
) -> MonthlySummary:
    """
    Derive the month view from the full record collections.

    Empty months produce zero totals and an empty category mapping.

    Raises:
        UnclassifiedCategoryError: strict is set and an expense in the month
            has a category outside type_lookup
    """
    budgets = budgets or Budgets()

    monthly_expenses = filter_by_month(expenses, month)
    monthly_incomes = filter_by_month(incomes, month)

    total_spent = sum(e.amount for e in monthly_expenses)
    total_income = sum(i.amount for i in monthly_incomes)

    category_totals: dict[str, int] = {}
    fixed_cost = 0
    variable_cost = 0
    unclassified: list[str] = []

    for expense in monthly_expenses:
        category_totals[expense.category] = (
            category_totals.get(expense.category, 0) + expense.amount
        )

        expense_type = _lookup_type(expense.category, type_lookup)
        if expense_type is None and strict:
            raise UnclassifiedCategoryError(expense.category, expense.id)
        if expense_type is ExpenseType.FIXED:
            fixed_cost += expense.amount
        else:
            variable_cost += expense.amount
            if expense_type is None and expense.category not in unclassified:
                unclassified.append(expense.category)

    return MonthlySummary(
        month=month,
        expenses=monthly_expenses,
        incomes=monthly_incomes,
        total_spent=total_spent,
        total_income=total_income,
        balance=total_income - total_spent,
        category_totals=category_totals,
        fixed_cost=fixed_cost,
        variable_cost=variable_cost,
        unclassified_categories=unclassified,
        overall_budget=budget_status(total_spent, budgets.overall),
        category_budgets=category_budget_statuses(category_totals, budgets),
    )


def _lookup_type(
    label: str,
    type_lookup: Mapping[Category, ExpenseType],
) -> Optional[ExpenseType]:
    try:
        return type_lookup.get(Category(label))
    except ValueError:
        return None
