"""
Record Store

Owns the household books: expenses, incomes, budgets and fixed-cost templates.

DESIGN DECISION: Every mutation is "change memory, then persist".
- Memory is the source of truth for the session
- A failed write is logged and NOT rolled back
- There is no retry; the next successful write of the same key catches up

On load, each key is restored independently. A key that cannot be read
or parsed falls back to its default and the other keys are unaffected.
Within a readable key, a single stale entry (an old category label) is
dropped and logged; it never takes its neighbours down with it.

Ordering: expenses and incomes are kept newest first. Python's sort is
stable, so records sharing a date keep their insertion order.
"""

from operator import attrgetter
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from kakeibo.audit import AuditLogger
from kakeibo.models.records import (
    Budgets,
    Expense,
    ExpenseDraft,
    FixedCostTemplate,
    Income,
    IncomeDraft,
    MonthSelector,
    new_record_id,
    parse_category,
)
from kakeibo.services.storage import (
    BUDGETS_KEY,
    EXPENSES_KEY,
    FIXED_COSTS_KEY,
    INCOMES_KEY,
    KeyValueStorageInterface,
    StorageError,
)


T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_EXPENSES = TypeAdapter(list[Expense])
_INCOMES = TypeAdapter(list[Income])
_BUDGETS = TypeAdapter(Budgets)
_FIXED_COSTS = TypeAdapter(list[FixedCostTemplate])

_RAW_LIST = TypeAdapter(list[dict[str, Any]])
_RAW_OBJECT = TypeAdapter(dict[str, Any])


class RecordNotFoundError(LookupError):
    """Raised when an expense, income or fixed cost cannot be located."""

    def __init__(self, record_type: str, record_id: str):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} not found: {record_id}")


def _newest_first(records: list[T]) -> list[T]:
    return sorted(records, key=attrgetter("date"), reverse=True)


class RecordStore:
    """
    In-memory ledger persisted to a key/value backend.

    Records handed out are immutable models; edits go through the
    update methods, which swap in a new record with the same id.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        autoload: bool = True,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()

        self._expenses: list[Expense] = []
        self._incomes: list[Income] = []
        self._budgets = Budgets()
        self._fixed_costs: list[FixedCostTemplate] = []

        if autoload:
            self.load()

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def expenses(self) -> list[Expense]:
        return list(self._expenses)

    @property
    def incomes(self) -> list[Income]:
        return list(self._incomes)

    @property
    def budgets(self) -> Budgets:
        return self._budgets.model_copy(deep=True)

    @property
    def fixed_costs(self) -> list[FixedCostTemplate]:
        return list(self._fixed_costs)

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self._expenses if e.id == expense_id), None)

    def get_income(self, income_id: str) -> Optional[Income]:
        return next((i for i in self._incomes if i.id == income_id), None)

    def get_fixed_cost(self, template_id: str) -> Optional[FixedCostTemplate]:
        return next((t for t in self._fixed_costs if t.id == template_id), None)

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Restore every collection from storage, key by key."""
        self._expenses = _newest_first(self._restore_list(EXPENSES_KEY, Expense))
        self._incomes = _newest_first(self._restore_list(INCOMES_KEY, Income))
        self._budgets = self._restore_budgets()
        self._fixed_costs = self._restore_list(FIXED_COSTS_KEY, FixedCostTemplate)

        self._audit_logger.log_store_loaded({
            "expenses": len(self._expenses),
            "incomes": len(self._incomes),
            "fixed_costs": len(self._fixed_costs),
        })

    def _read(self, key: str) -> Optional[str]:
        """Raw stored text, or None when missing or unreadable (after logging)."""
        try:
            return self._storage.read(key)
        except StorageError as e:
            self._audit_logger.log_storage_read_failed(key, str(e))
            return None

    def _restore_list(self, key: str, model: type[M]) -> list[M]:
        """
        Restore a list entry by entry.

        An entry that no longer validates (e.g. a template whose category
        left the taxonomy) is dropped and logged; the others are kept.
        """
        raw = self._read(key)
        if raw is None:
            return []

        try:
            entries = _RAW_LIST.validate_json(raw)
        except ValidationError as e:
            self._audit_logger.log_storage_read_failed(key, str(e))
            return []

        restored = []
        for entry in entries:
            try:
                restored.append(model.model_validate(entry))
            except ValidationError as e:
                self._audit_logger.log_stored_entry_dropped(
                    key, str(entry.get("id", "?")), str(e)
                )
        return restored

    def _restore_budgets(self) -> Budgets:
        """
        Restore budgets, dropping per-category limits for labels that are
        no longer categories. The overall limit and other limits are kept.
        """
        raw = self._read(BUDGETS_KEY)
        if raw is None:
            return Budgets()

        try:
            data = _RAW_OBJECT.validate_json(raw)
            categories = _RAW_OBJECT.validate_python(data.get("categories") or {})

            known = {}
            for label, limit in categories.items():
                if parse_category(label) is None:
                    self._audit_logger.log_stored_entry_dropped(
                        BUDGETS_KEY, label, "Unknown budget category"
                    )
                else:
                    known[label] = limit

            return Budgets(overall=data.get("overall", 0), categories=known)
        except ValidationError as e:
            self._audit_logger.log_storage_read_failed(BUDGETS_KEY, str(e))
            return Budgets()

    def _persist(self, key: str, adapter: TypeAdapter, value) -> bool:
        """Write one key. Returns False (after logging) if the backend failed."""
        try:
            self._storage.write(key, adapter.dump_json(value).decode("utf-8"))
        except StorageError as e:
            self._audit_logger.log_storage_write_failed(key, str(e))
            return False
        return True

    def _save_expenses(self) -> None:
        self._persist(EXPENSES_KEY, _EXPENSES, self._expenses)

    def _save_incomes(self) -> None:
        self._persist(INCOMES_KEY, _INCOMES, self._incomes)

    def _save_fixed_costs(self) -> None:
        self._persist(FIXED_COSTS_KEY, _FIXED_COSTS, self._fixed_costs)

    # =========================================================================
    # Expenses
    # =========================================================================

    def add_expense(self, draft: ExpenseDraft) -> Expense:
        """Insert a new expense with a fresh id."""
        expense = Expense.from_draft(draft)
        self._expenses = _newest_first([*self._expenses, expense])
        self._save_expenses()
        self._audit_logger.log_record_added("expense", expense.id, expense.amount)
        return expense

    def update_expense(self, expense_id: str, draft: ExpenseDraft) -> Expense:
        """
        Replace every field except the id.

        Raises:
            RecordNotFoundError: If no expense has this id
        """
        current = self.get_expense(expense_id)
        if current is None:
            raise RecordNotFoundError("expense", expense_id)

        updated = Expense.from_draft(
            draft,
            record_id=expense_id,
            fixed_cost_id=current.fixed_cost_id,
        )
        self._expenses = _newest_first(
            [updated if e.id == expense_id else e for e in self._expenses]
        )
        self._save_expenses()
        self._audit_logger.log_record_updated("expense", expense_id, updated.amount)
        return updated

    def delete_expense(self, expense_id: str) -> bool:
        """Remove an expense. Unknown ids are a no-op returning False."""
        remaining = [e for e in self._expenses if e.id != expense_id]
        if len(remaining) == len(self._expenses):
            return False
        self._expenses = remaining
        self._save_expenses()
        self._audit_logger.log_record_deleted("expense", expense_id)
        return True

    # =========================================================================
    # Incomes
    # =========================================================================

    def add_income(self, draft: IncomeDraft) -> Income:
        """Insert a new income with a fresh id."""
        income = Income.from_draft(draft)
        self._incomes = _newest_first([*self._incomes, income])
        self._save_incomes()
        self._audit_logger.log_record_added("income", income.id, income.amount)
        return income

    def update_income(self, income_id: str, draft: IncomeDraft) -> Income:
        """
        Replace every field except the id.

        Raises:
            RecordNotFoundError: If no income has this id
        """
        if self.get_income(income_id) is None:
            raise RecordNotFoundError("income", income_id)

        updated = Income.from_draft(draft, record_id=income_id)
        self._incomes = _newest_first(
            [updated if i.id == income_id else i for i in self._incomes]
        )
        self._save_incomes()
        self._audit_logger.log_record_updated("income", income_id, updated.amount)
        return updated

    def delete_income(self, income_id: str) -> bool:
        """Remove an income. Unknown ids are a no-op returning False."""
        remaining = [i for i in self._incomes if i.id != income_id]
        if len(remaining) == len(self._incomes):
            return False
        self._incomes = remaining
        self._save_incomes()
        self._audit_logger.log_record_deleted("income", income_id)
        return True

    # =========================================================================
    # Budgets
    # =========================================================================

    def save_budgets(self, budgets: Budgets) -> None:
        """Replace the budget configuration wholesale."""
        self._budgets = budgets.model_copy(deep=True)
        self._persist(BUDGETS_KEY, _BUDGETS, self._budgets)
        self._audit_logger.log_budgets_saved(
            self._budgets.overall,
            sum(1 for amount in self._budgets.categories.values() if amount > 0),
        )

    # =========================================================================
    # Fixed costs
    # =========================================================================

    def add_fixed_cost(self, template: FixedCostTemplate) -> FixedCostTemplate:
        """Register a recurring monthly cost."""
        if self.get_fixed_cost(template.id) is not None:
            template = template.model_copy(update={"id": new_record_id()})
        self._fixed_costs = [*self._fixed_costs, template]
        self._save_fixed_costs()
        self._audit_logger.log_fixed_cost_saved(
            template.id, template.amount, template.category.value
        )
        return template

    def update_fixed_cost(
        self,
        template_id: str,
        template: FixedCostTemplate,
    ) -> FixedCostTemplate:
        """
        Replace a template's amount, category and description.

        Raises:
            RecordNotFoundError: If no template has this id
        """
        if self.get_fixed_cost(template_id) is None:
            raise RecordNotFoundError("fixed_cost", template_id)

        updated = template.model_copy(update={"id": template_id})
        self._fixed_costs = [
            updated if t.id == template_id else t for t in self._fixed_costs
        ]
        self._save_fixed_costs()
        self._audit_logger.log_fixed_cost_saved(
            template_id, updated.amount, updated.category.value
        )
        return updated

    def delete_fixed_cost(self, template_id: str) -> bool:
        """Remove a template. Expenses already posted from it are kept."""
        remaining = [t for t in self._fixed_costs if t.id != template_id]
        if len(remaining) == len(self._fixed_costs):
            return False
        self._fixed_costs = remaining
        self._save_fixed_costs()
        self._audit_logger.log_fixed_cost_deleted(template_id)
        return True

    def unposted_fixed_costs(self, month: MonthSelector) -> list[FixedCostTemplate]:
        """Templates that have no expense in the given month yet."""
        posted = {
            e.fixed_cost_id
            for e in self._expenses
            if e.fixed_cost_id is not None and month.contains(e.date)
        }
        return [t for t in self._fixed_costs if t.id not in posted]

    def post_fixed_costs(self, month: MonthSelector) -> list[Expense]:
        """
        Create this month's expense for every template not yet posted.

        Running it twice for the same month posts nothing the second time.
        """
        new_expenses = [
            Expense.from_draft(template.to_draft(month), fixed_cost_id=template.id)
            for template in self.unposted_fixed_costs(month)
        ]
        if not new_expenses:
            return []

        self._expenses = _newest_first([*self._expenses, *new_expenses])
        self._save_expenses()
        self._audit_logger.log_fixed_costs_posted(month.label, len(new_expenses))
        return new_expenses
