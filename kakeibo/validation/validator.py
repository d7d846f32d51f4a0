"""
Form Validation

DESIGN DECISION: Everything a user types is validated BEFORE the record
store is touched. A submission with any error-level issue never reaches
the store.

Validation produces field-level issues so the UI can show each message
next to the field it belongs to:
- "error" blocks the save (non-positive amount, missing description...)
- "warning" is shown but does not block (date far in the future...)

IMPORTANT: Validation NEVER silently fixes values. The one exception is
the budget form, where a blank field means "unset" (0).
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from kakeibo.config import AppSettings, get_settings
from kakeibo.models.records import (
    CATEGORY_EXPENSE_TYPE,
    Budgets,
    Category,
    ExpenseDraft,
    ExpenseType,
    FixedCostTemplate,
    IncomeDraft,
    ValidationIssue,
    ValidationResult,
    parse_category,
)


class RecordValidator:
    """Validates expense, income, budget and fixed-cost form input."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # =========================================================================
    # Field checks
    # =========================================================================

    def _parse_amount(
        self,
        value: Any,
        issues: list[ValidationIssue],
        field: str = "amount",
        allow_zero: bool = False,
    ) -> Optional[int]:
        """Parse a yen amount. Appends issues and returns None when invalid."""
        if value is None or (isinstance(value, str) and not value.strip()):
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message="Please enter an amount",
                severity="error",
            ))
            return None

        try:
            amount = Decimal(str(value).replace(",", "").replace("¥", "").strip())
        except InvalidOperation:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Please enter a valid number",
                severity="error",
            ))
            return None

        if not amount.is_finite():
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Please enter a valid number",
                severity="error",
            ))
            return None

        if amount != amount.to_integral_value():
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amounts are in whole yen",
                severity="error",
            ))
            return None

        amount_int = int(amount)
        if amount_int < 0 or (amount_int == 0 and not allow_zero):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=(
                    "Amount cannot be negative" if allow_zero
                    else "Please enter a positive amount"
                ),
                severity="error",
            ))
            return None

        if amount_int > self._settings.max_amount_yen:
            issues.append(ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"¥{amount_int:,} seems unusually high",
                severity="warning",
            ))

        return amount_int

    def _parse_date(
        self,
        value: Any,
        issues: list[ValidationIssue],
    ) -> Optional[date]:
        if isinstance(value, date):
            parsed = value
        elif isinstance(value, str) and value.strip():
            try:
                parsed = date.fromisoformat(value.strip())
            except ValueError:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="invalid_format",
                    message="Please enter the date as YYYY-MM-DD",
                    severity="error",
                ))
                return None
        else:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Please enter a date",
                severity="error",
            ))
            return None

        max_future = date.today() + timedelta(days=self._settings.future_date_tolerance_days)
        if parsed > max_future:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"{parsed.isoformat()} is in the future",
                severity="warning",
            ))
        return parsed

    def _parse_category(
        self,
        value: Any,
        issues: list[ValidationIssue],
        fixed_only: bool = False,
    ) -> Optional[Category]:
        category = value if isinstance(value, Category) else parse_category(str(value or ""))
        if category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message="Please choose a category",
                severity="error",
            ))
            return None

        if fixed_only and CATEGORY_EXPENSE_TYPE[category] is not ExpenseType.FIXED:
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"{category.value} is not a fixed-cost category",
                severity="error",
            ))
            return None
        return category

    def _clean_text(
        self,
        value: Any,
        issues: list[ValidationIssue],
        required: bool,
        field: str = "description",
    ) -> str:
        text = str(value or "").strip()
        if required and not text:
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message="Please enter a description",
                severity="error",
            ))
        elif len(text) > 500:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_long",
                message="Description must be 500 characters or fewer",
                severity="error",
            ))
        return text

    # =========================================================================
    # Forms
    # =========================================================================

    def validate_expense(
        self,
        amount: Any,
        date_value: Any,
        category: Any,
        description: Any,
    ) -> tuple[Optional[ExpenseDraft], ValidationResult]:
        """Validate the expense form. The draft is None when any error was found."""
        issues: list[ValidationIssue] = []

        parsed_amount = self._parse_amount(amount, issues)
        parsed_date = self._parse_date(date_value, issues)
        parsed_category = self._parse_category(category, issues)
        text = self._clean_text(description, issues, required=True)

        result = ValidationResult(issues=issues)
        if result.has_errors:
            return None, result

        return ExpenseDraft(
            date=parsed_date,
            amount=parsed_amount,
            category=parsed_category,
            description=text,
        ), result

    def validate_income(
        self,
        amount: Any,
        date_value: Any,
        description: Any,
    ) -> tuple[Optional[IncomeDraft], ValidationResult]:
        """Validate the income form. Description is optional for incomes."""
        issues: list[ValidationIssue] = []

        parsed_amount = self._parse_amount(amount, issues)
        parsed_date = self._parse_date(date_value, issues)
        text = self._clean_text(description, issues, required=False)

        result = ValidationResult(issues=issues)
        if result.has_errors:
            return None, result

        return IncomeDraft(
            date=parsed_date,
            amount=parsed_amount,
            description=text,
        ), result

    def validate_fixed_cost(
        self,
        amount: Any,
        category: Any,
        description: Any,
    ) -> tuple[Optional[FixedCostTemplate], ValidationResult]:
        """Validate the fixed-cost form; only fixed categories are allowed."""
        issues: list[ValidationIssue] = []

        parsed_amount = self._parse_amount(amount, issues)
        parsed_category = self._parse_category(category, issues, fixed_only=True)
        text = self._clean_text(description, issues, required=False)

        result = ValidationResult(issues=issues)
        if result.has_errors:
            return None, result

        return FixedCostTemplate(
            amount=parsed_amount,
            category=parsed_category,
            description=text,
        ), result

    def validate_budgets(
        self,
        overall: Any,
        categories: Mapping[Any, Any],
    ) -> tuple[Optional[Budgets], ValidationResult]:
        """
        Validate the budget form.

        Blank fields mean "unset" and become 0. Category budgets that
        add up to more than the overall budget only produce a warning.
        """
        issues: list[ValidationIssue] = []

        def parse_limit(value: Any, field: str) -> int:
            if value is None or (isinstance(value, str) and not value.strip()):
                return 0
            parsed = self._parse_amount(value, issues, field=field, allow_zero=True)
            return parsed or 0

        overall_limit = parse_limit(overall, "overall")

        category_limits: dict[str, int] = {}
        for key, value in categories.items():
            category = key if isinstance(key, Category) else parse_category(str(key))
            if category is None:
                issues.append(ValidationIssue(
                    field=f"categories.{key}",
                    issue_type="invalid_value",
                    message=f"Unknown category: {key}",
                    severity="error",
                ))
                continue
            limit = parse_limit(value, f"categories.{category.value}")
            if limit > 0:
                category_limits[category.value] = limit

        if overall_limit > 0 and sum(category_limits.values()) > overall_limit:
            issues.append(ValidationIssue(
                field="categories",
                issue_type="inconsistent",
                message="Category budgets add up to more than the overall budget",
                severity="warning",
            ))

        result = ValidationResult(issues=issues)
        if result.has_errors:
            return None, result

        return Budgets(overall=overall_limit, categories=category_limits), result
