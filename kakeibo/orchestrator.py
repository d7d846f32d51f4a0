"""
Main Orchestrator for Kakeibo

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger edits (form input -> validate -> store)
2. The month view (store -> aggregate)
3. The assistant (receipt scan, savings tips, sale search)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- Agent output only pre-fills forms; the user saves it
- Every failure ends here as a message; the session stays usable
"""

from typing import Any, Mapping, Optional

from pydantic import ValidationError

from kakeibo.agents import (
    AIUnavailableError,
    ReceiptAnalysisError,
    ReceiptScannerAgent,
    SalesInfoAgent,
    SalesInfoError,
    SavingsAdvisorAgent,
)
from kakeibo.aggregation import (
    MonthlySummary,
    UnclassifiedCategoryError,
    format_share_summary,
    summarize_month,
)
from kakeibo.audit import AuditLogger, create_correlation_id
from kakeibo.config import AppSettings, Settings, get_settings
from kakeibo.models.records import (
    Budgets,
    Expense,
    FixedCostTemplate,
    Income,
    MonthSelector,
    ReceiptExtraction,
    ReceiptImage,
    SalesInfo,
    SalesLocation,
    ValidationIssue,
    ValidationResult,
)
from kakeibo.services.image import ReceiptImageError, prepare_receipt_image
from kakeibo.services.storage import (
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorageInterface,
)
from kakeibo.store import RecordNotFoundError, RecordStore
from kakeibo.validation import RecordValidator


def _not_found(record_type: str) -> ValidationResult:
    return ValidationResult(issues=[ValidationIssue(
        field="id",
        issue_type="not_found",
        message=f"This {record_type} no longer exists",
        severity="error",
    )])


class LedgerFlow:
    """
    Orchestrates edits to the household books and the month view.

    Every submit_* method returns (saved_record_or_None, ValidationResult).
    None means nothing was written.
    """

    def __init__(
        self,
        store: RecordStore,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        strict_categories: bool = False,
    ):
        self._store = store
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._strict_categories = strict_categories

    @property
    def store(self) -> RecordStore:
        return self._store

    def _rejected(self, form: str, result: ValidationResult) -> None:
        self._audit_logger.log_validation_failed(
            form,
            [issue.model_dump() for issue in result.issues if issue.severity == "error"],
        )

    def submit_expense(
        self,
        amount: Any,
        date_value: Any,
        category: Any,
        description: Any,
        expense_id: Optional[str] = None,
    ) -> tuple[Optional[Expense], ValidationResult]:
        """Add a new expense, or replace the one with `expense_id`."""
        draft, result = self._validator.validate_expense(
            amount, date_value, category, description
        )
        if draft is None:
            self._rejected("expense", result)
            return None, result

        if expense_id is None:
            return self._store.add_expense(draft), result

        try:
            return self._store.update_expense(expense_id, draft), result
        except RecordNotFoundError:
            return None, _not_found("expense")

    def submit_income(
        self,
        amount: Any,
        date_value: Any,
        description: Any,
        income_id: Optional[str] = None,
    ) -> tuple[Optional[Income], ValidationResult]:
        """Add a new income, or replace the one with `income_id`."""
        draft, result = self._validator.validate_income(amount, date_value, description)
        if draft is None:
            self._rejected("income", result)
            return None, result

        if income_id is None:
            return self._store.add_income(draft), result

        try:
            return self._store.update_income(income_id, draft), result
        except RecordNotFoundError:
            return None, _not_found("income")

    def delete_expense(self, expense_id: str) -> bool:
        return self._store.delete_expense(expense_id)

    def delete_income(self, income_id: str) -> bool:
        return self._store.delete_income(income_id)

    def save_budgets(
        self,
        overall: Any,
        categories: Mapping[Any, Any],
    ) -> tuple[Optional[Budgets], ValidationResult]:
        """Validate the budget form and replace the saved budgets wholesale."""
        budgets, result = self._validator.validate_budgets(overall, categories)
        if budgets is None:
            self._rejected("budgets", result)
            return None, result

        self._store.save_budgets(budgets)
        return budgets, result

    def submit_fixed_cost(
        self,
        amount: Any,
        category: Any,
        description: Any,
        template_id: Optional[str] = None,
    ) -> tuple[Optional[FixedCostTemplate], ValidationResult]:
        """Add a recurring monthly cost, or replace the one with `template_id`."""
        template, result = self._validator.validate_fixed_cost(amount, category, description)
        if template is None:
            self._rejected("fixed_cost", result)
            return None, result

        if template_id is None:
            return self._store.add_fixed_cost(template), result

        try:
            return self._store.update_fixed_cost(template_id, template), result
        except RecordNotFoundError:
            return None, _not_found("fixed cost")

    def delete_fixed_cost(self, template_id: str) -> bool:
        return self._store.delete_fixed_cost(template_id)

    def post_fixed_costs(self, month: MonthSelector) -> list[Expense]:
        return self._store.post_fixed_costs(month)

    def monthly_summary(self, month: MonthSelector) -> MonthlySummary:
        """
        Aggregate the month; stale categories are logged as integrity warnings.

        Raises:
            UnclassifiedCategoryError: strict_categories is set and the month
                holds an expense with a stale category
        """
        try:
            summary = summarize_month(
                self._store.expenses,
                self._store.incomes,
                month,
                self._store.budgets,
                strict=self._strict_categories,
            )
        except UnclassifiedCategoryError as e:
            self._audit_logger.log_unclassified_category(e.label, month.label)
            raise
        for category in summary.unclassified_categories:
            self._audit_logger.log_unclassified_category(category, month.label)
        return summary

    def share_text(self, month: MonthSelector) -> str:
        return format_share_summary(self.monthly_summary(month))


class AssistantFlow:
    """
    Orchestrates the AI features.

    Each method returns (result_or_None, message). None means the
    feature failed or is unavailable and `message` says why.
    """

    def __init__(
        self,
        store: RecordStore,
        savings_agent: Optional[SavingsAdvisorAgent] = None,
        receipt_agent: Optional[ReceiptScannerAgent] = None,
        sales_agent: Optional[SalesInfoAgent] = None,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._savings_agent = savings_agent or SavingsAdvisorAgent(audit_logger=self._audit_logger)
        self._receipt_agent = receipt_agent or ReceiptScannerAgent(audit_logger=self._audit_logger)
        self._sales_agent = sales_agent or SalesInfoAgent(audit_logger=self._audit_logger)
        self._app_settings = app_settings or get_settings().app

    async def savings_tips(self, month: MonthSelector) -> str:
        """Savings advice for the month's records. Always returns text."""
        summary = summarize_month(self._store.expenses, self._store.incomes, month)
        return await self._savings_agent.get_savings_tips(
            summary.expenses,
            summary.incomes,
            month,
            correlation_id=create_correlation_id(),
        )

    def check_receipt_image(
        self,
        filename: str,
        file_size: int,
        mime_type: str,
    ) -> tuple[Optional[ReceiptImage], str]:
        """Reject unsupported or oversized photos before any AI call."""
        try:
            image = ReceiptImage(
                original_filename=filename,
                file_size_bytes=file_size,
                mime_type=mime_type,
            )
        except ValidationError:
            formats = ", ".join(self._app_settings.supported_formats_list)
            return None, f"Unsupported image type. Please use one of: {formats}"

        if file_size > self._app_settings.max_upload_size_bytes:
            return None, (
                f"The photo is too large (max {self._app_settings.max_upload_size_mb} MB)"
            )
        return image, ""

    async def scan_receipt(
        self,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
    ) -> tuple[Optional[ReceiptExtraction], str]:
        """
        Read a receipt photo into a proposed expense for the form.

        The photo is checked and re-encoded locally first; nothing is
        sent to Gemini for a file that is not a readable image.
        """
        image, message = self.check_receipt_image(filename, len(image_bytes), mime_type)
        if image is None:
            return None, message

        try:
            prepared = prepare_receipt_image(
                image_bytes,
                image,
                max_side_px=self._app_settings.receipt_max_side_px,
            )
        except ReceiptImageError as e:
            return None, str(e)

        try:
            extraction = await self._receipt_agent.analyze_receipt(
                prepared.data,
                mime_type=prepared.mime_type,
                correlation_id=create_correlation_id(),
            )
        except (AIUnavailableError, ReceiptAnalysisError) as e:
            return None, str(e)

        message = "Receipt read. Please check the details before saving."
        if prepared.quality_issues:
            message += " Note: " + "; ".join(prepared.quality_issues) + "."
        return extraction, message

    async def sales_info(
        self,
        address: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> tuple[Optional[SalesInfo], str]:
        """Sale information near an address or a coordinate pair (exactly one)."""
        try:
            location = SalesLocation(
                address=address or None,
                latitude=latitude,
                longitude=longitude,
            )
        except ValidationError:
            return None, "Please give either an address or your current location."

        try:
            info = await self._sales_agent.get_sales_info(
                location,
                correlation_id=create_correlation_id(),
            )
        except SalesInfoError as e:
            return None, str(e)

        return info, ""


def create_storage(settings: Optional[Settings] = None) -> KeyValueStorageInterface:
    """Build the configured key/value backend."""
    storage_settings = (settings or get_settings()).storage
    if storage_settings.backend == "memory":
        return InMemoryStorage()
    return JsonFileStorage(storage_settings.data_dir)


def create_app_components(
    storage: Optional[KeyValueStorageInterface] = None,
    settings: Optional[Settings] = None,
) -> tuple[LedgerFlow, AssistantFlow, RecordStore]:
    """
    Factory function to create all application components.

    Args:
        storage: Backend to use. Defaults to the configured one.
        settings: Settings to use. Defaults to get_settings().

    Returns:
        (ledger_flow, assistant_flow, record_store)
    """
    settings = settings or get_settings()
    audit_logger = AuditLogger()

    store = RecordStore(
        storage or create_storage(settings),
        audit_logger=audit_logger,
    )

    ledger_flow = LedgerFlow(
        store,
        validator=RecordValidator(settings.app),
        audit_logger=audit_logger,
        strict_categories=settings.app.debug_mode,
    )

    gemini_settings = settings.gemini
    assistant_flow = AssistantFlow(
        store,
        savings_agent=SavingsAdvisorAgent(gemini_settings, audit_logger=audit_logger),
        receipt_agent=ReceiptScannerAgent(gemini_settings, audit_logger=audit_logger),
        sales_agent=SalesInfoAgent(gemini_settings, audit_logger=audit_logger),
        app_settings=settings.app,
        audit_logger=audit_logger,
    )

    return ledger_flow, assistant_flow, store
