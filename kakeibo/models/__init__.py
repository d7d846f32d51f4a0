"""
Data Models Package

This package contains all Pydantic models used in Kakeibo.
All data flowing through the system must conform to these schemas.
"""

from kakeibo.models.records import (
    CATEGORY_EXPENSE_TYPE,
    Budgets,
    Category,
    Expense,
    ExpenseDraft,
    ExpenseType,
    FixedCostTemplate,
    Income,
    IncomeDraft,
    MonthSelector,
    PreparedReceiptImage,
    ReceiptExtraction,
    ReceiptImage,
    SalesInfo,
    SalesLocation,
    SalesSource,
    ValidationIssue,
    ValidationResult,
    expense_type_for,
    fixed_categories,
    new_record_id,
    parse_category,
)
from kakeibo.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Taxonomy
    "CATEGORY_EXPENSE_TYPE",
    "Category",
    "ExpenseType",
    "expense_type_for",
    "fixed_categories",
    "parse_category",
    # Ledger records
    "Budgets",
    "Expense",
    "ExpenseDraft",
    "FixedCostTemplate",
    "Income",
    "IncomeDraft",
    "MonthSelector",
    "new_record_id",
    # AI results
    "ReceiptExtraction",
    "PreparedReceiptImage",
    "ReceiptImage",
    "SalesInfo",
    "SalesLocation",
    "SalesSource",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
