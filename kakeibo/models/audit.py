"""
Audit Models for Kakeibo

Every change to the ledger and every failure at a boundary
(storage, AI service) is recorded as an AuditEvent.
This provides:
1. Traceability of edits to the household books
2. Debugging information when storage or the AI service misbehaves
3. A place to surface data-integrity problems that are not user errors
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger changes
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    INCOME_ADDED = "income_added"
    INCOME_UPDATED = "income_updated"
    INCOME_DELETED = "income_deleted"
    BUDGETS_SAVED = "budgets_saved"
    FIXED_COST_SAVED = "fixed_cost_saved"
    FIXED_COST_DELETED = "fixed_cost_deleted"
    FIXED_COSTS_POSTED = "fixed_costs_posted"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Storage
    STORE_LOADED = "store_loaded"
    STORAGE_READ_FAILED = "storage_read_failed"
    STORAGE_WRITE_FAILED = "storage_write_failed"
    STORED_ENTRY_DROPPED = "stored_entry_dropped"

    # Aggregation
    UNCLASSIFIED_CATEGORY = "unclassified_category"

    # AI collaborator
    AI_REQUEST_COMPLETED = "ai_request_completed"
    AI_REQUEST_FAILED = "ai_request_failed"
    AI_UNAVAILABLE = "ai_unavailable"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'income', 'storage_key')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_added("expense", expense_id, amount)
        event = AuditEventBuilder.storage_write_failed("expenses", str(exc))
    """

    @staticmethod
    def record_added(record_type: str, record_id: str, amount: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType(f"{record_type}_added"),
            entity_type=record_type,
            entity_id=record_id,
            description=f"{record_type.capitalize()} added: ¥{amount:,}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def record_updated(record_type: str, record_id: str, amount: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType(f"{record_type}_updated"),
            entity_type=record_type,
            entity_id=record_id,
            description=f"{record_type.capitalize()} updated: ¥{amount:,}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(record_type: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType(f"{record_type}_deleted"),
            entity_type=record_type,
            entity_id=record_id,
            description=f"{record_type.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def budgets_saved(overall: int, category_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGETS_SAVED,
            entity_type="budgets",
            description=f"Budgets saved (overall ¥{overall:,})",
            details={
                "overall": overall,
                "category_budgets": category_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def fixed_cost_saved(template_id: str, amount: int, category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_COST_SAVED,
            entity_type="fixed_cost",
            entity_id=template_id,
            description=f"Fixed cost saved: {category} ¥{amount:,}",
            details={"amount": amount, "category": category},
            is_user_action=True,
        )

    @staticmethod
    def fixed_cost_deleted(template_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_COST_DELETED,
            entity_type="fixed_cost",
            entity_id=template_id,
            description="Fixed cost deleted",
            is_user_action=True,
        )

    @staticmethod
    def fixed_costs_posted(month_label: str, posted: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_COSTS_POSTED,
            entity_type="month",
            entity_id=month_label,
            description=f"Posted {posted} fixed cost(s) for {month_label}",
            details={"posted": posted},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(form: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="form",
            entity_id=form,
            description=f"Validation failed for {form} form",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def store_loaded(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_LOADED,
            entity_type="store",
            description="Record store loaded",
            details=counts,
        )

    @staticmethod
    def storage_read_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_READ_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="storage_key",
            entity_id=key,
            description=f"Could not restore '{key}', using default",
            error_message=error_message,
        )

    @staticmethod
    def stored_entry_dropped(key: str, entry: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORED_ENTRY_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type="storage_key",
            entity_id=key,
            description=f"Dropped unreadable entry '{entry}' from '{key}', kept the rest",
            details={"entry": entry},
            error_message=error_message,
        )

    @staticmethod
    def storage_write_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="storage_key",
            entity_id=key,
            description=f"Could not persist '{key}', keeping in-memory state",
            error_message=error_message,
        )

    @staticmethod
    def unclassified_category(category: str, month_label: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNCLASSIFIED_CATEGORY,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=category,
            description=f"Category '{category}' has no expense type; counted as variable",
            details={"month": month_label},
        )

    @staticmethod
    def ai_request_completed(
        feature: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_REQUEST_COMPLETED,
            entity_type="ai_feature",
            entity_id=feature,
            correlation_id=correlation_id,
            description=f"AI request completed: {feature}",
        )

    @staticmethod
    def ai_request_failed(
        feature: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_REQUEST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="ai_feature",
            entity_id=feature,
            correlation_id=correlation_id,
            description=f"AI request failed: {feature}",
            error_message=error_message,
        )

    @staticmethod
    def ai_unavailable(feature: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="ai_feature",
            entity_id=feature,
            description=f"AI feature not configured: {feature}",
        )
