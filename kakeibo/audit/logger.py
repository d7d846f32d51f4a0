"""
Audit Logger

DESIGN DECISION: Every change to the ledger and every boundary failure
is logged. This provides:
1. Traceability of edits
2. Debugging capability when storage or Gemini fails
3. A recent-history view for the settings page

The audit logger:
- Is synchronous; the store and aggregator are synchronous too
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from kakeibo.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. A bounded in-memory history (for the UI and for tests)
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("kakeibo.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event. Never raises."""
        self._history.append(event)

        try:
            log_dict = event.to_log_dict()
            if event.severity.value == "error":
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must never interrupt the operation being logged
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))[:limit]

    def log_record_added(self, record_type: str, record_id: str, amount: int) -> None:
        self.log(AuditEventBuilder.record_added(record_type, record_id, amount))

    def log_record_updated(self, record_type: str, record_id: str, amount: int) -> None:
        self.log(AuditEventBuilder.record_updated(record_type, record_id, amount))

    def log_record_deleted(self, record_type: str, record_id: str) -> None:
        self.log(AuditEventBuilder.record_deleted(record_type, record_id))

    def log_budgets_saved(self, overall: int, category_count: int) -> None:
        self.log(AuditEventBuilder.budgets_saved(overall, category_count))

    def log_fixed_cost_saved(self, template_id: str, amount: int, category: str) -> None:
        self.log(AuditEventBuilder.fixed_cost_saved(template_id, amount, category))

    def log_fixed_cost_deleted(self, template_id: str) -> None:
        self.log(AuditEventBuilder.fixed_cost_deleted(template_id))

    def log_fixed_costs_posted(self, month_label: str, posted: int) -> None:
        self.log(AuditEventBuilder.fixed_costs_posted(month_label, posted))

    def log_validation_failed(self, form: str, issues: list[dict]) -> None:
        self.log(AuditEventBuilder.validation_failed(form, issues))

    def log_store_loaded(self, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.store_loaded(counts))

    def log_storage_read_failed(self, key: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_read_failed(key, error_message))

    def log_stored_entry_dropped(self, key: str, entry: str, error_message: str) -> None:
        self.log(AuditEventBuilder.stored_entry_dropped(key, entry, error_message))

    def log_storage_write_failed(self, key: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_write_failed(key, error_message))

    def log_unclassified_category(self, category: str, month_label: str) -> None:
        self.log(AuditEventBuilder.unclassified_category(category, month_label))

    def log_ai_request_completed(
        self,
        feature: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.ai_request_completed(feature, correlation_id))

    def log_ai_request_failed(
        self,
        feature: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.ai_request_failed(feature, error_message, correlation_id))

    def log_ai_unavailable(self, feature: str) -> None:
        self.log(AuditEventBuilder.ai_unavailable(feature))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a receipt scan).
    """
    return uuid4()
