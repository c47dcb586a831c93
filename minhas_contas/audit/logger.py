"""
Audit Logger

DESIGN DECISION: Every ledger write and every sign-in/sign-out is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. User can see history of their changes

The audit logger:
- Is async to match the storage calls it sits next to
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from minhas_contas.models.audit import AuditEvent, AuditEventBuilder
from minhas_contas.services.storage import AuditStorageInterface


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


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's JSON lines to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The user's activity trail in storage, when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("minhas_contas.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage and event.user_id:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent_activity(self, user_id: str, limit: int = 20) -> list[AuditEvent]:
        """The user's latest events, or nothing when no storage is configured."""
        if not self._storage:
            return []
        return await self._storage.get_recent_events(user_id, limit=limit)

    async def log_expense_created(
        self,
        user_id: str,
        expense_id: str,
        description: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log expense creation."""
        await self.log(AuditEventBuilder.expense_created(
            user_id=user_id,
            expense_id=expense_id,
            description=description,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        user_id: str,
        expense_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log expense edit."""
        await self.log(AuditEventBuilder.expense_updated(
            user_id=user_id,
            expense_id=expense_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        user_id: str,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            user_id=user_id,
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_paid_toggled(
        self,
        user_id: str,
        expense_id: str,
        is_paid: bool,
        current_parcel: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a paid/unpaid toggle, with the parcel reached if any."""
        await self.log(AuditEventBuilder.paid_toggled(
            user_id=user_id,
            expense_id=expense_id,
            is_paid=is_paid,
            current_parcel=current_parcel,
            correlation_id=correlation_id,
        ))

    async def log_income_created(
        self,
        user_id: str,
        income_id: str,
        description: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.income_created(
            user_id=user_id,
            income_id=income_id,
            description=description,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_income_updated(
        self,
        user_id: str,
        income_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.income_updated(
            user_id=user_id,
            income_id=income_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_income_deleted(
        self,
        user_id: str,
        income_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.income_deleted(
            user_id=user_id,
            income_id=income_id,
            correlation_id=correlation_id,
        ))

    async def log_signed_in(self, user_id: str, email: Optional[str]) -> None:
        await self.log(AuditEventBuilder.user_signed_in(user_id=user_id, email=email))

    async def log_signed_out(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.user_signed_out(user_id=user_id))

    async def log_sign_in_failed(self, email: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.sign_in_failed(email=email, error_message=error_message))

    async def log_validation_failed(
        self,
        user_id: Optional[str],
        entity_type: str,
        issues: list[tuple[str, str]],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log rejected form input."""
        await self.log(AuditEventBuilder.validation_failed(
            user_id=user_id,
            entity_type=entity_type,
            issues=[{"field": field, "message": message} for field, message in issues],
            correlation_id=correlation_id,
        ))

    async def log_operation_failed(
        self,
        operation: str,
        error: Exception,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed ledger operation before the error propagates."""
        await self.log(AuditEventBuilder.operation_failed(
            operation=operation,
            error_type=type(error).__name__,
            error_message=str(error),
            user_id=user_id,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
