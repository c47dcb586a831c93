"""
Audit Models for Minhas Contas

Every write a user makes to their ledger is logged for audit purposes.
This provides:
1. Complete traceability of all changes
2. Debugging information when things go wrong
3. A per-user activity trail

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger operation has its own event type.
    """
    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_PAID_TOGGLED = "expense_paid_toggled"

    # Incomes
    INCOME_CREATED = "income_created"
    INCOME_UPDATED = "income_updated"
    INCOME_DELETED = "income_deleted"

    # Identity
    USER_SIGNED_IN = "user_signed_in"
    USER_SIGNED_OUT = "user_signed_out"
    SIGN_IN_FAILED = "sign_in_failed"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    OPERATION_FAILED = "operation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger write creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Whose ledger this is about
    user_id: Optional[str] = Field(
        default=None,
        description="Authenticated user the event belongs to"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of record (e.g., 'expense', 'income')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store identifier of the record"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one form submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

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
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_document(self) -> dict:
        """Convert to a flat document for the activity trail (no user_id: it is the path)."""
        return {
            "eventId": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "eventType": self.event_type.value,
            "severity": self.severity.value,
            "entityType": self.entity_type or "",
            "entityId": self.entity_id or "",
            "correlationId": str(self.correlation_id) if self.correlation_id else "",
            "description": self.description,
            "details": json.dumps(self.details, default=str) if self.details else "",
            "errorMessage": self.error_message or "",
            "isUserAction": self.is_user_action,
        }

    @classmethod
    def from_document(cls, user_id: str, document: dict) -> 'AuditEvent':
        """Rebuild an event read back from the activity trail."""
        return cls(
            event_id=UUID(document["eventId"]),
            timestamp=datetime.fromisoformat(document["timestamp"]),
            event_type=AuditEventType(document["eventType"]),
            severity=AuditSeverity(document.get("severity") or "info"),
            user_id=user_id,
            entity_type=document.get("entityType") or None,
            entity_id=document.get("entityId") or None,
            correlation_id=UUID(document["correlationId"]) if document.get("correlationId") else None,
            description=document.get("description", ""),
            details=json.loads(document["details"]) if document.get("details") else {},
            error_message=document.get("errorMessage") or None,
            is_user_action=str(document.get("isUserAction", "")).lower() == "true",
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(user_id, expense_id, ...)
        event = AuditEventBuilder.paid_toggled(user_id, expense_id, ...)
    """

    @staticmethod
    def expense_created(
        user_id: str,
        expense_id: str,
        description: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense created: {description} - R$ {amount}",
            details={
                "description": description,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        user_id: str,
        expense_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense updated: {', '.join(changed_fields) or 'no fields'}",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        user_id: str,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def paid_toggled(
        user_id: str,
        expense_id: str,
        is_paid: bool,
        current_parcel: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        status = "paid" if is_paid else "unpaid"
        details: dict[str, Any] = {"is_paid": is_paid}
        if current_parcel is not None:
            details["current_parcel"] = current_parcel
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_PAID_TOGGLED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense marked as {status}",
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def income_created(
        user_id: str,
        income_id: str,
        description: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_CREATED,
            user_id=user_id,
            entity_type="income",
            entity_id=income_id,
            correlation_id=correlation_id,
            description=f"Income created: {description} - R$ {amount}",
            details={
                "description": description,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def income_updated(
        user_id: str,
        income_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_UPDATED,
            user_id=user_id,
            entity_type="income",
            entity_id=income_id,
            correlation_id=correlation_id,
            description=f"Income updated: {', '.join(changed_fields) or 'no fields'}",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def income_deleted(
        user_id: str,
        income_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_DELETED,
            user_id=user_id,
            entity_type="income",
            entity_id=income_id,
            correlation_id=correlation_id,
            description="Income deleted",
            is_user_action=True,
        )

    @staticmethod
    def user_signed_in(user_id: str, email: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_IN,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="User signed in",
            details={"email": email} if email else {},
            is_user_action=True,
        )

    @staticmethod
    def user_signed_out(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_OUT,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description="User signed out",
            is_user_action=True,
        )

    @staticmethod
    def sign_in_failed(email: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_IN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            description="Sign-in failed",
            details={"email": email},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        user_id: Optional[str],
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def operation_failed(
        operation: str,
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"{operation} failed: {error_type}",
            error_message=error_message,
            details={"operation": operation, **(details or {})},
            correlation_id=correlation_id,
        )
