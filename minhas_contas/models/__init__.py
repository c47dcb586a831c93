"""
Data Models Package

This package contains all Pydantic models used in Minhas Contas.
All data flowing through the system must conform to these schemas.
"""

from minhas_contas.models.ledger import (
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseUpdate,
    Income,
    IncomeDraft,
    IncomeUpdate,
    Ledger,
    LedgerCollection,
    MonthlyRecurrence,
    NonRecurring,
    ParceledRecurrence,
    Recurrence,
    RecurrenceType,
)
from minhas_contas.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseUpdate",
    "Income",
    "IncomeDraft",
    "IncomeUpdate",
    "Ledger",
    "LedgerCollection",
    "MonthlyRecurrence",
    "NonRecurring",
    "ParceledRecurrence",
    "Recurrence",
    "RecurrenceType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
