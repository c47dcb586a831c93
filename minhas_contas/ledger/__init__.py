"""Ledger rules: aggregation, the paid toggle and display helpers."""

from minhas_contas.ledger.aggregation import (
    LedgerSummary,
    category_totals,
    net_balance,
    paid_expenses,
    pending_expenses,
    summarize,
    total_expenses,
    total_incomes,
)
from minhas_contas.ledger.formatting import (
    CATEGORY_LABELS,
    category_label,
    format_currency,
    format_due_date,
    format_month,
    recurrence_label,
    sort_by_due_date,
)
from minhas_contas.ledger.recurrence import next_parcel, paid_toggle_changes, toggle_paid

__all__ = [
    # Aggregation
    "LedgerSummary",
    "category_totals",
    "net_balance",
    "paid_expenses",
    "pending_expenses",
    "summarize",
    "total_expenses",
    "total_incomes",
    # Formatting
    "CATEGORY_LABELS",
    "category_label",
    "format_currency",
    "format_due_date",
    "format_month",
    "recurrence_label",
    "sort_by_due_date",
    # Paid toggle
    "next_parcel",
    "paid_toggle_changes",
    "toggle_paid",
]
