"""
Ledger Aggregation

Pure functions computing the dashboard and report totals from a user's
expenses and incomes. No I/O, no side effects.

DESIGN DECISION: Every sum is accumulated in Decimal, starting from an
exact zero. Amounts are already two-place Decimals, so the totals are exact
and total == paid + pending holds to the cent.
"""

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, Field

from minhas_contas.models.ledger import Expense, ExpenseCategory, Income


ZERO = Decimal("0.00")


def total_expenses(expenses: Iterable[Expense]) -> Decimal:
    """Sum of every expense amount."""
    return sum((expense.amount for expense in expenses), ZERO)


def paid_expenses(expenses: Iterable[Expense]) -> Decimal:
    """Sum of the expenses marked as paid."""
    return sum((expense.amount for expense in expenses if expense.is_paid), ZERO)


def pending_expenses(expenses: Iterable[Expense]) -> Decimal:
    """What is still to be paid: total minus paid."""
    expenses = list(expenses)
    return total_expenses(expenses) - paid_expenses(expenses)


def total_incomes(incomes: Iterable[Income]) -> Decimal:
    """Sum of every income amount."""
    return sum((income.amount for income in incomes), ZERO)


def net_balance(expenses: Iterable[Expense], incomes: Iterable[Income]) -> Decimal:
    """Incomes minus expenses. Negative when the month is in the red."""
    return total_incomes(incomes) - total_expenses(expenses)


def category_totals(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """
    Total per category, built in a single pass.

    Only categories that actually have expenses appear; there are no
    zero entries. Keys keep the order in which categories first appear.
    """
    totals: dict[ExpenseCategory, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount
    return totals


class LedgerSummary(BaseModel):
    """All the numbers shown on the dashboard and report."""

    total_expenses: Decimal = ZERO
    paid_expenses: Decimal = ZERO
    pending_expenses: Decimal = ZERO
    total_incomes: Decimal = ZERO
    net_balance: Decimal = ZERO
    category_totals: dict[ExpenseCategory, Decimal] = Field(default_factory=dict)

    @property
    def is_negative(self) -> bool:
        return self.net_balance < 0


def summarize(expenses: Iterable[Expense], incomes: Iterable[Income]) -> LedgerSummary:
    """Compute every aggregate for one user's ledger."""
    expenses = list(expenses)
    incomes = list(incomes)

    total = total_expenses(expenses)
    paid = paid_expenses(expenses)
    incoming = total_incomes(incomes)

    return LedgerSummary(
        total_expenses=total,
        paid_expenses=paid,
        pending_expenses=total - paid,
        total_incomes=incoming,
        net_balance=incoming - total,
        category_totals=category_totals(expenses),
    )
