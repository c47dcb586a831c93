"""Display helpers shared by the dashboard and the report."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from minhas_contas.models.ledger import (
    CENTS,
    Expense,
    ExpenseCategory,
    MonthlyRecurrence,
    ParceledRecurrence,
)


CATEGORY_LABELS: dict[str, str] = {
    ExpenseCategory.MORADIA.value: "Moradia",
    ExpenseCategory.ALIMENTACAO.value: "Alimentação",
    ExpenseCategory.TRANSPORTE.value: "Transporte",
    ExpenseCategory.SAUDE.value: "Saúde",
    ExpenseCategory.EDUCACAO.value: "Educação",
    ExpenseCategory.LAZER.value: "Lazer",
    ExpenseCategory.OUTROS.value: "Outros",
}

MONTH_NAMES = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]


def format_currency(amount: Union[Decimal, int, float], symbol: str = "R$") -> str:
    """Two decimal places with the currency prefix, e.g. 'R$ 1234.50'."""
    value = Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return f"{symbol} {value}"


def category_label(category: Union[ExpenseCategory, str]) -> str:
    """Human label for a category; unknown keys are shown as-is."""
    key = category.value if isinstance(category, ExpenseCategory) else str(category)
    return CATEGORY_LABELS.get(key, key)


def recurrence_label(expense: Expense) -> str:
    """Suffix shown next to a recurring expense's description."""
    recurrence = expense.recurrence
    if isinstance(recurrence, MonthlyRecurrence):
        return "(Mensal)"
    if isinstance(recurrence, ParceledRecurrence):
        return f"(Parcela {recurrence.current_parcel}/{recurrence.total_parcels})"
    return ""


def format_due_date(value: date) -> str:
    """'05 de março'."""
    return f"{value.day:02d} de {MONTH_NAMES[value.month - 1]}"


def format_month(value: date) -> str:
    """'março 2025', used as page headings."""
    return f"{MONTH_NAMES[value.month - 1]} {value.year}"


def sort_by_due_date(expenses: Iterable[Expense]) -> list[Expense]:
    """Presentation order: earliest due first, ties by description."""
    return sorted(expenses, key=lambda e: (e.due_date, e.description.lower()))
