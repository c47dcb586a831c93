"""Form validation package."""

from minhas_contas.validation.validator import (
    ExpenseFormValidator,
    IncomeFormValidator,
    parse_amount,
    parse_date,
)

__all__ = [
    "ExpenseFormValidator",
    "IncomeFormValidator",
    "parse_amount",
    "parse_date",
]
