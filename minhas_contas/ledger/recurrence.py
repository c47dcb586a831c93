"""
Paid-Toggle Transition

The one stateful rule of the ledger. Toggling an expense paid flips
is_paid; for an installment plan, marking it paid also advances the
parcel counter in the same update.

The rule is asymmetric on purpose:
- unpaid -> paid on a parceled expense: current_parcel + 1
- paid -> unpaid: only is_paid flips, the counter is NOT rolled back

The counter stops at the last parcel (total_parcels) so a stored
installment plan never reads "13/12".
"""

from minhas_contas.models.ledger import Expense, ExpenseUpdate, ParceledRecurrence


def next_parcel(recurrence: ParceledRecurrence) -> ParceledRecurrence:
    """The recurrence advanced by one installment, clamped at the last one."""
    return recurrence.model_copy(
        update={"current_parcel": min(recurrence.current_parcel + 1, recurrence.total_parcels)}
    )


def paid_toggle_changes(expense: Expense) -> ExpenseUpdate:
    """
    The partial update that toggling this expense produces.

    Only is_paid, plus the recurrence when a parcel is advanced.
    """
    if not expense.is_paid and isinstance(expense.recurrence, ParceledRecurrence):
        return ExpenseUpdate(is_paid=True, recurrence=next_parcel(expense.recurrence))
    return ExpenseUpdate(is_paid=not expense.is_paid)


def toggle_paid(expense: Expense) -> Expense:
    """The expense as it looks after one toggle."""
    return paid_toggle_changes(expense).apply_to(expense)
