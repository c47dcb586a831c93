"""Shared fixtures: signed-in users and a ledger service on in-memory storage."""

from datetime import date
from decimal import Decimal

import pytest

from minhas_contas.audit import AuditLogger
from minhas_contas.models.ledger import (
    Expense,
    ExpenseCategory,
    Income,
    NonRecurring,
)
from minhas_contas.orchestrator import LedgerService
from minhas_contas.services.auth import UserSession
from minhas_contas.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


def make_expense(
    amount="100.00",
    category=ExpenseCategory.OUTROS,
    is_paid=False,
    recurrence=None,
    expense_id="e1",
    description="Conta",
    due_date=date(2025, 3, 5),
) -> Expense:
    return Expense(
        id=expense_id,
        description=description,
        amount=Decimal(amount),
        due_date=due_date,
        category=category,
        recurrence=recurrence or NonRecurring(),
        is_paid=is_paid,
    )


def make_income(amount="1000.00", income_id="i1", description="Salário") -> Income:
    return Income(id=income_id, description=description, amount=Decimal(amount))


@pytest.fixture
def session():
    return UserSession(uid="user-a", email="a@example.com")


@pytest.fixture
def other_session():
    return UserSession(uid="user-b", email="b@example.com")


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def service(storage, audit_storage):
    return LedgerService(storage=storage, audit_logger=AuditLogger(audit_storage))
