"""
Integration tests for the ledger orchestrator.

Runs every operation against in-memory storage; no network access.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

from minhas_contas.audit import AuditLogger
from minhas_contas.errors import (
    AuthenticationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from minhas_contas.models.audit import AuditEventType
from minhas_contas.models.ledger import (
    ExpenseCategory,
    ExpenseDraft,
    ExpenseUpdate,
    IncomeUpdate,
    LedgerCollection,
    NonRecurring,
    ParceledRecurrence,
)
from minhas_contas.orchestrator import LedgerService, create_app_components, create_storage
from minhas_contas.services.storage import InMemoryLedgerStorage


def run(coro):
    return asyncio.run(coro)


RENT_FORM = {
    "description": "Aluguel",
    "amount": "800,00",
    "due_date": "2025-03-05",
    "category": "moradia",
}

PHONE_FORM = {
    "description": "Celular",
    "amount": "150",
    "due_date": "2025-03-15",
    "category": "outros",
    "is_recurring": True,
    "recurrence_type": "parceled",
    "total_parcels": "12",
}


class TestCreate:
    """Creating records."""

    def test_create_expense_from_form(self, service, storage, session):
        expense = run(service.create_expense(session, RENT_FORM))

        assert expense.id
        assert expense.amount == Decimal("800.00")
        assert expense.is_paid is False
        stored = storage.get(session.uid, LedgerCollection.EXPENSES, expense.id)
        assert stored["description"] == "Aluguel"
        assert stored["isPaid"] is False

    def test_create_parceled_starts_at_first_parcel(self, service, session):
        expense = run(service.create_expense(session, PHONE_FORM))

        assert expense.current_parcel == 1
        assert expense.total_parcels == 12

    def test_create_from_draft_always_unpaid(self, service, session):
        draft = ExpenseDraft(
            description="Luz",
            amount=Decimal("120.00"),
            due_date=date(2025, 3, 12),
            category=ExpenseCategory.MORADIA,
            is_paid=True,
        )
        assert run(service.create_expense(session, draft)).is_paid is False

    def test_invalid_input_never_reaches_storage(self, service, storage, session):
        with pytest.raises(ValidationError):
            run(service.create_expense(session, {**RENT_FORM, "description": ""}))
        with pytest.raises(ValidationError):
            run(service.create_income(session, {"description": "Salário", "amount": "abc"}))

        assert storage.calls == []

    def test_long_income_description(self, service, storage, session):
        with pytest.raises(ValidationError) as exc_info:
            run(service.create_income(session, {"description": "x" * 201, "amount": "10"}))

        assert "description" in exc_info.value.fields
        assert storage.calls == []

    def test_huge_amount_is_rejected(self, service, session):
        with pytest.raises(ValidationError) as exc_info:
            run(service.create_income(session, {"description": "Loteria", "amount": "1e30"}))

        assert "amount" in exc_info.value.fields

    def test_validation_failure_is_audited(self, service, audit_storage, session):
        with pytest.raises(ValidationError):
            run(service.create_expense(session, {**RENT_FORM, "amount": "-1"}))

        events = run(audit_storage.get_recent_events(session.uid))
        assert [e.event_type for e in events] == [AuditEventType.VALIDATION_FAILED]
        assert events[0].details["issues"][0]["field"] == "amount"

    def test_create_income_with_comma(self, service, session):
        income = run(service.create_income(session, {"description": "Salário", "amount": "5000,50"}))
        assert income.amount == Decimal("5000.50")

    def test_create_is_audited(self, service, audit_storage, session):
        expense = run(service.create_expense(session, RENT_FORM))

        events = run(audit_storage.get_recent_events(session.uid))
        assert events[0].event_type == AuditEventType.EXPENSE_CREATED
        assert events[0].entity_id == expense.id


class TestAuthentication:
    """Every operation requires a signed-in user."""

    def test_no_session(self, service, storage):
        with pytest.raises(AuthenticationError):
            run(service.create_expense(None, RENT_FORM))
        with pytest.raises(AuthenticationError):
            run(service.list_incomes(None))
        with pytest.raises(AuthenticationError):
            run(service.load_ledger(None))
        with pytest.raises(AuthenticationError):
            run(service.delete_expense(None, "e1"))

        assert storage.calls == []

    def test_users_are_isolated(self, service, session, other_session):
        expense = run(service.create_expense(session, RENT_FORM))

        assert run(service.list_expenses(other_session)) == []
        with pytest.raises(NotFoundError):
            run(service.delete_expense(other_session, expense.id))
        assert len(run(service.list_expenses(session))) == 1


class TestUpdate:
    """Editing and toggling records."""

    def test_update_changes_only_given_fields(self, service, session):
        expense = run(service.create_expense(session, RENT_FORM))

        run(service.update_expense(session, expense.id, {"amount": "850,00"}))

        [updated] = run(service.list_expenses(session))
        assert updated.amount == Decimal("850.00")
        assert updated.description == "Aluguel"
        assert updated.due_date == date(2025, 3, 5)

    def test_switch_to_non_recurring_clears_parcels(self, service, storage, session):
        expense = run(service.create_expense(session, PHONE_FORM))

        run(service.update_expense(session, expense.id, ExpenseUpdate(recurrence=NonRecurring())))

        stored = storage.get(session.uid, LedgerCollection.EXPENSES, expense.id)
        assert stored["isRecurring"] is False
        assert "totalParcels" not in stored
        assert "currentParcel" not in stored

    def test_update_missing_expense(self, service, session):
        with pytest.raises(NotFoundError):
            run(service.update_expense(session, "missing", {"description": "x"}))

    def test_empty_update_is_rejected(self, service, storage, session):
        with pytest.raises(ValidationError):
            run(service.update_income(session, "i1", IncomeUpdate()))
        assert storage.calls == []

    def test_toggle_parceled_paid_and_back(self, service, session):
        created = run(service.create_expense(session, {
            **PHONE_FORM,
            "current_parcel": "3",
        }))
        assert created.current_parcel == 3

        paid = run(service.toggle_paid(session, created))
        assert paid.is_paid is True
        assert paid.current_parcel == 4

        [stored] = run(service.list_expenses(session))
        assert stored == paid

        unpaid = run(service.toggle_paid(session, stored))
        assert unpaid.is_paid is False
        assert unpaid.current_parcel == 4
        assert run(service.list_expenses(session)) == [unpaid]

    def test_toggle_deleted_expense(self, service, session):
        expense = run(service.create_expense(session, RENT_FORM))
        run(service.delete_expense(session, expense.id))

        with pytest.raises(NotFoundError):
            run(service.toggle_paid(session, expense))

    def test_update_income(self, service, session):
        income = run(service.create_income(session, {"description": "Salário", "amount": "1000"}))

        run(service.update_income(session, income.id, {"amount": "1100"}))

        [stored] = run(service.list_incomes(session))
        assert stored.amount == Decimal("1100.00")

    def test_update_missing_income(self, service, session):
        with pytest.raises(NotFoundError):
            run(service.update_income(session, "missing", {"amount": "10"}))

    def test_end_date_only_keeps_parcel_plan(self, service, session):
        created = run(service.create_expense(session, PHONE_FORM))
        paid = run(service.toggle_paid(session, created))
        run(service.toggle_paid(session, paid))

        run(service.update_expense(session, created.id, {"end_date": "2026-01-01"}))

        [stored] = run(service.list_expenses(session))
        assert stored.recurrence == ParceledRecurrence(
            total_parcels=12, current_parcel=2, end_date=date(2026, 1, 1)
        )
        assert stored.is_paid is False

    def test_recurrence_edit_without_counter_keeps_progress(self, service, session):
        created = run(service.create_expense(session, PHONE_FORM))
        run(service.toggle_paid(session, created))

        run(service.update_expense(session, created.id, {
            "is_recurring": True,
            "recurrence_type": "parceled",
            "total_parcels": 12,
        }))

        [stored] = run(service.list_expenses(session))
        assert stored.current_parcel == 2
        assert stored.total_parcels == 12

    def test_shrinking_plan_below_counter_is_rejected(self, service, storage, session):
        created = run(service.create_expense(session, {**PHONE_FORM, "current_parcel": "5"}))
        storage.calls.clear()

        with pytest.raises(ValidationError) as exc_info:
            run(service.update_expense(session, created.id, {"total_parcels": "3"}))

        assert "current_parcel" in exc_info.value.fields
        assert all(call[0] != "update" for call in storage.calls)

    def test_recurrence_edit_of_missing_expense(self, service, audit_storage, session):
        with pytest.raises(NotFoundError):
            run(service.update_expense(session, "missing", {"end_date": "2026-01-01"}))

        events = run(audit_storage.get_recent_events(session.uid))
        assert events[0].event_type == AuditEventType.OPERATION_FAILED


class TestDelete:

    def test_delete_removes_record(self, service, session):
        income = run(service.create_income(session, {"description": "Freela", "amount": "300"}))

        run(service.delete_income(session, income.id))

        assert run(service.list_incomes(session)) == []

    def test_delete_missing_income(self, service, session):
        with pytest.raises(NotFoundError):
            run(service.delete_income(session, "missing"))

    def test_delete_twice(self, service, audit_storage, session):
        expense = run(service.create_expense(session, RENT_FORM))
        run(service.delete_expense(session, expense.id))

        with pytest.raises(NotFoundError):
            run(service.delete_expense(session, expense.id))

        events = run(audit_storage.get_recent_events(session.uid))
        assert AuditEventType.OPERATION_FAILED in {e.event_type for e in events}


class TestLoadLedger:

    def test_month_scenario(self, service, session):
        """Rent paid, groceries and transport pending, two incomes."""
        rent = run(service.create_expense(session, RENT_FORM))
        run(service.toggle_paid(session, rent))
        run(service.create_expense(session, {**RENT_FORM, "description": "Mercado", "amount": "500", "category": "alimentacao"}))
        run(service.create_expense(session, {**RENT_FORM, "description": "Ônibus", "amount": "300", "category": "transporte"}))
        run(service.create_income(session, {"description": "Salário", "amount": "1000"}))
        run(service.create_income(session, {"description": "Freela", "amount": "200"}))

        ledger, summary = run(service.load_summary(session))

        assert len(ledger.expenses) == 3
        assert len(ledger.incomes) == 2
        assert summary.total_expenses == Decimal("1600.00")
        assert summary.paid_expenses == Decimal("800.00")
        assert summary.pending_expenses == Decimal("800.00")
        assert summary.net_balance == Decimal("-400.00")

    def test_malformed_documents_are_skipped(self, service, storage, session):
        run(service.create_expense(session, RENT_FORM))
        run(storage.create(session.uid, LedgerCollection.EXPENSES, {"description": "broken", "dueDate": "???"}))

        expenses = run(service.list_expenses(session))

        assert [e.description for e in expenses] == ["Aluguel"]

    def test_incomes_with_bad_amounts_are_skipped(self, service, storage, session):
        run(service.create_income(session, {"description": "Salário", "amount": "1000"}))
        run(storage.create(session.uid, LedgerCollection.INCOMES, {"description": "bad", "amount": "abc"}))
        run(storage.create(session.uid, LedgerCollection.INCOMES, {"description": "no amount"}))

        incomes = run(service.list_incomes(session))

        assert [i.description for i in incomes] == ["Salário"]

    def test_expense_without_amount_is_skipped(self, service, storage, session):
        run(storage.create(session.uid, LedgerCollection.EXPENSES, {
            "description": "Luz",
            "dueDate": "2025-03-10",
            "category": "moradia",
        }))

        assert run(service.list_expenses(session)) == []


class TestStorageFailures:
    """Backend errors propagate unchanged and nothing is retried."""

    def test_persistence_error_propagates(self, session):
        storage = InMemoryLedgerStorage()
        storage.create = AsyncMock(side_effect=PersistenceError("backend down"))
        service = LedgerService(storage=storage, audit_logger=AuditLogger())

        with pytest.raises(PersistenceError, match="backend down"):
            run(service.create_expense(session, RENT_FORM))
        assert storage.create.await_count == 1

    def test_audit_failure_does_not_break_operation(self, storage, session):
        audit_storage = AsyncMock()
        audit_storage.append_event.side_effect = PersistenceError("activity down")
        service = LedgerService(storage=storage, audit_logger=AuditLogger(audit_storage))

        expense = run(service.create_expense(session, RENT_FORM))

        assert storage.get(session.uid, LedgerCollection.EXPENSES, expense.id) is not None


class TestFactory:

    def test_memory_backend(self):
        ledger_storage, _ = create_storage("memory")
        assert isinstance(ledger_storage, InMemoryLedgerStorage)

    def test_unknown_backend(self):
        with pytest.raises(PersistenceError):
            create_storage("postgres")

    def test_create_app_components(self):
        service, audit_logger = create_app_components("memory")
        assert isinstance(service, LedgerService)
        assert isinstance(audit_logger, AuditLogger)
