"""
Tests for Minhas Contas

Test strategy:
1. Unit tests for individual components (models, validators, ledger rules)
2. Integration tests for the orchestrator on in-memory storage
3. No real API calls in tests (use mocks)
"""

import json
import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from minhas_contas.models.ledger import (
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseUpdate,
    Income,
    IncomeDraft,
    IncomeUpdate,
    Ledger,
    MonthlyRecurrence,
    NonRecurring,
    ParceledRecurrence,
    RecurrenceType,
    recurrence_from_document,
    to_cents,
)
from minhas_contas.ledger import toggle_paid
from minhas_contas.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestRecurrenceModels:
    """Tests for the recurrence variant."""

    def test_parceled_starts_at_first_parcel(self):
        """A new installment plan is on parcel 1."""
        recurrence = ParceledRecurrence(total_parcels=12)
        assert recurrence.current_parcel == 1
        assert not recurrence.is_last_parcel

    def test_parceled_rejects_current_past_total(self):
        """Test that the counter cannot pass the last parcel."""
        with pytest.raises(ValueError):
            ParceledRecurrence(total_parcels=3, current_parcel=4)

    def test_parceled_rejects_zero_parcels(self):
        with pytest.raises(ValueError):
            ParceledRecurrence(total_parcels=0)

    def test_last_parcel(self):
        assert ParceledRecurrence(total_parcels=3, current_parcel=3).is_last_parcel

    def test_recurrence_is_discriminated_by_kind(self):
        """The right variant is picked from the kind tag."""
        draft = ExpenseDraft(
            description="Aluguel",
            amount=Decimal("1500.00"),
            due_date=date(2025, 3, 10),
            category=ExpenseCategory.MORADIA,
            recurrence={"kind": "monthly", "end_date": "2025-12-10"},
        )
        assert isinstance(draft.recurrence, MonthlyRecurrence)
        assert draft.recurrence.end_date == date(2025, 12, 10)
        assert draft.recurrence_type == RecurrenceType.MONTHLY

    def test_recurrence_is_frozen(self):
        recurrence = ParceledRecurrence(total_parcels=12)
        with pytest.raises(ValueError):
            recurrence.current_parcel = 2


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_expense_draft_defaults(self):
        """A new expense is unpaid and non-recurring."""
        draft = ExpenseDraft(
            description="Mercado",
            amount=Decimal("350.40"),
            due_date=date(2025, 3, 5),
            category=ExpenseCategory.ALIMENTACAO,
        )
        assert draft.is_paid is False
        assert isinstance(draft.recurrence, NonRecurring)
        assert draft.is_recurring is False

    def test_expense_strips_whitespace(self):
        """Test that whitespace is stripped from the description."""
        draft = ExpenseDraft(
            description="  Luz  ",
            amount=Decimal("120.00"),
            due_date=date(2025, 3, 5),
            category=ExpenseCategory.MORADIA,
        )
        assert draft.description == "Luz"

    def test_expense_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            ExpenseDraft(
                description="Test",
                amount=Decimal("-100"),
                due_date=date(2025, 3, 5),
                category=ExpenseCategory.OUTROS,
            )

    def test_expense_rejects_empty_description(self):
        with pytest.raises(ValueError):
            ExpenseDraft(
                description="   ",
                amount=Decimal("10"),
                due_date=date(2025, 3, 5),
                category=ExpenseCategory.OUTROS,
            )

    def test_expense_rejects_unknown_category(self):
        with pytest.raises(ValueError):
            ExpenseDraft(
                description="Test",
                amount=Decimal("10"),
                due_date=date(2025, 3, 5),
                category="viagens",
            )

    def test_draft_to_document_parceled(self):
        """Stored documents use camelCase keys and skip absent fields."""
        draft = ExpenseDraft(
            description="Notebook",
            amount=Decimal("350.00"),
            due_date=date(2025, 3, 15),
            category=ExpenseCategory.OUTROS,
            recurrence=ParceledRecurrence(total_parcels=10),
        )
        assert draft.to_document() == {
            "description": "Notebook",
            "amount": 350.0,
            "dueDate": "2025-03-15",
            "category": "outros",
            "isPaid": False,
            "isRecurring": True,
            "recurrenceType": "parceled",
            "totalParcels": 10,
            "currentParcel": 1,
        }

    def test_draft_to_document_non_recurring(self):
        document = ExpenseDraft(
            description="Farmácia",
            amount=Decimal("42.90"),
            due_date=date(2025, 3, 1),
            category=ExpenseCategory.SAUDE,
        ).to_document()
        assert document["isRecurring"] is False
        assert document["recurrenceType"] == "none"
        assert "totalParcels" not in document
        assert "endDate" not in document

    def test_with_id(self):
        draft = IncomeDraft(description="Salário", amount=Decimal("5000.00"))
        income = draft.with_id("abc")
        assert isinstance(income, Income)
        assert income.id == "abc"
        assert income.amount == Decimal("5000.00")

    def test_expense_from_document(self):
        """Documents are read back into the right variant."""
        expense = Expense.from_document("doc1", {
            "description": "Curso",
            "amount": 199.9,
            "dueDate": "2025-03-20",
            "category": "educacao",
            "isRecurring": True,
            "recurrenceType": "parceled",
            "totalParcels": 12,
            "currentParcel": 3,
            "isPaid": True,
        })
        assert expense.id == "doc1"
        assert expense.amount == Decimal("199.90")
        assert expense.due_date == date(2025, 3, 20)
        assert expense.current_parcel == 3
        assert expense.total_parcels == 12
        assert expense.is_paid is True

    def test_expense_from_document_accepts_timestamps(self):
        expense = Expense.from_document("doc1", {
            "description": "Luz",
            "amount": 100,
            "dueDate": datetime(2025, 3, 5, 12, 0),
            "category": "moradia",
        })
        assert expense.due_date == date(2025, 3, 5)
        assert expense.is_paid is False

    def test_expense_from_document_rejects_garbage(self):
        with pytest.raises(ValueError):
            Expense.from_document("doc1", {"description": "x", "amount": 1, "dueDate": "not a date"})

    def test_document_without_amount_is_rejected(self):
        with pytest.raises(ValueError):
            Income.from_document("doc1", {"description": "Salário"})
        with pytest.raises(ValueError):
            Expense.from_document("doc1", {"description": "Luz", "dueDate": "2025-03-05"})

    @pytest.mark.parametrize("stored,expected", [
        (199.9, Decimal("199.90")),
        (100, Decimal("100.00")),
        ("12.345", Decimal("12.35")),
    ])
    def test_to_cents(self, stored, expected):
        assert to_cents(stored) == expected

    @pytest.mark.parametrize("stored", ["abc", None, "", "inf", True, "1e30"])
    def test_to_cents_rejects_bad_amounts(self, stored):
        with pytest.raises(ValueError):
            to_cents(stored)


class TestLegacyDocuments:
    """Documents written by earlier versions of the app."""

    def test_recurring_flag_without_type(self):
        assert isinstance(recurrence_from_document({"isRecurring": True}), NonRecurring)

    def test_type_without_recurring_flag(self):
        """recurrenceType is ignored when isRecurring is false."""
        document = {"isRecurring": False, "recurrenceType": "monthly"}
        assert isinstance(recurrence_from_document(document), NonRecurring)

    def test_parceled_without_counter(self):
        recurrence = recurrence_from_document({
            "isRecurring": True,
            "recurrenceType": "parceled",
            "totalParcels": 6,
        })
        assert recurrence.current_parcel == 1
        assert recurrence.total_parcels == 6

    def test_counter_past_total_is_read_as_last_parcel(self):
        recurrence = recurrence_from_document({
            "isRecurring": True,
            "recurrenceType": "parceled",
            "totalParcels": 12,
            "currentParcel": 13,
        })
        assert recurrence.current_parcel == 12

    def test_parceled_without_total(self):
        recurrence = recurrence_from_document({
            "isRecurring": True,
            "recurrenceType": "parceled",
            "currentParcel": 4,
        })
        assert recurrence.total_parcels == 4

    def test_parceled_without_total_stays_on_counter_when_paid(self):
        """Read as its last parcel, so marking it paid does not advance it."""
        expense = Expense.from_document("doc1", {
            "description": "Sofá",
            "amount": 250,
            "dueDate": "2025-03-10",
            "category": "lazer",
            "isRecurring": True,
            "recurrenceType": "parceled",
            "currentParcel": 4,
        })

        paid = toggle_paid(expense)

        assert paid.is_paid is True
        assert paid.current_parcel == 4
        assert paid.total_parcels == 4


class TestUpdateModels:
    """Tests for partial updates."""

    def test_only_set_fields_are_written(self):
        update = ExpenseUpdate(is_paid=True)
        assert update.to_document() == {"isPaid": True}

    def test_empty_update(self):
        assert ExpenseUpdate().is_empty
        assert IncomeUpdate().is_empty
        assert not IncomeUpdate(amount=Decimal("10")).is_empty

    def test_recurrence_replaces_all_recurrence_fields(self):
        """Switching to non-recurring clears the parcel fields."""
        document = ExpenseUpdate(recurrence=NonRecurring()).to_document()
        assert document == {
            "isRecurring": False,
            "recurrenceType": "none",
            "totalParcels": None,
            "currentParcel": None,
            "endDate": None,
        }

    def test_apply_to(self):
        expense = Expense(
            id="e1",
            description="Luz",
            amount=Decimal("100.00"),
            due_date=date(2025, 3, 5),
            category=ExpenseCategory.MORADIA,
        )
        updated = ExpenseUpdate(amount=Decimal("120.00")).apply_to(expense)
        assert updated.amount == Decimal("120.00")
        assert updated.description == "Luz"
        assert expense.amount == Decimal("100.00")

    def test_income_update_document(self):
        update = IncomeUpdate(description="Freela")
        assert update.to_document() == {"description": "Freela"}


class TestLedger:

    def test_find(self):
        ledger = Ledger(incomes=[Income(id="i1", description="Salário", amount=Decimal("10"))])
        assert ledger.find_income("i1").description == "Salário"
        assert ledger.find_income("missing") is None
        assert ledger.find_expense("i1") is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            description="Expense created",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            user_id="user-a",
            entity_id="e1",
            correlation_id=correlation_id,
            description="Expense deleted",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "expense_deleted"
        assert log_dict["user_id"] == "user-a"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_document_round_trip(self):
        """Events read back from the activity trail match what was written."""
        event = AuditEventBuilder.paid_toggled(
            user_id="user-a",
            expense_id="e1",
            is_paid=True,
            current_parcel=4,
            correlation_id=uuid4(),
        )
        document = event.to_document()
        assert "user_id" not in document
        assert json.loads(document["details"]) == {"is_paid": True, "current_parcel": 4}

        restored = AuditEvent.from_document("user-a", document)
        assert restored.event_id == event.event_id
        assert restored.event_type == AuditEventType.EXPENSE_PAID_TOGGLED
        assert restored.details["current_parcel"] == 4
        assert restored.is_user_action is True

    def test_builder_expense_created(self):
        event = AuditEventBuilder.expense_created(
            user_id="user-a",
            expense_id="e1",
            description="Luz",
            amount="100.00",
        )
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.entity_type == "expense"
        assert event.entity_id == "e1"
        assert event.is_user_action

    def test_builder_operation_failed(self):
        event = AuditEventBuilder.operation_failed(
            operation="delete_expense",
            error_type="NotFoundError",
            error_message="No document",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "No document"


class TestExpenseCategories:
    """Tests for the fixed category set."""

    def test_all_categories_exist(self):
        expected = {"moradia", "alimentacao", "transporte", "saude", "educacao", "lazer", "outros"}
        assert {c.value for c in ExpenseCategory} == expected
