"""
Ledger Data Models for Minhas Contas

These models define the strict schemas for every record a user keeps:
expenses (bills, monthly obligations, installment plans) and incomes.

They are designed to:
1. Enforce type safety at runtime
2. Make the recurrence invariant impossible to break
3. Be serializable to the flat document format the store keeps
4. Load documents written by earlier versions of the app

DESIGN DECISION: Recurrence is a tagged variant, not a bag of optional
fields. A parcel counter can only exist on a parceled recurrence, and an
end date only on a recurring expense, so the invariant is enforced by the
type itself rather than by checks scattered through the code.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


CENTS = Decimal("0.01")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization and enables the per-category report.
    """
    MORADIA = "moradia"
    ALIMENTACAO = "alimentacao"
    TRANSPORTE = "transporte"
    SAUDE = "saude"
    EDUCACAO = "educacao"
    LAZER = "lazer"
    OUTROS = "outros"


class RecurrenceType(str, Enum):
    """How an expense repeats."""
    NONE = "none"
    MONTHLY = "monthly"
    PARCELED = "parceled"  # Installment plan with a parcel counter


class LedgerCollection(str, Enum):
    """The two per-user collections kept by the store."""
    EXPENSES = "expenses"
    INCOMES = "incomes"


# =============================================================================
# RECURRENCE - Tagged variant
# =============================================================================

class NonRecurring(BaseModel):
    """A one-off expense."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"


class MonthlyRecurrence(BaseModel):
    """An expense that repeats every month, optionally until an end date."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["monthly"] = "monthly"
    end_date: Optional[date] = None


class ParceledRecurrence(BaseModel):
    """
    An installment plan.

    current_parcel tracks progress through the plan and starts at 1.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["parceled"] = "parceled"
    total_parcels: int = Field(
        ...,
        ge=1,
        description="Number of installments in the plan"
    )
    current_parcel: int = Field(
        default=1,
        ge=1,
        description="Installment currently being paid"
    )
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_parcel_progress(self) -> 'ParceledRecurrence':
        if self.current_parcel > self.total_parcels:
            raise ValueError("Current parcel cannot exceed total parcels")
        return self

    @property
    def is_last_parcel(self) -> bool:
        return self.current_parcel == self.total_parcels


Recurrence = Annotated[
    Union[NonRecurring, MonthlyRecurrence, ParceledRecurrence],
    Field(discriminator="kind"),
]


# =============================================================================
# DOCUMENT HELPERS
# =============================================================================

def to_cents(value: Any) -> Decimal:
    """
    Convert a stored number (float, int or text) to a two-place Decimal.

    Raises:
        ValueError: If the amount is missing or not a finite number
    """
    if value is None or value == "" or isinstance(value, bool):
        raise ValueError("Amount is missing")
    try:
        amount = Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return amount


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number >= 1 else None


def recurrence_to_document(recurrence: Union[NonRecurring, MonthlyRecurrence, ParceledRecurrence]) -> dict:
    """
    Flatten a recurrence into the stored document keys.

    Keys that do not apply to the recurrence kind are present with None,
    which partial updates interpret as "remove this field".
    """
    document = {
        "isRecurring": recurrence.kind != RecurrenceType.NONE.value,
        "recurrenceType": recurrence.kind,
        "totalParcels": None,
        "currentParcel": None,
        "endDate": None,
    }
    if isinstance(recurrence, ParceledRecurrence):
        document["totalParcels"] = recurrence.total_parcels
        document["currentParcel"] = recurrence.current_parcel
    if isinstance(recurrence, (MonthlyRecurrence, ParceledRecurrence)) and recurrence.end_date:
        document["endDate"] = recurrence.end_date.isoformat()
    return document


def recurrence_from_document(document: Mapping[str, Any]) -> Union[NonRecurring, MonthlyRecurrence, ParceledRecurrence]:
    """
    Rebuild the recurrence variant from stored keys.

    Handles documents written by earlier versions of the app: a recurring
    flag without a type is read as non-recurring, a parceled document
    without a counter starts at parcel 1, and a counter past the last
    parcel is read as the last parcel.

    A parceled document without totalParcels is read with the counter as
    its total, i.e. already on its last parcel. Toggling it paid then
    leaves the counter where it is; the plan has to be edited with the
    real number of parcels before it advances again.
    """
    kind = document.get("recurrenceType") if document.get("isRecurring") else None
    end_date = _parse_date(document.get("endDate"))

    if kind == RecurrenceType.MONTHLY.value:
        return MonthlyRecurrence(end_date=end_date)

    if kind == RecurrenceType.PARCELED.value:
        current = _positive_int(document.get("currentParcel")) or 1
        total = _positive_int(document.get("totalParcels")) or current
        return ParceledRecurrence(
            total_parcels=total,
            current_parcel=min(current, total),
            end_date=end_date,
        )

    return NonRecurring()


def _drop_empty(document: dict) -> dict:
    return {key: value for key, value in document.items() if value is not None}


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    A validated expense not yet persisted.

    Has no id: the store assigns one on creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the expense is"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Amount in BRL"
    )
    due_date: date = Field(
        ...,
        description="Date the expense is due"
    )
    category: ExpenseCategory
    recurrence: Recurrence = Field(default_factory=NonRecurring)
    is_paid: bool = Field(
        default=False,
        description="Paid in the current billing cycle"
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence.kind != RecurrenceType.NONE.value

    @property
    def recurrence_type(self) -> RecurrenceType:
        return RecurrenceType(self.recurrence.kind)

    def to_document(self) -> dict:
        """Convert to the stored document format (camelCase keys, no id)."""
        document = {
            "description": self.description,
            "amount": float(self.amount),
            "dueDate": self.due_date.isoformat(),
            "category": self.category.value,
            "isPaid": self.is_paid,
        }
        document.update(recurrence_to_document(self.recurrence))
        return _drop_empty(document)

    def with_id(self, expense_id: str) -> 'Expense':
        """The persisted expense this draft became."""
        return Expense(id=expense_id, **self.model_dump())


class Expense(ExpenseDraft):
    """
    A persisted expense owned by one user.

    The id is opaque and only unique within that user's expenses.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Identifier assigned by the store"
    )

    @property
    def end_date(self) -> Optional[date]:
        return getattr(self.recurrence, "end_date", None)

    @property
    def current_parcel(self) -> Optional[int]:
        return getattr(self.recurrence, "current_parcel", None)

    @property
    def total_parcels(self) -> Optional[int]:
        return getattr(self.recurrence, "total_parcels", None)

    @classmethod
    def from_document(cls, document_id: str, document: Mapping[str, Any]) -> 'Expense':
        """Build an Expense from a stored document."""
        return cls(
            id=document_id,
            description=document.get("description", ""),
            amount=to_cents(document.get("amount")),
            due_date=_parse_date(document.get("dueDate")),
            category=document.get("category"),
            recurrence=recurrence_from_document(document),
            is_paid=bool(document.get("isPaid", False)),
        )


class ExpenseUpdate(BaseModel):
    """
    Partial changes to an expense.

    Only fields explicitly set are written. A recurrence, when set,
    replaces all recurrence fields at once.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    due_date: Optional[date] = None
    category: Optional[ExpenseCategory] = None
    recurrence: Optional[Recurrence] = None
    is_paid: Optional[bool] = None

    @property
    def is_empty(self) -> bool:
        return not self._changed()

    def _changed(self) -> dict:
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }

    def to_document(self) -> dict:
        """Stored keys to write; None values mean the key is removed."""
        changed = self._changed()
        document = {}
        if "description" in changed:
            document["description"] = self.description
        if "amount" in changed:
            document["amount"] = float(self.amount)
        if "due_date" in changed:
            document["dueDate"] = self.due_date.isoformat()
        if "category" in changed:
            document["category"] = self.category.value
        if "recurrence" in changed:
            document.update(recurrence_to_document(self.recurrence))
        if "is_paid" in changed:
            document["isPaid"] = self.is_paid
        return document

    def apply_to(self, expense: Expense) -> Expense:
        """The expense as it looks after these changes."""
        return expense.model_copy(update=self._changed())


# =============================================================================
# INCOME MODELS
# =============================================================================

class IncomeDraft(BaseModel):
    """A validated income not yet persisted."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Where the money comes from (e.g. Salário)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Amount in BRL"
    )

    def to_document(self) -> dict:
        return {
            "description": self.description,
            "amount": float(self.amount),
        }

    def with_id(self, income_id: str) -> 'Income':
        return Income(id=income_id, **self.model_dump())


class Income(IncomeDraft):
    """A persisted income owned by one user."""

    id: str = Field(..., min_length=1)

    @classmethod
    def from_document(cls, document_id: str, document: Mapping[str, Any]) -> 'Income':
        return cls(
            id=document_id,
            description=document.get("description", ""),
            amount=to_cents(document.get("amount")),
        )


class IncomeUpdate(BaseModel):
    """Partial changes to an income."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

    @property
    def is_empty(self) -> bool:
        return self.description is None and self.amount is None

    def to_document(self) -> dict:
        document = {}
        if self.description is not None:
            document["description"] = self.description
        if self.amount is not None:
            document["amount"] = float(self.amount)
        return document

    def apply_to(self, income: Income) -> Income:
        changes = {
            name: value
            for name, value in (("description", self.description), ("amount", self.amount))
            if value is not None
        }
        return income.model_copy(update=changes)


# =============================================================================
# LEDGER
# =============================================================================

class Ledger(BaseModel):
    """Everything one user has recorded: expenses and incomes."""

    expenses: list[Expense] = Field(default_factory=list)
    incomes: list[Income] = Field(default_factory=list)

    def find_expense(self, expense_id: str) -> Optional[Expense]:
        return next((e for e in self.expenses if e.id == expense_id), None)

    def find_income(self, income_id: str) -> Optional[Income]:
        return next((i for i in self.incomes if i.id == income_id), None)
