"""
Form Input Validation

DESIGN DECISION: Raw form input is checked here, before anything reaches
the store. Every field is checked and all issues are collected, then a
single ValidationError carries them back to the form.

Checks:
- description present and at most 200 characters
- amount parses (comma or dot as decimal separator) and is not negative
- category is one of the fixed categories
- due date is a real calendar date
- parceled recurrences have a parcel count of at least 1
- an end date is not before the due date

IMPORTANT: Validation NEVER silently fixes issues beyond normalizing
the number format. It reports them for the user to correct.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from minhas_contas.errors import ValidationError
from minhas_contas.models.ledger import (
    CENTS,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseUpdate,
    IncomeDraft,
    IncomeUpdate,
    MonthlyRecurrence,
    NonRecurring,
    ParceledRecurrence,
    RecurrenceType,
)


def parse_amount(value: Any) -> Decimal:
    """
    Parse a user-typed amount into a two-place Decimal.

    Accepts numbers and text such as "1234.56", "1234,56", "1.234,56"
    or "R$ 12,50". When both separators appear, the last one is the
    decimal separator.

    Raises:
        ValueError: If the text is not a number
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        amount = Decimal(str(value))
    else:
        text = str(value or "").replace("R$", "").replace(" ", "").strip()
        if not text:
            raise ValueError("Amount is required")
        if "," in text and "." in text:
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Not a valid amount: {value}")

    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value}")
    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context can hold to the cent
        raise ValueError(f"Amount is too large: {value}")


def parse_date(value: Any) -> date:
    """
    Parse a date from the form (date object or ISO text).

    Raises:
        ValueError: If the value is not a real calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValueError("Date is required")
    return date.fromisoformat(text)


# Form keys that describe how an expense repeats
RECURRENCE_KEYS = ("is_recurring", "recurrence_type", "total_parcels", "current_parcel", "end_date")


class _IssueCollector:
    """Accumulates (field, message) pairs across all checks."""

    def __init__(self):
        self.issues: list[tuple[str, str]] = []

    def add(self, field: str, message: str) -> None:
        self.issues.append((field, message))

    def raise_if_any(self, what: str) -> None:
        if self.issues:
            summary = "; ".join(f"{field}: {message}" for field, message in self.issues)
            raise ValidationError(f"Invalid {what}: {summary}", issues=self.issues)


def _build(model, issues: _IssueCollector, what: str, **fields):
    """Instantiate the model, reporting any remaining pydantic errors as form issues."""
    try:
        return model(**fields)
    except PydanticValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "form"
            issues.add(field, error["msg"])
        issues.raise_if_any(what)
        raise


def _check_description(value: Any, issues: _IssueCollector) -> Optional[str]:
    text = str(value or "").strip()
    if not text:
        issues.add("description", "Description is required")
        return None
    if len(text) > 200:
        issues.add("description", "Description must be at most 200 characters")
        return None
    return text


def _check_amount(value: Any, issues: _IssueCollector) -> Optional[Decimal]:
    try:
        amount = parse_amount(value)
    except ValueError as e:
        issues.add("amount", str(e))
        return None
    if amount < 0:
        issues.add("amount", "Amount cannot be negative")
        return None
    return amount


class ExpenseFormValidator:
    """
    Turns expense form input into an ExpenseDraft or ExpenseUpdate.

    Form keys: description, amount, due_date, category, is_recurring,
    recurrence_type, total_parcels, current_parcel, end_date.
    """

    def validate(self, form: Mapping[str, Any]) -> ExpenseDraft:
        """
        Validate a new-expense form.

        New parceled expenses start at parcel 1 unless the form says
        otherwise. is_paid always starts False.

        Raises:
            ValidationError: With every issue found
        """
        issues = _IssueCollector()

        description = _check_description(form.get("description"), issues)
        amount = _check_amount(form.get("amount"), issues)
        due_date = self._check_due_date(form.get("due_date"), issues)
        category = self._check_category(form.get("category"), issues)
        recurrence = self._check_recurrence(form, due_date, issues)

        issues.raise_if_any("expense")

        return _build(
            ExpenseDraft,
            issues,
            "expense",
            description=description,
            amount=amount,
            due_date=due_date,
            category=category,
            recurrence=recurrence,
            is_paid=False,
        )

    def validate_update(
        self,
        form: Mapping[str, Any],
        current: Optional[Expense] = None,
    ) -> ExpenseUpdate:
        """
        Validate an edit form. Only keys present in the form are changed.

        When any recurrence key is present the recurrence is rebuilt from
        the form on top of the current expense: recurrence keys the form
        leaves out (the parcel counter included) keep their stored values.
        Without the current expense, the form must say is_recurring.

        Raises:
            ValidationError: With every issue found
        """
        issues = _IssueCollector()
        changes: dict[str, Any] = {}

        if "description" in form:
            changes["description"] = _check_description(form.get("description"), issues)
        if "amount" in form:
            changes["amount"] = _check_amount(form.get("amount"), issues)
        if "due_date" in form:
            changes["due_date"] = self._check_due_date(form.get("due_date"), issues)
        if "category" in form:
            changes["category"] = self._check_category(form.get("category"), issues)
        if any(key in form for key in RECURRENCE_KEYS):
            if current is None and "is_recurring" not in form:
                issues.add("is_recurring", "Required when changing the recurrence")
            else:
                due_date = changes.get("due_date") or (current.due_date if current else None)
                changes["recurrence"] = self._check_recurrence(form, due_date, issues, current)

        issues.raise_if_any("expense changes")

        return _build(ExpenseUpdate, issues, "expense changes", **changes)

    def _check_due_date(self, value: Any, issues: _IssueCollector) -> Optional[date]:
        try:
            return parse_date(value)
        except ValueError:
            issues.add("due_date", "Due date must be a valid date (YYYY-MM-DD)")
            return None

    def _check_category(self, value: Any, issues: _IssueCollector) -> Optional[ExpenseCategory]:
        key = value.value if isinstance(value, ExpenseCategory) else str(value or "").strip()
        try:
            return ExpenseCategory(key)
        except ValueError:
            valid = ", ".join(c.value for c in ExpenseCategory)
            issues.add("category", f"Unknown category '{key}'. Valid: {valid}")
            return None

    def _check_recurrence(
        self,
        form: Mapping[str, Any],
        due_date: Optional[date],
        issues: _IssueCollector,
        current: Optional[Expense] = None,
    ):
        stored = current.recurrence if current is not None else NonRecurring()

        if "is_recurring" in form:
            is_recurring = bool(form.get("is_recurring"))
        else:
            is_recurring = stored.kind != RecurrenceType.NONE.value

        raw_type = form.get("recurrence_type") if "recurrence_type" in form else stored.kind
        if isinstance(raw_type, RecurrenceType):
            raw_type = raw_type.value
        raw_type = raw_type or RecurrenceType.NONE.value

        if not is_recurring or raw_type == RecurrenceType.NONE.value:
            return NonRecurring()

        end_date = getattr(stored, "end_date", None)
        if "end_date" in form:
            end_date = None
            if form.get("end_date"):
                try:
                    end_date = parse_date(form.get("end_date"))
                except ValueError:
                    issues.add("end_date", "End date must be a valid date (YYYY-MM-DD)")
        if end_date and due_date and end_date < due_date:
            issues.add("end_date", "End date cannot be before the due date")

        if raw_type == RecurrenceType.MONTHLY.value:
            return MonthlyRecurrence(end_date=end_date)

        if raw_type == RecurrenceType.PARCELED.value:
            stored_plan = stored if isinstance(stored, ParceledRecurrence) else None

            if stored_plan is not None and "total_parcels" not in form:
                total = stored_plan.total_parcels
            else:
                total = self._check_parcel_count(form.get("total_parcels"), "total_parcels", issues)

            if form.get("current_parcel") not in (None, ""):
                parcel = self._check_parcel_count(form.get("current_parcel"), "current_parcel", issues)
            elif stored_plan is not None:
                parcel = stored_plan.current_parcel
            else:
                parcel = 1

            if total is None or parcel is None:
                return None
            if parcel > total:
                issues.add("current_parcel", "Current parcel cannot exceed total parcels")
                return None
            return ParceledRecurrence(
                total_parcels=total,
                current_parcel=parcel,
                end_date=end_date,
            )

        issues.add("recurrence_type", f"Unknown recurrence type '{raw_type}'")
        return None

    def _check_parcel_count(self, value: Any, field: str, issues: _IssueCollector) -> Optional[int]:
        try:
            number = int(value)
        except (TypeError, ValueError):
            issues.add(field, "Number of parcels is required for parceled expenses")
            return None
        if number < 1:
            issues.add(field, "Number of parcels must be at least 1")
            return None
        return number


class IncomeFormValidator:
    """Turns income form input (description, amount) into drafts and updates."""

    def validate(self, form: Mapping[str, Any]) -> IncomeDraft:
        issues = _IssueCollector()
        description = _check_description(form.get("description"), issues)
        amount = _check_amount(form.get("amount"), issues)

        issues.raise_if_any("income")
        return _build(IncomeDraft, issues, "income", description=description, amount=amount)

    def validate_update(self, form: Mapping[str, Any]) -> IncomeUpdate:
        issues = _IssueCollector()
        changes: dict[str, Any] = {}

        if "description" in form:
            changes["description"] = _check_description(form.get("description"), issues)
        if "amount" in form:
            changes["amount"] = _check_amount(form.get("amount"), issues)

        issues.raise_if_any("income changes")
        return _build(IncomeUpdate, issues, "income changes", **changes)
