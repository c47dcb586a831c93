"""
Main Orchestrator for Minhas Contas

This module ties together validation, storage, the paid-toggle rule and
the audit log, and defines every ledger operation the UI can trigger:
1. Create / list / update / delete expenses
2. Create / list / update / delete incomes
3. Toggle an expense paid (advancing installment plans)
4. Load the whole ledger and its summary

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation receives the signed-in user explicitly; no session, no access
- Nothing reaches storage without passing validation
- Every write is audited
- Errors propagate unchanged; nothing is retried, nothing is partially applied
"""

import asyncio
from functools import partial
from typing import Any, Mapping, Optional, Union
from uuid import UUID

import structlog

from minhas_contas.audit import AuditLogger, configure_logging, create_correlation_id
from minhas_contas.config import get_settings
from minhas_contas.errors import (
    AuthenticationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from minhas_contas.ledger.aggregation import LedgerSummary, summarize
from minhas_contas.ledger.recurrence import paid_toggle_changes
from minhas_contas.models.ledger import (
    Expense,
    ExpenseDraft,
    ExpenseUpdate,
    Income,
    IncomeDraft,
    IncomeUpdate,
    Ledger,
    LedgerCollection,
)
from minhas_contas.services.auth import UserSession
from minhas_contas.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from minhas_contas.services.storage.interface import not_found
from minhas_contas.validation import ExpenseFormValidator, IncomeFormValidator
from minhas_contas.validation.validator import RECURRENCE_KEYS


logger = structlog.get_logger("minhas_contas.orchestrator")

ExpenseInput = Union[ExpenseDraft, Mapping[str, Any]]
IncomeInput = Union[IncomeDraft, Mapping[str, Any]]


def require_session(session: Optional[UserSession]) -> UserSession:
    """
    The session to act on behalf of.

    Raises:
        AuthenticationError: If nobody is signed in
    """
    if session is None or not session.uid:
        raise AuthenticationError("Not authenticated")
    return session


class LedgerService:
    """
    Orchestrates every ledger operation for one signed-in user at a time.

    The service holds no user state: each call names its session, so one
    instance can serve every browser session of the app.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        expense_validator: Optional[ExpenseFormValidator] = None,
        income_validator: Optional[IncomeFormValidator] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._expense_validator = expense_validator or ExpenseFormValidator()
        self._income_validator = income_validator or IncomeFormValidator()

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def create_expense(
        self,
        session: Optional[UserSession],
        expense: ExpenseInput,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Validate and store a new expense.

        Accepts a draft or raw form input. isPaid starts False and a
        parceled expense starts at parcel 1.

        Returns:
            The stored expense with its new id

        Raises:
            AuthenticationError: No session
            ValidationError: Bad input (nothing is stored)
            PersistenceError: Backend failure
        """
        user = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        draft = await self._validated(
            user, "expense", expense, ExpenseDraft, self._expense_validator.validate, correlation_id
        )
        draft = draft.model_copy(update={"is_paid": False})

        expense_id = await self._guarded(
            "create_expense",
            user,
            correlation_id,
            self._storage.create(user.uid, LedgerCollection.EXPENSES, draft.to_document()),
        )

        await self._audit_logger.log_expense_created(
            user_id=user.uid,
            expense_id=expense_id,
            description=draft.description,
            amount=str(draft.amount),
            correlation_id=correlation_id,
        )
        return draft.with_id(expense_id)

    async def list_expenses(self, session: Optional[UserSession]) -> list[Expense]:
        """
        Every expense of the user, unordered.

        Documents that cannot be read as an Expense are skipped with a
        warning rather than guessed at.
        """
        user = require_session(session)
        documents = await self._guarded(
            "list_expenses",
            user,
            None,
            self._storage.list_all(user.uid, LedgerCollection.EXPENSES),
        )

        expenses = []
        for document in documents:
            try:
                expenses.append(Expense.from_document(document.id, document))
            except ValueError as e:
                logger.warning(
                    "malformed_document_skipped",
                    collection=LedgerCollection.EXPENSES.value,
                    document_id=document.id,
                    user_id=user.uid,
                    error=str(e),
                )
        return expenses

    async def update_expense(
        self,
        session: Optional[UserSession],
        expense_id: str,
        changes: Union[ExpenseUpdate, Mapping[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Apply partial changes to an expense. Unmentioned fields stay as they are.

        A form that touches the recurrence is merged with the stored
        expense, so the parcel counter and end date survive edits that
        do not mention them.

        Raises:
            AuthenticationError: No session
            ValidationError: Bad input, or nothing to change
            NotFoundError: No such expense for this user
            PersistenceError: Backend failure
        """
        user = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        validate = self._expense_validator.validate_update
        if not isinstance(changes, ExpenseUpdate) and any(key in changes for key in RECURRENCE_KEYS):
            current = await self._stored_expense(user, expense_id, correlation_id)
            validate = partial(self._expense_validator.validate_update, current=current)

        update = await self._validated(user, "expense", changes, ExpenseUpdate, validate, correlation_id)
        fields = update.to_document()
        if not fields:
            raise ValidationError("Nothing to update")

        await self._guarded(
            "update_expense",
            user,
            correlation_id,
            self._storage.update(user.uid, LedgerCollection.EXPENSES, expense_id, fields),
        )

        await self._audit_logger.log_expense_updated(
            user_id=user.uid,
            expense_id=expense_id,
            changed_fields=sorted(fields),
            correlation_id=correlation_id,
        )

    async def toggle_paid(
        self,
        session: Optional[UserSession],
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Flip an expense between paid and unpaid.

        Marking a parceled expense paid advances its parcel in the same
        update. Marking it unpaid does not roll the parcel back.

        Returns:
            The expense as stored after the toggle

        Raises:
            AuthenticationError: No session
            NotFoundError: The expense no longer exists
            PersistenceError: Backend failure
        """
        user = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        changes = paid_toggle_changes(expense)
        await self._guarded(
            "toggle_paid",
            user,
            correlation_id,
            self._storage.update(user.uid, LedgerCollection.EXPENSES, expense.id, changes.to_document()),
        )

        toggled = changes.apply_to(expense)
        await self._audit_logger.log_paid_toggled(
            user_id=user.uid,
            expense_id=expense.id,
            is_paid=toggled.is_paid,
            current_parcel=toggled.current_parcel,
            correlation_id=correlation_id,
        )
        return toggled

    async def delete_expense(
        self,
        session: Optional[UserSession],
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Permanently delete an expense.

        Raises:
            AuthenticationError: No session
            NotFoundError: No such expense for this user
            PersistenceError: Backend failure
        """
        user = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        await self._guarded(
            "delete_expense",
            user,
            correlation_id,
            self._storage.delete(user.uid, LedgerCollection.EXPENSES, expense_id),
        )
        await self._audit_logger.log_expense_deleted(
            user_id=user.uid,
            expense_id=expense_id,
            correlation_id=correlation_id,
        )

    # -------------------------------------------------------------------------
    # Incomes
    # -------------------------------------------------------------------------

    async def create_income(
        self,
        session: Optional[UserSession],
        income: IncomeInput,
        correlation_id: Optional[UUID] = None,
    ) -> Income:
        """Validate and store a new income."""
        user = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        draft = await self._validated(
            user, "income", income, IncomeDraft, self._income_validator.validate, correlation_id
        )

        income_id = await self._guarded(
            "create_income",
            user,
            correlation_id,
            self._storage.create(user.uid, LedgerCollection.INCOMES, draft.to_document()),
        )

        await self._audit_logger.log_income_created(
            user_id=user.uid,
            income_id=income_id,
            description=draft.description,
            amount=str(draft.amount),
            correlation_id=correlation_id,
        )
        return draft.with_id(income_id)

    async def list_incomes(self, session: Optional[UserSession]) -> list[Income]:
        """Every income of the user, unordered."""
        user = require_session(session)
        documents = await self._guarded(
            "list_incomes",
            user,
            None,
            self._storage.list_all(user.uid, LedgerCollection.INCOMES),
        )

        incomes = []
        for document in documents:
            try:
                incomes.append(Income.from_document(document.id, document))
            except ValueError as e:
                logger.warning(
                    "malformed_document_skipped",
                    collection=LedgerCollection.INCOMES.value,
                    document_id=document.id,
                    user_id=user.uid,
                    error=str(e),
                )
        return incomes

    async def update_income(
        self,
        session: Optional[UserSession],
        income_id: str,
        changes: Union[IncomeUpdate, Mapping[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Apply partial changes to an income."""
        user = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        update = await self._validated(
            user, "income", changes, IncomeUpdate, self._income_validator.validate_update, correlation_id
        )
        fields = update.to_document()
        if not fields:
            raise ValidationError("Nothing to update")

        await self._guarded(
            "update_income",
            user,
            correlation_id,
            self._storage.update(user.uid, LedgerCollection.INCOMES, income_id, fields),
        )
        await self._audit_logger.log_income_updated(
            user_id=user.uid,
            income_id=income_id,
            changed_fields=sorted(fields),
            correlation_id=correlation_id,
        )

    async def delete_income(
        self,
        session: Optional[UserSession],
        income_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Permanently delete an income."""
        user = require_session(session)
        correlation_id = correlation_id or create_correlation_id()

        await self._guarded(
            "delete_income",
            user,
            correlation_id,
            self._storage.delete(user.uid, LedgerCollection.INCOMES, income_id),
        )
        await self._audit_logger.log_income_deleted(
            user_id=user.uid,
            income_id=income_id,
            correlation_id=correlation_id,
        )

    # -------------------------------------------------------------------------
    # Whole ledger
    # -------------------------------------------------------------------------

    async def load_ledger(self, session: Optional[UserSession]) -> Ledger:
        """Both collections, fetched concurrently."""
        require_session(session)
        expenses, incomes = await asyncio.gather(
            self.list_expenses(session),
            self.list_incomes(session),
        )
        return Ledger(expenses=expenses, incomes=incomes)

    async def load_summary(self, session: Optional[UserSession]) -> tuple[Ledger, LedgerSummary]:
        """The ledger plus every total shown on the dashboard and report."""
        ledger = await self.load_ledger(session)
        return ledger, summarize(ledger.expenses, ledger.incomes)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _validated(self, user, entity_type, candidate, model, validate, correlation_id):
        """Run form validation on raw input; drafts/updates pass straight through."""
        if isinstance(candidate, model):
            return candidate
        try:
            return validate(candidate)
        except ValidationError as e:
            await self._audit_logger.log_validation_failed(
                user_id=user.uid,
                entity_type=entity_type,
                issues=e.issues,
                correlation_id=correlation_id,
            )
            raise

    async def _stored_expense(self, user: UserSession, expense_id: str, correlation_id) -> Expense:
        """The expense as currently stored, for merging partial edits."""
        for expense in await self.list_expenses(user):
            if expense.id == expense_id:
                return expense

        error = not_found(LedgerCollection.EXPENSES, expense_id, user.uid)
        await self._audit_logger.log_operation_failed(
            operation="update_expense",
            error=error,
            user_id=user.uid,
            correlation_id=correlation_id,
        )
        raise error

    async def _guarded(self, operation: str, user: UserSession, correlation_id, call):
        """Await a storage call, auditing the failure before it propagates."""
        try:
            return await call
        except (NotFoundError, PersistenceError) as e:
            await self._audit_logger.log_operation_failed(
                operation=operation,
                error=e,
                user_id=user.uid,
                correlation_id=correlation_id,
            )
            raise


def create_storage(
    backend: Optional[str] = None,
) -> tuple[LedgerStorageInterface, AuditStorageInterface]:
    """
    Build the configured ledger and audit storage.

    Args:
        backend: "firestore", "sheets" or "memory".
                 Defaults to the STORAGE_BACKEND setting.

    Raises:
        PersistenceError: If the backend is not configured
    """
    backend = backend or get_settings().app.storage_backend

    if backend == "memory":
        return InMemoryLedgerStorage(), InMemoryAuditStorage()

    try:
        if backend == "firestore":
            from minhas_contas.services.storage.firestore import (
                FirestoreAuditStorage,
                FirestoreClient,
                FirestoreLedgerStorage,
            )
            client = FirestoreClient()
            return FirestoreLedgerStorage(client), FirestoreAuditStorage(client)

        if backend == "sheets":
            from minhas_contas.services.storage.google_sheets import (
                GoogleSheetsAuditStorage,
                GoogleSheetsClient,
                GoogleSheetsLedgerStorage,
            )
            client = GoogleSheetsClient()
            return GoogleSheetsLedgerStorage(client), GoogleSheetsAuditStorage(client)
    except Exception as e:
        logger.error("storage_not_configured", backend=backend, error=str(e))
        raise PersistenceError(f"Storage not configured ({backend}): {e}")

    raise PersistenceError(f"Unknown storage backend: {backend}")


def create_app_components(
    backend: Optional[str] = None,
) -> tuple[LedgerService, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        backend: Storage backend override (see create_storage).

    Returns:
        (ledger_service, audit_logger)
    """
    configure_logging(get_settings().app.log_level)

    ledger_storage, audit_storage = create_storage(backend)
    audit_logger = AuditLogger(audit_storage)

    return LedgerService(storage=ledger_storage, audit_logger=audit_logger), audit_logger
