"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in Firestore, Google Sheets or memory
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally minimal - four document operations
on two per-user collections. Records are stored as flat documents
(see Expense.to_document); converting them to models is the caller's job.

Every collection is scoped by user_id. There is no operation that reads
or writes across users.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from minhas_contas.errors import NotFoundError, PersistenceError
from minhas_contas.models.audit import AuditEvent
from minhas_contas.models.ledger import LedgerCollection


class StoredDocument(dict):
    """A document read back from storage, tagged with its identifier."""

    def __init__(self, document_id: str, fields: dict[str, Any]):
        super().__init__(fields)
        self.id = document_id


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the per-user ledger store.

    Any storage implementation (Firestore, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create(
        self,
        user_id: str,
        collection: LedgerCollection,
        document: dict[str, Any],
    ) -> str:
        """
        Store a new document.

        Args:
            user_id: Owner of the document
            collection: expenses or incomes
            document: Fields to store (no id)

        Returns:
            The fresh identifier assigned to the document

        Raises:
            PersistenceError: If the backend fails
        """
        pass

    @abstractmethod
    async def list_all(
        self,
        user_id: str,
        collection: LedgerCollection,
    ) -> list[StoredDocument]:
        """
        Every document in the user's collection, in no particular order.

        Raises:
            PersistenceError: If the backend fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
        fields: dict[str, Any],
    ) -> None:
        """
        Apply a partial update. Fields not mentioned are unchanged;
        a field set to None is removed from the document.

        Raises:
            NotFoundError: If the document doesn't exist for this user
            PersistenceError: If the backend fails
        """
        pass

    @abstractmethod
    async def delete(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
    ) -> None:
        """
        Permanently remove a document.

        Raises:
            NotFoundError: If the document doesn't exist for this user
            PersistenceError: If the backend fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for the per-user activity trail.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to its user's trail.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[AuditEvent]:
        """
        The most recent events of one user, newest first.
        """
        pass


def merge_fields(document: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Apply partial-update semantics to a plain dict: None removes a key."""
    merged = dict(document)
    for key, value in fields.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


def not_found(collection: LedgerCollection, document_id: str, user_id: Optional[str] = None) -> NotFoundError:
    """Uniform NotFoundError message across backends."""
    owner = f" for user {user_id}" if user_id else ""
    return NotFoundError(f"No document '{document_id}' in {collection.value}{owner}")
