"""
In-Memory Storage Implementation

Process-local dictionaries behind the same interface as the hosted
backends. Used by the test suite and by the app's demo mode
(STORAGE_BACKEND=memory). Nothing survives a restart.
"""

from typing import Any, Optional
from uuid import uuid4

from minhas_contas.models.audit import AuditEvent
from minhas_contas.models.ledger import LedgerCollection
from minhas_contas.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StoredDocument,
    merge_fields,
    not_found,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Documents kept as {(user_id, collection): {document_id: fields}}.

    Stored dicts are copied on the way in and out so callers can never
    mutate the store by accident.
    """

    def __init__(self):
        self._documents: dict[tuple[str, str], dict[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, str]] = []

    def _bucket(self, user_id: str, collection: LedgerCollection) -> dict[str, dict[str, Any]]:
        return self._documents.setdefault((user_id, collection.value), {})

    async def create(
        self,
        user_id: str,
        collection: LedgerCollection,
        document: dict[str, Any],
    ) -> str:
        self.calls.append(("create", user_id, collection.value))
        document_id = uuid4().hex[:20]
        self._bucket(user_id, collection)[document_id] = merge_fields({}, document)
        return document_id

    async def list_all(
        self,
        user_id: str,
        collection: LedgerCollection,
    ) -> list[StoredDocument]:
        self.calls.append(("list_all", user_id, collection.value))
        return [
            StoredDocument(document_id, dict(fields))
            for document_id, fields in self._bucket(user_id, collection).items()
        ]

    async def update(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
        fields: dict[str, Any],
    ) -> None:
        self.calls.append(("update", user_id, collection.value))
        bucket = self._bucket(user_id, collection)
        if document_id not in bucket:
            raise not_found(collection, document_id, user_id)
        bucket[document_id] = merge_fields(bucket[document_id], fields)

    async def delete(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
    ) -> None:
        self.calls.append(("delete", user_id, collection.value))
        bucket = self._bucket(user_id, collection)
        if document_id not in bucket:
            raise not_found(collection, document_id, user_id)
        del bucket[document_id]

    def get(self, user_id: str, collection: LedgerCollection, document_id: str) -> Optional[dict[str, Any]]:
        """Direct read, for tests and debugging."""
        document = self._bucket(user_id, collection).get(document_id)
        return dict(document) if document is not None else None


class InMemoryAuditStorage(AuditStorageInterface):
    """Activity trail kept in a list per user."""

    def __init__(self):
        self._events: dict[str, list[AuditEvent]] = {}

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.setdefault(event.user_id or "", []).append(event)
        return True

    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[AuditEvent]:
        events = sorted(self._events.get(user_id, []), key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
