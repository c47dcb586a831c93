"""
Firestore Storage Implementation

DESIGN DECISION: Firestore is the primary backend because:
1. Documents are schemaless, matching the flat record format
2. Per-user subcollections give isolation by path: users/{uid}/expenses
3. Data written by earlier versions of the app lives there already

TRADEOFFS:
- No query-side aggregation (we sum in Python)
- update() on a missing document fails, but delete() does not,
  so delete checks existence first

The Firebase Admin SDK is synchronous; calls are made directly inside the
async methods. Each call is one request: there is no retry on reads or
writes. Only initializing the SDK is retried.
"""

import threading
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore import DELETE_FIELD, Query
from tenacity import retry, stop_after_attempt, wait_exponential

from minhas_contas.config import get_settings
from minhas_contas.errors import NotFoundError, PersistenceError
from minhas_contas.models.audit import AuditEvent
from minhas_contas.models.ledger import LedgerCollection
from minhas_contas.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StoredDocument,
    not_found,
)


USERS_COLLECTION = "users"
ACTIVITY_COLLECTION = "activity"

_init_lock = threading.Lock()


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Initializes the Firebase Admin SDK exactly once per process and
    builds user-scoped collection references.
    """

    def __init__(self, db=None):
        self._db = db
        self._settings = get_settings().firebase if db is None else None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self):
        """
        Initialize Firebase Admin and return a Firestore client.

        Uses the service account file when configured, otherwise
        Application Default Credentials.
        """
        if self._db is not None:
            return self._db

        with _init_lock:
            try:
                if not firebase_admin._apps:
                    if self._settings.credentials_path:
                        cred = credentials.Certificate(self._settings.credentials_path)
                    else:
                        cred = credentials.ApplicationDefault()
                    options = {"projectId": self._settings.project_id} if self._settings.project_id else None
                    firebase_admin.initialize_app(cred, options)
                self._db = firestore.client()
            except FileNotFoundError:
                raise PersistenceError(
                    f"Firebase credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise PersistenceError(f"Failed to connect to Firestore: {e}")

        return self._db

    def user_collection(self, user_id: str, name: str):
        """users/{user_id}/{name}"""
        if not user_id:
            raise ValueError("user_collection requires a user id")
        return self.connect().collection(USERS_COLLECTION).document(user_id).collection(name)


class FirestoreLedgerStorage(LedgerStorageInterface):
    """
    Firestore implementation of the ledger store.

    One document per record at users/{uid}/{expenses|incomes}/{docId};
    the document id is the record id.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    async def create(
        self,
        user_id: str,
        collection: LedgerCollection,
        document: dict[str, Any],
    ) -> str:
        """Add a document and return its generated id."""
        try:
            _, ref = self._client.user_collection(user_id, collection.value).add(document)
            return ref.id
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to create {collection.value} document: {e}")

    async def list_all(
        self,
        user_id: str,
        collection: LedgerCollection,
    ) -> list[StoredDocument]:
        """Read the whole collection."""
        try:
            snapshots = self._client.user_collection(user_id, collection.value).stream()
            return [StoredDocument(snap.id, snap.to_dict() or {}) for snap in snapshots]
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to list {collection.value}: {e}")

    async def update(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
        fields: dict[str, Any],
    ) -> None:
        """Partial update; None values become field deletes."""
        payload = {
            key: DELETE_FIELD if value is None else value
            for key, value in fields.items()
        }
        try:
            ref = self._client.user_collection(user_id, collection.value).document(document_id)
            ref.update(payload)
        except google_exceptions.NotFound:
            raise not_found(collection, document_id, user_id)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to update {collection.value} document: {e}")

    async def delete(
        self,
        user_id: str,
        collection: LedgerCollection,
        document_id: str,
    ) -> None:
        """Delete after confirming the document exists."""
        try:
            ref = self._client.user_collection(user_id, collection.value).document(document_id)
            if not ref.get().exists:
                raise not_found(collection, document_id, user_id)
            ref.delete()
        except (NotFoundError, PersistenceError):
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete {collection.value} document: {e}")


class FirestoreAuditStorage(AuditStorageInterface):
    """
    Firestore implementation of the activity trail.

    Events are append-only documents at users/{uid}/activity/{eventId}.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        if not event.user_id:
            # Events without an owner (e.g. failed sign-in) only go to the local log
            return False
        try:
            self._client.user_collection(event.user_id, ACTIVITY_COLLECTION).document(
                str(event.event_id)
            ).set(event.to_document())
            return True
        except Exception as e:
            raise PersistenceError(f"Failed to write audit event: {e}")

    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[AuditEvent]:
        """Newest first."""
        try:
            query = (
                self._client.user_collection(user_id, ACTIVITY_COLLECTION)
                .order_by("timestamp", direction=Query.DESCENDING)
                .limit(limit)
            )
            return [AuditEvent.from_document(user_id, snap.to_dict()) for snap in query.stream()]
        except Exception as e:
            raise PersistenceError(f"Failed to get audit events: {e}")
