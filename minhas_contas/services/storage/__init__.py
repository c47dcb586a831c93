"""
Storage Services Package

Provides the abstract ledger/audit interfaces and three implementations:
Firestore (primary), Google Sheets and in-memory.

The hosted backends are imported lazily by the factory so that the
in-memory backend works without Google credentials installed.
"""

from minhas_contas.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    PersistenceError,
    StoredDocument,
)
from minhas_contas.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "StoredDocument",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
