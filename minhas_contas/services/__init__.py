"""Services package."""

from minhas_contas.services.auth import (
    FirebaseIdentityProvider,
    IdentityProvider,
    UserSession,
)
from minhas_contas.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    PersistenceError,
    StoredDocument,
)

__all__ = [
    # Identity services
    "FirebaseIdentityProvider",
    "IdentityProvider",
    "UserSession",
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "PersistenceError",
    "StoredDocument",
]
