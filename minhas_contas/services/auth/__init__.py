"""Identity services package."""

from minhas_contas.services.auth.firebase_auth import (
    AuthStateListener,
    FirebaseIdentityProvider,
    IdentityProvider,
    UserSession,
)

__all__ = [
    "AuthStateListener",
    "FirebaseIdentityProvider",
    "IdentityProvider",
    "UserSession",
]
