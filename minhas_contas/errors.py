"""
Error Taxonomy

Every failure that can reach the UI boundary is one of these four kinds.
They propagate unchanged: the domain layer never retries and never
recovers silently. The UI shows the message and keeps its prior state.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger operations."""
    pass


class AuthenticationError(LedgerError):
    """No signed-in user for an operation that requires one, or sign-in failed."""
    pass


class ValidationError(LedgerError):
    """
    Malformed input, rejected before reaching persistence.

    Carries every issue found, not just the first one, so the form can
    show all of them at once.
    """

    def __init__(
        self,
        message: str,
        issues: Optional[list[tuple[str, str]]] = None,
    ):
        self.issues = issues or []
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        """Names of the fields with issues."""
        return [field for field, _ in self.issues]


class NotFoundError(LedgerError):
    """Update/delete target does not exist for this user."""
    pass


class PersistenceError(LedgerError):
    """The storage backend failed for any other reason (network, backend)."""
    pass
