"""
Error taxonomy for the identity_access bounded context.

Each error carries a stable `code` so web adapters can render JSON bodies
without inspecting messages.
"""
from __future__ import annotations

STORE_IDENTITY = "identity"
STORE_RECORD = "record"


class IdentityAccessError(Exception):
    """Base class for role resolution and reconciliation failures."""

    code = "identity_access_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class UnauthenticatedError(IdentityAccessError):
    """Raised when an operation needs an identity and none is available."""

    code = "unauthenticated"


class InvalidRoleRequested(IdentityAccessError):
    """Raised when a reconciliation target is outside the closed role set."""

    code = "invalid_role"

    def __init__(self, role: object):
        super().__init__(f"invalid_role: {role!r}")
        self.role = role


class BackingStoreError(IdentityAccessError):
    """Failure reported by the auth store or the record store.

    `store` is either "identity" or "record" so callers can tell which copy
    of the role was (not) written.
    """

    code = "backing_store_error"

    def __init__(self, store: str, message: str):
        super().__init__(f"{store}: {message}")
        self.store = store
        self.message = message


__all__ = [
    "BackingStoreError",
    "IdentityAccessError",
    "InvalidRoleRequested",
    "STORE_IDENTITY",
    "STORE_RECORD",
    "UnauthenticatedError",
]
