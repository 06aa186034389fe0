"""
Store ports used by the role resolver.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .domain import Identity, UserRecord


class AuthStore(Protocol):
    """Auth-provider view of one user (the caller, or an admin's target).

    Implementations raise `BackingStoreError("identity", ...)` on failure.
    """

    def get_current_identity(self) -> Optional[Identity]: ...

    def update_identity_metadata(self, fields: Mapping[str, Any]) -> None: ...


class RecordStore(Protocol):
    """Application `users` table.

    Implementations raise `BackingStoreError("record", ...)` on failure.
    """

    def get_user_record(self, identity_id: str) -> Optional[UserRecord]: ...

    def update_user_record(self, record_id: str, fields: Mapping[str, Any]) -> None: ...

    def create_user_record(self, fields: Mapping[str, Any]) -> UserRecord: ...

    def list_user_records(self, *, limit: int, offset: int) -> list[UserRecord]: ...


__all__ = ["AuthStore", "RecordStore"]
