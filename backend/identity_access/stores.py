"""
In-memory stores for development: AuthStore and RecordStore.

Why: Run the web app and the resolver without a Supabase project. For
production, use the Supabase or Postgres-backed adapters.

Both stores log every mutating call in `calls` and accept an optional
`fail_on` set so tests can simulate backing-store outages per operation.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import uuid

from .domain import Identity, UserRecord
from .errors import STORE_IDENTITY, STORE_RECORD, BackingStoreError


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryAuthStore:
    """Identities keyed by id; `current_id` selects whose view this store is."""

    def __init__(self, identities: Optional[List[Identity]] = None, *, current_id: str | None = None,
                 fail_on: Optional[set[str]] = None):
        self._data: Dict[str, Identity] = {i.id: i for i in (identities or [])}
        self.current_id = current_id
        self.fail_on = set(fail_on or ())
        self.calls: List[tuple[str, Any]] = []

    def add(self, identity: Identity) -> Identity:
        self._data[identity.id] = identity
        return identity

    def for_user(self, identity_id: str) -> "InMemoryAuthStore":
        """Return a view bound to another user, sharing data and call log."""
        view = InMemoryAuthStore(current_id=identity_id, fail_on=self.fail_on)
        view._data = self._data
        view.calls = self.calls
        return view

    def get(self, identity_id: str) -> Optional[Identity]:
        return self._data.get(identity_id)

    def get_current_identity(self) -> Optional[Identity]:
        if "get" in self.fail_on:
            raise BackingStoreError(STORE_IDENTITY, "unavailable")
        if not self.current_id:
            return None
        return self._data.get(self.current_id)

    def update_identity_metadata(self, fields: Mapping[str, Any]) -> None:
        self.calls.append(("update_identity_metadata", dict(fields)))
        if "update" in self.fail_on:
            raise BackingStoreError(STORE_IDENTITY, "update_failed")
        current = self._data.get(self.current_id or "")
        if current is None:
            raise BackingStoreError(STORE_IDENTITY, "user_not_found")
        merged = {**dict(current.metadata or {}), **dict(fields)}
        self._data[current.id] = replace(current, metadata=merged)


class InMemoryRecordStore:
    def __init__(self, records: Optional[List[UserRecord]] = None, *, fail_on: Optional[set[str]] = None):
        self._data: Dict[str, UserRecord] = {r.id: r for r in (records or [])}
        self.fail_on = set(fail_on or ())
        self.calls: List[tuple[str, Any]] = []

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            raise BackingStoreError(STORE_RECORD, f"{op}_failed")

    def get_user_record(self, identity_id: str) -> Optional[UserRecord]:
        self._check("get")
        for rec in self._data.values():
            if rec.auth_id == identity_id:
                return rec
        return None

    def update_user_record(self, record_id: str, fields: Mapping[str, Any]) -> None:
        self.calls.append(("update_user_record", (record_id, dict(fields))))
        self._check("update")
        rec = self._data.get(record_id)
        if rec is None:
            raise BackingStoreError(STORE_RECORD, "record_not_found")
        allowed = {k: v for k, v in fields.items() if k in ("role", "email", "first_name", "last_name")}
        self._data[record_id] = replace(rec, updated_at=_now_iso(), **allowed)

    def create_user_record(self, fields: Mapping[str, Any]) -> UserRecord:
        self.calls.append(("create_user_record", dict(fields)))
        self._check("create")
        auth_id = str(fields.get("auth_id") or "")
        if not auth_id:
            raise BackingStoreError(STORE_RECORD, "auth_id_missing")
        rec = UserRecord(
            id=str(uuid.uuid4()),
            auth_id=auth_id,
            role=fields.get("role"),
            email=fields.get("email"),
            first_name=fields.get("first_name"),
            last_name=fields.get("last_name"),
            updated_at=_now_iso(),
        )
        self._data[rec.id] = rec
        return rec

    def list_user_records(self, *, limit: int, offset: int) -> List[UserRecord]:
        self._check("list")
        ordered = sorted(self._data.values(), key=lambda r: r.id)
        return ordered[offset: offset + limit]
