"""
Supabase-backed RecordStore for the application `users` table.

This adapter is intentionally duck-typed to avoid a hard dependency during
testing. The client is expected to expose the PostgREST query builder of
`supabase.create_client(...)`:

- table(name).select(cols).eq(col, val).limit(n).execute() -> resp.data
- table(name).update(fields).eq(col, val).execute() -> resp.data
- table(name).insert(fields).execute() -> resp.data
- table(name).select(cols).order(col).range(start, end).execute() -> resp.data

Security:
- Use a user-scoped client where RLS should apply, or the service-role client
  for admin/operator flows.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional
import logging

from .domain import UserRecord
from .errors import STORE_RECORD, BackingStoreError

logger = logging.getLogger("classfund.identity_access")

_COLUMNS = "id, auth_id, role, email, first_name, last_name, updated_at"
_WRITABLE = frozenset({"auth_id", "role", "email", "first_name", "last_name"})


def record_from_row(row: Mapping[str, Any]) -> UserRecord:
    return UserRecord(
        id=str(row.get("id")),
        auth_id=str(row.get("auth_id") or ""),
        role=row.get("role"),
        email=row.get("email"),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        updated_at=str(row["updated_at"]) if row.get("updated_at") is not None else None,
    )


class SupabaseRecordStore:
    """RecordStore using a supabase client's table API."""

    def __init__(self, client: Any, table: str = "users"):
        self._client = client
        self._table = table

    def _rows(self, op: str, build) -> List[dict]:
        try:
            resp = build(self._client.table(self._table)).execute()
        except BackingStoreError:
            raise
        except Exception as exc:
            logger.warning("users table %s failed: error=%s", op, exc.__class__.__name__)
            raise BackingStoreError(STORE_RECORD, f"{op}_failed: {exc}") from exc
        data = getattr(resp, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return [r for r in data if isinstance(r, dict)]

    def get_user_record(self, identity_id: str) -> Optional[UserRecord]:
        rows = self._rows("select", lambda t: t.select(_COLUMNS).eq("auth_id", identity_id).limit(1))
        return record_from_row(rows[0]) if rows else None

    def update_user_record(self, record_id: str, fields: Mapping[str, Any]) -> None:
        payload = {k: v for k, v in fields.items() if k in _WRITABLE}
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = self._rows("update", lambda t: t.update(payload).eq("id", record_id))
        if not rows:
            raise BackingStoreError(STORE_RECORD, "record_not_found")

    def create_user_record(self, fields: Mapping[str, Any]) -> UserRecord:
        now = datetime.now(timezone.utc).isoformat()
        payload = {k: v for k, v in fields.items() if k in _WRITABLE}
        payload.update({"created_at": now, "updated_at": now})
        rows = self._rows("insert", lambda t: t.insert(payload))
        if not rows:
            raise BackingStoreError(STORE_RECORD, "insert_returned_no_row")
        return record_from_row(rows[0])

    def list_user_records(self, *, limit: int, offset: int) -> List[UserRecord]:
        start = max(0, int(offset))
        end = start + max(1, int(limit)) - 1
        rows = self._rows("list", lambda t: t.select(_COLUMNS).order("id").range(start, end))
        return [record_from_row(r) for r in rows]


def create_supabase_record_store(url: str, key: str) -> SupabaseRecordStore:
    """Build a store from the official client (lazy import keeps tests light)."""
    from supabase import create_client

    return SupabaseRecordStore(create_client(url, key))


__all__ = ["SupabaseRecordStore", "create_supabase_record_store", "record_from_row"]
