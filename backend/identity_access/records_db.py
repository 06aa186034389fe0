"""
Database-backed RecordStore (Postgres/Supabase) for the `users` table.

Why: Operator tooling and self-hosted deployments talk to Postgres directly
instead of going through PostgREST. Same semantics as the Supabase adapter.

Security:
- Intended to be used with a service role connection string for operator
  tools; RLS-protected logins work for self-service flows.
- Table identifiers are validated and composed with `psycopg.sql`.

Note: This module uses psycopg3. It is imported only when enabled via
`RECORDS_BACKEND=db` or by the operator tool.
"""
from __future__ import annotations

from typing import Any, List, Mapping, Optional
import logging
import os
import re

try:
    import psycopg
    from psycopg import sql
    HAVE_PSYCOPG = True
except ImportError:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    HAVE_PSYCOPG = False

from .domain import UserRecord
from .errors import STORE_RECORD, BackingStoreError

logger = logging.getLogger("classfund.identity_access")

_COLUMNS = ("id", "auth_id", "role", "email", "first_name", "last_name", "updated_at")
_WRITABLE = ("auth_id", "role", "email", "first_name", "last_name")
_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def _row_to_record(row) -> UserRecord:
    return UserRecord(
        id=str(row[0]),
        auth_id=str(row[1] or ""),
        role=row[2],
        email=row[3],
        first_name=row[4],
        last_name=row[5],
        updated_at=str(row[6]) if row[6] is not None else None,
    )


class DBRecordStore:
    """Postgres-backed user record store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string.
    table:
        Fully qualified table name. Defaults to `public.users`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.users") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBRecordStore")
        self._dsn = dsn or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBRecordStore")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        if "." in table:
            self._schema, self._name = table.split(".", 1)
        else:
            self._schema, self._name = "public", table

    def _table(self):
        return sql.SQL("{}.{}").format(sql.Identifier(self._schema), sql.Identifier(self._name))

    def _columns(self, names=_COLUMNS):
        return sql.SQL(", ").join(sql.Identifier(c) for c in names)

    def _run(self, op: str, stmt, params: tuple, *, fetch: str | None = None):
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(stmt, params)
                    if fetch == "one":
                        return cur.fetchone()
                    if fetch == "all":
                        return cur.fetchall()
                    return None
        except Exception as exc:
            logger.warning("users table %s failed: error=%s", op, exc.__class__.__name__)
            raise BackingStoreError(STORE_RECORD, f"{op}_failed: {exc.__class__.__name__}") from exc

    def get_user_record(self, identity_id: str) -> Optional[UserRecord]:
        stmt = sql.SQL("select {} from {} where auth_id = %s limit 1").format(self._columns(), self._table())
        row = self._run("select", stmt, (identity_id,), fetch="one")
        return _row_to_record(row) if row else None

    def update_user_record(self, record_id: str, fields: Mapping[str, Any]) -> None:
        names = [k for k in _WRITABLE if k in fields]
        if not names:
            return
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(k)) for k in names
        )
        stmt = sql.SQL("update {} set {}, updated_at = now() where id = %s returning id").format(
            self._table(), assignments
        )
        row = self._run("update", stmt, tuple(fields[k] for k in names) + (record_id,), fetch="one")
        if not row:
            raise BackingStoreError(STORE_RECORD, "record_not_found")

    def create_user_record(self, fields: Mapping[str, Any]) -> UserRecord:
        names = [k for k in _WRITABLE if k in fields]
        if "auth_id" not in names:
            raise BackingStoreError(STORE_RECORD, "auth_id_missing")
        stmt = sql.SQL(
            "insert into {} ({}, created_at, updated_at) values ({}, now(), now()) returning {}"
        ).format(
            self._table(),
            self._columns(names),
            sql.SQL(", ").join(sql.Placeholder() for _ in names),
            self._columns(),
        )
        row = self._run("insert", stmt, tuple(fields[k] for k in names), fetch="one")
        if not row:
            raise BackingStoreError(STORE_RECORD, "insert_returned_no_row")
        return _row_to_record(row)

    def list_user_records(self, *, limit: int, offset: int) -> List[UserRecord]:
        stmt = sql.SQL("select {} from {} order by id limit %s offset %s").format(self._columns(), self._table())
        rows = self._run("list", stmt, (max(1, int(limit)), max(0, int(offset))), fetch="all") or []
        return [_row_to_record(r) for r in rows]


__all__ = ["DBRecordStore", "HAVE_PSYCOPG"]
