"""
SupabaseRecordStore against a fake PostgREST query builder.

The fake records each builder call so we can assert the filter shapes the
adapter sends, and returns canned `data` lists like supabase-py does.
"""
from __future__ import annotations

import types

import pytest

from backend.identity_access.errors import BackingStoreError
from backend.identity_access.records_supabase import SupabaseRecordStore


class _Query:
    def __init__(self, log: list, data, error: Exception | None = None):
        self._log = log
        self._data = data
        self._error = error

    def __getattr__(self, name):
        def _call(*args, **kwargs):
            self._log.append((name, args))
            return self

        return _call

    def execute(self):
        if self._error:
            raise self._error
        return types.SimpleNamespace(data=self._data)


class _Client:
    def __init__(self, data=None, error: Exception | None = None):
        self.log: list = []
        self._data = data if data is not None else []
        self._error = error

    def table(self, name):
        self.log.append(("table", (name,)))
        return _Query(self.log, self._data, self._error)


ROW = {"id": "row-1", "auth_id": "auth-1", "role": "donor", "email": "kim@example.org", "updated_at": None}


def test_get_user_record_filters_by_auth_id():
    client = _Client([ROW])
    rec = SupabaseRecordStore(client).get_user_record("auth-1")
    assert rec.id == "row-1"
    assert rec.role == "donor"
    assert ("table", ("users",)) in client.log
    assert ("eq", ("auth_id", "auth-1")) in client.log


def test_get_user_record_missing_returns_none():
    assert SupabaseRecordStore(_Client([])).get_user_record("nobody") is None


def test_update_user_record_filters_by_row_id_and_stamps_updated_at():
    client = _Client([ROW])
    SupabaseRecordStore(client).update_user_record("row-1", {"role": "teacher", "id": "ignored"})
    update = next(args for name, args in client.log if name == "update")
    assert update[0]["role"] == "teacher"
    assert "updated_at" in update[0]
    assert "id" not in update[0]
    assert ("eq", ("id", "row-1")) in client.log


def test_update_user_record_without_match_fails():
    with pytest.raises(BackingStoreError) as ei:
        SupabaseRecordStore(_Client([])).update_user_record("row-x", {"role": "teacher"})
    assert ei.value.message == "record_not_found"


def test_client_errors_become_record_store_errors():
    store = SupabaseRecordStore(_Client(error=RuntimeError("JWT expired")))
    with pytest.raises(BackingStoreError) as ei:
        store.get_user_record("auth-1")
    assert ei.value.store == "record"
    assert "JWT expired" in ei.value.message


def test_create_user_record_returns_inserted_row():
    client = _Client([{**ROW, "role": "teacher"}])
    rec = SupabaseRecordStore(client).create_user_record({"auth_id": "auth-1", "role": "teacher"})
    assert rec.role == "teacher"
    insert = next(args for name, args in client.log if name == "insert")
    assert insert[0]["auth_id"] == "auth-1"
    assert "created_at" in insert[0]


def test_list_user_records_uses_inclusive_range():
    client = _Client([ROW])
    recs = SupabaseRecordStore(client).list_user_records(limit=50, offset=100)
    assert [r.id for r in recs] == ["row-1"]
    assert ("range", (100, 149)) in client.log
