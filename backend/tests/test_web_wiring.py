"""
Store wiring for the role routes.

Why:
    Startup must keep in-memory defaults when Supabase is absent and swap in
    the Supabase adapters when it is configured, without touching the network.
"""
from __future__ import annotations

import pytest

from backend.identity_access.records_supabase import SupabaseRecordStore
from backend.identity_access.supabase_auth import SupabaseAdminAuthStore, SupabaseAuthStore
from backend.web import wiring
from backend.web.routes import roles


def test_unconfigured_keeps_defaults():
    before = roles.RECORD_STORE
    assert wiring.wire_identity_stores() is False
    assert roles.RECORD_STORE is before


def test_configured_wires_supabase_adapters(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")

    import backend.identity_access.records_supabase as rs

    monkeypatch.setattr(rs, "create_supabase_record_store", lambda url, key: SupabaseRecordStore(object()))

    assert wiring.wire_identity_stores() is True
    assert isinstance(roles.RECORD_STORE, SupabaseRecordStore)
    assert isinstance(roles.auth_store_for_token("tok"), SupabaseAuthStore)
    assert isinstance(roles._ADMIN_AUTH_STORE_FACTORY("auth-1"), SupabaseAdminAuthStore)


def test_record_store_failure_keeps_default(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")

    import backend.identity_access.records_supabase as rs

    def _boom(url, key):
        raise RuntimeError("client init failed")

    monkeypatch.setattr(rs, "create_supabase_record_store", _boom)
    before = roles.RECORD_STORE
    assert wiring.wire_identity_stores() is True
    assert roles.RECORD_STORE is before


def test_missing_service_key_disables_admin_routes(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)

    assert wiring.wire_identity_stores() is True
    assert isinstance(roles.auth_store_for_token("tok"), SupabaseAuthStore)
    assert roles._ADMIN_AUTH_STORE_FACTORY is None
