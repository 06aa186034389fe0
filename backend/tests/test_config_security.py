"""
Security config guard tests.

Validates that production/staging environments fail fast when the Supabase
service-role key is unset or a placeholder, the Supabase URL is not https, or
the record backend is unsafe, while development stays permissive.
"""
from __future__ import annotations

import pytest

from backend.web import config as cfg


def _prod(monkeypatch: pytest.MonkeyPatch, env: str = "prod"):
    monkeypatch.setenv("CLASSFUND_ENV", env)
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "REAL_NON_DUMMY")
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")


def test_dev_allows_dummy_key(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "DUMMY_DO_NOT_USE")
    cfg.ensure_secure_config_on_startup()


@pytest.mark.parametrize("env", ["prod", "production", "stage", "STAGING"])
def test_prod_like_envs_accept_sane_config(monkeypatch: pytest.MonkeyPatch, env):
    _prod(monkeypatch, env)
    cfg.ensure_secure_config_on_startup()


@pytest.mark.parametrize("value", ["", "DUMMY_DO_NOT_USE", "change_me"])
def test_prod_rejects_placeholder_service_key(monkeypatch: pytest.MonkeyPatch, value):
    _prod(monkeypatch)
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", value)
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_prod_rejects_plain_http_supabase(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch)
    monkeypatch.setenv("SUPABASE_URL", "http://proj.supabase.co")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_prod_rejects_memory_records(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch)
    monkeypatch.setenv("RECORDS_BACKEND", "memory")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_prod_rejects_tls_disabled_db(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch)
    monkeypatch.setenv("RECORDS_BACKEND", "db")
    monkeypatch.setenv("DATABASE_URL", "postgresql://app:secret@db:5432/postgres?sslmode=disable")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_records_backend_falls_back_to_supabase(monkeypatch: pytest.MonkeyPatch):
    assert cfg.records_backend() == "supabase"
    monkeypatch.setenv("RECORDS_BACKEND", "DB")
    assert cfg.records_backend() == "db"
    monkeypatch.setenv("RECORDS_BACKEND", "mongo")
    assert cfg.records_backend() == "supabase"
