"""
Wire Supabase-backed identity stores into the role routes.

Why:
    Startup may happen without Supabase configured (local dev, tests). The
    routes then keep their in-memory defaults. When SUPABASE_URL and keys are
    present, this helper swaps in the real adapters.

Security:
    The record store and admin auth store use SUPABASE_SERVICE_ROLE_KEY; user
    metadata writes for self-service use the caller's own access token.
"""
from __future__ import annotations

import logging

from backend.identity_access.supabase_auth import (
    SupabaseAdminAuthStore,
    SupabaseAuthStore,
    load_supabase_config,
)
from backend.web.config import records_backend
from backend.web.routes import roles as _roles

logger = logging.getLogger("classfund.web")


def _build_record_store(url: str, service_key: str | None):
    backend = records_backend()
    if backend == "memory":
        return None
    if backend == "db":
        from backend.identity_access.records_db import DBRecordStore

        return DBRecordStore()
    if not url or not service_key:
        return None
    from backend.identity_access.records_supabase import create_supabase_record_store

    return create_supabase_record_store(url, service_key)


def wire_identity_stores() -> bool:
    """Inject configured stores into the role routes.

    Behavior:
        - Returns True when Supabase auth adapters were wired.
        - Returns False when Supabase is not configured (in-memory defaults stay).
        - Errors while building the record store are logged and leave the
          default in place; the auth factories are still wired.
    """
    cfg = load_supabase_config()
    if not cfg.configured:
        logger.info("Supabase not configured; role routes use in-memory stores")
        return False

    _roles.set_auth_store_factory(lambda token: SupabaseAuthStore(cfg, token))
    if cfg.service_role_key:
        _roles.set_admin_auth_store_factory(lambda user_id: SupabaseAdminAuthStore(cfg, user_id))
    else:
        logger.warning("SUPABASE_SERVICE_ROLE_KEY missing; admin role routes disabled")
        _roles.set_admin_auth_store_factory(None)

    try:
        store = _build_record_store(cfg.url, cfg.service_role_key)
    except Exception as exc:
        logger.warning("Record store wiring skipped: %s: %s", exc.__class__.__name__, str(exc))
        store = None
    if store is not None:
        _roles.set_record_store(store)
        logger.info("Record store wired: %s", records_backend())
    return True


__all__ = ["wire_identity_stores"]
