"""
Configuration and startup security checks for ClassFund.

Why: The role routes write to the auth provider with the service-role key. A
production deployment with a placeholder key, plaintext Supabase URL or a
TLS-disabled database must not start. Development stays permissive.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def current_environment() -> str:
    return (os.getenv("CLASSFUND_ENV", "dev") or "dev").strip().lower()


def is_prod_like(env: str | None = None) -> bool:
    env_l = (current_environment() if env is None else env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def records_backend() -> str:
    """Selected RecordStore backend: supabase (default), db or memory."""
    value = (os.getenv("RECORDS_BACKEND", "supabase") or "supabase").strip().lower()
    return value if value in {"supabase", "db", "memory"} else "supabase"


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - SUPABASE_SERVICE_ROLE_KEY must be set and not a dummy placeholder.
    - SUPABASE_URL must be set and use https.
    - DATABASE_URL must not disable TLS when the db backend is selected.
    - The in-memory record backend is not allowed.
    """
    if not is_prod_like():
        return

    srole = (os.getenv("SUPABASE_SERVICE_ROLE_KEY", "") or "").strip()
    if not srole or srole.upper() in {"DUMMY_DO_NOT_USE", "CHANGE_ME"}:
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    url = (os.getenv("SUPABASE_URL", "") or "").strip().lower()
    if not url.startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must be set and use https in production.")

    backend = records_backend()
    if backend == "memory":
        raise SystemExit("Refusing to start: RECORDS_BACKEND=memory is not allowed in production/staging.")
    if backend == "db" and "sslmode=disable" in (os.getenv("DATABASE_URL", "") or ""):
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
