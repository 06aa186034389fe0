"""
Supabase Auth (GoTrue) adapters implementing the AuthStore port.

Design:
- `SupabaseAuthStore` acts with the caller's access token against the user
  endpoint (`/auth/v1/user`), mirroring what the browser SDK's `getUser()` and
  `updateUser({data})` do.
- `SupabaseAdminAuthStore` acts on a target user id with the service-role key
  against the admin endpoint (`/auth/v1/admin/users/{id}`). Use it only for
  administrators acting on other accounts and for operator tooling.

Security:
- Never log access tokens or the service-role key.
- The service-role key bypasses RLS; keep it server-side.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from uuid import UUID
import logging
import os

import requests

from .domain import Identity
from .errors import STORE_IDENTITY, BackingStoreError

logger = logging.getLogger("classfund.identity_access")

_TIMEOUT = (3, 10)


@dataclass(frozen=True)
class SupabaseConfig:
    url: str  # e.g., https://xyz.supabase.co
    anon_key: str
    service_role_key: str | None = None

    @property
    def auth_base(self) -> str:
        return f"{self.url.rstrip('/')}/auth/v1"

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)


def load_supabase_config() -> SupabaseConfig:
    return SupabaseConfig(
        url=(os.getenv("SUPABASE_URL") or "").strip(),
        anon_key=(os.getenv("SUPABASE_ANON_KEY") or "").strip(),
        service_role_key=(os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip() or None,
    )


def identity_from_payload(data: Mapping[str, Any]) -> Optional[Identity]:
    """Map a GoTrue user JSON object to an Identity (None when id is missing)."""
    uid = data.get("id")
    if not uid:
        return None
    meta = data.get("user_metadata")
    return Identity(
        id=str(uid),
        email=data.get("email") or None,
        metadata=dict(meta) if isinstance(meta, dict) else {},
    )


def _send(method: str, url: str, *, headers: Dict[str, str], json: Any = None) -> requests.Response:
    try:
        return requests.request(method, url, headers=headers, json=json, timeout=_TIMEOUT)
    except requests.RequestException as exc:
        logger.warning("Supabase auth request failed: %s %s error=%s", method, url, exc.__class__.__name__)
        raise BackingStoreError(STORE_IDENTITY, f"request_failed: {exc.__class__.__name__}") from exc


def _json_body(resp: requests.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as exc:
        raise BackingStoreError(STORE_IDENTITY, "invalid_response") from exc
    if not isinstance(data, dict):
        raise BackingStoreError(STORE_IDENTITY, "invalid_response")
    return data


def _is_uuid_like(value: str) -> bool:
    """GoTrue user ids are UUIDs; anything else cannot name a user."""
    try:
        UUID(str(value))
    except (ValueError, TypeError):
        return False
    return True


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("msg") or body.get("message") or body.get("error_description") or body.get("error")
        if msg:
            return f"http_{resp.status_code}: {msg}"
    return f"http_{resp.status_code}"


class SupabaseAuthStore:
    """AuthStore bound to the caller's access token."""

    def __init__(self, cfg: SupabaseConfig, access_token: str | None):
        self.cfg = cfg
        self._token = access_token

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.cfg.anon_key,
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def get_current_identity(self) -> Optional[Identity]:
        if not self._token:
            return None
        resp = _send("GET", f"{self.cfg.auth_base}/user", headers=self._headers())
        # Expired or forged tokens mean "not logged in", not an outage.
        if resp.status_code in (401, 403):
            return None
        if resp.status_code != 200:
            raise BackingStoreError(STORE_IDENTITY, _error_message(resp))
        return identity_from_payload(_json_body(resp))

    def update_identity_metadata(self, fields: Mapping[str, Any]) -> None:
        if not self._token:
            raise BackingStoreError(STORE_IDENTITY, "no_access_token")
        resp = _send("PUT", f"{self.cfg.auth_base}/user", headers=self._headers(), json={"data": dict(fields)})
        if resp.status_code != 200:
            raise BackingStoreError(STORE_IDENTITY, _error_message(resp))


class SupabaseAdminAuthStore:
    """AuthStore for a target user, authenticated with the service-role key."""

    def __init__(self, cfg: SupabaseConfig, user_id: str):
        if not cfg.service_role_key:
            raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY is required for admin auth access")
        self.cfg = cfg
        self.user_id = user_id

    def _headers(self) -> Dict[str, str]:
        key = self.cfg.service_role_key or ""
        return {"apikey": key, "Authorization": f"Bearer {key}", "Content-Type": "application/json"}

    def _url(self) -> str:
        return f"{self.cfg.auth_base}/admin/users/{self.user_id}"

    def get_current_identity(self) -> Optional[Identity]:
        if not _is_uuid_like(self.user_id):
            return None
        resp = _send("GET", self._url(), headers=self._headers())
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise BackingStoreError(STORE_IDENTITY, _error_message(resp))
        return identity_from_payload(_json_body(resp))

    def update_identity_metadata(self, fields: Mapping[str, Any]) -> None:
        if not _is_uuid_like(self.user_id):
            raise BackingStoreError(STORE_IDENTITY, "invalid_user_id")
        # GoTrue merges user_metadata keys on admin updates.
        resp = _send("PUT", self._url(), headers=self._headers(), json={"user_metadata": dict(fields)})
        if resp.status_code != 200:
            raise BackingStoreError(STORE_IDENTITY, _error_message(resp))


__all__ = [
    "SupabaseAdminAuthStore",
    "SupabaseAuthStore",
    "SupabaseConfig",
    "identity_from_payload",
    "load_supabase_config",
]
