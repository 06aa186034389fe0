"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles and dashboard targets so the web layer, the
  operator tool and the resolver never drift apart.
- Keep the "unknown role means donor" fallback in exactly one place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

ROLE_TEACHER = "teacher"
ROLE_ADMIN = "admin"
ROLE_DONOR = "donor"

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({ROLE_TEACHER, ROLE_ADMIN, ROLE_DONOR})
DEFAULT_ROLE = ROLE_DONOR

# Sentinel returned by the resolver when no identity is present.
ANONYMOUS = "anonymous"

LOGIN_PATH = "/auth"
DEFAULT_DASHBOARD = "/dashboard"
DASHBOARD_PATHS: Mapping[str, str] = {
    ROLE_TEACHER: "/teacher/dashboard",
    ROLE_ADMIN: "/admin/dashboard",
    ROLE_DONOR: DEFAULT_DASHBOARD,
}


def normalize_role(value: Any) -> str:
    """Fold a raw role value to lowercase; non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


@dataclass(frozen=True)
class Identity:
    """Auth-provider user: opaque id plus a mutable metadata bag."""

    id: str
    email: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def raw_role(self) -> Any:
        return (self.metadata or {}).get("role")


@dataclass(frozen=True)
class UserRecord:
    """Row of the application-owned `users` table."""

    id: str
    auth_id: str
    role: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    updated_at: Optional[str] = None


def display_name(identity: Identity | None) -> str:
    """Human display name: first/last name, else email local part, else 'User'."""
    if identity is None:
        return "User"
    meta = identity.metadata or {}
    first = str(meta.get("first_name") or "").strip()
    last = str(meta.get("last_name") or "").strip()
    if first and last:
        return f"{first} {last}"
    if first:
        return first
    if identity.email:
        return identity.email.split("@", 1)[0]
    return "User"


__all__ = [
    "ALLOWED_ROLES",
    "ANONYMOUS",
    "DASHBOARD_PATHS",
    "DEFAULT_DASHBOARD",
    "DEFAULT_ROLE",
    "Identity",
    "LOGIN_PATH",
    "ROLE_ADMIN",
    "ROLE_DONOR",
    "ROLE_TEACHER",
    "UserRecord",
    "display_name",
    "normalize_role",
]
