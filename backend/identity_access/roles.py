"""
Role resolution, dashboard routing and two-store role reconciliation.

Why:
    A user's role lives in two places: the auth provider's metadata bag
    (Identity) and the application's `users` table (UserRecord). Both copies
    are written independently and drift apart. This module defines the one
    canonical reading of the role, the navigation target per role, and the
    repair procedure that sets both copies to the same value.

Design:
    - `resolve_role` and `dashboard_for` are pure and total.
    - `reconcile_role` is not atomic: it writes the identity first, then the
      record, and reports which step failed. Both writes are unconditional
      sets, so calling it again with the same target converges.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from .domain import (
    ALLOWED_ROLES,
    ANONYMOUS,
    DASHBOARD_PATHS,
    DEFAULT_DASHBOARD,
    DEFAULT_ROLE,
    LOGIN_PATH,
    Identity,
    UserRecord,
    normalize_role,
)
from .errors import (
    STORE_IDENTITY,
    STORE_RECORD,
    BackingStoreError,
    InvalidRoleRequested,
    UnauthenticatedError,
)
from .ports import AuthStore, RecordStore

logger = logging.getLogger("classfund.identity_access")

FULLY_SUCCEEDED = "fully_succeeded"
PARTIALLY_FAILED = "partially_failed"
FULLY_FAILED = "fully_failed"


def resolve_role(identity: Identity | None) -> str:
    """Return the canonical role for an identity.

    `None` yields the `ANONYMOUS` sentinel. Any metadata role other than
    teacher/admin (missing, empty, unknown) resolves to the donor default.
    """
    if identity is None:
        return ANONYMOUS
    role = normalize_role(identity.raw_role)
    if role in ALLOWED_ROLES:
        return role
    return DEFAULT_ROLE


def dashboard_for(role: Any) -> str:
    return DASHBOARD_PATHS.get(normalize_role(role), DEFAULT_DASHBOARD)


def landing_path(identity: Identity | None) -> str:
    """Where to send a user after login: their dashboard, or the login page."""
    if identity is None:
        return LOGIN_PATH
    return dashboard_for(resolve_role(identity))


@dataclass(frozen=True)
class DivergenceReport:
    consistent: bool
    identity_role: Optional[str] = None
    record_role: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.consistent:
            return {"consistent": True}
        return {
            "consistent": False,
            "identityRole": self.identity_role,
            "recordRole": self.record_role,
        }


def detect_divergence(identity: Identity | None, user_record: UserRecord | None) -> DivergenceReport:
    """Compare the canonical identity role with the record's stored role.

    A missing record counts as divergent with `record_role=None`.
    """
    if identity is None:
        raise UnauthenticatedError()
    identity_role = resolve_role(identity)
    if user_record is None:
        return DivergenceReport(consistent=False, identity_role=identity_role, record_role=None)
    record_role = normalize_role(user_record.role)
    if identity_role == record_role:
        return DivergenceReport(consistent=True)
    return DivergenceReport(consistent=False, identity_role=identity_role, record_role=record_role)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation attempt.

    `stage` names the step that failed ("identity" or "record"); it is None
    on success. `record` is the freshly created row when the user had none.
    """

    status: str
    target_role: str
    stage: Optional[str] = None
    error: Optional[BackingStoreError] = None
    record: Optional[UserRecord] = None

    @property
    def ok(self) -> bool:
        return self.status == FULLY_SUCCEEDED


def _new_record_fields(identity: Identity, role: str) -> Dict[str, Any]:
    meta = identity.metadata or {}
    fields: Dict[str, Any] = {"auth_id": identity.id, "role": role}
    if identity.email:
        fields["email"] = identity.email
    for key in ("first_name", "last_name"):
        if meta.get(key):
            fields[key] = meta.get(key)
    return fields


def _as_store_error(store: str, exc: Exception) -> BackingStoreError:
    if isinstance(exc, BackingStoreError):
        return exc
    return BackingStoreError(store, f"{exc.__class__.__name__}: {exc}")


def reconcile_role(
    auth_store: AuthStore,
    record_store: RecordStore,
    identity: Identity | None,
    user_record: UserRecord | None,
    target_role: Any,
) -> ReconcileResult:
    """Set both copies of the role to `target_role`, identity first.

    Raises:
        UnauthenticatedError: no identity; nothing is written.
        InvalidRoleRequested: target outside teacher/admin/donor; nothing is written.

    Returns a `ReconcileResult` whose status is FULLY_SUCCEEDED,
    PARTIALLY_FAILED (identity written, record not) or FULLY_FAILED
    (identity write failed, record untouched).
    """
    if identity is None:
        raise UnauthenticatedError()
    role = normalize_role(target_role)
    if role not in ALLOWED_ROLES:
        raise InvalidRoleRequested(target_role)

    try:
        auth_store.update_identity_metadata({"role": role})
    except Exception as exc:
        err = _as_store_error(STORE_IDENTITY, exc)
        logger.warning("Role reconcile failed at identity stage: target=%s error=%s", role, err.message)
        return ReconcileResult(status=FULLY_FAILED, target_role=role, stage=STORE_IDENTITY, error=err)

    created: Optional[UserRecord] = None
    try:
        if user_record is None:
            created = record_store.create_user_record(_new_record_fields(identity, role))
        else:
            record_store.update_user_record(user_record.id, {"role": role})
    except Exception as exc:
        err = _as_store_error(STORE_RECORD, exc)
        # Identity now carries the new role while the record keeps the old one.
        logger.warning("Role reconcile partially failed at record stage: target=%s error=%s", role, err.message)
        return ReconcileResult(status=PARTIALLY_FAILED, target_role=role, stage=STORE_RECORD, error=err)

    logger.info("Role reconciled: target=%s created_record=%s", role, created is not None)
    return ReconcileResult(status=FULLY_SUCCEEDED, target_role=role, record=created)


__all__ = [
    "DivergenceReport",
    "FULLY_FAILED",
    "FULLY_SUCCEEDED",
    "PARTIALLY_FAILED",
    "ReconcileResult",
    "dashboard_for",
    "detect_divergence",
    "landing_path",
    "reconcile_role",
    "resolve_role",
]
