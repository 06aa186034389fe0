"""
Role API routes: diagnose and repair divergent role copies.

Why:
    A user's role is stored in the auth provider's metadata and in the
    `users` table. When they disagree, users land on the wrong dashboard.
    These endpoints show both copies side by side and let a user (for their
    own account) or an admin (for any account) set both to one value.

Permissions:
    Admin rights come from the `users` table role only. Auth metadata is
    writable by its owner and never grants admin. The self-service route
    refuses `admin` unless the caller's record already says admin.

Wiring:
    Stores are injected at startup via `set_record_store`,
    `set_auth_store_factory` and `set_admin_auth_store_factory` so tests can
    substitute in-memory fakes. An admin factory of None marks the admin
    routes as unavailable (503).
"""
from __future__ import annotations

from typing import Any, Callable, Optional
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from backend.identity_access.domain import ROLE_ADMIN, Identity, UserRecord, display_name, normalize_role
from backend.identity_access.errors import BackingStoreError, InvalidRoleRequested
from backend.identity_access.ports import AuthStore, RecordStore
from backend.identity_access.roles import (
    FULLY_SUCCEEDED,
    PARTIALLY_FAILED,
    ReconcileResult,
    dashboard_for,
    detect_divergence,
    landing_path,
    reconcile_role,
    resolve_role,
)
from backend.identity_access.stores import InMemoryAuthStore, InMemoryRecordStore

from .security import is_same_origin

logger = logging.getLogger("classfund.web.roles")

roles_router = APIRouter(tags=["Roles"])

# Dev defaults until wiring runs: nobody is authenticated, no records exist.
_DEV_AUTH = InMemoryAuthStore()
RECORD_STORE: RecordStore = InMemoryRecordStore()


def _dev_auth_store(token: Optional[str]) -> AuthStore:
    return _DEV_AUTH


_AUTH_STORE_FACTORY: Callable[[Optional[str]], AuthStore] = _dev_auth_store
_ADMIN_AUTH_STORE_FACTORY: Optional[Callable[[str], AuthStore]] = _DEV_AUTH.for_user


def set_record_store(store: RecordStore) -> None:
    global RECORD_STORE
    RECORD_STORE = store


def set_auth_store_factory(factory: Callable[[Optional[str]], AuthStore]) -> None:
    global _AUTH_STORE_FACTORY
    _AUTH_STORE_FACTORY = factory


def set_admin_auth_store_factory(factory: Optional[Callable[[str], AuthStore]]) -> None:
    global _ADMIN_AUTH_STORE_FACTORY
    _ADMIN_AUTH_STORE_FACTORY = factory


def auth_store_for_token(token: Optional[str]) -> AuthStore:
    return _AUTH_STORE_FACTORY(token)


class RoleChange(BaseModel):
    role: Any = None


def _private(payload: dict, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _store_error(exc: BackingStoreError) -> JSONResponse:
    return _private({"error": "backing_store_error", "store": exc.store, "detail": exc.message}, status_code=502)


def _csrf_guard(request: Request) -> JSONResponse | None:
    if not is_same_origin(request):
        return _private({"error": "csrf_violation"}, status_code=403)
    return None


def _role_summary(identity: Identity, record: UserRecord | None) -> dict:
    canonical = resolve_role(identity)
    return {
        "id": identity.id,
        "email": identity.email,
        "name": display_name(identity),
        "metadataRole": identity.raw_role if isinstance(identity.raw_role, str) else None,
        "recordRole": record.role if record else None,
        "recordId": record.id if record else None,
        "role": canonical,
        "dashboard": dashboard_for(canonical),
        "divergence": detect_divergence(identity, record).to_dict(),
    }


def _reconcile_response(result: ReconcileResult) -> JSONResponse:
    if result.status == FULLY_SUCCEEDED:
        return _private({
            "status": "reconciled",
            "role": result.target_role,
            "dashboard": dashboard_for(result.target_role),
        })
    err = result.error
    if result.status == PARTIALLY_FAILED:
        return _private({
            "error": "partial_reconciliation",
            "stage": result.stage,
            "store": err.store if err else result.stage,
            "detail": err.message if err else None,
            "message": "inconsistent state, please retry",
        }, status_code=502)
    return _private({
        "error": "backing_store_error",
        "store": err.store if err else result.stage,
        "detail": err.message if err else None,
    }, status_code=502)


def _is_record_admin(record: UserRecord | None) -> bool:
    return record is not None and normalize_role(record.role) == ROLE_ADMIN


async def _reconcile(auth_store: AuthStore, identity: Identity, role: Any, *, self_service: bool = False) -> JSONResponse:
    try:
        record = await run_in_threadpool(RECORD_STORE.get_user_record, identity.id)
    except BackingStoreError as exc:
        return _store_error(exc)
    if self_service and normalize_role(role) == ROLE_ADMIN and not _is_record_admin(record):
        logger.warning("Self-service admin promotion refused: identity=%s", identity.id)
        return _private({"error": "forbidden", "detail": "role_not_permitted"}, status_code=403)
    try:
        result = await run_in_threadpool(reconcile_role, auth_store, RECORD_STORE, identity, record, role)
    except InvalidRoleRequested:
        return _private({"error": "bad_request", "detail": "invalid_role"}, status_code=400)
    return _reconcile_response(result)


@roles_router.get("/auth/landing")
async def auth_landing(request: Request):
    """Redirect to the caller's dashboard, or to the login page when anonymous."""
    identity = getattr(request.state, "identity", None)
    return RedirectResponse(url=landing_path(identity), status_code=302)


@roles_router.get("/api/me/role")
async def my_role(request: Request):
    """Show both role copies, the canonical role and whether they diverge.

    Permissions:
        Any authenticated user, for their own account.
    """
    identity: Identity = request.state.identity
    try:
        record = await run_in_threadpool(RECORD_STORE.get_user_record, identity.id)
    except BackingStoreError as exc:
        return _store_error(exc)
    return _private(_role_summary(identity, record))


@roles_router.post("/api/me/role")
async def reconcile_my_role(request: Request, payload: RoleChange):
    """Set the caller's metadata role and record role to `payload.role`.

    Behavior:
        - 200 when both copies were written
        - 400 when the role is not teacher/admin/donor (nothing written)
        - 403 when asking for admin without an admin record (nothing written)
        - 502 partial_reconciliation when only the metadata was written
        - 502 backing_store_error when nothing was written
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    return await _reconcile(request.state.auth_store, request.state.identity, payload.role, self_service=True)


async def _require_admin(request: Request) -> JSONResponse | None:
    if _ADMIN_AUTH_STORE_FACTORY is None:
        return _private({"error": "admin_unavailable"}, status_code=503)
    identity: Identity | None = getattr(request.state, "identity", None)
    if identity is None:
        return _private({"error": "forbidden"}, status_code=403)
    try:
        record = await run_in_threadpool(RECORD_STORE.get_user_record, identity.id)
    except BackingStoreError as exc:
        return _store_error(exc)
    if not _is_record_admin(record):
        return _private({"error": "forbidden"}, status_code=403)
    return None


async def _load_target(identity_id: str) -> tuple[AuthStore, Identity | None]:
    store = _ADMIN_AUTH_STORE_FACTORY(identity_id)
    identity = await run_in_threadpool(store.get_current_identity)
    return store, identity


@roles_router.get("/api/admin/users/{identity_id}/role")
async def admin_user_role(request: Request, identity_id: str):
    """Role diagnostics for another account (admins only)."""
    denied = await _require_admin(request)
    if denied:
        return denied
    try:
        _, target = await _load_target(identity_id)
        if target is None:
            return _private({"error": "not_found"}, status_code=404)
        record = await run_in_threadpool(RECORD_STORE.get_user_record, target.id)
    except BackingStoreError as exc:
        return _store_error(exc)
    return _private(_role_summary(target, record))


@roles_router.post("/api/admin/users/{identity_id}/role")
async def admin_reconcile_role(request: Request, identity_id: str, payload: RoleChange):
    """Reconcile another account's role (admins only).

    Same response contract as `POST /api/me/role`, plus 404 for unknown users
    and 503 when no admin auth store is configured.
    """
    denied = await _require_admin(request)
    if denied:
        return denied
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        store, target = await _load_target(identity_id)
    except BackingStoreError as exc:
        return _store_error(exc)
    if target is None:
        return _private({"error": "not_found"}, status_code=404)
    logger.info("Admin role change requested: actor=%s target=%s", request.state.identity.id, target.id)
    return await _reconcile(store, target, payload.role)
