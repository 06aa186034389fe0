"ClassFund role service"
from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool

from backend.identity_access.domain import LOGIN_PATH
from backend.identity_access.errors import BackingStoreError
from backend.web import config as _cfg
from backend.web.routes import roles as _roles
from backend.web.routes.roles import roles_router
from backend.web.wiring import wire_identity_stores


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via CLASSFUND_ENABLE_DOTENV (default true).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("CLASSFUND_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("classfund.web")
ACCESS_TOKEN_COOKIE = "sb-access-token"

app = FastAPI(title="ClassFund", description="Role resolution and reconciliation", version="0.1.0")
app.include_router(roles_router)

wire_identity_stores()


def _access_token(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


def _is_public_path(path: str) -> bool:
    return path == LOGIN_PATH or path.startswith(f"{LOGIN_PATH}/") or path in ("/health", "/favicon.ico")


def _unauthenticated(path: str) -> Response:
    if path.startswith("/api/"):
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers={"Cache-Control": "private, no-store"})
    return RedirectResponse(url=LOGIN_PATH, status_code=302)


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    """Resolve the caller's identity from the Supabase access token.

    Public paths still get `request.state.identity` (possibly None) so the
    landing redirect can route logged-in users.
    """
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    store = _roles.auth_store_for_token(_access_token(request))
    try:
        identity = await run_in_threadpool(store.get_current_identity)
    except BackingStoreError as exc:
        logger.warning("Identity lookup failed: %s", exc.message)
        if _is_public_path(path):
            identity = None
        else:
            return JSONResponse(
                {"error": "auth_unavailable"}, status_code=503, headers={"Cache-Control": "private, no-store"}
            )

    request.state.identity = identity
    request.state.auth_store = store
    if identity is None and not _is_public_path(path):
        return _unauthenticated(path)
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if _cfg.is_prod_like():
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


@app.get("/health")
async def health():
    return {"status": "ok"}
