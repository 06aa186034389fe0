"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and keep module-level wiring
(role route stores, environment toggles) from leaking between tests.
"""
import sys
from pathlib import Path

import pytest

# Ensure `backend.*` is importable without an editable install.
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Run every test in a dev environment without Supabase configured.

    Tests that need prod semantics or Supabase settings opt in explicitly.
    """
    for var in (
        "CLASSFUND_ENV",
        "CLASSFUND_TRUST_PROXY",
        "RECORDS_BACKEND",
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "DATABASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_role_route_stores():
    """Restore the in-memory defaults of the role routes after each test.

    Why:
        API tests inject fake stores via the module setters; without a reset
        a failing test would leave its fakes wired for the next one.
    """
    from backend.web.routes import roles

    saved = (roles.RECORD_STORE, roles._AUTH_STORE_FACTORY, roles._ADMIN_AUTH_STORE_FACTORY)
    yield
    roles.set_record_store(saved[0])
    roles.set_auth_store_factory(saved[1])
    roles.set_admin_auth_store_factory(saved[2])
