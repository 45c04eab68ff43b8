"""
Pytest config.

Pins the repo root on sys.path so `import invtracker` works without an install, and
gives every test a clean, deterministic auth configuration.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _auth_env(monkeypatch: pytest.MonkeyPatch):
    """
    Baseline environment for unit tests: fixed secret and public origin, no backend.

    Tests override individual variables with monkeypatch and the config cache is
    cleared on both sides so nothing leaks between tests.
    """
    from invtracker.auth.config import load_auth_config

    for var in (
        "AUTH_SHARED_COOKIE_DOMAIN",
        "AUTH_DEV_HOSTS",
        "AUTH_SESSION_TTL_SECONDS",
        "BACKEND_API_URL",
        "OPENID_PROVIDER_URL",
        "OPENID_VERIFY_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AUTH_SESSION_SECRET", "test-secret-key-for-testing-purposes-only")
    monkeypatch.setenv("AUTH_PUBLIC_BASE_URL", "https://app.example.com")
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()


STEAM_ID = "76561197996404463"


def steam_callback_params(steam_id: str = STEAM_ID, *, return_url: str = "/goal") -> dict:
    """Query parameters of a well-formed Steam `id_res` callback."""
    claimed = f"https://steamcommunity.com/openid/id/{steam_id}"
    return {
        "returnUrl": return_url,
        "openid.ns": "http://specs.openid.net/auth/2.0",
        "openid.mode": "id_res",
        "openid.op_endpoint": "https://steamcommunity.com/openid/login",
        "openid.claimed_id": claimed,
        "openid.identity": claimed,
        "openid.return_to": f"https://app.example.com/api/auth/steam/callback?returnUrl={return_url}",
        "openid.response_nonce": "2025-01-01T00:00:00ZabcDEF",
        "openid.assoc_handle": "1234567890",
        "openid.signed": "signed,op_endpoint,claimed_id,identity,return_to,response_nonce,assoc_handle",
        "openid.sig": "c2lnbmF0dXJl",
    }


@pytest.fixture
def callback_params():
    return steam_callback_params
