from __future__ import annotations

import logging
from http.cookies import SimpleCookie
from typing import Dict, List
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import requests
from fastapi.testclient import TestClient

import invtracker.api.server as srv
from invtracker.auth.config import load_auth_config
from invtracker.auth.session import decode_session, encode_session

STEAM_ID = "76561197996404463"


def _client(base_url: str = "https://app.example.com") -> TestClient:
    return TestClient(srv.app, base_url=base_url)


def _set_cookies(r) -> List[str]:
    return r.headers.get_list("set-cookie")


def _parsed_cookies(r) -> List[Dict[str, str]]:
    out = []
    for header in _set_cookies(r):
        jar = SimpleCookie()
        jar.load(header)
        for name, morsel in jar.items():
            out.append(
                {
                    "name": name,
                    "value": morsel.value,
                    "domain": morsel["domain"],
                    "secure": bool(morsel["secure"]),
                    "httponly": bool(morsel["httponly"]),
                    "max-age": str(morsel["max-age"]),
                }
            )
    return out


def _provider_answer(is_valid: str) -> MagicMock:
    r = MagicMock()
    r.status_code = 200
    r.text = f"ns:http://specs.openid.net/auth/2.0\nis_valid:{is_valid}\n"
    return r


def test_healthz() -> None:
    r = _client().get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_login_redirects_to_steam_with_return_url() -> None:
    """GET /api/auth/steam?returnUrl=/goal -> provider redirect."""
    r = _client().get("/api/auth/steam", params={"returnUrl": "/goal"}, follow_redirects=False)

    assert r.status_code == 302
    assert r.headers["cache-control"] == "no-store"
    location = r.headers["location"]
    assert location.startswith("https://steamcommunity.com/openid/login?")
    q = parse_qs(urlsplit(location).query)
    assert q["openid.mode"] == ["checkid_setup"]
    assert "returnUrl=%2Fgoal" in q["openid.return_to"][0]
    assert not _set_cookies(r)


def test_callback_with_affirmed_assertion_issues_cookies(monkeypatch, callback_params) -> None:
    monkeypatch.setenv("AUTH_SHARED_COOKIE_DOMAIN", "example.com")
    load_auth_config.cache_clear()
    with patch("invtracker.auth.openid.requests.post", return_value=_provider_answer("true")):
        r = _client().get("/api/auth/steam/callback", params=callback_params(), follow_redirects=False)

    assert r.status_code == 302
    assert r.headers["location"] == "/goal"

    cookies = {c["name"]: c for c in _parsed_cookies(r)}
    assert set(cookies) == {"auth_token", "auth_token_client"}
    assert decode_session(load_auth_config(), cookies["auth_token"]["value"]) == STEAM_ID
    assert cookies["auth_token"]["httponly"] is True
    assert cookies["auth_token_client"]["value"] == STEAM_ID
    assert cookies["auth_token_client"]["httponly"] is False
    for c in cookies.values():
        assert c["secure"] is True
        assert c["domain"] == ".example.com"


def test_callback_on_local_host_issues_host_only_insecure_cookies(callback_params) -> None:
    with patch("invtracker.auth.openid.requests.post", return_value=_provider_answer("true")):
        r = _client("http://localhost:3000").get(
            "/api/auth/steam/callback", params=callback_params(), follow_redirects=False
        )

    assert r.status_code == 302
    for c in _parsed_cookies(r):
        assert c["secure"] is False
        assert c["domain"] == ""


def test_callback_with_negative_assertion_redirects_to_error(callback_params) -> None:
    with patch("invtracker.auth.openid.requests.post", return_value=_provider_answer("false")):
        r = _client().get("/api/auth/steam/callback", params=callback_params(), follow_redirects=False)

    assert r.status_code == 302
    assert r.headers["location"] == "/goal?error=verification_failed"
    assert not _set_cookies(r)


def test_callback_provider_timeout_is_an_auth_failure(callback_params) -> None:
    with patch("invtracker.auth.openid.requests.post", side_effect=requests.Timeout("slow")):
        r = _client().get("/api/auth/steam/callback", params=callback_params(), follow_redirects=False)

    assert r.status_code == 302
    assert "error=verification_failed" in r.headers["location"]
    assert not _set_cookies(r)


def test_callback_cancelled_login_never_contacts_provider(callback_params) -> None:
    params = callback_params()
    params["openid.mode"] = "cancel"
    with patch("invtracker.auth.openid.requests.post") as mock_post:
        r = _client().get("/api/auth/steam/callback", params=params, follow_redirects=False)

    mock_post.assert_not_called()
    assert r.headers["location"] == "/goal?error=invalid_response"
    assert not _set_cookies(r)


def test_callback_on_public_suffix_host_issues_host_only_cookies(callback_params) -> None:
    with patch("invtracker.auth.openid.requests.post", return_value=_provider_answer("true")):
        r = _client("https://csinv.vercel.app").get(
            "/api/auth/steam/callback", params=callback_params(), follow_redirects=False
        )

    assert r.status_code == 302
    cookies = _parsed_cookies(r)
    assert sorted(c["name"] for c in cookies) == ["auth_token", "auth_token_client"]
    for c in cookies:
        assert c["secure"] is True
        assert c["domain"] == ""


def test_callback_rejects_return_url_differing_from_signed_one(callback_params) -> None:
    params = callback_params(return_url="/goal")
    params["returnUrl"] = "/admin"
    with patch("invtracker.auth.openid.requests.post", return_value=_provider_answer("true")) as mock_post:
        r = _client().get("/api/auth/steam/callback", params=params, follow_redirects=False)

    mock_post.assert_not_called()
    assert r.status_code == 302
    assert r.headers["location"] == "/admin?error=invalid_response"
    assert not _set_cookies(r)


def test_callback_sanitizes_offsite_signed_return_url(callback_params) -> None:
    params = callback_params(return_url="https://evil.example/phish")
    with patch("invtracker.auth.openid.requests.post", return_value=_provider_answer("true")):
        r = _client().get("/api/auth/steam/callback", params=params, follow_redirects=False)

    assert r.status_code == 302
    assert r.headers["location"] == "/"


def test_me_requires_server_cookie() -> None:
    r = _client().get("/api/auth/me")
    assert r.status_code == 401
    # We intentionally do NOT set WWW-Authenticate to avoid browser auth popups.
    assert "www-authenticate" not in {k.lower() for k in r.headers.keys()}


def test_me_ignores_client_cookie_alone() -> None:
    r = _client().get("/api/auth/me", headers={"cookie": f"auth_token_client={STEAM_ID}"})
    assert r.status_code == 401


def test_me_returns_identity_for_valid_session() -> None:
    token = encode_session(load_auth_config(), STEAM_ID)
    r = _client().get("/api/auth/me", headers={"cookie": f"auth_token={token}"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "user": {"steamId": STEAM_ID}}


def test_logout_on_local_host_clears_host_scope_only() -> None:
    r = _client("http://localhost:3000").post("/api/auth/logout")
    assert r.status_code == 200
    assert r.json()["ok"] is True

    cookies = _parsed_cookies(r)
    assert sorted(c["name"] for c in cookies) == ["auth_token", "auth_token_client"]
    for c in cookies:
        assert c["value"] == ""
        assert c["max-age"] == "0"
        assert c["domain"] == ""
        assert c["secure"] is False


def test_logout_on_production_host_clears_apex_even_if_backend_fails(monkeypatch, caplog) -> None:
    """POST /api/auth/logout on app.example.com with the backend down."""
    monkeypatch.setenv("BACKEND_API_URL", "https://api.example.com")
    monkeypatch.setenv("AUTH_SHARED_COOKIE_DOMAIN", ".example.com")
    load_auth_config.cache_clear()

    with patch("invtracker.client.backend.requests.post", side_effect=requests.ConnectionError("down")) as mock_post:
        with caplog.at_level(logging.WARNING, logger="invtracker.auth.lifecycle"):
            r = _client().post("/api/auth/logout", headers={"cookie": "auth_token=abc; auth_token_client=1"})

    assert r.status_code == 200
    assert r.json() == {"ok": True, "message": "Logged out successfully"}

    scopes = {(c["name"], c["domain"]) for c in _parsed_cookies(r)}
    assert scopes == {
        ("auth_token", ""),
        ("auth_token_client", ""),
        ("auth_token", ".example.com"),
        ("auth_token_client", ".example.com"),
    }
    assert all(c["secure"] for c in _parsed_cookies(r))

    mock_post.assert_called_once()
    args, kwargs = mock_post.call_args
    assert args[0] == "https://api.example.com/api/auth/logout"
    assert kwargs["headers"]["Cookie"] == "auth_token=abc; auth_token_client=1"
    assert "Backend logout request failed" in caplog.text


def test_logout_without_backend_configured_skips_notification() -> None:
    with patch("invtracker.client.backend.requests.post") as mock_post:
        r = _client().post("/api/auth/logout")
    assert r.status_code == 200
    mock_post.assert_not_called()
    # Without a configured shared domain only the host scope exists.
    assert {(c["name"], c["domain"]) for c in _parsed_cookies(r)} == {("auth_token", ""), ("auth_token_client", "")}


def test_logout_twice_is_idempotent() -> None:
    c = _client()
    first = c.post("/api/auth/logout")
    second = c.post("/api/auth/logout")
    assert first.status_code == second.status_code == 200
    assert _set_cookies(first) == _set_cookies(second)
