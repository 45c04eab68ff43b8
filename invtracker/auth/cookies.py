"""
Session cookie naming, scoping and serialization.

Two cookies always travel together:
- `auth_token`: HttpOnly, signed session token read by the server.
- `auth_token_client`: readable by client code; mirrors session presence and carries
  the (non-secret) SteamID64. The server never trusts it.

Everything here returns keyword dicts for `Response.set_cookie(**kwargs)`; nothing
touches the network or a response object.
"""

from __future__ import annotations

import ipaddress
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from invtracker.auth.config import AuthConfig

AUTH_COOKIE_NAME = "auth_token"
CLIENT_COOKIE_NAME = "auth_token_client"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

CookieSet = List[Dict[str, Any]]


def _is_ip(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def is_production_host(hostname: str | None, cfg: AuthConfig) -> bool:
    """
    Production unless the request reached us through a local-development host.

    Decided per request from the Host header so one deployment behaves correctly
    behind the public domain and behind localhost/tunnels.
    """
    host = (hostname or "").strip().lower()
    if not host:
        return False
    if "localhost" in host:
        return False
    if host in cfg.dev_hosts:
        return False
    if _is_ip(host) and ipaddress.ip_address(host).is_loopback:
        return False
    return True


def shared_cookie_domain(hostname: str | None, cfg: AuthConfig) -> Optional[str]:
    """
    Apex domain (leading dot) shared by the production site and its subdomains.

    Only AUTH_SHARED_COOKIE_DOMAIN, and only when the host lies inside it. Guessing
    from the last two labels would yield public suffixes (`.co.uk`, `.vercel.app`)
    that browsers reject, so unconfigured hosts get host-only cookies.
    """
    host = (hostname or "").strip().lower().rstrip(".")
    configured = cfg.shared_cookie_domain
    if not host or not configured or _is_ip(host):
        return None
    if host == configured.lstrip(".") or host.endswith(configured):
        return configured
    return None


def _cookie_kwargs(
    *,
    key: str,
    value: str,
    httponly: bool,
    secure: bool,
    max_age: int,
    domain: Optional[str],
    expires: Optional[datetime] = None,
) -> Dict[str, Any]:
    kw: Dict[str, Any] = {
        "key": key,
        "value": value,
        "max_age": max_age,
        "httponly": httponly,
        "secure": secure,
        "samesite": "lax",
        "path": "/",
    }
    if expires is not None:
        kw["expires"] = expires
    if domain:
        kw["domain"] = domain
    return kw


def issue_cookies(
    identity: str,
    is_production: bool,
    *,
    token: str,
    max_age: int,
    domain: Optional[str] = None,
) -> CookieSet:
    """Both session cookies for a freshly verified identity."""
    scope = domain if is_production else None
    return [
        _cookie_kwargs(
            key=AUTH_COOKIE_NAME, value=token, httponly=True, secure=is_production, max_age=max_age, domain=scope
        ),
        _cookie_kwargs(
            key=CLIENT_COOKIE_NAME, value=identity, httponly=False, secure=is_production, max_age=max_age, domain=scope
        ),
    ]


def clear_cookies(is_production: bool, *, domain: Optional[str] = None) -> CookieSet:
    """
    Expire both cookies on every scope they may have been set on.

    The host scope is always cleared. In production the shared apex domain is cleared
    as well: a login on a subdomain may have left the cookies there.
    """
    scopes: List[Optional[str]] = [None]
    if is_production and domain:
        scopes.append(domain)
    out: CookieSet = []
    for scope in scopes:
        for key, httponly in ((AUTH_COOKIE_NAME, True), (CLIENT_COOKIE_NAME, False)):
            out.append(
                _cookie_kwargs(
                    key=key,
                    value="",
                    httponly=httponly,
                    secure=is_production,
                    max_age=0,
                    domain=scope,
                    expires=_EPOCH,
                )
            )
    return out
