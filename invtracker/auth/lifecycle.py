"""
Session lifecycle: Anonymous -> Authenticated (login) -> LoggedOut (logout).

The cookie is the session; nothing is stored server-side. Logout clearing is
authoritative and never depends on the backend identity service being reachable.
"""

from __future__ import annotations

import logging
from typing import Optional

from invtracker.auth.config import AuthConfig
from invtracker.auth.cookies import CookieSet, clear_cookies, is_production_host, issue_cookies, shared_cookie_domain
from invtracker.auth.session import encode_session
from invtracker.auth.util import sanitize_next_path, with_query_param

logger = logging.getLogger(__name__)


def complete_login(cfg: AuthConfig, identity: str, hostname: Optional[str]) -> CookieSet:
    """Cookies for a verified identity. Only call after provider re-validation succeeded."""
    production = is_production_host(hostname, cfg)
    token = encode_session(cfg, identity)
    logger.info("Session issued for steam_id=%s (production=%s)", identity, production)
    return issue_cookies(
        identity,
        production,
        token=token,
        max_age=cfg.session_ttl_seconds,
        domain=shared_cookie_domain(hostname, cfg),
    )


def perform_logout(cfg: AuthConfig, hostname: Optional[str]) -> CookieSet:
    """Expired cookies for every applicable scope. Safe to repeat."""
    production = is_production_host(hostname, cfg)
    return clear_cookies(production, domain=shared_cookie_domain(hostname, cfg))


def notify_backend_logout(cfg: AuthConfig, cookie_header: Optional[str]) -> bool:
    """
    Best-effort: let the backend identity service clean up its own state.

    Never raises. Returns True only when the backend acknowledged the call.
    """
    if not cfg.backend_enabled:
        return False
    try:
        from invtracker.client.backend import BackendClient

        BackendClient(cfg.backend_api_url, timeout=cfg.backend_timeout_seconds).logout(cookie_header)
        return True
    except Exception as e:
        logger.warning("Backend logout request failed, continuing anyway: %s", str(e))
        return False


def error_redirect(return_path: Optional[str], reason: str) -> str:
    return with_query_param(sanitize_next_path(return_path), "error", reason)
