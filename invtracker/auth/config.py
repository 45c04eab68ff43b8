from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from invtracker.auth.util import random_token

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_BASE_URL = "http://localhost:3000"
DEFAULT_OPENID_PROVIDER_URL = "https://steamcommunity.com/openid/login"
DEFAULT_SESSION_TTL_SECONDS = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class AuthConfig:
    # Public origin of this service; used for OpenID realm/return_to
    public_base_url: str

    # OpenID provider (fixed endpoint, no discovery)
    openid_provider_url: str
    openid_verify_timeout_seconds: float

    # Session configuration
    session_secret: str
    session_ttl_seconds: int
    shared_cookie_domain: Optional[str]  # e.g. ".example.com"; host-only cookies when unset
    dev_hosts: List[str]

    # Backend identity service (optional)
    backend_api_url: Optional[str]
    backend_timeout_seconds: float

    @property
    def callback_url(self) -> str:
        return f"{self.public_base_url}/api/auth/steam/callback"

    @property
    def backend_enabled(self) -> bool:
        return bool(self.backend_api_url)


def _parse_csv(value: str) -> List[str]:
    items = [x.strip().lower() for x in (value or "").split(",")]
    return [x for x in items if x]


def _parse_seconds(raw: str, default: float) -> float:
    try:
        v = float((raw or "").strip() or default)
    except ValueError:
        return default
    return v if v > 0 else default


def normalize_api_base_url(url: Optional[str]) -> Optional[str]:
    """Backend routes live under `/api`; accept both `https://host` and `https://host/api`."""
    u = (url or "").strip().rstrip("/")
    if not u:
        return None
    return u if u.endswith("/api") else f"{u}/api"


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    Missing values fall back to local-development defaults. A missing
    AUTH_SESSION_SECRET yields a per-process random secret, which means sessions
    do not survive a restart.
    """
    public_base_url = (os.getenv("AUTH_PUBLIC_BASE_URL", "") or "").strip().rstrip("/")
    if not public_base_url:
        public_base_url = DEFAULT_PUBLIC_BASE_URL
        logger.info("AUTH_PUBLIC_BASE_URL not set; using %s", public_base_url)

    session_secret = (os.getenv("AUTH_SESSION_SECRET", "") or "").strip()
    if not session_secret:
        session_secret = random_token(48)
        logger.warning(
            "AUTH_SESSION_SECRET not set. Using a random secret that will change on restart. "
            "Set AUTH_SESSION_SECRET for production!"
        )

    ttl = int(_parse_seconds(os.getenv("AUTH_SESSION_TTL_SECONDS", ""), DEFAULT_SESSION_TTL_SECONDS))
    if ttl <= 60:
        ttl = 60

    shared_domain = (os.getenv("AUTH_SHARED_COOKIE_DOMAIN", "") or "").strip().lower() or None
    if shared_domain and not shared_domain.startswith("."):
        shared_domain = f".{shared_domain}"

    return AuthConfig(
        public_base_url=public_base_url,
        openid_provider_url=(os.getenv("OPENID_PROVIDER_URL", "") or "").strip() or DEFAULT_OPENID_PROVIDER_URL,
        openid_verify_timeout_seconds=_parse_seconds(os.getenv("OPENID_VERIFY_TIMEOUT_SECONDS", ""), 10.0),
        session_secret=session_secret,
        session_ttl_seconds=ttl,
        shared_cookie_domain=shared_domain,
        dev_hosts=_parse_csv(os.getenv("AUTH_DEV_HOSTS", "")),
        backend_api_url=normalize_api_base_url(os.getenv("BACKEND_API_URL", "")),
        backend_timeout_seconds=_parse_seconds(os.getenv("BACKEND_TIMEOUT_SECONDS", ""), 5.0),
    )
