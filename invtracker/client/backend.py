"""Thin client for the backend identity service (user lookup-or-create, logout)."""

from __future__ import annotations

import logging
from typing import Dict, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from invtracker.auth.config import normalize_api_base_url
from invtracker.client.models import UserProfile

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):
    """Backend unreachable or returned an unusable response."""


class BackendClient:
    def __init__(self, base_url: Optional[str], *, timeout: float = 5.0):
        base = normalize_api_base_url(base_url)
        if not base:
            raise ValueError("Backend API URL not configured")
        self.base_url = base
        self.timeout = timeout

    def get_or_create_user(self, steam_id: str) -> UserProfile:
        """GET /users/by-steam/{steamId}: the backend creates the user on first sight."""
        url = f"{self.base_url}/users/by-steam/{quote(steam_id, safe='')}"
        try:
            r = requests.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendError(f"User lookup failed: {type(e).__name__}") from e
        if r.status_code >= 400:
            raise BackendError(f"User lookup failed (status={r.status_code})")
        try:
            return UserProfile.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise BackendError("Invalid user payload from backend") from e

    def logout(self, cookie_header: Optional[str]) -> None:
        """POST /auth/logout forwarding the browser's Cookie header."""
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if cookie_header:
            headers["Cookie"] = cookie_header
        try:
            r = requests.post(f"{self.base_url}/auth/logout", headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendError(f"Backend logout failed: {type(e).__name__}") from e
        if r.status_code >= 400:
            raise BackendError(f"Backend logout failed (status={r.status_code})")
        logger.debug("Backend logout acknowledged (status=%s)", r.status_code)
