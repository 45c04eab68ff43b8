from __future__ import annotations

from typing import Optional

from fastapi import Request

from invtracker.auth.config import load_auth_config
from invtracker.auth.cookies import AUTH_COOKIE_NAME
from invtracker.auth.models import SessionUser
from invtracker.auth.session import decode_session


def authenticate_request(request: Request) -> Optional[SessionUser]:
    """
    Return the SessionUser asserted by the server cookie, if present/valid.

    Only `auth_token` is consulted; the client-readable cookie carries no trust.
    """
    cfg = load_auth_config()
    steam_id = decode_session(cfg, request.cookies.get(AUTH_COOKIE_NAME))
    if steam_id is None:
        return None
    return SessionUser(steam_id=steam_id)
