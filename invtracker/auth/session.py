from __future__ import annotations

from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from invtracker.auth.config import AuthConfig
from invtracker.auth.models import is_valid_identity

SESSION_SALT = "invtracker-session-v1"


def _serializer(cfg: AuthConfig) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session(cfg: AuthConfig, identity: str) -> str:
    # Keep the token small: only the SteamID64 travels in the cookie.
    return _serializer(cfg).dumps({"sid": identity})


def decode_session(cfg: AuthConfig, value: str | None) -> Optional[str]:
    if not value:
        return None
    try:
        data = _serializer(cfg).loads(value, max_age=cfg.session_ttl_seconds)
    except (BadSignature, BadTimeSignature, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    identity = str(data.get("sid") or "")
    return identity if is_valid_identity(identity) else None
