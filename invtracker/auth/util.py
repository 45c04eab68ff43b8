from __future__ import annotations

import base64
import os
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def sanitize_next_path(next_path: str | None) -> str:
    """
    Prevent open-redirects: allow only relative paths like `/goal`.
    """
    p = (next_path or "").strip()
    if not p:
        return "/"
    if not p.startswith("/"):
        return "/"
    # Disallow scheme-relative: `//evil.com` and the backslash variant browsers normalize.
    if p.startswith("//") or p.startswith("/\\"):
        return "/"
    p = p.replace("\r", "").replace("\n", "")
    return p or "/"


def with_query_param(path: str, key: str, value: str) -> str:
    """Append (or replace) a single query parameter on a relative path."""
    parts = urlsplit(path)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != key]
    query.append((key, value))
    return urlunsplit(("", "", parts.path or "/", urlencode(query), parts.fragment))


def normalize_hostname(raw_host: str | None) -> Optional[str]:
    """Lower-cased hostname from a Host header value, without port or IPv6 brackets."""
    if not raw_host:
        return None
    candidate = raw_host.strip()
    if not candidate:
        return None
    parsed = urlsplit(candidate if "//" in candidate else f"//{candidate}")
    try:
        host = parsed.hostname
    except ValueError:
        return None
    return host.rstrip(".").lower() if host else None
