"""
Steam OpenID 2.0 relying-party helpers.

The provider endpoint is fixed (no discovery). Callback assertions are never trusted
at face value: every one is sent back to the provider with
`openid.mode=check_authentication` and only an affirmative answer yields an identity.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

import requests

from invtracker.auth.config import AuthConfig
from invtracker.auth.models import is_valid_identity
from invtracker.auth.util import sanitize_next_path

logger = logging.getLogger(__name__)

OPENID_NS = "http://specs.openid.net/auth/2.0"
IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"
CLAIMED_ID_RE = re.compile(r"https://steamcommunity\.com/openid/id/([0-9]+)")


class OpenIDVerificationError(ValueError):
    """Callback assertion rejected. `reason` is safe to surface in a redirect."""

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or reason)
        self.reason = reason


def build_login_url(cfg: AuthConfig, return_path: Optional[str] = "/") -> str:
    """
    Build the provider redirect for `checkid_setup`.

    The post-login path rides along inside `openid.return_to`, URL-encoded as the
    `returnUrl` query parameter of our callback endpoint.
    """
    safe_return = sanitize_next_path(return_path)
    return_to = f"{cfg.callback_url}?{urlencode({'returnUrl': safe_return})}"
    params = {
        "openid.ns": OPENID_NS,
        "openid.mode": "checkid_setup",
        "openid.return_to": return_to,
        "openid.realm": cfg.public_base_url,
        "openid.identity": IDENTIFIER_SELECT,
        "openid.claimed_id": IDENTIFIER_SELECT,
    }
    return f"{cfg.openid_provider_url}?{urlencode(params)}"


def parse_key_value_form(body: str) -> Dict[str, str]:
    """Parse an OpenID key-value form response (`key:value` per line)."""
    out: Dict[str, str] = {}
    for line in (body or "").splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        out[key.strip()] = value.strip()
    return out


def _same_endpoint(a: str, b: str) -> bool:
    pa, pb = urlsplit(a), urlsplit(b)
    return (pa.scheme, pa.netloc.lower(), pa.path.rstrip("/")) == (pb.scheme, pb.netloc.lower(), pb.path.rstrip("/"))


def _claimed_steam_id(value: Optional[str]) -> Optional[str]:
    m = CLAIMED_ID_RE.fullmatch((value or "").strip())
    return m.group(1) if m else None


def validate_assertion_shape(cfg: AuthConfig, params: Mapping[str, str]) -> None:
    """
    Reject callbacks that do not look like a positive OpenID 2.0 assertion for us.

    This is a cheap pre-filter; it never establishes identity on its own.
    """
    if params.get("openid.ns") != OPENID_NS:
        raise OpenIDVerificationError("invalid_response", "Unexpected OpenID namespace")
    if params.get("openid.mode") != "id_res":
        raise OpenIDVerificationError("invalid_response", f"Unexpected OpenID mode: {params.get('openid.mode')!r}")
    if not params.get("openid.sig") or not params.get("openid.signed"):
        raise OpenIDVerificationError("invalid_response", "Missing OpenID signature")

    return_to = params.get("openid.return_to") or ""
    if not return_to or not _same_endpoint(return_to, cfg.callback_url):
        raise OpenIDVerificationError("invalid_response", "return_to does not match callback endpoint")
    # Our own query parameters (returnUrl) must be exactly the ones the provider signed.
    for key, value in parse_qsl(urlsplit(return_to).query, keep_blank_values=True):
        if params.get(key) != value:
            raise OpenIDVerificationError("invalid_response", f"return_to parameter {key!r} does not match request")

    op_endpoint = params.get("openid.op_endpoint")
    if op_endpoint and not _same_endpoint(op_endpoint, cfg.openid_provider_url):
        raise OpenIDVerificationError("invalid_response", "Assertion from unexpected OP endpoint")

    claimed = params.get("openid.claimed_id")
    if not claimed:
        raise OpenIDVerificationError("no_steam_id", "Missing claimed_id")
    if _claimed_steam_id(claimed) is None:
        raise OpenIDVerificationError("invalid_steam_id", "Malformed claimed_id")
    identity = params.get("openid.identity")
    if identity is not None and identity != claimed:
        raise OpenIDVerificationError("invalid_steam_id", "identity and claimed_id disagree")


def signed_return_path(params: Mapping[str, str]) -> str:
    """Post-login path carried inside the signed `openid.return_to` (sanitized)."""
    query = dict(parse_qsl(urlsplit(params.get("openid.return_to") or "").query, keep_blank_values=True))
    return sanitize_next_path(query.get("returnUrl"))


def check_authentication(cfg: AuthConfig, params: Mapping[str, str]) -> bool:
    """
    Ask the provider whether it really issued this assertion.

    Sends back every `openid.*` parameter unchanged except for the mode.
    Any transport error or timeout counts as "not valid".
    """
    payload = {k: v for k, v in params.items() if k.startswith("openid.")}
    payload["openid.mode"] = "check_authentication"
    try:
        r = requests.post(
            cfg.openid_provider_url,
            data=payload,
            headers={"Accept": "text/plain"},
            timeout=cfg.openid_verify_timeout_seconds,
        )
    except requests.RequestException as e:
        logger.warning("OpenID check_authentication request failed: %s", type(e).__name__)
        return False
    if r.status_code >= 400:
        logger.warning("OpenID check_authentication failed (status=%s)", r.status_code)
        return False
    answer = parse_key_value_form(r.text)
    if answer.get("is_valid") != "true":
        logger.warning("OpenID assertion not affirmed by provider (is_valid=%s)", answer.get("is_valid"))
        return False
    return True


def verify_callback(cfg: AuthConfig, params: Mapping[str, str]) -> str:
    """
    Verify a provider callback and return the SteamID64 it asserts.

    Raises OpenIDVerificationError on any failure; there is no partial result.
    """
    validate_assertion_shape(cfg, params)

    if not check_authentication(cfg, params):
        raise OpenIDVerificationError("verification_failed", "Provider did not confirm the assertion")

    steam_id = _claimed_steam_id(params.get("openid.claimed_id"))
    if not steam_id or not is_valid_identity(steam_id):
        raise OpenIDVerificationError("invalid_steam_id", "Claimed identifier out of range")
    return steam_id
