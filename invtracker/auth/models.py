from __future__ import annotations

import re
from dataclasses import dataclass

_IDENTITY_RE = re.compile(r"[0-9]{1,20}")
_MAX_IDENTITY = 2**64 - 1


def is_valid_identity(value: str | None) -> bool:
    """SteamID64: decimal digits within the unsigned 64-bit range."""
    if not value or not _IDENTITY_RE.fullmatch(value):
        return False
    return 0 < int(value) <= _MAX_IDENTITY


@dataclass(frozen=True)
class SessionUser:
    """User asserted by a valid server session cookie."""

    steam_id: str
