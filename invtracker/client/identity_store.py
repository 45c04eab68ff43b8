"""Where the client keeps the SteamID64 it learned after a successful login redirect."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from invtracker.auth.models import is_valid_identity

logger = logging.getLogger(__name__)


@runtime_checkable
class IdentityStore(Protocol):
    def get(self) -> Optional[str]: ...

    def set(self, identity: str) -> None: ...

    def clear(self) -> None: ...


class MemoryIdentityStore:
    def __init__(self, identity: Optional[str] = None):
        self._lock = threading.Lock()
        self._identity: Optional[str] = None
        if identity is not None:
            self.set(identity)

    def get(self) -> Optional[str]:
        with self._lock:
            return self._identity

    def set(self, identity: str) -> None:
        if not is_valid_identity(identity):
            raise ValueError(f"Invalid SteamID64: {identity!r}")
        with self._lock:
            self._identity = identity

    def clear(self) -> None:
        with self._lock:
            self._identity = None


class FileIdentityStore:
    """
    JSON file holding `{"steamId": "..."}`.

    A missing, unreadable or malformed file reads as "no identity".
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def get(self) -> Optional[str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cannot read identity file %s: %s", self.path, str(e))
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed identity file %s", self.path)
            return None
        sid = str(data.get("steamId") or "") if isinstance(data, dict) else ""
        return sid if is_valid_identity(sid) else None

    def set(self, identity: str) -> None:
        if not is_valid_identity(identity):
            raise ValueError(f"Invalid SteamID64: {identity!r}")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps({"steamId": identity}), encoding="utf-8")
        os.replace(tmp, self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
