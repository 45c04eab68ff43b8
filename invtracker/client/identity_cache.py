"""
Current-user cache for client code.

Load once per identity, then memoize. One owner performs the backend lookup;
everybody else reads an immutable IdentitySnapshot. Concurrent refresh() calls for the
same identity share a single in-flight lookup.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from invtracker.auth.config import AuthConfig
from invtracker.client.identity_store import IdentityStore
from invtracker.client.models import UserProfile

logger = logging.getLogger(__name__)

Lookup = Callable[[str], UserProfile]


@dataclass(frozen=True)
class IdentitySnapshot:
    identity: Optional[str] = None
    user: Optional[UserProfile] = None
    loading: bool = False
    error: Optional[str] = None


class _Flight:
    def __init__(self, identity: str):
        self.identity = identity
        self.done = threading.Event()
        self.user: Optional[UserProfile] = None
        self.error: Optional[str] = None


class IdentityCache:
    def __init__(self, lookup: Lookup, store: IdentityStore):
        self._lookup = lookup
        self._store = store
        self._lock = threading.Lock()
        # Unresolved until the first refresh() completes.
        self._snapshot = IdentitySnapshot(loading=True)
        self._flights: Dict[str, _Flight] = {}
        self._latest: Optional[str] = None
        self._loaded = False

    def snapshot(self) -> IdentitySnapshot:
        with self._lock:
            return self._snapshot

    def current_user(self) -> Optional[UserProfile]:
        with self._lock:
            loaded = self._loaded
        if not loaded:
            return self.refresh()
        return self.snapshot().user

    def is_loading(self) -> bool:
        return self.snapshot().loading

    def last_error(self) -> Optional[str]:
        return self.snapshot().error

    def identity_changed(self) -> bool:
        """True when the stored identity differs from the one the snapshot describes."""
        return self._store.get() != self.snapshot().identity

    def refresh(self) -> Optional[UserProfile]:
        """
        Resolve the user for the currently stored identity.

        - no stored identity: anonymous, no lookup
        - cached record for the same identity: returned as-is (no lookup)
        - lookup already in flight for it: wait for that one and share its result
        - otherwise: perform exactly one lookup

        A failed lookup leaves the user anonymous with `last_error()` set; nothing is
        retried until the next explicit refresh().
        """
        identity = self._store.get()
        with self._lock:
            self._loaded = True
            self._latest = identity
            if identity is None:
                self._snapshot = IdentitySnapshot()
                return None
            snap = self._snapshot
            if snap.identity == identity and snap.user is not None:
                return snap.user
            flight = self._flights.get(identity)
            owner = flight is None
            if flight is None:
                flight = _Flight(identity)
                self._flights[identity] = flight
                self._snapshot = IdentitySnapshot(identity=identity, loading=True)

        if not owner:
            flight.done.wait()
            return flight.user

        self._run(flight)
        return flight.user

    def _run(self, flight: _Flight) -> None:
        try:
            flight.user = self._lookup(flight.identity)
        except Exception as e:
            flight.error = str(e) or type(e).__name__
            logger.warning("User lookup failed for steam_id=%s: %s", flight.identity, flight.error)
        finally:
            with self._lock:
                self._flights.pop(flight.identity, None)
                # A newer identity may have been requested meanwhile; don't clobber it.
                if self._latest == flight.identity:
                    if flight.error is not None:
                        flight.user = None
                        self._snapshot = IdentitySnapshot(identity=flight.identity, error=flight.error)
                    else:
                        self._snapshot = IdentitySnapshot(identity=flight.identity, user=flight.user)
            flight.done.set()


def build_identity_cache(cfg: AuthConfig, store: IdentityStore) -> IdentityCache:
    from invtracker.client.backend import BackendClient

    client = BackendClient(cfg.backend_api_url, timeout=cfg.backend_timeout_seconds)
    return IdentityCache(client.get_or_create_user, store)
