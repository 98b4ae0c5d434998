"""
SessionStore: the single active zkLogin session plus the pending OAuth record.

Storage is injected: any MutableMapping[str, str] holding JSON text (a per-browser
session store, a server-side cache entry, or a plain dict in tests). Clearing the
mapping when the browser session ends is what bounds the session lifetime; nothing
here writes to durable storage.
"""

from __future__ import annotations

import json
import time
from typing import Callable, MutableMapping, Protocol

from backend_zkwallet.config.env import DEFAULT_EPOCH_BUFFER, DEFAULT_PENDING_LOGIN_TTL_SEC
from backend_zkwallet.core.exceptions import RpcError
from backend_zkwallet.zklogin.models import EphemeralSession, PendingLogin
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

SESSION_KEY = "zklogin_session"
PENDING_KEY = "zklogin_pending"


class EpochSource(Protocol):
    async def get_current_epoch(self) -> int: ...


class SessionStore:
    def __init__(
        self,
        storage: MutableMapping[str, str] | None = None,
        *,
        pending_ttl_sec: int = DEFAULT_PENDING_LOGIN_TTL_SEC,
        epoch_buffer: int = DEFAULT_EPOCH_BUFFER,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage: MutableMapping[str, str] = storage if storage is not None else {}
        self._pending_ttl = pending_ttl_sec
        self._epoch_buffer = epoch_buffer
        self._clock = clock

    # -------------------------------------------------------------------------
    # Pending (pre-redirect) record
    # -------------------------------------------------------------------------

    def store_pending(self, pending: PendingLogin) -> None:
        self._storage[PENDING_KEY] = json.dumps(pending.to_dict())

    def get_pending(self) -> PendingLogin | None:
        """Pending record, or None if absent, unparseable or older than the TTL."""
        raw = self._storage.get(PENDING_KEY)
        if not raw:
            return None
        try:
            pending = PendingLogin.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("zklogin_pending_corrupt")
            self.clear_pending()
            return None
        if self._clock() - pending.created_at > self._pending_ttl:
            logger.info("zklogin_pending_expired", age_sec=int(self._clock() - pending.created_at))
            self.clear_pending()
            return None
        return pending

    def clear_pending(self) -> None:
        self._storage.pop(PENDING_KEY, None)

    # -------------------------------------------------------------------------
    # Active session
    # -------------------------------------------------------------------------

    def store(self, session: EphemeralSession) -> None:
        """Replace the active session; the pending record is consumed."""
        self._storage[SESSION_KEY] = json.dumps(session.to_dict())
        self.clear_pending()

    def get(self) -> EphemeralSession | None:
        raw = self._storage.get(SESSION_KEY)
        if not raw:
            return None
        try:
            return EphemeralSession.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("zklogin_session_corrupt")
            self._storage.pop(SESSION_KEY, None)
            return None

    def clear(self) -> None:
        """Logout: drop the active session and any unfinished sign-in."""
        self._storage.pop(SESSION_KEY, None)
        self.clear_pending()

    async def is_valid(self, session: EphemeralSession, epochs: EpochSource) -> bool:
        """Valid while current epoch < maxEpoch - buffer. Unknown epoch counts as invalid."""
        try:
            current = await epochs.get_current_epoch()
        except RpcError as e:
            logger.warning("zklogin_session_epoch_unavailable", error=str(e))
            return False
        return current < session.max_epoch - self._epoch_buffer
