"""
EphemeralSessionManager: per-attempt signing key and the OAuth nonce that binds it.

begin() generates a fresh Ed25519 keypair and 128-bit randomness, fixes
maxEpoch = current epoch + 2, computes the nonce and writes the pending record
that must survive the OAuth redirect.
"""

from __future__ import annotations

import secrets
import time
from typing import Callable

from solders.keypair import Keypair

from backend_zkwallet.sui.keys import public_key_bytes
from backend_zkwallet.zklogin.address import generate_nonce
from backend_zkwallet.zklogin.models import PendingLogin, serialize_keypair
from backend_zkwallet.zklogin.session import EpochSource, SessionStore
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

MAX_EPOCH_WINDOW = 2
RANDOMNESS_BITS = 128


def generate_ephemeral_keypair() -> Keypair:
    return Keypair()


def generate_randomness() -> str:
    """128-bit random value as a decimal string."""
    return str(secrets.randbits(RANDOMNESS_BITS))


def max_epoch_for(current_epoch: int) -> int:
    return current_epoch + MAX_EPOCH_WINDOW


class EphemeralSessionManager:
    def __init__(
        self,
        epochs: EpochSource,
        store: SessionStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._epochs = epochs
        self._store = store
        self._clock = clock

    async def begin(self, invite_code: str = "") -> PendingLogin:
        """Start a sign-in attempt; returns the stored pending record (nonce included)."""
        current_epoch = await self._epochs.get_current_epoch()
        keypair = generate_ephemeral_keypair()
        max_epoch = max_epoch_for(current_epoch)
        randomness = generate_randomness()
        nonce = generate_nonce(public_key_bytes(keypair), max_epoch, randomness)
        pending = PendingLogin(
            ephemeral_secret_key=serialize_keypair(keypair),
            max_epoch=max_epoch,
            randomness=randomness,
            nonce=nonce,
            invite_code=(invite_code or "").strip().upper(),
            created_at=self._clock(),
        )
        self._store.store_pending(pending)
        logger.info("zklogin_begin", current_epoch=current_epoch, max_epoch=max_epoch)
        return pending

    def restore(self) -> PendingLogin | None:
        """Pending record after the redirect; None when missing or expired."""
        return self._store.get_pending()
