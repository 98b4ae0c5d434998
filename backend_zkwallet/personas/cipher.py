"""
KeypairCipher: AES-256-GCM storage encryption for persona private keys.

The key is HKDF-SHA256(ikm=account salt, salt=server secret,
info="persona-keypair-encryption"); each encryption draws a fresh 12-byte nonce.
Decryption always re-derives the address from the recovered key and compares it
with the stored one; a key that fails either check is never returned.
"""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from solders.keypair import Keypair

from backend_zkwallet.core.exceptions import KeypairIntegrityError, MissingSaltError
from backend_zkwallet.sui.keys import keypair_address, keypair_from_secret, normalize_address
from backend_zkwallet.zkwallet_logging import get_logger, salt_fingerprint, short_address

logger = get_logger(__name__)

ENCRYPTION_INFO = b"persona-keypair-encryption"
NONCE_SIZE = 12
KEY_SIZE = 32


@dataclass(frozen=True)
class EncryptedKeypair:
    encrypted_key: str  # base64(ciphertext || tag)
    nonce: str  # base64, 12 bytes
    sui_address: str


class KeypairCipher:
    def __init__(self, server_secret: str) -> None:
        if not server_secret:
            raise ValueError("server_secret must be non-empty")
        self._server_secret = server_secret.encode("utf-8")

    def derive_key(self, account_salt: str) -> bytes:
        if not account_salt:
            raise MissingSaltError("Account encryption key not found. Please log in again.")
        return HKDF(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=self._server_secret,
            info=ENCRYPTION_INFO,
        ).derive(account_salt.encode("utf-8"))

    def encrypt(self, keypair: Keypair, account_salt: str) -> EncryptedKeypair:
        key = self.derive_key(account_salt)
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = AESGCM(key).encrypt(nonce, bytes(keypair.secret()), None)
        return EncryptedKeypair(
            encrypted_key=base64.b64encode(ciphertext).decode("ascii"),
            nonce=base64.b64encode(nonce).decode("ascii"),
            sui_address=keypair_address(keypair),
        )

    def decrypt(self, encrypted: EncryptedKeypair, account_salt: str) -> Keypair:
        """
        Recover and verify a keypair.

        Raises KeypairIntegrityError(reason="decrypt_failed") when the tag does not
        verify (wrong salt or damaged ciphertext) and reason="address_mismatch"
        when the key decrypts but belongs to another address.
        """
        key = self.derive_key(account_salt)
        log = logger.bind(address=short_address(encrypted.sui_address), salt_fp=salt_fingerprint(account_salt))
        try:
            nonce = base64.b64decode(encrypted.nonce, validate=True)
            ciphertext = base64.b64decode(encrypted.encrypted_key, validate=True)
            secret = AESGCM(key).decrypt(nonce, ciphertext, None)
            keypair = keypair_from_secret(secret)
        except (InvalidTag, ValueError) as e:
            log.warning("persona_keypair_decrypt_failed", error=type(e).__name__)
            raise KeypairIntegrityError("decrypt_failed") from e

        derived = keypair_address(keypair)
        if derived != normalize_address(encrypted.sui_address):
            log.error("persona_keypair_address_mismatch", derived=short_address(derived))
            raise KeypairIntegrityError("address_mismatch")
        return keypair
