"""
PersonaWalletFactory: deterministic persona keypairs from the account salt.

seed = HKDF-SHA256(ikm=account salt, salt=server secret, info="persona-wallet:" + persona id)

One salt yields a distinct, independent keypair per persona id; none can be
computed from another without the salt. The raw key only leaves this module
encrypted (KeypairCipher), and address + ciphertext are stored in one write.
"""

from __future__ import annotations

from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from solders.keypair import Keypair

from backend_zkwallet.core.exceptions import MissingSaltError, MissingWalletError
from backend_zkwallet.database import repositories
from backend_zkwallet.database.models import PersonaRecord
from backend_zkwallet.personas.cipher import EncryptedKeypair, KeypairCipher
from backend_zkwallet.zkwallet_logging import get_logger, short_address

logger = get_logger(__name__)

WALLET_INFO_PREFIX = b"persona-wallet:"


@dataclass(frozen=True)
class MintResult:
    generated: int
    total: int
    failed: int = 0


class PersonaWalletFactory:
    def __init__(self, cipher: KeypairCipher, server_secret: str) -> None:
        self._cipher = cipher
        self._server_secret = server_secret.encode("utf-8")

    def derive_keypair(self, account_salt: str, discriminator: str) -> Keypair:
        if not account_salt:
            raise MissingSaltError("Cannot derive persona wallet without an account salt")
        if not discriminator:
            raise ValueError("discriminator must be non-empty")
        seed = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=self._server_secret,
            info=WALLET_INFO_PREFIX + discriminator.encode("utf-8"),
        ).derive(account_salt.encode("utf-8"))
        return Keypair.from_seed(seed)

    def derive_wallet(self, account_salt: str, discriminator: str) -> EncryptedKeypair:
        """Derive the persona keypair and return it encrypted, with its address."""
        return self._cipher.encrypt(self.derive_keypair(account_salt, discriminator), account_salt)

    def decrypt_wallet(self, persona: PersonaRecord, account_salt: str) -> Keypair:
        if not persona.has_wallet:
            raise MissingWalletError("Persona does not have a wallet")
        return self._cipher.decrypt(
            EncryptedKeypair(
                encrypted_key=persona.encrypted_key or "",
                nonce=persona.key_nonce or "",
                sui_address=persona.sui_address or "",
            ),
            account_salt,
        )

    def mint_missing_wallets(self, account_id: str, account_salt: str) -> MintResult:
        """
        Give every active persona of the account a wallet if it lacks one.

        Per-persona failures are logged and counted; they do not stop the others.
        """
        personas = repositories.list_personas(account_id)
        generated = failed = 0
        for persona in personas:
            if persona.sui_address:
                continue
            try:
                wallet = self.derive_wallet(account_salt, persona.id)
                if repositories.save_persona_wallet(
                    persona.id, wallet.sui_address, wallet.encrypted_key, wallet.nonce
                ):
                    generated += 1
                    logger.info(
                        "persona_wallet_minted",
                        persona_id=persona.id,
                        address=short_address(wallet.sui_address),
                    )
            except Exception as e:
                failed += 1
                logger.exception("persona_wallet_mint_failed", persona_id=persona.id, error=str(e))
        return MintResult(generated=generated, total=len(personas), failed=failed)
