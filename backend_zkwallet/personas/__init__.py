"""Persona sub-wallets: deterministic derivation and encrypted key storage."""

from backend_zkwallet.personas.cipher import EncryptedKeypair, KeypairCipher
from backend_zkwallet.personas.factory import MintResult, PersonaWalletFactory

__all__ = ["EncryptedKeypair", "KeypairCipher", "MintResult", "PersonaWalletFactory"]
