"""
Sui Ed25519 key, address and signature helpers on top of solders keypairs.

Sui address = BLAKE2b-256(flag || public_key), flag 0x00 for Ed25519.
Transaction signing goes through pysui, which loads the same seed from its
keystore encoding and returns base64(flag || signature || public_key).
"""

from __future__ import annotations

import base64
import hashlib
import re

from pysui.sui.sui_crypto import keypair_from_keystring
from solders.keypair import Keypair

ED25519_FLAG = 0x00
ZKLOGIN_FLAG = 0x05
SUI_ADDRESS_LENGTH = 32

SUI_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def is_valid_sui_address(address: object) -> bool:
    """Full-length 0x-prefixed 32-byte hex address."""
    return isinstance(address, str) and bool(SUI_ADDRESS_RE.match(address))


def normalize_address(address: str) -> str:
    """Lowercase, 0x-prefixed, left-padded to 64 hex chars. Raises ValueError on non-hex input."""
    raw = address.strip().lower()
    if raw.startswith("0x"):
        raw = raw[2:]
    if not raw or len(raw) > SUI_ADDRESS_LENGTH * 2 or not re.fullmatch(r"[0-9a-f]+", raw):
        raise ValueError(f"Invalid Sui address: {address}")
    return "0x" + raw.rjust(SUI_ADDRESS_LENGTH * 2, "0")


def public_key_to_address(public_key: bytes, flag: int = ED25519_FLAG) -> str:
    if len(public_key) != 32:
        raise ValueError("Ed25519 public key must be 32 bytes")
    return "0x" + blake2b_256(bytes([flag]) + public_key).hex()


def public_key_bytes(keypair: Keypair) -> bytes:
    return bytes(keypair.pubkey())


def keypair_address(keypair: Keypair) -> str:
    return public_key_to_address(public_key_bytes(keypair))


def keypair_from_secret(secret: bytes) -> Keypair:
    """Keypair from a 32-byte seed or a 64-byte seed||pubkey blob."""
    if len(secret) == 32:
        return Keypair.from_seed(secret)
    if len(secret) == 64:
        return Keypair.from_bytes(secret)
    raise ValueError(f"Ed25519 secret must be 32 or 64 bytes, got {len(secret)}")


def parse_private_key(raw: str) -> Keypair:
    """
    Load a keypair from configuration text.

    Accepts hex (optionally 0x-prefixed) 32/64-byte secrets, or base64 of
    flag || seed as written by the Sui keystore.
    """
    text = (raw or "").strip()
    if not text:
        raise ValueError("Empty private key")
    hex_text = text[2:] if text.lower().startswith("0x") else text
    if re.fullmatch(r"[0-9a-fA-F]+", hex_text) and len(hex_text) in (64, 128):
        return keypair_from_secret(bytes.fromhex(hex_text))
    try:
        decoded = base64.b64decode(text, validate=True)
    except ValueError as e:
        raise ValueError("Private key is neither hex nor base64") from e
    if len(decoded) == 33 and decoded[0] == ED25519_FLAG:
        return keypair_from_secret(decoded[1:])
    if len(decoded) in (32, 64):
        return keypair_from_secret(decoded)
    raise ValueError("Unsupported private key encoding")


def export_secret_hex(keypair: Keypair) -> str:
    return bytes(keypair.secret()).hex()


def sui_keystring(keypair: Keypair) -> str:
    """base64(flag || seed), the Sui keystore encoding."""
    return base64.b64encode(bytes([ED25519_FLAG]) + bytes(keypair.secret())[:32]).decode("ascii")


def sign_transaction(keypair: Keypair, tx_bytes: bytes) -> str:
    """Sign transaction bytes with pysui and return the serialized Sui signature."""
    signer = keypair_from_keystring(sui_keystring(keypair))
    return signer.new_sign_secure(base64.b64encode(tx_bytes).decode("ascii")).signature
