"""
zkLogin address derivation and nonce construction.

Both are pure functions over the circomlib Poseidon hash. The address is bound
to (iss, sub, aud, salt):

    address_seed = Poseidon(F("sub", 32), F(sub, 115), F(aud, 145), Poseidon(salt))
    address      = BLAKE2b-256(0x05 || len(iss) || iss || address_seed as 32 bytes)

where F(s, n) zero-pads s to n bytes, packs it into 31-byte big-endian chunks
and Poseidon-hashes the chunks. The OAuth nonce binds the ephemeral public key
(flag || pubkey, split into 128-bit halves) to (maxEpoch, randomness):

    nonce = base64url(last 20 bytes of Poseidon(pk_hi, pk_lo, maxEpoch, randomness))
"""

from __future__ import annotations

import base64

import jwt

from backend_zkwallet.core.exceptions import InvalidJwtError, ProtocolError
from backend_zkwallet.sui.keys import ED25519_FLAG, ZKLOGIN_FLAG, blake2b_256
from backend_zkwallet.zklogin.models import JwtClaims
from backend_zkwallet.zklogin.poseidon import BN254_FIELD_SIZE, poseidon_hash

NONCE_LENGTH = 27
NONCE_BYTES = 20
KEY_CLAIM_NAME = "sub"
MAX_KEY_CLAIM_NAME_LENGTH = 32
MAX_KEY_CLAIM_VALUE_LENGTH = 115
MAX_AUD_VALUE_LENGTH = 145
PACK_WIDTH_BYTES = 31

_ISS_ALIASES = {"accounts.google.com": "https://accounts.google.com"}


def hash_ascii_str_to_field(value: str, max_size: int) -> int:
    if not value.isascii():
        raise InvalidJwtError(f"Claim value {value!r} is not ASCII")
    data = value.encode("ascii")
    if len(data) > max_size:
        raise InvalidJwtError(f"Claim value is longer than {max_size} characters")
    padded = data.ljust(max_size, b"\x00")
    chunks = [padded[i:i + PACK_WIDTH_BYTES] for i in range(0, max_size, PACK_WIDTH_BYTES)]
    return poseidon_hash([int.from_bytes(chunk, "big") for chunk in chunks])


def parse_decimal(value: str, name: str) -> int:
    """Decimal big-integer string (salt, randomness) to int."""
    text = str(value).strip()
    if not text.isdigit():
        raise ProtocolError(f"{name} must be a decimal integer string")
    number = int(text)
    if number >= BN254_FIELD_SIZE:
        raise ProtocolError(f"{name} is out of range")
    return number


def generate_nonce(public_key: bytes, max_epoch: int, randomness: str) -> str:
    if len(public_key) != 32:
        raise ValueError("Ed25519 public key must be 32 bytes")
    pk = int.from_bytes(bytes([ED25519_FLAG]) + public_key, "big")
    digest = poseidon_hash([pk >> 128, pk & ((1 << 128) - 1), max_epoch, parse_decimal(randomness, "randomness")])
    raw = digest.to_bytes(32, "big")[-NONCE_BYTES:]
    nonce = base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
    if len(nonce) != NONCE_LENGTH:
        raise ValueError("Nonce has the wrong length")
    return nonce


def extended_public_key(public_key: bytes) -> str:
    """Prover's extendedEphemeralPublicKey: flag || pubkey as a decimal big-integer."""
    return str(int.from_bytes(bytes([ED25519_FLAG]) + public_key, "big"))


def normalize_iss(iss: str) -> str:
    return _ISS_ALIASES.get(iss, iss)


def decode_jwt(token: str) -> JwtClaims:
    """
    Read identity claims from an id_token without verifying it.

    Verification is the prover's job: a forged token cannot produce a valid proof.
    """
    if not token or not isinstance(token, str):
        raise InvalidJwtError("Missing JWT")
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise InvalidJwtError(f"Malformed JWT: {e}") from e
    aud = payload.get("aud")
    if isinstance(aud, list):
        aud = aud[0] if aud else None
    sub, iss = payload.get("sub"), payload.get("iss")
    if not sub or not iss or not aud:
        raise InvalidJwtError("JWT is missing sub, iss or aud")
    exp = payload.get("exp")
    return JwtClaims(
        sub=str(sub),
        iss=str(iss),
        aud=str(aud),
        email=payload.get("email"),
        nonce=payload.get("nonce"),
        exp=int(exp) if exp is not None else None,
    )


def address_seed(sub: str, aud: str, salt: str) -> int:
    return poseidon_hash(
        [
            hash_ascii_str_to_field(KEY_CLAIM_NAME, MAX_KEY_CLAIM_NAME_LENGTH),
            hash_ascii_str_to_field(sub, MAX_KEY_CLAIM_VALUE_LENGTH),
            hash_ascii_str_to_field(aud, MAX_AUD_VALUE_LENGTH),
            poseidon_hash([parse_decimal(salt, "salt")]),
        ]
    )


def compute_zklogin_address(iss: str, seed: int) -> str:
    iss_bytes = normalize_iss(iss).encode("utf-8")
    if len(iss_bytes) > 255:
        raise InvalidJwtError("JWT issuer is too long")
    data = bytes([ZKLOGIN_FLAG, len(iss_bytes)]) + iss_bytes + seed.to_bytes(32, "big")
    return "0x" + blake2b_256(data).hex()


def derive_address(claims: JwtClaims, salt: str) -> str:
    return compute_zklogin_address(claims.iss, address_seed(claims.sub, claims.aud, salt))


def jwt_to_address(token: str, salt: str) -> str:
    """Same (jwt, salt) always yields the same address."""
    return derive_address(decode_jwt(token), salt)
