"""
Data models for the zkLogin sign-in flow.

- PendingLogin: what must survive the OAuth redirect (ephemeral secret, maxEpoch,
  randomness, invite code), stored with a wall-clock creation time.
- EphemeralSession: the completed session (keys, proof, JWT, expiry epoch).
- JwtClaims: the identity claims read from an unverified OAuth id_token.
- SaltResult: SaltRegistry / salt endpoint output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from solders.keypair import Keypair

from backend_zkwallet.sui.keys import export_secret_hex, keypair_from_secret


def serialize_keypair(keypair: Keypair) -> str:
    """Hex of the 32-byte Ed25519 seed."""
    return export_secret_hex(keypair)


def deserialize_keypair(secret_hex: str) -> Keypair:
    return keypair_from_secret(bytes.fromhex(secret_hex))


@dataclass(frozen=True)
class JwtClaims:
    sub: str
    iss: str
    aud: str
    email: str | None = None
    nonce: str | None = None
    exp: int | None = None


@dataclass(frozen=True)
class PendingLogin:
    ephemeral_secret_key: str
    max_epoch: int
    randomness: str
    nonce: str
    invite_code: str
    created_at: float  # Unix seconds

    def keypair(self) -> Keypair:
        return deserialize_keypair(self.ephemeral_secret_key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ephemeralSecretKey": self.ephemeral_secret_key,
            "maxEpoch": self.max_epoch,
            "randomness": self.randomness,
            "nonce": self.nonce,
            "inviteCode": self.invite_code,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingLogin":
        return cls(
            ephemeral_secret_key=str(data["ephemeralSecretKey"]),
            max_epoch=int(data["maxEpoch"]),
            randomness=str(data["randomness"]),
            nonce=str(data.get("nonce") or ""),
            invite_code=str(data.get("inviteCode") or ""),
            created_at=float(data["createdAt"]),
        )


@dataclass(frozen=True)
class EphemeralSession:
    ephemeral_keypair: Keypair
    max_epoch: int
    randomness: str
    jwt: str
    salt: str
    sui_address: str
    email: str | None
    invite_code: str
    zk_proof: dict[str, Any]
    created_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "ephemeralSecretKey": serialize_keypair(self.ephemeral_keypair),
            "maxEpoch": self.max_epoch,
            "randomness": self.randomness,
            "jwt": self.jwt,
            "salt": self.salt,
            "suiAddress": self.sui_address,
            "email": self.email,
            "inviteCode": self.invite_code,
            "zkProof": self.zk_proof,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EphemeralSession":
        """Rebuild from stored JSON; raises KeyError/ValueError/TypeError on malformed data."""
        proof = data["zkProof"]
        if not isinstance(proof, dict):
            raise TypeError("zkProof must be an object")
        return cls(
            ephemeral_keypair=deserialize_keypair(str(data["ephemeralSecretKey"])),
            max_epoch=int(data["maxEpoch"]),
            randomness=str(data["randomness"]),
            jwt=str(data["jwt"]),
            salt=str(data["salt"]),
            sui_address=str(data["suiAddress"]),
            email=data.get("email"),
            invite_code=str(data.get("inviteCode") or ""),
            zk_proof=proof,
            created_at=float(data["createdAt"]),
        )


@dataclass(frozen=True)
class SaltResult:
    salt: str
    sui_address: str
    invite_code: str | None
    is_new_user: bool

    def to_response(self) -> dict[str, Any]:
        return {
            "salt": self.salt,
            "suiAddress": self.sui_address,
            "inviteCode": self.invite_code,
            "isNewUser": self.is_new_user,
        }
