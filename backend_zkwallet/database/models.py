"""
Domain records returned by the repository layer.

Plain dataclasses, detached from SQLAlchemy sessions, so services can hold them
across awaits without touching the database again.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class IdentityRecord:
    id: int
    google_sub: str
    email: str | None
    salt: str
    sui_address: str
    invite_code: str | None


@dataclass(frozen=True)
class InvitationRecord:
    id: int
    invite_code: str
    approved: bool
    artist_name: str | None = None


@dataclass(frozen=True)
class AccountRecord:
    id: str
    alpha_user_id: int | None
    zklogin_user_id: int | None
    salt: str | None
    sui_address: str | None


@dataclass(frozen=True)
class PersonaRecord:
    id: str
    account_id: str
    username: str | None
    display_name: str | None
    wallet_address: str | None
    payout_address: str | None
    sui_address: str | None
    encrypted_key: str | None
    key_nonce: str | None
    is_active: bool = True

    @property
    def has_wallet(self) -> bool:
        """Derived address and its encrypted key are only meaningful together."""
        return bool(self.sui_address and self.encrypted_key and self.key_nonce)


@dataclass(frozen=True)
class SplitRecord:
    pool: str  # composition | production
    position: int
    wallet: str | None
    sui_address: str | None
    percentage: int


@dataclass(frozen=True)
class TrackRecord:
    id: str
    title: str
    primary_uploader_wallet: str | None
    persona_id: str | None
    price_usdc: str | None
    splits: tuple[SplitRecord, ...] = field(default_factory=tuple)

    def pool(self, name: str) -> list[SplitRecord]:
        return sorted((s for s in self.splits if s.pool == name), key=lambda s: s.position)
