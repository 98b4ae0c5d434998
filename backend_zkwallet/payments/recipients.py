"""
RecipientResolver: turn a track's split tables into payable addresses.

Split references are parsed once into a closed set of variants:

- AddressRef: already a full 0x Sui address, used as is
- PendingRef: "pending:<name>", a named collaborator with no wallet yet (treasury)
- UsernameRef: anything else, looked up as a wallet key or username

Resolution is read-only. Every entry with percentage > 0 comes out exactly once,
either direct (address known) or treasury (held until claimed).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Union

from backend_zkwallet.database import repositories
from backend_zkwallet.database.models import AccountRecord, PersonaRecord, SplitRecord, TrackRecord
from backend_zkwallet.sui.keys import is_valid_sui_address
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

PENDING_PREFIX = "pending:"


@dataclass(frozen=True)
class AddressRef:
    address: str


@dataclass(frozen=True)
class PendingRef:
    name: str


@dataclass(frozen=True)
class UsernameRef:
    key: str


Reference = Union[AddressRef, PendingRef, UsernameRef]


def parse_reference(raw: str | None) -> Reference | None:
    """Classify a stored split reference; None for an empty reference."""
    text = (raw or "").strip()
    if not text:
        return None
    if text.startswith(PENDING_PREFIX):
        return PendingRef(text[len(PENDING_PREFIX):].strip())
    if is_valid_sui_address(text):
        return AddressRef(text)
    return UsernameRef(text)


class RecipientStatus(str, enum.Enum):
    DIRECT = "direct"
    TREASURY = "treasury"


@dataclass(frozen=True)
class ResolvedRecipient:
    address: str | None
    percentage: int
    status: RecipientStatus
    wallet: str | None = None
    name: str | None = None
    persona_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet": self.wallet,
            "name": self.name,
            "percentage": self.percentage,
            "address": self.address,
            "personaId": self.persona_id,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class TrackSplits:
    track_id: str
    title: str
    uploader_account_id: str | None
    uploader_sui_address: str | None
    composition_splits: tuple[ResolvedRecipient, ...]
    production_splits: tuple[ResolvedRecipient, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "trackId": self.track_id,
            "title": self.title,
            "uploaderAccountId": self.uploader_account_id,
            "uploaderSuiAddress": self.uploader_sui_address,
            "compositionSplits": [s.to_dict() for s in self.composition_splits],
            "productionSplits": [s.to_dict() for s in self.production_splits],
        }


class RecipientDirectory(Protocol):
    """Read-only lookups the resolver needs."""

    def get_track(self, track_id: str) -> TrackRecord | None: ...

    def get_persona(self, persona_id: str) -> PersonaRecord | None: ...

    def find_persona_by_wallet(self, wallet_key: str) -> PersonaRecord | None: ...

    def get_account(self, account_id: str) -> AccountRecord | None: ...

    def get_profile_account_id(self, reference: str) -> str | None: ...


class SqlRecipientDirectory:
    def get_track(self, track_id: str) -> TrackRecord | None:
        return repositories.get_track(track_id)

    def get_persona(self, persona_id: str) -> PersonaRecord | None:
        return repositories.get_persona(persona_id)

    def find_persona_by_wallet(self, wallet_key: str) -> PersonaRecord | None:
        return repositories.find_persona_by_wallet(wallet_key)

    def get_account(self, account_id: str) -> AccountRecord | None:
        return repositories.get_account(account_id)

    def get_profile_account_id(self, reference: str) -> str | None:
        return repositories.get_profile_account_id(reference)


def _valid(address: str | None) -> str | None:
    return address if is_valid_sui_address(address) else None


class RecipientResolver:
    def __init__(self, directory: RecipientDirectory) -> None:
        self._directory = directory

    def _account_address(self, account_id: str | None) -> str | None:
        if not account_id:
            return None
        account = self._directory.get_account(account_id)
        return _valid(account.sui_address) if account else None

    def _lookup(self, key: str, cached_address: str | None) -> tuple[str | None, str | None]:
        """(address, persona_id) for a wallet key / username; first hit wins."""
        cached = _valid(cached_address)
        if cached:
            return cached, None

        persona = self._directory.find_persona_by_wallet(key)
        if persona is not None:
            address = (
                _valid(persona.payout_address)
                or _valid(persona.sui_address)
                or self._account_address(persona.account_id)
            )
            if address:
                return address, persona.id

        address = self._account_address(self._directory.get_profile_account_id(key))
        return address, None

    def resolve_entry(self, split: SplitRecord) -> ResolvedRecipient:
        ref = parse_reference(split.wallet)
        if isinstance(ref, AddressRef):
            return ResolvedRecipient(ref.address, split.percentage, RecipientStatus.DIRECT, wallet=ref.address)
        if isinstance(ref, PendingRef):
            return ResolvedRecipient(None, split.percentage, RecipientStatus.TREASURY, name=ref.name)
        if isinstance(ref, UsernameRef):
            address, persona_id = self._lookup(ref.key, split.sui_address)
        else:
            address, persona_id = _valid(split.sui_address), None
        wallet = ref.key if isinstance(ref, UsernameRef) else None
        if address:
            return ResolvedRecipient(address, split.percentage, RecipientStatus.DIRECT, wallet=wallet, persona_id=persona_id)
        return ResolvedRecipient(None, split.percentage, RecipientStatus.TREASURY, wallet=wallet)

    def resolve_pool(self, splits: Iterable[SplitRecord]) -> tuple[ResolvedRecipient, ...]:
        return tuple(self.resolve_entry(s) for s in splits if s.percentage > 0)

    def _uploader(self, track: TrackRecord) -> tuple[str | None, str | None]:
        account_id: str | None = None
        if track.persona_id:
            persona = self._directory.get_persona(track.persona_id)
            account_id = persona.account_id if persona else None
        elif track.primary_uploader_wallet:
            account_id = self._directory.get_profile_account_id(track.primary_uploader_wallet)
        return account_id, self._account_address(account_id)

    def resolve_track(self, track_id: str) -> TrackSplits | None:
        track = self._directory.get_track(track_id)
        if track is None:
            logger.warning("resolve_recipients_track_not_found", track_id=track_id)
            return None
        account_id, account_address = self._uploader(track)
        return TrackSplits(
            track_id=track.id,
            title=track.title,
            uploader_account_id=account_id,
            uploader_sui_address=account_address,
            composition_splits=self.resolve_pool(track.pool("composition")),
            production_splits=self.resolve_pool(track.pool("production")),
        )

    def resolve_tracks(self, track_ids: Iterable[str]) -> list[TrackSplits]:
        """Resolve each track in order; unknown track ids are skipped."""
        results = [r for r in (self.resolve_track(t) for t in track_ids) if r is not None]
        treasury = sum(
            1 for t in results for s in t.composition_splits + t.production_splits
            if s.status is RecipientStatus.TREASURY
        )
        logger.info("resolve_recipients_done", tracks=len(results), treasury_entries=treasury)
        return results
