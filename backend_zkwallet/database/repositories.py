"""
Repository functions over the zkWallet tables.

Each call opens its own session scope and returns detached records (see
database.models). Writes that may lose a uniqueness race return None/False instead
of raising, so callers decide how to report the conflict.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Iterable

from sqlalchemy.exc import IntegrityError

from backend_zkwallet.core.exceptions import SaltConflictError
from backend_zkwallet.database.models import (
    AccountRecord,
    IdentityRecord,
    InvitationRecord,
    PersonaRecord,
    SplitRecord,
    TrackRecord,
)
from backend_zkwallet.database.tables import (
    Account,
    AlphaUser,
    Earning,
    Persona,
    Purchase,
    Track,
    TrackSplit,
    UserProfile,
    ZkLoginUser,
    session_scope,
)
from backend_zkwallet.zkwallet_logging import get_logger, short_address

logger = get_logger(__name__)

POOLS = ("composition", "production")


def normalize_invite_code(code: str | None) -> str:
    return (code or "").strip().upper()


# -----------------------------------------------------------------------------
# Row → record
# -----------------------------------------------------------------------------


def _identity(row: ZkLoginUser) -> IdentityRecord:
    return IdentityRecord(
        id=row.id,
        google_sub=row.google_sub,
        email=row.email,
        salt=row.salt,
        sui_address=row.sui_address,
        invite_code=row.invite_code,
    )


def _account(row: Account) -> AccountRecord:
    return AccountRecord(
        id=row.id,
        alpha_user_id=row.alpha_user_id,
        zklogin_user_id=row.zklogin_user_id,
        salt=row.zklogin_salt,
        sui_address=row.sui_address,
    )


def _persona(row: Persona) -> PersonaRecord:
    return PersonaRecord(
        id=row.id,
        account_id=row.account_id,
        username=row.username,
        display_name=row.display_name,
        wallet_address=row.wallet_address,
        payout_address=row.payout_address,
        sui_address=row.sui_address,
        encrypted_key=row.sui_keypair_encrypted,
        key_nonce=row.sui_keypair_nonce,
        is_active=bool(row.is_active),
    )


# -----------------------------------------------------------------------------
# Identities and invitations
# -----------------------------------------------------------------------------


def get_identity_by_sub(google_sub: str) -> IdentityRecord | None:
    with session_scope() as session:
        row = session.query(ZkLoginUser).filter(ZkLoginUser.google_sub == google_sub).first()
        return _identity(row) if row else None


def get_identity_by_invite(invite_code: str) -> IdentityRecord | None:
    code = normalize_invite_code(invite_code)
    with session_scope() as session:
        row = session.query(ZkLoginUser).filter(ZkLoginUser.invite_code == code).first()
        return _identity(row) if row else None


def create_identity(
    google_sub: str,
    email: str | None,
    salt: str,
    sui_address: str,
    invite_code: str | None,
) -> IdentityRecord | None:
    """
    Insert a new identity. Returns None if google_sub or invite_code is already taken
    (the losing side of a concurrent first sign-in).
    """
    try:
        with session_scope() as session:
            row = ZkLoginUser(
                google_sub=google_sub,
                email=email or None,
                salt=salt,
                sui_address=sui_address,
                invite_code=normalize_invite_code(invite_code) or None,
                is_active=True,
            )
            session.add(row)
            session.flush()
            record = _identity(row)
        logger.info("zklogin_identity_created", identity_id=record.id, address=short_address(sui_address))
        return record
    except IntegrityError:
        logger.info("zklogin_identity_conflict", invite_code=normalize_invite_code(invite_code))
        return None


def get_invitation(invite_code: str) -> InvitationRecord | None:
    code = normalize_invite_code(invite_code)
    if not code:
        return None
    with session_scope() as session:
        row = session.query(AlphaUser).filter(AlphaUser.invite_code == code).first()
        if not row:
            return None
        return InvitationRecord(
            id=row.id, invite_code=row.invite_code, approved=bool(row.approved), artist_name=row.artist_name
        )


def create_invitation(invite_code: str, *, approved: bool = True, artist_name: str | None = None) -> int:
    with session_scope() as session:
        row = AlphaUser(invite_code=normalize_invite_code(invite_code), approved=approved, artist_name=artist_name)
        session.add(row)
        session.flush()
        return row.id


# -----------------------------------------------------------------------------
# Accounts
# -----------------------------------------------------------------------------


def create_account(
    account_id: str | None = None,
    *,
    alpha_user_id: int | None = None,
    salt: str | None = None,
    sui_address: str | None = None,
) -> str:
    account_id = account_id or str(uuid.uuid4())
    with session_scope() as session:
        session.add(
            Account(id=account_id, alpha_user_id=alpha_user_id, zklogin_salt=salt, sui_address=sui_address)
        )
    return account_id


def get_account(account_id: str) -> AccountRecord | None:
    with session_scope() as session:
        row = session.get(Account, account_id)
        return _account(row) if row else None


def find_account_for_identity(identity: IdentityRecord) -> AccountRecord | None:
    """Account linked directly to the identity, else through its invitation."""
    with session_scope() as session:
        row = session.query(Account).filter(Account.zklogin_user_id == identity.id).first()
        if row is None and identity.invite_code:
            row = (
                session.query(Account)
                .join(AlphaUser, Account.alpha_user_id == AlphaUser.id)
                .filter(AlphaUser.invite_code == identity.invite_code)
                .first()
            )
        return _account(row) if row else None


def set_account_salt(
    account_id: str,
    salt: str,
    *,
    sui_address: str | None = None,
    zklogin_user_id: int | None = None,
) -> bool:
    """
    Store salt (and address / identity link) on an account where missing.

    Returns True when something was written. A different salt already on the
    account is never overwritten: raises SaltConflictError.
    """
    with session_scope() as session:
        row = session.get(Account, account_id)
        if row is None:
            return False
        if row.zklogin_salt and row.zklogin_salt != salt:
            raise SaltConflictError("Account already has a different salt")
        changed = False
        if not row.zklogin_salt:
            row.zklogin_salt = salt
            changed = True
        if sui_address and not row.sui_address:
            row.sui_address = sui_address
            changed = True
        if zklogin_user_id is not None and row.zklogin_user_id is None:
            row.zklogin_user_id = zklogin_user_id
            changed = True
    if changed:
        logger.info("account_salt_backfilled", account_id=account_id)
    return changed


# -----------------------------------------------------------------------------
# Personas and profiles
# -----------------------------------------------------------------------------


def create_persona(
    account_id: str,
    *,
    persona_id: str | None = None,
    username: str | None = None,
    display_name: str | None = None,
    wallet_address: str | None = None,
    payout_address: str | None = None,
) -> str:
    persona_id = persona_id or str(uuid.uuid4())
    with session_scope() as session:
        session.add(
            Persona(
                id=persona_id,
                account_id=account_id,
                username=username,
                display_name=display_name,
                wallet_address=wallet_address,
                payout_address=payout_address,
                is_active=True,
            )
        )
    return persona_id


def get_persona(persona_id: str, *, active_only: bool = True) -> PersonaRecord | None:
    with session_scope() as session:
        q = session.query(Persona).filter(Persona.id == persona_id)
        if active_only:
            q = q.filter(Persona.is_active.is_(True))
        row = q.first()
        return _persona(row) if row else None


def list_personas(account_id: str, *, active_only: bool = True) -> list[PersonaRecord]:
    with session_scope() as session:
        q = session.query(Persona).filter(Persona.account_id == account_id)
        if active_only:
            q = q.filter(Persona.is_active.is_(True))
        return [_persona(r) for r in q.order_by(Persona.created_at, Persona.id).all()]


def save_persona_wallet(persona_id: str, sui_address: str, encrypted_key: str, key_nonce: str) -> bool:
    """Write address + encrypted key together, only if the persona has no wallet yet."""
    with session_scope() as session:
        updated = (
            session.query(Persona)
            .filter(Persona.id == persona_id, Persona.sui_address.is_(None))
            .update(
                {
                    "sui_address": sui_address,
                    "sui_keypair_encrypted": encrypted_key,
                    "sui_keypair_nonce": key_nonce,
                },
                synchronize_session=False,
            )
        )
    return bool(updated)


def find_persona_by_wallet(wallet_key: str) -> PersonaRecord | None:
    """Active persona whose lookup key or username matches."""
    with session_scope() as session:
        row = (
            session.query(Persona)
            .filter(Persona.is_active.is_(True))
            .filter((Persona.wallet_address == wallet_key) | (Persona.username == wallet_key))
            .order_by(Persona.created_at, Persona.id)
            .first()
        )
        return _persona(row) if row else None


def find_persona_by_sui_address(sui_address: str) -> PersonaRecord | None:
    with session_scope() as session:
        row = (
            session.query(Persona)
            .filter(Persona.is_active.is_(True), Persona.sui_address == sui_address)
            .first()
        )
        return _persona(row) if row else None


def create_profile(*, account_id: str | None, wallet_address: str | None = None, username: str | None = None) -> int:
    with session_scope() as session:
        row = UserProfile(account_id=account_id, wallet_address=wallet_address, username=username)
        session.add(row)
        session.flush()
        return row.id


def get_profile_account_id(reference: str) -> str | None:
    with session_scope() as session:
        row = (
            session.query(UserProfile)
            .filter((UserProfile.wallet_address == reference) | (UserProfile.username == reference))
            .first()
        )
        return row.account_id if row else None


# -----------------------------------------------------------------------------
# Tracks
# -----------------------------------------------------------------------------


def create_track(
    track_id: str,
    *,
    title: str = "",
    primary_uploader_wallet: str | None = None,
    persona_id: str | None = None,
    price_usdc: Decimal | str | None = None,
    composition: Iterable[tuple[str | None, int] | tuple[str | None, int, str | None]] = (),
    production: Iterable[tuple[str | None, int] | tuple[str | None, int, str | None]] = (),
) -> str:
    """Insert a track with its split pools: entries are (wallet, percentage[, sui_address])."""
    with session_scope() as session:
        session.add(
            Track(
                id=track_id,
                title=title,
                primary_uploader_wallet=primary_uploader_wallet,
                persona_id=persona_id,
                price_usdc=str(price_usdc) if price_usdc is not None else None,
            )
        )
        for pool, entries in (("composition", composition), ("production", production)):
            for position, entry in enumerate(entries, start=1):
                wallet, percentage = entry[0], entry[1]
                sui_address = entry[2] if len(entry) > 2 else None
                session.add(
                    TrackSplit(
                        track_id=track_id,
                        pool=pool,
                        position=position,
                        wallet=wallet,
                        sui_address=sui_address,
                        percentage=int(percentage),
                    )
                )
    return track_id


def get_track(track_id: str) -> TrackRecord | None:
    with session_scope() as session:
        row = session.get(Track, track_id)
        if row is None:
            return None
        splits = (
            session.query(TrackSplit)
            .filter(TrackSplit.track_id == track_id)
            .order_by(TrackSplit.pool, TrackSplit.position)
            .all()
        )
        return TrackRecord(
            id=row.id,
            title=row.title or "",
            primary_uploader_wallet=row.primary_uploader_wallet,
            persona_id=row.persona_id,
            price_usdc=row.price_usdc,
            splits=tuple(
                SplitRecord(
                    pool=s.pool,
                    position=s.position,
                    wallet=s.wallet,
                    sui_address=s.sui_address,
                    percentage=int(s.percentage or 0),
                )
                for s in splits
            ),
        )


# -----------------------------------------------------------------------------
# Purchases and earnings (audit)
# -----------------------------------------------------------------------------


def record_purchase(
    *,
    buyer_address: str,
    buyer_persona_id: str | None,
    track_id: str,
    seller_wallet: str | None,
    price_usdc: Decimal | str | None,
    tx_hash: str,
) -> int:
    with session_scope() as session:
        row = Purchase(
            buyer_address=buyer_address,
            buyer_persona_id=buyer_persona_id,
            track_id=track_id,
            seller_wallet=seller_wallet,
            price_usdc=str(price_usdc) if price_usdc is not None else None,
            tx_hash=tx_hash,
            network="sui",
        )
        session.add(row)
        session.flush()
        return row.id


def record_earning(
    *,
    persona_id: str,
    amount_usdc: Decimal | str,
    source_id: str | None,
    buyer_address: str,
    buyer_persona_id: str | None,
    tx_hash: str,
    source_type: str = "download_sale",
) -> int:
    with session_scope() as session:
        row = Earning(
            persona_id=persona_id,
            amount_usdc=str(amount_usdc),
            source_type=source_type,
            source_id=source_id,
            buyer_address=buyer_address,
            buyer_persona_id=buyer_persona_id,
            tx_hash=tx_hash,
        )
        session.add(row)
        session.flush()
        return row.id


def list_purchases(tx_hash: str) -> list[dict]:
    with session_scope() as session:
        rows = session.query(Purchase).filter(Purchase.tx_hash == tx_hash).order_by(Purchase.id).all()
        return [r.to_dict() for r in rows]


def list_earnings(tx_hash: str) -> list[dict]:
    with session_scope() as session:
        rows = session.query(Earning).filter(Earning.tx_hash == tx_hash).order_by(Earning.id).all()
        return [r.to_dict() for r in rows]
