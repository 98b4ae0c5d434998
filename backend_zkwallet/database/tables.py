"""
zkWallet persistence: SQLAlchemy tables, engine and session scope.

Uses ZKWALLET_DB_URL / DATABASE_URL when set; otherwise SQLite (DATABASE_PATH or
zkwallet.db). Uniqueness of zklogin_users.google_sub and zklogin_users.invite_code is
enforced here, at the storage layer: a racing second sign-in with the same invite
code fails its insert.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_zkwallet.config.env import get_database_url
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def _now() -> int:
    return int(time.time())


# -----------------------------------------------------------------------------
# Identity / invitation / account chain
# -----------------------------------------------------------------------------


class ZkLoginUser(Base):
    """One row per OAuth subject. salt and sui_address never change once written."""

    __tablename__ = "zklogin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    google_sub = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(320), nullable=True)
    salt = Column(String(64), nullable=False)
    sui_address = Column(String(66), nullable=False)
    invite_code = Column(String(64), unique=True, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Integer, nullable=False, default=_now)


class AlphaUser(Base):
    """Invitation: an approved invite code may be claimed by exactly one identity."""

    __tablename__ = "alpha_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invite_code = Column(String(64), unique=True, nullable=False, index=True)
    artist_name = Column(String(256), nullable=True)
    wallet_address = Column(String(128), nullable=True)
    approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(Integer, nullable=False, default=_now)


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True)
    alpha_user_id = Column(Integer, ForeignKey("alpha_users.id"), nullable=True, index=True)
    zklogin_user_id = Column(Integer, ForeignKey("zklogin_users.id"), nullable=True, index=True)
    zklogin_salt = Column(String(64), nullable=True)
    sui_address = Column(String(66), nullable=True)
    created_at = Column(Integer, nullable=False, default=_now)


class Persona(Base):
    """
    Sub-wallet owned by one account.

    wallet_address is the lookup key used by split tables (may be a legacy or
    synthetic id); sui_address is the derived address and is only ever written
    together with sui_keypair_encrypted / sui_keypair_nonce.
    """

    __tablename__ = "personas"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), ForeignKey("accounts.id"), nullable=False, index=True)
    username = Column(String(64), nullable=True, index=True)
    display_name = Column(String(256), nullable=True)
    wallet_address = Column(String(128), nullable=True, index=True)
    payout_address = Column(String(66), nullable=True)
    sui_address = Column(String(66), nullable=True, index=True)
    sui_keypair_encrypted = Column(Text, nullable=True)
    sui_keypair_nonce = Column(String(64), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(Integer, nullable=False, default=_now)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(128), unique=True, nullable=True, index=True)
    username = Column(String(64), unique=True, nullable=True, index=True)
    account_id = Column(String(64), ForeignKey("accounts.id"), nullable=True)


# -----------------------------------------------------------------------------
# Tracks and split tables
# -----------------------------------------------------------------------------


class Track(Base):
    __tablename__ = "ip_tracks"

    id = Column(String(64), primary_key=True)
    title = Column(String(512), nullable=False, default="")
    primary_uploader_wallet = Column(String(128), nullable=True)
    persona_id = Column(String(64), ForeignKey("personas.id"), nullable=True)
    price_usdc = Column(String(32), nullable=True)  # decimal text, avoids float rounding


class TrackSplit(Base):
    """One split entry: pool is composition | production, position orders entries in a pool."""

    __tablename__ = "ip_track_splits"
    __table_args__ = (UniqueConstraint("track_id", "pool", "position", name="uq_track_split_slot"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    track_id = Column(String(64), ForeignKey("ip_tracks.id"), nullable=False, index=True)
    pool = Column(String(16), nullable=False)
    position = Column(Integer, nullable=False)
    wallet = Column(String(255), nullable=True)  # address | pending:<name> | username/wallet key
    sui_address = Column(String(66), nullable=True)
    percentage = Column(Integer, nullable=False, default=0)


# -----------------------------------------------------------------------------
# Audit tables
# -----------------------------------------------------------------------------


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    buyer_address = Column(String(66), nullable=False, index=True)
    buyer_persona_id = Column(String(64), nullable=True)
    track_id = Column(String(64), nullable=False, index=True)
    seller_wallet = Column(String(128), nullable=True)
    price_usdc = Column(String(32), nullable=True)
    tx_hash = Column(String(128), nullable=False, index=True)
    network = Column(String(16), nullable=False, default="sui")
    completed_at = Column(Integer, nullable=False, default=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "buyer_address": self.buyer_address,
            "buyer_persona_id": self.buyer_persona_id,
            "track_id": self.track_id,
            "seller_wallet": self.seller_wallet,
            "price_usdc": self.price_usdc,
            "tx_hash": self.tx_hash,
            "network": self.network,
            "completed_at": self.completed_at,
        }


class Earning(Base):
    __tablename__ = "earnings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    persona_id = Column(String(64), nullable=False, index=True)
    amount_usdc = Column(String(32), nullable=False)
    source_type = Column(String(32), nullable=False, default="download_sale")
    source_id = Column(String(64), nullable=True)
    buyer_address = Column(String(66), nullable=True)
    buyer_persona_id = Column(String(64), nullable=True)
    tx_hash = Column(String(128), nullable=False, index=True)
    created_at = Column(Integer, nullable=False, default=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "persona_id": self.persona_id,
            "amount_usdc": self.amount_usdc,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "buyer_address": self.buyer_address,
            "buyer_persona_id": self.buyer_persona_id,
            "tx_hash": self.tx_hash,
            "created_at": self.created_at,
        }


# -----------------------------------------------------------------------------
# Engine and session
# -----------------------------------------------------------------------------

_engine = None
_SessionLocal: sessionmaker | None = None


def _get_engine():
    """Create or return cached engine."""
    global _engine
    if _engine is None:
        url = get_database_url()
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        logger.info("zkwallet_db_engine", url=url.split("?")[0].split("//")[-1])
    return _engine


def _get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
    return _SessionLocal


@contextmanager
def session_scope() -> Iterator[Session]:
    """Context manager for a single session. Commits on success, rolls back on error."""
    session = _get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create tables if they do not exist. Safe to call on every startup."""
    try:
        Base.metadata.create_all(bind=_get_engine())
        logger.info("zkwallet_init_db", url=get_database_url().split("?")[0].split("//")[-1])
    except Exception as e:
        logger.exception("zkwallet_init_db_failed", error=str(e))
        raise


def reset_engine_for_test() -> None:
    """Clear cached engine and session factory. For tests only; use with a new DATABASE_PATH."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
