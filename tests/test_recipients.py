"""
Tests for RecipientResolver over the temporary DB.
"""

from __future__ import annotations

import pytest

from backend_zkwallet.database import repositories
from backend_zkwallet.payments.recipients import (
    AddressRef,
    PendingRef,
    RecipientResolver,
    RecipientStatus,
    SqlRecipientDirectory,
    UsernameRef,
    parse_reference,
)

ADDR_A = "0x" + "aa" * 32
PAYOUT = "0x" + "b1" * 32
PERSONA_ADDR = "0x" + "c1" * 32
ACCOUNT_ADDR = "0x" + "d1" * 32
PROFILE_ADDR = "0x" + "e1" * 32
CACHED = "0x" + "f1" * 32


@pytest.fixture
def resolver(db) -> RecipientResolver:
    return RecipientResolver(SqlRecipientDirectory())


def _persona_with_wallet(account_id: str, persona_id: str, sui_address: str, **kwargs) -> str:
    repositories.create_persona(account_id, persona_id=persona_id, **kwargs)
    repositories.save_persona_wallet(persona_id, sui_address, "ciphertext", "nonce")
    return persona_id


def test_parse_reference_variants():
    assert parse_reference(ADDR_A) == AddressRef(ADDR_A)
    assert parse_reference("pending:Jamie") == PendingRef("Jamie")
    assert parse_reference("  someuser ") == UsernameRef("someuser")
    assert parse_reference("0x2") == UsernameRef("0x2")
    assert parse_reference("") is None
    assert parse_reference(None) is None


def test_address_and_pending_entries(resolver):
    repositories.create_track("t-1", title="Song", composition=[(ADDR_A, 60), ("pending:Jamie", 40)])
    splits = resolver.resolve_track("t-1")
    assert splits is not None
    first, second = splits.composition_splits
    assert (first.address, first.percentage, first.status) == (ADDR_A, 60, RecipientStatus.DIRECT)
    assert (second.address, second.percentage, second.status) == (None, 40, RecipientStatus.TREASURY)
    assert second.name == "Jamie"
    assert splits.production_splits == ()


def test_pending_stays_treasury_even_with_cached_address(resolver):
    repositories.create_track("t-2", composition=[("pending:Sam", 100, CACHED)])
    (entry,) = resolver.resolve_track("t-2").composition_splits
    assert entry.status is RecipientStatus.TREASURY
    assert entry.address is None


def test_username_lookup_order(resolver):
    account = repositories.create_account("acct-1", sui_address=ACCOUNT_ADDR)
    repositories.create_persona(account, persona_id="p-payout", username="paid", payout_address=PAYOUT)
    _persona_with_wallet(account, "p-derived", PERSONA_ADDR, username="derived")
    repositories.create_persona(account, persona_id="p-bare", username="bare")
    repositories.create_profile(account_id=account, username="profile-only")
    repositories.create_track(
        "t-3",
        production=[
            ("paid", 20),
            ("derived", 20),
            ("bare", 20),
            ("profile-only", 20),
            ("nobody", 10),
            ("uncached", 10, CACHED),
        ],
    )
    entries = resolver.resolve_track("t-3").production_splits
    assert [e.address for e in entries] == [PAYOUT, PERSONA_ADDR, ACCOUNT_ADDR, ACCOUNT_ADDR, None, CACHED]
    assert [e.persona_id for e in entries[:3]] == ["p-payout", "p-derived", "p-bare"]
    assert entries[4].status is RecipientStatus.TREASURY
    assert entries[4].wallet == "nobody"


def test_zero_percentage_entries_are_dropped(resolver):
    repositories.create_track("t-4", composition=[(ADDR_A, 100), ("pending:Zero", 0)])
    assert len(resolver.resolve_track("t-4").composition_splits) == 1


def test_every_positive_entry_appears_once_and_percentages_conserved(resolver):
    repositories.create_track(
        "t-5",
        composition=[(ADDR_A, 50), ("pending:A", 25), ("ghost", 25)],
        production=[("pending:B", 70), (ADDR_A, 30)],
    )
    splits = resolver.resolve_track("t-5")
    assert sum(e.percentage for e in splits.composition_splits) == 100
    assert sum(e.percentage for e in splits.production_splits) == 100
    assert len(splits.composition_splits) == 3
    assert len(splits.production_splits) == 2


def test_resolution_is_idempotent(resolver):
    repositories.create_track("t-6", composition=[(ADDR_A, 60), ("pending:Jamie", 40)], production=[("ghost", 100)])
    assert resolver.resolve_track("t-6") == resolver.resolve_track("t-6")


def test_uploader_account_from_persona(resolver):
    account = repositories.create_account("acct-2", sui_address=ACCOUNT_ADDR)
    repositories.create_persona(account, persona_id="p-up")
    repositories.create_track("t-7", persona_id="p-up", composition=[(ADDR_A, 100)])
    splits = resolver.resolve_track("t-7")
    assert splits.uploader_account_id == "acct-2"
    assert splits.uploader_sui_address == ACCOUNT_ADDR


def test_unknown_tracks_are_skipped(resolver):
    repositories.create_track("t-8", composition=[(ADDR_A, 100)])
    results = resolver.resolve_tracks(["missing", "t-8"])
    assert [r.track_id for r in results] == ["t-8"]
    assert resolver.resolve_track("missing") is None


def test_to_dict_shape(resolver):
    repositories.create_track("t-9", title="Hit", composition=[("pending:Jamie", 100)])
    data = resolver.resolve_track("t-9").to_dict()
    assert data["trackId"] == "t-9"
    assert data["compositionSplits"][0] == {
        "wallet": None,
        "name": "Jamie",
        "percentage": 100,
        "address": None,
        "personaId": None,
        "status": "treasury",
    }
