"""
Tests for persona wallet derivation and encrypted key storage.
"""

from __future__ import annotations

import dataclasses

import pytest
from solders.keypair import Keypair

from backend_zkwallet.core.exceptions import KeypairIntegrityError, MissingSaltError, MissingWalletError
from backend_zkwallet.database import repositories
from backend_zkwallet.personas import KeypairCipher, PersonaWalletFactory
from backend_zkwallet.sui.keys import is_valid_sui_address, keypair_address

SECRET = "test-server-secret"
SALT = "123456789"


@pytest.fixture
def cipher() -> KeypairCipher:
    return KeypairCipher(SECRET)


def test_encrypt_decrypt_round_trip(cipher):
    kp = Keypair()
    encrypted = cipher.encrypt(kp, SALT)
    assert encrypted.sui_address == keypair_address(kp)
    assert keypair_address(cipher.decrypt(encrypted, SALT)) == keypair_address(kp)


def test_fresh_nonce_per_encryption(cipher):
    kp = Keypair()
    a, b = cipher.encrypt(kp, SALT), cipher.encrypt(kp, SALT)
    assert a.nonce != b.nonce
    assert a.encrypted_key != b.encrypted_key


def test_wrong_salt_fails_integrity(cipher):
    encrypted = cipher.encrypt(Keypair(), SALT)
    with pytest.raises(KeypairIntegrityError) as exc_info:
        cipher.decrypt(encrypted, "987654321")
    assert exc_info.value.reason == "decrypt_failed"
    assert exc_info.value.status_code == 500


def test_wrong_server_secret_fails_integrity():
    encrypted = KeypairCipher(SECRET).encrypt(Keypair(), SALT)
    with pytest.raises(KeypairIntegrityError):
        KeypairCipher("another-secret").decrypt(encrypted, SALT)


def test_stored_address_must_match_key(cipher):
    encrypted = cipher.encrypt(Keypair(), SALT)
    tampered = dataclasses.replace(encrypted, sui_address="0x" + "cd" * 32)
    with pytest.raises(KeypairIntegrityError) as exc_info:
        cipher.decrypt(tampered, SALT)
    assert exc_info.value.reason == "address_mismatch"


def test_missing_salt(cipher):
    with pytest.raises(MissingSaltError):
        cipher.encrypt(Keypair(), "")


def test_derivation_is_deterministic_and_per_persona():
    factory = PersonaWalletFactory(KeypairCipher(SECRET), SECRET)
    a1 = keypair_address(factory.derive_keypair(SALT, "persona-a"))
    assert a1 == keypair_address(factory.derive_keypair(SALT, "persona-a"))
    assert a1 != keypair_address(factory.derive_keypair(SALT, "persona-b"))
    assert a1 != keypair_address(factory.derive_keypair("123456788", "persona-a"))
    other_server = PersonaWalletFactory(KeypairCipher("x"), "x")
    assert a1 != keypair_address(other_server.derive_keypair(SALT, "persona-a"))


def test_mint_missing_wallets_is_idempotent(wallet_factory):
    account_id = repositories.create_account("acct-1", salt=SALT)
    repositories.create_persona(account_id, persona_id="p-1", username="one")
    repositories.create_persona(account_id, persona_id="p-2", username="two")

    first = wallet_factory.mint_missing_wallets(account_id, SALT)
    assert (first.generated, first.total, first.failed) == (2, 2, 0)
    before = {p.id: p.sui_address for p in repositories.list_personas(account_id)}
    assert all(is_valid_sui_address(a) for a in before.values())

    second = wallet_factory.mint_missing_wallets(account_id, SALT)
    assert (second.generated, second.total) == (0, 2)
    after = {p.id: p.sui_address for p in repositories.list_personas(account_id)}
    assert after == before


def test_decrypt_wallet_recovers_derived_key(wallet_factory):
    account_id = repositories.create_account("acct-2", salt=SALT)
    repositories.create_persona(account_id, persona_id="p-3")
    wallet_factory.mint_missing_wallets(account_id, SALT)
    persona = repositories.get_persona("p-3")
    assert persona.has_wallet
    kp = wallet_factory.decrypt_wallet(persona, SALT)
    assert keypair_address(kp) == persona.sui_address
    assert keypair_address(kp) == keypair_address(wallet_factory.derive_keypair(SALT, "p-3"))


def test_decrypt_wallet_without_wallet(wallet_factory):
    account_id = repositories.create_account("acct-3", salt=SALT)
    repositories.create_persona(account_id, persona_id="p-4")
    with pytest.raises(MissingWalletError):
        wallet_factory.decrypt_wallet(repositories.get_persona("p-4"), SALT)
