"""
Tests for Sui key, address and signature helpers.
"""

from __future__ import annotations

import base64

import pytest
from solders.keypair import Keypair

from backend_zkwallet.sui.keys import (
    ED25519_FLAG,
    export_secret_hex,
    is_valid_sui_address,
    keypair_address,
    normalize_address,
    parse_private_key,
    sign_transaction,
    sui_keystring,
)

from conftest import signer_of


def test_keypair_address_is_full_length_and_deterministic():
    kp = Keypair.from_seed(bytes(range(32)))
    address = keypair_address(kp)
    assert is_valid_sui_address(address)
    assert address == keypair_address(Keypair.from_seed(bytes(range(32))))
    assert address != keypair_address(Keypair.from_seed(bytes(range(1, 33))))


def test_is_valid_sui_address():
    assert is_valid_sui_address("0x" + "aa" * 32)
    assert is_valid_sui_address("0x" + "AB" * 32)
    assert not is_valid_sui_address("0x2")
    assert not is_valid_sui_address("aa" * 32)
    assert not is_valid_sui_address("0x" + "zz" * 32)
    assert not is_valid_sui_address(None)


def test_normalize_address_pads_short_form():
    assert normalize_address("0x2") == "0x" + "0" * 63 + "2"
    assert normalize_address("0X" + "AB" * 32) == "0x" + "ab" * 32
    with pytest.raises(ValueError):
        normalize_address("0xnothex")


def test_sign_transaction_covers_intent_digest():
    kp = Keypair()
    tx_bytes = b"\x00\x00example-transaction"
    serialized = sign_transaction(kp, tx_bytes)
    blob = base64.b64decode(serialized)
    assert len(blob) == 97
    assert blob[0] == ED25519_FLAG
    assert blob[65:] == bytes(kp.pubkey())

    assert signer_of(serialized, tx_bytes) == keypair_address(kp)
    assert signer_of(serialized, tx_bytes + b"\x01") is None


@pytest.mark.parametrize("encode", ["hex", "0xhex", "keystore"])
def test_parse_private_key_formats(encode):
    kp = Keypair()
    seed_hex = export_secret_hex(kp)[:64]
    if encode == "hex":
        raw = seed_hex
    elif encode == "0xhex":
        raw = "0x" + seed_hex
    else:
        raw = base64.b64encode(bytes([ED25519_FLAG]) + bytes.fromhex(seed_hex)).decode("ascii")
    assert keypair_address(parse_private_key(raw)) == keypair_address(kp)


def test_parse_private_key_rejects_garbage():
    with pytest.raises(ValueError):
        parse_private_key("")
    with pytest.raises(ValueError):
        parse_private_key("definitely not a key")


def test_keystring_loads_back_to_same_key():
    kp = Keypair()
    keystring = sui_keystring(kp)
    assert base64.b64decode(keystring)[0] == ED25519_FLAG
    assert keypair_address(parse_private_key(keystring)) == keypair_address(kp)
