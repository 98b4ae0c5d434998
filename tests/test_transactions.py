"""
Tests for programmable transaction encoding.
"""

from __future__ import annotations

import pytest

from backend_zkwallet.sui.transactions import (
    GasData,
    ObjectRef,
    ProgrammableTransactionBuilder,
    TransactionData,
)

from conftest import BcsReader, random_digest, random_object_id

SENDER = "0x" + "11" * 32
SPONSOR = "0x" + "22" * 32
ALICE = "0x" + "aa" * 32
BOB = "0x" + "bb" * 32


def _ref() -> ObjectRef:
    return ObjectRef(random_object_id(), 5, random_digest())


def _payment_tx(coin_refs: list[ObjectRef], amounts: list[int], recipients: list[str]) -> TransactionData:
    ptb = ProgrammableTransactionBuilder()
    primary = ptb.owned_object(coin_refs[0])
    if len(coin_refs) > 1:
        ptb.merge_coins(primary, [ptb.owned_object(r) for r in coin_refs[1:]])
    pieces = ptb.split_coins(primary, [ptb.pure_u64(a) for a in amounts])
    for piece, recipient in zip(pieces, recipients):
        ptb.transfer_objects([piece], ptb.pure_address(recipient))
    return TransactionData(
        sender=SENDER,
        kind=ptb.finish(),
        gas_data=GasData(payment=(_ref(),), owner=SPONSOR, price=750, budget=50_000_000),
    )


def test_sponsored_split_payment_layout(decode_tx):
    coins = [_ref(), _ref()]
    gas_ref = _ref()
    ptb = ProgrammableTransactionBuilder()
    primary = ptb.owned_object(coins[0])
    ptb.merge_coins(primary, [ptb.owned_object(coins[1])])
    pieces = ptb.split_coins(primary, [ptb.pure_u64(4_000_000), ptb.pure_u64(6_000_000)])
    for piece, recipient in zip(pieces, [ALICE, BOB]):
        ptb.transfer_objects([piece], ptb.pure_address(recipient))
    data = TransactionData(SENDER, ptb.finish(), GasData((gas_ref,), SPONSOR, 750, 50_000_000))
    tx = decode_tx(data.to_bytes())

    assert tx["sender"] == SENDER
    assert tx["gas_owner"] == SPONSOR
    assert tx["gas_price"] == 750
    assert tx["gas_budget"] == 50_000_000
    assert tx["expiration"] == 0
    assert tx["gas_payment"] == [{"objectId": gas_ref.object_id, "version": 5, "digest": gas_ref.digest}]

    object_inputs = [i for i in tx["inputs"] if i["kind"] == "object"]
    assert [i["objectId"] for i in object_inputs] == [c.object_id for c in coins]
    assert [i["digest"] for i in object_inputs] == [c.digest for c in coins]

    kinds = [c["kind"] for c in tx["commands"]]
    assert kinds == ["MergeCoins", "SplitCoins", "TransferObjects", "TransferObjects"]
    assert tx["commands"][0]["sources"] == [("Input", 1)]
    split = tx["commands"][1]
    assert split["coin"] == ("Input", 0)
    amounts = [BcsReader(tx["inputs"][a[1]]["value"]).u64() for a in split["amounts"]]
    assert amounts == [4_000_000, 6_000_000]

    for i, (command, recipient) in enumerate(zip(tx["commands"][2:], [ALICE, BOB])):
        assert command["objects"] == [("NestedResult", 1, i)]
        assert "0x" + tx["inputs"][command["address"][1]]["value"].hex() == recipient


def test_single_coin_has_no_merge(decode_tx):
    tx = decode_tx(_payment_tx([_ref()], [1_000_000], [ALICE]).to_bytes())
    assert [c["kind"] for c in tx["commands"]] == ["SplitCoins", "TransferObjects"]


def test_short_addresses_are_padded(decode_tx):
    tx = decode_tx(_payment_tx([_ref()], [1], ["0x2"]).to_bytes())
    (transfer,) = [c for c in tx["commands"] if c["kind"] == "TransferObjects"]
    assert tx["inputs"][transfer["address"][1]]["value"] == bytes(31) + b"\x02"


def test_same_inputs_encode_to_same_bytes():
    coin = _ref()
    first = _payment_tx([coin], [1], [ALICE])
    second = TransactionData(first.sender, first.kind, first.gas_data)
    assert first.to_bytes() == second.to_bytes()


def test_u64_amount_range():
    ptb = ProgrammableTransactionBuilder()
    with pytest.raises(ValueError):
        ptb.pure_u64(-1)
    with pytest.raises(ValueError):
        ptb.pure_u64(1 << 64)
    ptb.pure_u64((1 << 64) - 1)
