"""
Sui programmable transaction data, encoded with pysui's BCS types.

Only the commands the payment flow uses are built: MergeCoins, SplitCoins and
TransferObjects over owned coin objects and pure u64/address inputs. The encoded
TransactionData::V1 bytes are what both sender and gas sponsor sign.
"""

from __future__ import annotations

from dataclasses import dataclass

import canoser
from pysui.sui.sui_types import bcs

from backend_zkwallet.sui.keys import normalize_address

U16_MAX = 0xFFFF
U64_MAX = 0xFFFF_FFFF_FFFF_FFFF


def _address(address: str) -> bcs.Address:
    return bcs.Address.from_str(normalize_address(address))


@dataclass(frozen=True)
class ObjectRef:
    """Owned object reference as returned by the fullnode (digest is base58)."""

    object_id: str
    version: int
    digest: str

    def to_bcs(self) -> bcs.ObjectReference:
        return bcs.ObjectReference(_address(self.object_id), self.version, bcs.Digest.from_str(self.digest))


class ProgrammableTransactionBuilder:
    """Accumulates inputs and commands; hands out Argument handles as it goes."""

    def __init__(self) -> None:
        self._inputs: list[bcs.CallArg] = []
        self._commands: list[bcs.Command] = []

    def _add_input(self, arg: bcs.CallArg) -> bcs.Argument:
        if len(self._inputs) >= U16_MAX:
            raise ValueError("Too many transaction inputs")
        self._inputs.append(arg)
        return bcs.Argument("Input", len(self._inputs) - 1)

    def _add_command(self, name: str, command: object) -> int:
        self._commands.append(bcs.Command(name, command))
        return len(self._commands) - 1

    def pure_u64(self, value: int) -> bcs.Argument:
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"u64 out of range: {value}")
        return self._add_input(bcs.CallArg("Pure", list(canoser.Uint64.encode(value))))

    def pure_address(self, address: str) -> bcs.Argument:
        return self._add_input(bcs.CallArg("Pure", list(_address(address).serialize())))

    def owned_object(self, ref: ObjectRef) -> bcs.Argument:
        return self._add_input(bcs.CallArg("Object", bcs.ObjectArg("ImmOrOwnedObject", ref.to_bcs())))

    def merge_coins(self, destination: bcs.Argument, sources: list[bcs.Argument]) -> None:
        self._add_command("MergeCoins", bcs.MergeCoins(destination, sources))

    def split_coins(self, coin: bcs.Argument, amounts: list[bcs.Argument]) -> list[bcs.Argument]:
        index = self._add_command("SplitCoin", bcs.SplitCoin(coin, amounts))
        return [bcs.Argument("NestedResult", (index, i)) for i in range(len(amounts))]

    def transfer_objects(self, objects: list[bcs.Argument], address: bcs.Argument) -> None:
        self._add_command("TransferObjects", bcs.TransferObjects(objects, address))

    def finish(self) -> bcs.ProgrammableTransaction:
        return bcs.ProgrammableTransaction(list(self._inputs), list(self._commands))


@dataclass(frozen=True)
class GasData:
    payment: tuple[ObjectRef, ...]
    owner: str
    price: int
    budget: int

    def to_bcs(self) -> bcs.GasData:
        return bcs.GasData([ref.to_bcs() for ref in self.payment], _address(self.owner), self.price, self.budget)


@dataclass(frozen=True)
class TransactionData:
    sender: str
    kind: bcs.ProgrammableTransaction
    gas_data: GasData

    def to_bytes(self) -> bytes:
        data = bcs.TransactionData(
            "V1",
            bcs.TransactionDataV1(
                bcs.TransactionKind("ProgrammableTransaction", self.kind),
                _address(self.sender),
                self.gas_data.to_bcs(),
                bcs.TransactionExpiration("None"),
            ),
        )
        return bytes(data.serialize())
