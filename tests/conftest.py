"""
Pytest fixtures for zkWallet tests.

Uses a temporary SQLite DB per test and an in-memory stand-in for the Sui
fullnode client, so nothing touches the network.
"""

from __future__ import annotations

import base64
import os
import struct
from typing import Any, Callable

import base58
import jwt as pyjwt
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from backend_zkwallet.core.exceptions import RpcError
from backend_zkwallet.sui.client import SUI_COIN_TYPE, Coin, ExecutionResult
from backend_zkwallet.sui.keys import ED25519_FLAG, blake2b_256, public_key_to_address

SERVER_SECRET = "test-server-secret"
TREASURY = "0x" + "7e" * 32
JWT_SIGNING_KEY = "zkwallet-test-signing-key-0123456789abcdef"
GOOGLE_ISS = "https://accounts.google.com"
GOOGLE_AUD = "test-client.apps.googleusercontent.com"


# -----------------------------------------------------------------------------
# Environment and database
# -----------------------------------------------------------------------------


@pytest.fixture
def db(tmp_path, monkeypatch):
    """
    Point the database at a temporary SQLite file and create tables.
    Unset DATABASE_URL / ZKWALLET_DB_URL so DATABASE_PATH is used; settings are rebuilt.
    """
    from backend_zkwallet.config import get_settings
    from backend_zkwallet.database import init_db, reset_engine_for_test

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("ZKWALLET_DB_URL", raising=False)
    monkeypatch.delenv("SUI_SPONSOR_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("USDC_COIN_TYPE", raising=False)
    monkeypatch.setenv("SUI_NETWORK", "testnet")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "zkwallet.db"))
    monkeypatch.setenv("KEYPAIR_ENCRYPTION_SECRET", SERVER_SECRET)
    monkeypatch.setenv("TREASURY_ADDRESS", TREASURY)
    get_settings.cache_clear()
    reset_engine_for_test()
    init_db()
    yield
    reset_engine_for_test()
    get_settings.cache_clear()


@pytest.fixture
def wallet_factory(db):
    from backend_zkwallet.personas import KeypairCipher, PersonaWalletFactory

    return PersonaWalletFactory(KeypairCipher(SERVER_SECRET), SERVER_SECRET)


@pytest.fixture
def client(db):
    """FastAPI TestClient. Depends on db so the temp DB is set before requests run."""
    from fastapi.testclient import TestClient

    from backend_zkwallet.api_server.server import app

    yield TestClient(app)
    app.dependency_overrides.clear()


# -----------------------------------------------------------------------------
# JWTs
# -----------------------------------------------------------------------------


def _make_jwt(
    sub: str = "google-sub-1",
    *,
    aud: str = GOOGLE_AUD,
    iss: str = GOOGLE_ISS,
    nonce: str | None = None,
    email: str | None = "artist@example.com",
) -> str:
    claims: dict[str, Any] = {"sub": sub, "aud": aud, "iss": iss, "iat": 1_700_000_000, "exp": 4_000_000_000}
    if nonce is not None:
        claims["nonce"] = nonce
    if email is not None:
        claims["email"] = email
    return pyjwt.encode(claims, JWT_SIGNING_KEY, algorithm="HS256")


@pytest.fixture
def make_jwt() -> Callable[..., str]:
    """Build an HS256 id_token; signature is never checked by the code under test."""
    return _make_jwt


# -----------------------------------------------------------------------------
# Fake Sui fullnode
# -----------------------------------------------------------------------------


def random_object_id() -> str:
    return "0x" + os.urandom(32).hex()


def random_digest() -> str:
    return base58.b58encode(os.urandom(32)).decode("ascii")


class FakeSuiNode:
    """
    Stand-in for SuiChainClient: coins and balances by (owner, coin type), epoch, gas price.

    Methods named in fail_methods raise RpcError; execution_error makes every
    submitted transaction fail on-chain with that message.
    """

    def __init__(self) -> None:
        self.epoch = 100
        self.gas_price = 1000
        self.coins: dict[tuple[str, str], list[Coin]] = {}
        self.fail_methods: set[str] = set()
        self.execution_error: str | None = None
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.executed: list[dict[str, Any]] = []

    def add_coin(self, owner: str, coin_type: str, balance: int) -> Coin:
        coin = Coin(coin_type, random_object_id(), 17, random_digest(), balance)
        self.coins.setdefault((owner, coin_type), []).append(coin)
        return coin

    def methods_called(self) -> list[str]:
        return [m for m, _ in self.calls]

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if method in self.fail_methods:
            raise RpcError(f"{method} down")

    async def get_current_epoch(self) -> int:
        self._record("get_current_epoch")
        return self.epoch

    async def get_reference_gas_price(self) -> int:
        self._record("get_reference_gas_price")
        return self.gas_price

    async def get_coins(self, owner: str, coin_type: str = SUI_COIN_TYPE) -> list[Coin]:
        self._record("get_coins", owner, coin_type)
        return list(self.coins.get((owner, coin_type), []))

    async def get_balance(self, owner: str, coin_type: str = SUI_COIN_TYPE) -> int:
        self._record("get_balance", owner, coin_type)
        return sum(c.balance for c in self.coins.get((owner, coin_type), []))

    async def execute_transaction_block(self, tx_bytes_b64: str, signatures: list[str]) -> ExecutionResult:
        self._record("execute_transaction_block", tx_bytes_b64, signatures)
        tx_bytes = base64.b64decode(tx_bytes_b64)
        digest = transaction_digest(tx_bytes)
        self.executed.append({"tx_bytes": tx_bytes, "signatures": signatures, "digest": digest})
        if self.execution_error:
            return ExecutionResult(digest, "failure", self.execution_error)
        return ExecutionResult(digest, "success", None)


@pytest.fixture
def sui_node() -> FakeSuiNode:
    return FakeSuiNode()


@pytest.fixture
def sponsor() -> Keypair:
    return Keypair()


# -----------------------------------------------------------------------------
# Transaction decoding and signature checks
# -----------------------------------------------------------------------------


class BcsReader:
    """Just enough BCS decoding to inspect TransactionData in assertions."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def _take(self, n: int) -> bytes:
        if self._pos + n > len(self._data):
            raise ValueError("BCS buffer exhausted")
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def u16(self) -> int:
        return struct.unpack("<H", self._take(2))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def uleb128(self) -> int:
        result = shift = 0
        while True:
            byte = self._take(1)[0]
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7

    def fixed_bytes(self, n: int) -> bytes:
        return self._take(n)

    def bytes(self) -> bytes:
        return self._take(self.uleb128())

    def remaining(self) -> int:
        return len(self._data) - self._pos


def transaction_digest(tx_bytes: bytes) -> str:
    """Base58 digest the fullnode reports for these transaction bytes."""
    return base58.b58encode(blake2b_256(b"TransactionData::" + tx_bytes)).decode("ascii")


def signer_of(serialized: str, tx_bytes: bytes) -> str | None:
    """Address of the Ed25519 key behind a valid transaction signature, else None."""
    blob = base64.b64decode(serialized)
    if len(blob) != 97 or blob[0] != ED25519_FLAG:
        return None
    public_key = blob[65:]
    signature = Signature.from_bytes(blob[1:65])
    if not signature.verify(Pubkey.from_bytes(public_key), blake2b_256(bytes(3) + tx_bytes)):
        return None
    return public_key_to_address(public_key)


def _read_argument(r: BcsReader) -> tuple:
    tag = r.uleb128()
    if tag == 0:
        return ("GasCoin",)
    if tag in (1, 2):
        return (("Input", "Result")[tag - 1], r.u16())
    if tag == 3:
        return ("NestedResult", r.u16(), r.u16())
    raise AssertionError(f"unknown argument tag {tag}")


def _read_object_ref(r: BcsReader) -> dict[str, Any]:
    return {
        "objectId": "0x" + r.fixed_bytes(32).hex(),
        "version": r.u64(),
        "digest": base58.b58encode(r.bytes()).decode("ascii"),
    }


def _decode_transaction(tx_bytes: bytes) -> dict[str, Any]:
    """Decode TransactionData::V1 with a programmable transaction into plain dicts."""
    r = BcsReader(tx_bytes)
    assert r.uleb128() == 0  # V1
    assert r.uleb128() == 0  # ProgrammableTransaction
    inputs: list[dict[str, Any]] = []
    for _ in range(r.uleb128()):
        tag = r.uleb128()
        if tag == 0:
            inputs.append({"kind": "pure", "value": r.bytes()})
        else:
            assert tag == 1 and r.uleb128() == 0
            inputs.append({"kind": "object", **_read_object_ref(r)})
    commands: list[dict[str, Any]] = []
    for _ in range(r.uleb128()):
        tag = r.uleb128()
        if tag == 1:
            objects = [_read_argument(r) for _ in range(r.uleb128())]
            commands.append({"kind": "TransferObjects", "objects": objects, "address": _read_argument(r)})
        elif tag == 2:
            coin = _read_argument(r)
            amounts = [_read_argument(r) for _ in range(r.uleb128())]
            commands.append({"kind": "SplitCoins", "coin": coin, "amounts": amounts})
        elif tag == 3:
            destination = _read_argument(r)
            sources = [_read_argument(r) for _ in range(r.uleb128())]
            commands.append({"kind": "MergeCoins", "destination": destination, "sources": sources})
        else:
            raise AssertionError(f"unexpected command tag {tag}")
    sender = "0x" + r.fixed_bytes(32).hex()
    payment = [_read_object_ref(r) for _ in range(r.uleb128())]
    gas_owner = "0x" + r.fixed_bytes(32).hex()
    gas_price = r.u64()
    gas_budget = r.u64()
    expiration = r.uleb128()
    assert r.remaining() == 0
    return {
        "inputs": inputs,
        "commands": commands,
        "sender": sender,
        "gas_payment": payment,
        "gas_owner": gas_owner,
        "gas_price": gas_price,
        "gas_budget": gas_budget,
        "expiration": expiration,
    }


@pytest.fixture
def decode_tx() -> Callable[[bytes], dict[str, Any]]:
    return _decode_transaction
