"""
Tests for SuiChainClient with a scripted stand-in for pysui's AsyncClient.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from backend_zkwallet.core.exceptions import RpcError
from backend_zkwallet.sui.client import SuiChainClient

from conftest import random_digest, random_object_id

OWNER = "0x" + "ab" * 32


class Result:
    """Same surface as pysui's SuiRpcResult."""

    def __init__(self, data: Any = None, error: str | None = None) -> None:
        self.result_data = data
        self.result_string = error

    def is_ok(self) -> bool:
        return self.result_string is None


class ScriptedClient:
    """Answers each builder type from a queue of results and records the calls."""

    def __init__(self, **answers: list[Any]) -> None:
        self._answers = {name: list(results) for name, results in answers.items()}
        self.builders: list[Any] = []

    async def execute(self, builder: Any) -> Any:
        self.builders.append(builder)
        answer = self._answers[type(builder).__name__].pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _chain(**answers: list[Any]) -> tuple[SuiChainClient, ScriptedClient]:
    scripted = ScriptedClient(**answers)
    return SuiChainClient("http://sui.test", client=scripted), scripted


def _coin(balance: int) -> SimpleNamespace:
    return SimpleNamespace(
        coin_type="0x2::sui::SUI",
        coin_object_id=random_object_id(),
        version="3",
        digest=random_digest(),
        balance=str(balance),
    )


def test_get_coins_follows_pagination():
    cursor = random_object_id()
    pages = [
        Result(SimpleNamespace(data=[_coin(1), _coin(2)], has_next_page=True, next_cursor=cursor)),
        Result(SimpleNamespace(data=[_coin(3)], has_next_page=False, next_cursor=None)),
    ]
    chain, scripted = _chain(GetCoins=pages)
    coins = asyncio.run(chain.get_coins(OWNER))
    assert [c.balance for c in coins] == [1, 2, 3]
    assert len(scripted.builders) == 2
    assert coins[0].ref.version == 3
    assert coins[0].ref.object_id == coins[0].object_id


def test_node_error_carries_node_message():
    chain, _ = _chain(GetReferenceGasPrice=[Result(error="Invalid params")])
    with pytest.raises(RpcError, match="Invalid params"):
        asyncio.run(chain.get_reference_gas_price())


def test_transport_failure_becomes_rpc_error():
    chain, _ = _chain(GetLatestSuiSystemState=[httpx.ConnectError("refused")])
    with pytest.raises(RpcError) as exc_info:
        asyncio.run(chain.get_current_epoch())
    assert exc_info.value.status_code == 502


def test_missing_epoch_is_rpc_error():
    chain, _ = _chain(GetLatestSuiSystemState=[Result(SimpleNamespace())])
    with pytest.raises(RpcError, match="no epoch"):
        asyncio.run(chain.get_current_epoch())


def test_execute_reports_failure_status():
    status = SimpleNamespace(status="failure", error="MoveAbort")
    response = SimpleNamespace(digest="D1", effects=SimpleNamespace(status=status))
    chain, scripted = _chain(ExecuteTransaction=[Result(response)])
    result = asyncio.run(chain.execute_transaction_block("AAAA", ["c2ln", "c2ln"]))
    assert result.digest == "D1"
    assert not result.succeeded
    assert result.error == "MoveAbort"
    assert type(scripted.builders[0]).__name__ == "ExecuteTransaction"


def test_epoch_gas_price_and_balance():
    chain, _ = _chain(
        GetLatestSuiSystemState=[Result(SimpleNamespace(epoch="421"))],
        GetReferenceGasPrice=[Result(750)],
        GetCoinTypeBalance=[Result(SimpleNamespace(total_balance="1500"))],
    )
    assert asyncio.run(chain.get_current_epoch()) == 421
    assert asyncio.run(chain.get_reference_gas_price()) == 750
    assert asyncio.run(chain.get_balance(OWNER)) == 1500


def test_rpc_url_is_required():
    with pytest.raises(ValueError):
        SuiChainClient("  ")
