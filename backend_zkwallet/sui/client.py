"""
Sui fullnode access through pysui's async client.

Responsibilities:
- Read the current epoch, reference gas price, coin objects and balances.
- Submit signed transaction blocks and report the effects status.
- Surface node errors as RpcError carrying the node's own message.

pysui's AsyncClient queries the node's RPC API schema when it is constructed,
so it is built on first use and reused for the life of the SuiChainClient.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from pysui import AsyncClient, SuiConfig
from pysui.sui.sui_builders.exec_builders import ExecuteTransaction
from pysui.sui.sui_builders.get_builders import (
    GetCoins,
    GetCoinTypeBalance,
    GetLatestSuiSystemState,
    GetReferenceGasPrice,
)
from pysui.sui.sui_types.address import SuiAddress
from pysui.sui.sui_types.collections import SuiArray
from pysui.sui.sui_types.scalars import ObjectID, SuiSignature, SuiString, SuiTxBytes

from backend_zkwallet.core.exceptions import RpcError
from backend_zkwallet.sui.transactions import ObjectRef
from backend_zkwallet.zkwallet_logging import get_logger, short_address

logger = get_logger(__name__)

SUI_COIN_TYPE = "0x2::sui::SUI"


@dataclass(frozen=True)
class Coin:
    """A single coin object owned by an address."""

    coin_type: str
    object_id: str
    version: int
    digest: str
    balance: int

    @classmethod
    def from_coin_object(cls, item: Any) -> "Coin":
        return cls(
            coin_type=getattr(item, "coin_type", "") or "",
            object_id=item.coin_object_id,
            version=int(item.version),
            digest=item.digest,
            balance=int(item.balance),
        )

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(self.object_id, self.version, self.digest)


@dataclass(frozen=True)
class ExecutionResult:
    digest: str
    status: str  # success | failure
    error: str | None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @classmethod
    def from_tx_response(cls, response: Any) -> "ExecutionResult":
        effects = getattr(response, "effects", None)
        status = getattr(effects, "status", None)
        return cls(
            digest=getattr(response, "digest", "") or "",
            status=getattr(status, "status", None) or "unknown",
            error=getattr(status, "error", None),
        )


class SuiChainClient:
    """
    Async reads and transaction submission against one Sui fullnode.

    Pass client to use an already built pysui AsyncClient (or anything with the
    same async execute(builder) method) instead of connecting to rpc_url.
    """

    def __init__(self, rpc_url: str, *, client: Any | None = None) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._client = client

    def _pysui(self) -> Any:
        if self._client is None:
            try:
                self._client = AsyncClient(SuiConfig.user_config(rpc_url=self._rpc_url))
            except httpx.HTTPError as e:
                logger.warning("sui_client_connect_failed", rpc_url=self._rpc_url, error=str(e))
                raise RpcError(f"Cannot reach Sui fullnode: {e}") from e
        return self._client

    async def _execute(self, builder: Any) -> Any:
        """Run one builder; raise RpcError on transport failure or a node error."""
        name = type(builder).__name__
        try:
            result = await self._pysui().execute(builder)
        except httpx.HTTPError as e:
            logger.warning("sui_rpc_transport_error", builder=name, error=str(e))
            raise RpcError(f"Sui RPC {name} failed: {e}") from e
        if not result.is_ok():
            logger.warning("sui_rpc_error", builder=name, error=result.result_string)
            raise RpcError(result.result_string or f"Sui RPC {name} failed")
        return result.result_data

    async def get_current_epoch(self) -> int:
        state = await self._execute(GetLatestSuiSystemState())
        try:
            return int(state.epoch)
        except (AttributeError, TypeError, ValueError) as e:
            raise RpcError("Sui RPC returned no epoch") from e

    async def get_reference_gas_price(self) -> int:
        price = await self._execute(GetReferenceGasPrice())
        return int(getattr(price, "value", price))

    async def get_coins(self, owner: str, coin_type: str = SUI_COIN_TYPE) -> list[Coin]:
        """All coins of coin_type owned by owner, following pagination."""
        coins: list[Coin] = []
        cursor: str | None = None
        while True:
            page = await self._execute(
                GetCoins(
                    owner=SuiAddress(owner),
                    coin_type=SuiString(coin_type),
                    cursor=ObjectID(cursor) if cursor else None,
                )
            )
            coins.extend(Coin.from_coin_object(item) for item in page.data or [])
            if not page.has_next_page or not page.next_cursor:
                break
            cursor = page.next_cursor
        logger.debug(
            "sui_coins_fetched", owner=short_address(owner), coin_type=coin_type, count=len(coins)
        )
        return coins

    async def get_balance(self, owner: str, coin_type: str = SUI_COIN_TYPE) -> int:
        """Total balance in base units."""
        balance = await self._execute(
            GetCoinTypeBalance(owner=SuiAddress(owner), coin_type=SuiString(coin_type))
        )
        return int(balance.total_balance or 0)

    async def execute_transaction_block(
        self, tx_bytes_b64: str, signatures: list[str]
    ) -> ExecutionResult:
        response = await self._execute(
            ExecuteTransaction(
                tx_bytes=SuiTxBytes(tx_bytes_b64),
                signatures=SuiArray([SuiSignature(s) for s in signatures]),
                options={"showEffects": True},
            )
        )
        return ExecutionResult.from_tx_response(response)
