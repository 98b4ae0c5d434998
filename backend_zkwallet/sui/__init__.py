"""Sui chain primitives: keys and addresses, transaction data, fullnode client."""

from backend_zkwallet.sui.client import Coin, ExecutionResult, SuiChainClient
from backend_zkwallet.sui.keys import is_valid_sui_address, keypair_address, sign_transaction

__all__ = [
    "Coin",
    "ExecutionResult",
    "SuiChainClient",
    "is_valid_sui_address",
    "keypair_address",
    "sign_transaction",
]
