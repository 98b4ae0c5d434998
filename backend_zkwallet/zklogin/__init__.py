"""zkLogin: ephemeral keys, nonce and address derivation, salt registry, prover, session store."""

from backend_zkwallet.zklogin.address import decode_jwt, generate_nonce, jwt_to_address
from backend_zkwallet.zklogin.flow import FlowState, ZkLoginFlow
from backend_zkwallet.zklogin.session import SessionStore

__all__ = ["FlowState", "SessionStore", "ZkLoginFlow", "decode_jwt", "generate_nonce", "jwt_to_address"]
