"""
Client for the zkLogin zero-knowledge prover.

One POST per sign-in attempt; any non-success response fails the attempt. There is
no retry loop here: the caller restarts the flow from a fresh ephemeral key.
"""

from __future__ import annotations

from typing import Any

import httpx

from backend_zkwallet.core.exceptions import ProverError
from backend_zkwallet.zklogin.address import KEY_CLAIM_NAME
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

PROVER_TIMEOUT = 60.0


class ProofClient:
    def __init__(
        self,
        prover_url: str,
        *,
        api_key: str | None = None,
        timeout_sec: float = PROVER_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not prover_url.strip():
            raise ValueError("prover_url must be non-empty")
        self._url = prover_url.strip()
        self._api_key = api_key
        self._timeout = timeout_sec
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    async def get_proof(
        self,
        jwt: str,
        extended_ephemeral_public_key: str,
        max_epoch: int,
        randomness: str,
        salt: str,
    ) -> dict[str, Any]:
        """Return the prover's proof object (proofPoints, issBase64Details, headerBase64)."""
        body = {
            "jwt": jwt,
            "extendedEphemeralPublicKey": extended_ephemeral_public_key,
            "maxEpoch": max_epoch,
            "jwtRandomness": randomness,
            "salt": salt,
            "keyClaimName": KEY_CLAIM_NAME,
        }
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout), transport=self._transport
            ) as client:
                resp = await client.post(self._url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("zklogin_prover_unreachable", url=self._url, error=str(e))
            raise ProverError(f"Prover unreachable: {e}") from e

        if resp.status_code >= 400:
            logger.warning("zklogin_prover_rejected", status=resp.status_code, body=resp.text[:500])
            raise ProverError(f"Failed to get ZK proof: {resp.status_code} {resp.text}".strip())
        try:
            proof = resp.json()
        except ValueError as e:
            raise ProverError("Prover returned invalid JSON") from e
        if not isinstance(proof, dict) or "proofPoints" not in proof:
            raise ProverError("Prover response has no proofPoints")
        logger.info("zklogin_proof_obtained", max_epoch=max_epoch)
        return proof
