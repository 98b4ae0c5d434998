"""
FastAPI router: persona sub-wallets.

POST /personas/generate-wallets  mint deterministic wallets for personas lacking one
GET  /personas/balances          live USDC/SUI balance of each persona wallet
POST /personas/withdraw          sponsored USDC transfer out of a persona wallet
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from backend_zkwallet.api_server.dependencies import get_payment_service, get_wallet_factory
from backend_zkwallet.api_server.schemas import GenerateWalletsRequest, WithdrawRequest
from backend_zkwallet.core.exceptions import NotFoundError
from backend_zkwallet.database import repositories
from backend_zkwallet.payments.sponsored import SponsoredPaymentService
from backend_zkwallet.personas import PersonaWalletFactory
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/personas", tags=["personas"])


@router.post("/generate-wallets")
def generate_wallets(
    body: GenerateWalletsRequest,
    factory: PersonaWalletFactory = Depends(get_wallet_factory),
) -> dict[str, Any]:
    """Store the salt on the account (never replacing a different one), then mint."""
    if repositories.get_account(body.account_id) is None:
        raise NotFoundError("Account not found")
    repositories.set_account_salt(body.account_id, body.salt)
    result = factory.mint_missing_wallets(body.account_id, body.salt)
    return {
        "success": True,
        "message": f"Generated {result.generated} wallet(s)",
        "generated": result.generated,
        "total": result.total,
        "failed": result.failed,
    }


@router.get("/balances")
async def persona_balances(
    account_id: str = Query(..., alias="accountId", min_length=1),
    service: SponsoredPaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    return {"success": True, "balances": await service.persona_balances(account_id)}


@router.post("/withdraw")
async def withdraw(
    body: WithdrawRequest,
    service: SponsoredPaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    result = await service.withdraw(
        body.persona_id,
        body.account_id,
        body.destination_address,
        body.amount_usdc,
    )
    logger.info("persona_withdrawal", persona_id=body.persona_id, tx_digest=result.tx_hash)
    return result.to_response()
