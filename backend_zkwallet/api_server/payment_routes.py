"""
FastAPI router: recipient resolution, allocation and sponsored purchases.

POST /payments/resolve-recipients  track ids -> resolved composition/production splits
POST /payments/allocate            track ids + prices -> merged payment recipients
POST /payments/purchase-with-persona  one sponsored split transfer from a persona wallet
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends

from backend_zkwallet.api_server.dependencies import get_payment_service, get_resolver, settings_dependency
from backend_zkwallet.api_server.schemas import AllocateRequest, PurchaseRequest, ResolveRecipientsRequest
from backend_zkwallet.config import Settings
from backend_zkwallet.core.exceptions import NotFoundError, ResourceError
from backend_zkwallet.database import repositories
from backend_zkwallet.payments.allocation import PaymentRecipient, allocate
from backend_zkwallet.payments.recipients import RecipientResolver, TrackSplits
from backend_zkwallet.payments.sponsored import CartItem, SponsoredPaymentService
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/resolve-recipients")
def resolve_recipients(
    body: ResolveRecipientsRequest,
    resolver: RecipientResolver = Depends(get_resolver),
) -> dict[str, Any]:
    if not body.track_ids:
        raise ResourceError("No track IDs provided")
    tracks = resolver.resolve_tracks(body.track_ids)
    return {"success": True, "tracks": [t.to_dict() for t in tracks]}


@router.post("/allocate")
def allocate_payment(
    body: AllocateRequest,
    resolver: RecipientResolver = Depends(get_resolver),
    settings: Settings = Depends(settings_dependency),
) -> dict[str, Any]:
    """Split each track price 50/50 into composition and production pools and merge by address."""
    priced: list[tuple[TrackSplits, Decimal]] = []
    for item in body.tracks:
        splits = resolver.resolve_track(item.track_id)
        if splits is None:
            raise NotFoundError(f"Track not found: {item.track_id}")
        price = item.price_usdc
        if price is None:
            track = repositories.get_track(item.track_id)
            price = track.price_usdc if track else None
        if price is None:
            raise ResourceError(f"No price for track {item.track_id}")
        priced.append((splits, Decimal(price)))

    allocation = allocate(priced, settings.treasury_address)
    logger.info(
        "payment_allocated",
        tracks=len(priced),
        recipients=len(allocation.recipients),
        total_usdc=str(allocation.total_usdc),
    )
    return {"success": True, **allocation.to_dict(), "tracks": [s.to_dict() for s, _ in priced]}


@router.post("/purchase-with-persona")
async def purchase_with_persona(
    body: PurchaseRequest,
    service: SponsoredPaymentService = Depends(get_payment_service),
) -> dict[str, Any]:
    recipients = [PaymentRecipient(r.address, r.amount_usdc, r.label) for r in body.recipients]
    cart = [CartItem(id=c.id, price_usdc=c.price_usdc, title=c.title) for c in body.cart_items or []]
    logger.info(
        "purchase_with_persona_request",
        persona_id=body.persona_id,
        recipients=len(recipients),
        cart_items=len(cart),
    )
    result = await service.purchase_with_persona(body.persona_id, body.account_id, recipients, cart)
    return result.to_response()
