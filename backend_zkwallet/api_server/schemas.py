"""Request bodies for the zkWallet API. Field aliases are the camelCase wire names."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SaltRequest(_Body):
    """POST /auth/salt body."""

    google_sub: str = Field(..., alias="googleSub", min_length=1, description="OAuth subject id (JWT sub)")
    email: str | None = Field(None, description="Email claim, stored with a new identity")
    invite_code: str | None = Field(None, alias="inviteCode", description="Invite code, required for new users")
    jwt: str | None = Field(None, description="id_token, required for new users (address derivation)")


class RecipientIn(_Body):
    address: str = Field(..., description="Recipient Sui address (0x + 64 hex)")
    amount_usdc: Decimal = Field(..., alias="amountUsdc", description="Amount in USDC")
    label: str | None = Field(None, description="Display label, for logs only")


class CartItemIn(_Body):
    id: str = Field(..., description="Track id; a -loc-N suffix is stripped when recording")
    title: str | None = None
    price_usdc: Decimal | None = None


class PurchaseRequest(_Body):
    """POST /payments/purchase-with-persona body."""

    persona_id: str = Field(..., alias="personaId")
    account_id: str = Field(..., alias="accountId")
    recipients: list[RecipientIn] = Field(..., description="Split recipients, one transfer each")
    cart_items: list[CartItemIn] | None = Field(None, alias="cartItems")


class ResolveRecipientsRequest(_Body):
    track_ids: list[str] = Field(..., alias="trackIds")


class AllocateTrack(_Body):
    track_id: str = Field(..., alias="trackId")
    price_usdc: Decimal | None = Field(None, alias="priceUsdc", description="Defaults to the stored track price")


class AllocateRequest(_Body):
    tracks: list[AllocateTrack] = Field(..., min_length=1)


class GenerateWalletsRequest(_Body):
    account_id: str = Field(..., alias="accountId", min_length=1)
    salt: str = Field(..., min_length=1)


class WithdrawRequest(_Body):
    persona_id: str = Field(..., alias="personaId")
    account_id: str = Field(..., alias="accountId")
    destination_address: str = Field(..., alias="destinationAddress")
    amount_usdc: Decimal = Field(..., alias="amountUsdc", gt=0)
