"""
Gas-sponsored USDC payments from a persona wallet.

Contract of purchase_with_persona:
1. every recipient address is valid (else nothing happens)
2. the persona key decrypts and matches its stored address
3. the persona holds enough USDC (else InsufficientBalanceError with the shortfall)
4. one transaction: merge USDC coins, split into one piece per recipient, transfer
5. gas is paid from the sponsor's SUI coin
6. the transaction bytes are built once and signed twice (persona + sponsor)
7. purchase/earning rows are written afterwards, best-effort
"""

from __future__ import annotations

import asyncio
import base64
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from solders.keypair import Keypair

from backend_zkwallet.core.exceptions import (
    AuthorizationError,
    ChainExecutionError,
    ConfigurationError,
    InsufficientBalanceError,
    InvalidRecipientError,
    MissingSaltError,
    MissingWalletError,
    NotFoundError,
    ResourceError,
    RpcError,
)
from backend_zkwallet.database import repositories
from backend_zkwallet.database.models import PersonaRecord
from backend_zkwallet.payments.allocation import PaymentRecipient
from backend_zkwallet.personas.factory import PersonaWalletFactory
from backend_zkwallet.sui.keys import is_valid_sui_address, keypair_address, sign_transaction
from backend_zkwallet.sui.client import SUI_COIN_TYPE, Coin, SuiChainClient
from backend_zkwallet.sui.transactions import (
    GasData,
    ProgrammableTransactionBuilder,
    TransactionData,
)
from backend_zkwallet.sui.units import mist_to_sui, units_to_usdc, usdc_to_units
from backend_zkwallet.zkwallet_logging import get_logger, short_address

logger = get_logger(__name__)

LOCATION_SUFFIX_RE = re.compile(r"-loc-\d+$")


def strip_location_suffix(track_id: str) -> str:
    return LOCATION_SUFFIX_RE.sub("", track_id)


@dataclass(frozen=True)
class CartItem:
    id: str
    price_usdc: Decimal | None = None
    title: str | None = None


@dataclass(frozen=True)
class SponsoredTransaction:
    """Built once; both parties sign exactly these bytes."""

    sender: str
    gas_owner: str
    tx_bytes: bytes
    recipients: tuple[PaymentRecipient, ...]

    @property
    def tx_bytes_b64(self) -> str:
        return base64.b64encode(self.tx_bytes).decode("ascii")


@dataclass(frozen=True)
class PaymentResult:
    tx_hash: str
    buyer_address: str
    buyer_persona_id: str
    total_usdc: Decimal
    recipient_count: int

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "txHash": self.tx_hash,
            "buyerAddress": self.buyer_address,
            "buyerPersonaId": self.buyer_persona_id,
            "totalUsdc": float(self.total_usdc),
            "recipientCount": self.recipient_count,
        }


class SponsoredPaymentBuilder:
    """Builds, dual-signs and executes a sponsored split payment."""

    def __init__(self, chain: SuiChainClient, sponsor: Keypair, *, gas_budget: int) -> None:
        self._chain = chain
        self._sponsor = sponsor
        self.sponsor_address = keypair_address(sponsor)
        self._gas_budget = gas_budget

    async def build(
        self,
        sender: str,
        coins: list[Coin],
        recipients: list[PaymentRecipient],
    ) -> SponsoredTransaction:
        if not coins:
            raise ResourceError("No USDC balance in this persona wallet")
        gas_coins = await self._chain.get_coins(self.sponsor_address, SUI_COIN_TYPE)
        if not gas_coins:
            raise ConfigurationError("Sponsor wallet has no SUI for gas")
        gas_price = await self._chain.get_reference_gas_price()

        ptb = ProgrammableTransactionBuilder()
        primary = ptb.owned_object(coins[0].ref)
        if len(coins) > 1:
            ptb.merge_coins(primary, [ptb.owned_object(c.ref) for c in coins[1:]])
        amounts = [ptb.pure_u64(usdc_to_units(r.amount_usdc)) for r in recipients]
        pieces = ptb.split_coins(primary, amounts)
        for piece, recipient in zip(pieces, recipients):
            ptb.transfer_objects([piece], ptb.pure_address(recipient.address))

        data = TransactionData(
            sender=sender,
            kind=ptb.finish(),
            gas_data=GasData(
                payment=(gas_coins[0].ref,),
                owner=self.sponsor_address,
                price=gas_price,
                budget=self._gas_budget,
            ),
        )
        return SponsoredTransaction(
            sender=sender,
            gas_owner=self.sponsor_address,
            tx_bytes=data.to_bytes(),
            recipients=tuple(recipients),
        )

    def sign(self, tx: SponsoredTransaction, sender_keypair: Keypair) -> list[str]:
        """[sender signature, sponsor signature] over the same bytes."""
        return [sign_transaction(sender_keypair, tx.tx_bytes), sign_transaction(self._sponsor, tx.tx_bytes)]

    async def execute(self, tx: SponsoredTransaction, sender_keypair: Keypair) -> str:
        """Sign and submit; returns the digest. Chain rejection raises ChainExecutionError."""
        result = await self._chain.execute_transaction_block(tx.tx_bytes_b64, self.sign(tx, sender_keypair))
        if not result.succeeded:
            logger.error("sponsored_tx_failed", digest=result.digest, error=result.error)
            raise ChainExecutionError(result.error or "Unknown error", digest=result.digest or None)
        return result.digest


class SponsoredPaymentService:
    def __init__(
        self,
        chain: SuiChainClient,
        wallet_factory: PersonaWalletFactory,
        *,
        sponsor: Keypair | None,
        usdc_type: str,
        gas_budget: int,
    ) -> None:
        self._chain = chain
        self._wallets = wallet_factory
        self._usdc_type = usdc_type
        self._builder = SponsoredPaymentBuilder(chain, sponsor, gas_budget=gas_budget) if sponsor else None

    # ---- shared steps ---------------------------------------------------------

    @staticmethod
    def _validate_recipients(recipients: list[PaymentRecipient]) -> None:
        if not recipients:
            raise ResourceError("No payment recipients specified")
        for r in recipients:
            if not is_valid_sui_address(r.address):
                raise InvalidRecipientError(r.address)
            if usdc_to_units(r.amount_usdc) <= 0:
                raise ResourceError(f"Invalid amount for recipient: {r.address}")

    def _owned_persona(self, persona_id: str, account_id: str) -> PersonaRecord:
        persona = repositories.get_persona(persona_id)
        if persona is None:
            raise NotFoundError("Persona not found")
        if persona.account_id != account_id:
            raise AuthorizationError("Unauthorized: persona does not belong to this account")
        if not persona.has_wallet:
            raise MissingWalletError("Persona does not have a wallet. Cannot purchase.")
        return persona

    def _persona_keypair(self, persona: PersonaRecord) -> Keypair:
        account = repositories.get_account(persona.account_id)
        if account is None or not account.salt:
            raise MissingSaltError("Account encryption key not found. Please log in again.")
        return self._wallets.decrypt_wallet(persona, account.salt)

    async def _pay(
        self, persona: PersonaRecord, recipients: list[PaymentRecipient]
    ) -> tuple[str, Decimal]:
        keypair = self._persona_keypair(persona)
        sender = persona.sui_address or ""
        need_units = sum(usdc_to_units(r.amount_usdc) for r in recipients)
        coins = await self._chain.get_coins(sender, self._usdc_type)
        have_units = sum(c.balance for c in coins)
        if have_units < need_units:
            logger.info(
                "sponsored_payment_insufficient",
                persona_id=persona.id,
                need_units=need_units,
                have_units=have_units,
            )
            raise InsufficientBalanceError(units_to_usdc(need_units), units_to_usdc(have_units))

        if self._builder is None:
            raise ConfigurationError("Gas sponsor not configured (SUI_SPONSOR_PRIVATE_KEY)")
        tx = await self._builder.build(sender, coins, recipients)
        logger.info(
            "sponsored_tx_built",
            persona_id=persona.id,
            sender=short_address(sender),
            recipients=len(recipients),
            tx_size=len(tx.tx_bytes),
        )
        digest = await self._builder.execute(tx, keypair)
        logger.info("sponsored_tx_executed", persona_id=persona.id, tx_digest=digest)
        return digest, units_to_usdc(need_units)

    # ---- operations -------------------------------------------------------------

    async def purchase_with_persona(
        self,
        persona_id: str,
        account_id: str,
        recipients: list[PaymentRecipient],
        cart_items: list[CartItem] | None = None,
    ) -> PaymentResult:
        self._validate_recipients(recipients)
        persona = self._owned_persona(persona_id, account_id)
        digest, total = await self._pay(persona, recipients)
        self._record_bookkeeping(persona, recipients, cart_items or [], digest)
        return PaymentResult(
            tx_hash=digest,
            buyer_address=persona.sui_address or "",
            buyer_persona_id=persona.id,
            total_usdc=total,
            recipient_count=len(recipients),
        )

    async def withdraw(
        self,
        persona_id: str,
        account_id: str,
        destination_address: str,
        amount_usdc: Decimal,
    ) -> PaymentResult:
        """Move USDC from a persona to any address; nothing is recorded as earnings."""
        recipients = [PaymentRecipient(destination_address, amount_usdc, "withdrawal")]
        self._validate_recipients(recipients)
        persona = self._owned_persona(persona_id, account_id)
        digest, total = await self._pay(persona, recipients)
        return PaymentResult(
            tx_hash=digest,
            buyer_address=persona.sui_address or "",
            buyer_persona_id=persona.id,
            total_usdc=total,
            recipient_count=1,
        )

    async def persona_balances(self, account_id: str) -> list[dict[str, Any]]:
        """USDC and SUI balance per persona wallet; an RPC failure zeroes that persona only."""
        personas = [p for p in repositories.list_personas(account_id) if p.sui_address]

        async def one(persona: PersonaRecord) -> dict[str, Any]:
            entry: dict[str, Any] = {
                "personaId": persona.id,
                "username": persona.username,
                "displayName": persona.display_name,
                "suiAddress": persona.sui_address,
            }
            try:
                usdc, sui = await asyncio.gather(
                    self._chain.get_balance(persona.sui_address or "", self._usdc_type),
                    self._chain.get_balance(persona.sui_address or "", SUI_COIN_TYPE),
                )
                entry["balances"] = {"usdc": float(units_to_usdc(usdc)), "sui": float(mist_to_sui(sui))}
            except RpcError as e:
                logger.warning("persona_balance_failed", persona_id=persona.id, error=str(e))
                entry["balances"] = {"usdc": 0, "sui": 0}
                entry["error"] = "Failed to fetch balance"
            return entry

        return list(await asyncio.gather(*(one(p) for p in personas)))

    # ---- bookkeeping ------------------------------------------------------------

    def _record_bookkeeping(
        self,
        buyer: PersonaRecord,
        recipients: Iterable[PaymentRecipient],
        cart_items: list[CartItem],
        digest: str,
    ) -> None:
        """Audit rows after a successful transfer. Failures are logged, never raised."""
        recipients = list(recipients)
        for item in cart_items:
            track_id = strip_location_suffix(item.id)
            try:
                track = repositories.get_track(track_id)
                repositories.record_purchase(
                    buyer_address=buyer.sui_address or "",
                    buyer_persona_id=buyer.id,
                    track_id=track_id,
                    seller_wallet=(track.primary_uploader_wallet if track else None)
                    or (recipients[0].address if recipients else "unknown"),
                    price_usdc=item.price_usdc,
                    tx_hash=digest,
                )
            except Exception as e:
                logger.exception("purchase_record_failed", track_id=track_id, tx_digest=digest, error=str(e))

        if not cart_items:
            return
        source_id = strip_location_suffix(cart_items[0].id)
        for recipient in recipients:
            try:
                persona = repositories.find_persona_by_sui_address(recipient.address)
                if persona is None:
                    logger.debug("earning_skipped_not_persona", address=short_address(recipient.address))
                    continue
                repositories.record_earning(
                    persona_id=persona.id,
                    amount_usdc=recipient.amount_usdc,
                    source_id=source_id,
                    buyer_address=buyer.sui_address or "",
                    buyer_persona_id=buyer.id,
                    tx_hash=digest,
                )
            except Exception as e:
                logger.exception(
                    "earning_record_failed",
                    address=short_address(recipient.address),
                    tx_digest=digest,
                    error=str(e),
                )
