"""
Split a cart's track prices across resolved recipients.

Each track price is halved into a composition pool and a production pool (the odd
base unit goes to production). Within a pool every entry gets
floor(pool * percentage / 100) USDC base units and the rounding remainder goes to
the first entry. Treasury-status shares, and pools with no entries, are paid to
the treasury address. Recipients are merged by address in first-seen order.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from backend_zkwallet.core.exceptions import ConfigurationError, ResourceError
from backend_zkwallet.payments.recipients import RecipientStatus, ResolvedRecipient, TrackSplits
from backend_zkwallet.sui.units import units_to_usdc, usdc_to_units

TREASURY_LABEL = "treasury"


@dataclass(frozen=True)
class PaymentRecipient:
    address: str
    amount_usdc: Decimal
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "amountUsdc": float(self.amount_usdc), "label": self.label}


@dataclass(frozen=True)
class Allocation:
    recipients: tuple[PaymentRecipient, ...]
    total_usdc: Decimal
    treasury_usdc: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipients": [r.to_dict() for r in self.recipients],
            "totalUsdc": float(self.total_usdc),
            "treasuryUsdc": float(self.treasury_usdc),
        }


def split_pool(pool_units: int, entries: list[ResolvedRecipient]) -> list[int]:
    """Floor each share; the remainder goes to entries[0]. Percentages must total 100."""
    if not entries:
        return []
    if sum(e.percentage for e in entries) != 100:
        raise ResourceError("Split percentages must add up to 100%")
    amounts = [pool_units * e.percentage // 100 for e in entries]
    amounts[0] += pool_units - sum(amounts)
    return amounts


def allocate(
    tracks: Iterable[tuple[TrackSplits, Decimal]],
    treasury_address: str | None,
) -> Allocation:
    """Allocate (track splits, price) pairs into a merged recipient list."""
    totals: dict[str, int] = {}
    labels: dict[str, str | None] = {}
    total_units = treasury_units = 0

    def credit(address: str, units: int, label: str | None) -> None:
        if address not in totals:
            totals[address] = 0
            labels[address] = label
        totals[address] += units

    for splits, price in tracks:
        price_units = usdc_to_units(price)
        if price_units < 0:
            raise ResourceError(f"Invalid price for track {splits.track_id}")
        total_units += price_units
        composition_units = price_units // 2
        pools = (
            (composition_units, list(splits.composition_splits)),
            (price_units - composition_units, list(splits.production_splits)),
        )
        for pool_units, entries in pools:
            if not entries:
                treasury_units += pool_units
                continue
            for entry, units in zip(entries, split_pool(pool_units, entries)):
                if entry.status is RecipientStatus.DIRECT and entry.address:
                    credit(entry.address, units, entry.name or entry.wallet)
                else:
                    treasury_units += units

    if treasury_units:
        if not treasury_address:
            raise ConfigurationError("Treasury address not configured (TREASURY_ADDRESS)")
        credit(treasury_address, treasury_units, TREASURY_LABEL)

    recipients = tuple(
        PaymentRecipient(address, units_to_usdc(units), labels[address])
        for address, units in totals.items()
        if units > 0
    )
    return Allocation(
        recipients=recipients,
        total_usdc=units_to_usdc(total_units),
        treasury_usdc=units_to_usdc(treasury_units),
    )
