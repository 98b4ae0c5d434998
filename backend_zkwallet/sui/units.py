"""USDC / SUI amount conversion. Amounts cross the API as Decimal, the chain in base units."""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal

USDC_DECIMALS = 6
USDC_UNIT = 10**USDC_DECIMALS
MIST_PER_SUI = 10**9


def to_decimal(amount: object) -> Decimal:
    """Decimal from int/float/str without binary float artifacts."""
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def usdc_to_units(amount: object) -> int:
    """USDC amount to base units, rounding down."""
    return int((to_decimal(amount) * USDC_UNIT).to_integral_value(rounding=ROUND_FLOOR))


def units_to_usdc(units: int) -> Decimal:
    return Decimal(units) / USDC_UNIT


def mist_to_sui(mist: int) -> Decimal:
    return Decimal(mist) / MIST_PER_SUI
