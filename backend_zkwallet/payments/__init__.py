"""Payments: recipient resolution, pool allocation and sponsored split transfers."""

from backend_zkwallet.payments.allocation import Allocation, PaymentRecipient, allocate
from backend_zkwallet.payments.recipients import RecipientResolver, ResolvedRecipient, parse_reference
from backend_zkwallet.payments.sponsored import SponsoredPaymentBuilder, SponsoredPaymentService

__all__ = [
    "Allocation",
    "PaymentRecipient",
    "RecipientResolver",
    "ResolvedRecipient",
    "SponsoredPaymentBuilder",
    "SponsoredPaymentService",
    "allocate",
    "parse_reference",
]
