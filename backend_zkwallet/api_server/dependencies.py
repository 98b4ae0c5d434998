"""
FastAPI dependencies: settings and the service objects built from them.

Tests replace get_sui_client (and, if needed, get_settings) through
app.dependency_overrides.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from solders.keypair import Keypair

from backend_zkwallet.config import Settings, get_settings
from backend_zkwallet.core.exceptions import ConfigurationError
from backend_zkwallet.payments.recipients import RecipientResolver, SqlRecipientDirectory
from backend_zkwallet.payments.sponsored import SponsoredPaymentService
from backend_zkwallet.personas import KeypairCipher, PersonaWalletFactory
from backend_zkwallet.sui.client import SuiChainClient
from backend_zkwallet.sui.keys import parse_private_key
from backend_zkwallet.zklogin.salt_registry import SaltRegistry


def settings_dependency() -> Settings:
    return get_settings()


@lru_cache(maxsize=None)
def _chain_client(rpc_url: str) -> SuiChainClient:
    return SuiChainClient(rpc_url)


def get_sui_client(settings: Settings = Depends(settings_dependency)) -> SuiChainClient:
    """One client per fullnode URL, shared across requests."""
    return _chain_client(settings.sui_rpc_url)


def get_wallet_factory(settings: Settings = Depends(settings_dependency)) -> PersonaWalletFactory:
    secret = settings.keypair_encryption_secret
    return PersonaWalletFactory(KeypairCipher(secret), secret)


def get_sponsor_keypair(settings: Settings = Depends(settings_dependency)) -> Keypair | None:
    if not settings.sponsor_private_key:
        return None
    try:
        return parse_private_key(settings.sponsor_private_key)
    except ValueError as e:
        raise ConfigurationError("Invalid SUI_SPONSOR_PRIVATE_KEY") from e


def get_salt_registry(wallet_factory: PersonaWalletFactory = Depends(get_wallet_factory)) -> SaltRegistry:
    return SaltRegistry(wallet_factory)


def get_resolver() -> RecipientResolver:
    return RecipientResolver(SqlRecipientDirectory())


def get_payment_service(
    settings: Settings = Depends(settings_dependency),
    chain: SuiChainClient = Depends(get_sui_client),
    wallet_factory: PersonaWalletFactory = Depends(get_wallet_factory),
    sponsor: Keypair | None = Depends(get_sponsor_keypair),
) -> SponsoredPaymentService:
    return SponsoredPaymentService(
        chain,
        wallet_factory,
        sponsor=sponsor,
        usdc_type=settings.usdc_type,
        gas_budget=settings.sponsor_gas_budget,
    )
