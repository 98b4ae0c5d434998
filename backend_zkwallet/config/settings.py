"""
Application settings.

Typed, frozen snapshot of the environment (see config.env) used by the API
server, the payment service and the zkLogin client. Built once per process via
get_settings(); tests call get_settings.cache_clear() after changing env.
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass

from backend_zkwallet.config import env


@dataclass(frozen=True)
class Settings:
    sui_network: str
    sui_rpc_url: str
    prover_url: str
    prover_api_key: str | None
    sponsor_private_key: str | None
    keypair_encryption_secret: str
    usdc_type: str
    treasury_address: str | None
    database_url: str
    sponsor_gas_budget: int
    epoch_buffer: int
    pending_login_ttl_sec: int
    google_client_id: str
    apple_client_id: str
    oauth_redirect_uri: str
    api_host: str
    api_port: int
    log_level: str


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the current application settings."""
    env.load_zkwallet_env()
    return Settings(
        sui_network=env.get_sui_network(),
        sui_rpc_url=env.get_sui_rpc_url(),
        prover_url=env.get_prover_url(),
        prover_api_key=env.get_prover_api_key(),
        sponsor_private_key=env.get_sponsor_private_key(),
        keypair_encryption_secret=env.get_keypair_encryption_secret(),
        usdc_type=env.get_usdc_type(),
        treasury_address=env.get_treasury_address(),
        database_url=env.get_database_url(),
        sponsor_gas_budget=env.get_sponsor_gas_budget(),
        epoch_buffer=env.get_epoch_buffer(),
        pending_login_ttl_sec=env.get_pending_login_ttl_sec(),
        google_client_id=(os.getenv("GOOGLE_CLIENT_ID") or "").strip(),
        apple_client_id=(os.getenv("APPLE_CLIENT_ID") or "").strip(),
        oauth_redirect_uri=(os.getenv("OAUTH_REDIRECT_URI") or "http://localhost:3000/auth/callback").strip(),
        api_host=(os.getenv("API_HOST") or "0.0.0.0").strip(),
        api_port=int((os.getenv("API_PORT") or "8000").strip() or "8000"),
        log_level=(os.getenv("LOG_LEVEL") or "info").strip().lower(),
    )
