"""
Environment variable loading and validation for zkWallet.

- SUI_NETWORK: testnet | mainnet | devnet (default: testnet)
- SUI_RPC_URL: fullnode endpoint (falls back to the public fullnode for the network)
- ZKLOGIN_PROVER_URL / ZKLOGIN_PROVER_API_KEY: zero-knowledge prover endpoint
- SUI_SPONSOR_PRIVATE_KEY: gas sponsor secret (server only)
- KEYPAIR_ENCRYPTION_SECRET: HKDF salt for persona key encryption
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)

# Project root: config is backend_zkwallet/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

NETWORKS = ("testnet", "mainnet", "devnet")
DEFAULT_NETWORK = "testnet"

FULLNODE_URLS = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
}

MAINNET_PROVER_URL = "https://prover.mystenlabs.com/v1"
DEV_PROVER_URL = "https://prover-dev.mystenlabs.com/v1"

USDC_TYPES = {
    "mainnet": "0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC",
    "testnet": "0xa1ec7fc00a6f40db9693ad1415d0c193ad3906494428cf252621037bd7117e29::usdc::USDC",
}

DEFAULT_ENCRYPTION_SECRET = "zkwallet-default-secret-change-in-production"
DEFAULT_SPONSOR_GAS_BUDGET = 100_000_000  # 0.1 SUI
DEFAULT_EPOCH_BUFFER = 1
DEFAULT_PENDING_LOGIN_TTL_SEC = 15 * 60


def load_zkwallet_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def get_sui_network() -> str:
    """
    Return SUI_NETWORK from env: testnet | mainnet | devnet.
    Unknown values fall back to testnet with a warning.
    """
    load_zkwallet_env()
    raw = _env("SUI_NETWORK", DEFAULT_NETWORK).lower()
    if raw not in NETWORKS:
        logger.warning("sui_network_invalid", value=raw, fallback=DEFAULT_NETWORK)
        return DEFAULT_NETWORK
    return raw


def get_sui_rpc_url() -> str:
    """SUI_RPC_URL if set, else the public fullnode for the configured network."""
    load_zkwallet_env()
    url = _env("SUI_RPC_URL")
    if url:
        return url
    return FULLNODE_URLS[get_sui_network()]


def get_prover_url() -> str:
    """ZKLOGIN_PROVER_URL if set; else Mysten's prover (dev prover off mainnet)."""
    load_zkwallet_env()
    url = _env("ZKLOGIN_PROVER_URL")
    if url:
        return url
    return MAINNET_PROVER_URL if get_sui_network() == "mainnet" else DEV_PROVER_URL


def get_prover_api_key() -> str | None:
    load_zkwallet_env()
    return _env("ZKLOGIN_PROVER_API_KEY") or None


def get_sponsor_private_key() -> str | None:
    """Sponsor secret from SUI_SPONSOR_PRIVATE_KEY. None when unset."""
    load_zkwallet_env()
    return _env("SUI_SPONSOR_PRIVATE_KEY") or None


def get_keypair_encryption_secret() -> str:
    load_zkwallet_env()
    secret = _env("KEYPAIR_ENCRYPTION_SECRET")
    if not secret:
        logger.warning("keypair_encryption_secret_default")
        return DEFAULT_ENCRYPTION_SECRET
    return secret


def get_usdc_type() -> str:
    """USDC_COIN_TYPE override, else the USDC type for the network (testnet type off mainnet)."""
    load_zkwallet_env()
    override = _env("USDC_COIN_TYPE")
    if override:
        return override
    return USDC_TYPES["mainnet"] if get_sui_network() == "mainnet" else USDC_TYPES["testnet"]


def get_treasury_address() -> str | None:
    load_zkwallet_env()
    return _env("TREASURY_ADDRESS") or None


def get_database_url() -> str:
    """ZKWALLET_DB_URL or DATABASE_URL if set; otherwise SQLite from DATABASE_PATH (default zkwallet.db)."""
    load_zkwallet_env()
    url = _env("ZKWALLET_DB_URL") or _env("DATABASE_URL")
    if url:
        return url
    path = _env("DATABASE_PATH") or "zkwallet.db"
    return f"sqlite:///{path}"


def _int_env(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("config_int_invalid", name=name, value=raw, fallback=default)
        return default


def get_sponsor_gas_budget() -> int:
    load_zkwallet_env()
    return _int_env("SPONSOR_GAS_BUDGET", DEFAULT_SPONSOR_GAS_BUDGET)


def get_epoch_buffer() -> int:
    load_zkwallet_env()
    return _int_env("EPOCH_BUFFER", DEFAULT_EPOCH_BUFFER)


def get_pending_login_ttl_sec() -> int:
    load_zkwallet_env()
    return _int_env("PENDING_LOGIN_TTL_SEC", DEFAULT_PENDING_LOGIN_TTL_SEC)
