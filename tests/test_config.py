"""
Tests for environment-driven configuration.
"""

from __future__ import annotations

import pytest

from backend_zkwallet.config import env, get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_unknown_network_falls_back_to_testnet(monkeypatch):
    monkeypatch.setenv("SUI_NETWORK", "moonnet")
    monkeypatch.delenv("SUI_RPC_URL", raising=False)
    assert env.get_sui_network() == "testnet"
    assert env.get_sui_rpc_url() == env.FULLNODE_URLS["testnet"]


def test_mainnet_defaults(monkeypatch):
    monkeypatch.setenv("SUI_NETWORK", "mainnet")
    monkeypatch.delenv("ZKLOGIN_PROVER_URL", raising=False)
    monkeypatch.delenv("USDC_COIN_TYPE", raising=False)
    assert env.get_prover_url() == env.MAINNET_PROVER_URL
    assert env.get_usdc_type() == env.USDC_TYPES["mainnet"]


def test_database_url_precedence(monkeypatch, tmp_path):
    monkeypatch.delenv("ZKWALLET_DB_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "x.db"))
    assert env.get_database_url() == f"sqlite:///{tmp_path / 'x.db'}"
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
    assert env.get_database_url() == "postgresql://u@h/db"
    monkeypatch.setenv("ZKWALLET_DB_URL", "sqlite:///other.db")
    assert env.get_database_url() == "sqlite:///other.db"


def test_invalid_int_falls_back(monkeypatch):
    monkeypatch.setenv("SPONSOR_GAS_BUDGET", "lots")
    assert env.get_sponsor_gas_budget() == env.DEFAULT_SPONSOR_GAS_BUDGET


def test_settings_snapshot(monkeypatch):
    monkeypatch.setenv("SUI_NETWORK", "devnet")
    monkeypatch.setenv("TREASURY_ADDRESS", "0x" + "7e" * 32)
    monkeypatch.setenv("API_PORT", "9001")
    settings = get_settings()
    assert settings.sui_network == "devnet"
    assert settings.treasury_address == "0x" + "7e" * 32
    assert settings.api_port == 9001
    assert get_settings() is settings
