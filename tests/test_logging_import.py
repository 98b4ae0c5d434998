"""
Test that zkwallet_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from zkwallet_logging and use the logger."""
    from backend_zkwallet.zkwallet_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    # Smoke test: call info (should not raise)
    logger.info("test_message", persona_id="p-1")


def test_log_helpers_never_expose_secrets():
    """salt_fingerprint is a short hash, short_address keeps only the ends."""
    from backend_zkwallet.zkwallet_logging import salt_fingerprint, short_address

    salt = "123456789012345678901234567890"
    fp = salt_fingerprint(salt)
    assert salt not in fp
    assert fp == salt_fingerprint(salt)
    assert fp != salt_fingerprint(salt + "1")

    address = "0x" + "ab" * 32
    short = short_address(address)
    assert short != address
    assert short.startswith("0xabab")
