from backend_zkwallet.zkwallet_logging.logger import get_logger, salt_fingerprint, short_address

__all__ = ["get_logger", "salt_fingerprint", "short_address"]
