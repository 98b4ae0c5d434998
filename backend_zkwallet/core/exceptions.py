"""
Application-level exceptions.

Every error the API surfaces derives from ZkWalletError, which carries the HTTP
status and the user-facing message. The API server renders them as
{"error": message, **extra}. Groups follow the failure classes of the service:

- protocol: the sign-in attempt is dead, restart from a fresh ephemeral key
- authorization: caller may not act on this persona/account
- integrity: a decrypted persona key does not match its stored address
- resource: request conflicts with current state (balance, invite, address)
- downstream: chain or prover said no; their text is passed through untouched
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class ZkWalletError(Exception):
    """Base class: message + HTTP status + optional extra response fields."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        payload.update(self.extra)
        return payload


# -----------------------------------------------------------------------------
# Protocol errors (sign-in attempt must restart)
# -----------------------------------------------------------------------------


class ProtocolError(ZkWalletError):
    status_code = 400


class PendingSessionExpired(ProtocolError):
    def __init__(self, message: str = "Sign-in session expired, please retry") -> None:
        super().__init__(message)


class InvalidJwtError(ProtocolError):
    pass


class ProverError(ProtocolError):
    """Prover rejected the request or was unreachable; text is the prover's own."""

    status_code = 502


class AddressMismatchError(ProtocolError):
    status_code = 500


class FlowStateError(ProtocolError):
    """A flow step was called out of order (or after the flow failed)."""

    status_code = 409


# -----------------------------------------------------------------------------
# Authorization errors
# -----------------------------------------------------------------------------


class AuthorizationError(ZkWalletError):
    status_code = 403


class NotFoundError(ZkWalletError):
    status_code = 404


class MissingWalletError(ZkWalletError):
    status_code = 400


class MissingSaltError(ZkWalletError):
    status_code = 400


class SaltConflictError(ZkWalletError):
    status_code = 409


# -----------------------------------------------------------------------------
# Integrity errors
# -----------------------------------------------------------------------------


class KeypairIntegrityError(ZkWalletError):
    """
    Persona key failed verification after decryption.

    reason is "decrypt_failed" (authentication tag rejected: wrong salt or
    corrupted ciphertext) or "address_mismatch" (decrypted fine but belongs to
    a different address: row swap or wrong account).
    """

    status_code = 500

    def __init__(self, reason: str, message: str = "Integrity check failed") -> None:
        super().__init__(message)
        self.reason = reason


# -----------------------------------------------------------------------------
# Resource errors
# -----------------------------------------------------------------------------


class ResourceError(ZkWalletError):
    status_code = 400


class InvalidRecipientError(ResourceError):
    def __init__(self, address: str) -> None:
        super().__init__(f"Invalid recipient address: {address}")
        self.address = address


class InsufficientBalanceError(ResourceError):
    def __init__(self, need: Decimal, have: Decimal) -> None:
        self.need = need
        self.have = have
        self.shortfall = need - have
        super().__init__(
            f"Insufficient USDC balance. Need ${need:.2f}, have ${have:.2f}",
        )
        self.extra = {
            "needUsdc": float(need),
            "haveUsdc": float(have),
            "shortfallUsdc": float(self.shortfall),
        }


class InvitationError(ResourceError):
    pass


class InvitationAlreadyUsedError(InvitationError):
    def __init__(self) -> None:
        super().__init__("This invite code has already been used for sign-in")


# -----------------------------------------------------------------------------
# Downstream failures
# -----------------------------------------------------------------------------


class DownstreamError(ZkWalletError):
    status_code = 502


class RpcError(DownstreamError):
    pass


class ChainExecutionError(DownstreamError):
    status_code = 500

    def __init__(self, chain_error: str, digest: str | None = None) -> None:
        super().__init__(f"Transaction failed on-chain: {chain_error}")
        self.chain_error = chain_error
        self.digest = digest


class ConfigurationError(ZkWalletError):
    status_code = 500
