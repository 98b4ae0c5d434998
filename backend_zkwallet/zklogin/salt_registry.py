"""
SaltRegistry: issue and persist the per-identity zkLogin salt.

Returning identities get their stored salt and address back verbatim; a salt is
never regenerated for an existing identity, since that would move the user to a
different address. New identities need an approved, unclaimed invite code.
"""

from __future__ import annotations

import secrets

from backend_zkwallet.core.exceptions import (
    InvalidJwtError,
    InvitationAlreadyUsedError,
    InvitationError,
    SaltConflictError,
    ZkWalletError,
)
from backend_zkwallet.database import repositories
from backend_zkwallet.database.models import IdentityRecord
from backend_zkwallet.personas.factory import PersonaWalletFactory
from backend_zkwallet.zklogin.address import jwt_to_address
from backend_zkwallet.zklogin.models import SaltResult
from backend_zkwallet.zkwallet_logging import get_logger, salt_fingerprint, short_address

logger = get_logger(__name__)

SALT_BITS = 128


def generate_salt() -> str:
    """128-bit random salt as a decimal integer string."""
    return str(secrets.randbits(SALT_BITS))


class SaltRegistry:
    def __init__(self, wallet_factory: PersonaWalletFactory | None = None) -> None:
        self._wallet_factory = wallet_factory

    def resolve(
        self,
        google_sub: str,
        email: str | None = None,
        invite_code: str | None = None,
        jwt: str | None = None,
    ) -> SaltResult:
        if not google_sub:
            raise ZkWalletError("Google sub (user ID) is required", status_code=400)

        existing = repositories.get_identity_by_sub(google_sub)
        if existing is not None:
            logger.info("zklogin_returning_user", identity_id=existing.id, address=short_address(existing.sui_address))
            self._link_account(existing)
            return SaltResult(
                salt=existing.salt,
                sui_address=existing.sui_address,
                invite_code=existing.invite_code,
                is_new_user=False,
            )
        return self._register(google_sub, email, invite_code, jwt)

    def _register(
        self,
        google_sub: str,
        email: str | None,
        invite_code: str | None,
        jwt: str | None,
    ) -> SaltResult:
        code = repositories.normalize_invite_code(invite_code)
        if not code:
            raise InvitationError("Invite code required for new users")
        if not jwt:
            raise InvalidJwtError("JWT required for new user registration")

        invitation = repositories.get_invitation(code)
        if invitation is None:
            raise InvitationError("Invalid invite code")
        if not invitation.approved:
            raise InvitationError("Invite code not yet approved")
        if repositories.get_identity_by_invite(code) is not None:
            raise InvitationAlreadyUsedError()

        salt = generate_salt()
        sui_address = jwt_to_address(jwt, salt)
        identity = repositories.create_identity(google_sub, email, salt, sui_address, code)
        if identity is None:
            # Lost the race: the same sub or invite code was inserted concurrently.
            winner = repositories.get_identity_by_sub(google_sub)
            if winner is not None:
                return SaltResult(winner.salt, winner.sui_address, winner.invite_code, is_new_user=False)
            raise InvitationAlreadyUsedError()

        logger.info(
            "zklogin_new_user",
            identity_id=identity.id,
            address=short_address(sui_address),
            salt_fp=salt_fingerprint(salt),
        )
        self._link_account(identity)
        return SaltResult(salt=salt, sui_address=sui_address, invite_code=code, is_new_user=True)

    def _link_account(self, identity: IdentityRecord) -> None:
        """
        Backfill salt/address onto the linked account and mint missing persona wallets.

        Best-effort: failures are logged and never fail the sign-in.
        """
        try:
            account = repositories.find_account_for_identity(identity)
            if account is None:
                return
            repositories.set_account_salt(
                account.id,
                identity.salt,
                sui_address=identity.sui_address,
                zklogin_user_id=identity.id,
            )
            if self._wallet_factory is not None:
                result = self._wallet_factory.mint_missing_wallets(account.id, identity.salt)
                if result.generated or result.failed:
                    logger.info(
                        "zklogin_persona_wallets_backfilled",
                        account_id=account.id,
                        generated=result.generated,
                        failed=result.failed,
                    )
        except SaltConflictError:
            logger.error("zklogin_account_salt_conflict", identity_id=identity.id)
        except Exception as e:
            logger.exception("zklogin_account_link_failed", identity_id=identity.id, error=str(e))
