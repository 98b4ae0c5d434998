"""
zkLogin sign-in as one linear async state machine.

    idle -> pendingRedirect -> callbackReceived -> saltResolved -> proofObtained -> sessionActive

Any failing step moves the flow to the terminal error state and re-raises; the
caller resets and starts a new attempt (fresh ephemeral key, fresh OAuth round
trip). Nothing is retried here.
"""

from __future__ import annotations

import enum
import time
from typing import Any, Awaitable, Callable, Protocol, TypeVar
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from backend_zkwallet.core.exceptions import (
    AddressMismatchError,
    FlowStateError,
    InvalidJwtError,
    PendingSessionExpired,
    ProtocolError,
)
from backend_zkwallet.sui.keys import public_key_bytes
from backend_zkwallet.zklogin.address import decode_jwt, derive_address, extended_public_key
from backend_zkwallet.zklogin.ephemeral import EphemeralSessionManager
from backend_zkwallet.zklogin.models import EphemeralSession, JwtClaims, PendingLogin, SaltResult
from backend_zkwallet.zklogin.prover import ProofClient
from backend_zkwallet.zklogin.salt_registry import SaltRegistry
from backend_zkwallet.zklogin.session import EpochSource, SessionStore
from backend_zkwallet.zkwallet_logging import get_logger, short_address

logger = get_logger(__name__)

T = TypeVar("T")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
APPLE_AUTH_URL = "https://appleid.apple.com/auth/authorize"


class FlowState(str, enum.Enum):
    IDLE = "idle"
    PENDING_REDIRECT = "pendingRedirect"
    CALLBACK_RECEIVED = "callbackReceived"
    SALT_RESOLVED = "saltResolved"
    PROOF_OBTAINED = "proofObtained"
    SESSION_ACTIVE = "sessionActive"
    ERROR = "error"


# -----------------------------------------------------------------------------
# OAuth request / callback helpers
# -----------------------------------------------------------------------------


def build_google_auth_url(client_id: str, redirect_uri: str, nonce: str) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "id_token",
        "scope": "openid email profile",
        "nonce": nonce,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def build_apple_auth_url(client_id: str, redirect_uri: str, nonce: str) -> str:
    """Apple returns the id_token in the URL fragment only with response_mode=fragment."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "id_token",
        "response_mode": "fragment",
        "scope": "openid email",
        "nonce": nonce,
    }
    return f"{APPLE_AUTH_URL}?{urlencode(params)}"


def extract_jwt_from_url(url: str) -> str | None:
    fragment = urlsplit(url).fragment
    if not fragment:
        return None
    values = parse_qs(fragment).get("id_token")
    return values[0] if values else None


# -----------------------------------------------------------------------------
# Salt services
# -----------------------------------------------------------------------------


class SaltService(Protocol):
    async def get_salt(
        self, google_sub: str, email: str | None, invite_code: str, jwt: str
    ) -> SaltResult: ...


class HttpSaltClient:
    """Calls POST /auth/salt on a zkWallet API server."""

    def __init__(
        self,
        salt_url: str,
        *,
        timeout_sec: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = salt_url
        self._timeout = timeout_sec
        self._transport = transport

    async def get_salt(
        self, google_sub: str, email: str | None, invite_code: str, jwt: str
    ) -> SaltResult:
        body = {"googleSub": google_sub, "email": email, "inviteCode": invite_code or None, "jwt": jwt}
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout), transport=self._transport
            ) as client:
                resp = await client.post(self._url, json=body)
        except httpx.HTTPError as e:
            logger.warning("salt_request_failed", error=str(e))
            raise ProtocolError(f"Failed to get salt: {e}", status_code=502) from e
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            raise ProtocolError(data.get("error") or "Failed to get salt", status_code=resp.status_code)
        try:
            return SaltResult(
                salt=str(data["salt"]),
                sui_address=str(data["suiAddress"]),
                invite_code=data.get("inviteCode"),
                is_new_user=bool(data.get("isNewUser")),
            )
        except KeyError as e:
            raise ProtocolError(f"Salt response is missing {e.args[0]}", status_code=502) from e


class LocalSaltService:
    """In-process salt service backed by a SaltRegistry."""

    def __init__(self, registry: SaltRegistry) -> None:
        self._registry = registry

    async def get_salt(
        self, google_sub: str, email: str | None, invite_code: str, jwt: str
    ) -> SaltResult:
        return self._registry.resolve(google_sub, email, invite_code, jwt)


# -----------------------------------------------------------------------------
# State machine
# -----------------------------------------------------------------------------


class ZkLoginFlow:
    def __init__(
        self,
        *,
        epochs: EpochSource,
        store: SessionStore,
        salt_service: SaltService,
        prover: ProofClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._salt_service = salt_service
        self._prover = prover
        self._clock = clock
        self._ephemeral = EphemeralSessionManager(epochs, store, clock=clock)
        self.reset()

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def error(self) -> Exception | None:
        return self._error

    def reset(self) -> None:
        self._state = FlowState.IDLE
        self._error: Exception | None = None
        self._pending: PendingLogin | None = None
        self._jwt: str | None = None
        self._claims: JwtClaims | None = None
        self._salt: SaltResult | None = None
        self._proof: dict[str, Any] | None = None
        self._session: EphemeralSession | None = None

    def _require(self, expected: FlowState) -> None:
        if self._state is not expected:
            raise FlowStateError(
                f"Cannot run this step in state {self._state.value}; expected {expected.value}"
            )

    def _context(self, *names: str) -> tuple[Any, ...]:
        """Values an earlier step stored; a missing one means the flow was driven out of order."""
        values = tuple(getattr(self, f"_{name}") for name in names)
        missing = [name for name, value in zip(names, values) if value is None]
        if missing:
            raise FlowStateError(f"Sign-in state is missing {', '.join(missing)} in state {self._state.value}")
        return values

    def _advance(self, new_state: FlowState) -> None:
        logger.debug("zklogin_flow_transition", from_state=self._state.value, to_state=new_state.value)
        self._state = new_state

    def _fail(self, exc: Exception) -> None:
        logger.warning(
            "zklogin_flow_failed", state=self._state.value, error_type=type(exc).__name__, error=str(exc)
        )
        self._state = FlowState.ERROR
        self._error = exc

    def _guarded(self, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except Exception as e:
            self._fail(e)
            raise

    async def _guarded_async(self, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        except Exception as e:
            self._fail(e)
            raise

    # ---- steps ---------------------------------------------------------------

    async def begin(self, invite_code: str = "") -> PendingLogin:
        """Generate the ephemeral key + nonce and persist the pending record."""
        self._require(FlowState.IDLE)
        self._pending = await self._guarded_async(lambda: self._ephemeral.begin(invite_code))
        self._advance(FlowState.PENDING_REDIRECT)
        return self._pending

    def authorization_url(self, provider: str, client_id: str, redirect_uri: str) -> str:
        self._require(FlowState.PENDING_REDIRECT)
        (pending,) = self._context("pending")
        if provider == "apple":
            return build_apple_auth_url(client_id, redirect_uri, pending.nonce)
        return build_google_auth_url(client_id, redirect_uri, pending.nonce)

    def handle_callback(self, callback: str) -> JwtClaims:
        """
        Accept the OAuth redirect URL (or a bare id_token) and restore the pending key.

        May be called on a fresh flow object after the redirect; the pending record
        is read back from the session store.
        """
        if self._state not in (FlowState.IDLE, FlowState.PENDING_REDIRECT):
            raise FlowStateError(f"Cannot handle a callback in state {self._state.value}")

        def step() -> JwtClaims:
            token = extract_jwt_from_url(callback) if "#" in callback else callback.strip()
            if not token:
                raise InvalidJwtError("No id_token in callback URL")
            claims = decode_jwt(token)
            pending = self._ephemeral.restore()
            if pending is None:
                raise PendingSessionExpired()
            if claims.nonce and pending.nonce and claims.nonce != pending.nonce:
                raise InvalidJwtError("JWT nonce does not match this sign-in attempt")
            self._pending, self._jwt, self._claims = pending, token, claims
            return claims

        claims = self._guarded(step)
        self._advance(FlowState.CALLBACK_RECEIVED)
        return claims

    async def resolve_salt(self) -> SaltResult:
        self._require(FlowState.CALLBACK_RECEIVED)
        claims, pending, token = self._context("claims", "pending", "jwt")
        self._salt = await self._guarded_async(
            lambda: self._salt_service.get_salt(claims.sub, claims.email, pending.invite_code, token)
        )
        self._advance(FlowState.SALT_RESOLVED)
        return self._salt

    async def obtain_proof(self) -> dict[str, Any]:
        self._require(FlowState.SALT_RESOLVED)
        pending, salt, token = self._context("pending", "salt", "jwt")
        self._proof = await self._guarded_async(
            lambda: self._prover.get_proof(
                token,
                extended_public_key(public_key_bytes(pending.keypair())),
                pending.max_epoch,
                pending.randomness,
                salt.salt,
            )
        )
        self._advance(FlowState.PROOF_OBTAINED)
        return self._proof

    def finalize(self) -> EphemeralSession:
        """Re-derive the address locally, check it against the salt service, store the session."""
        self._require(FlowState.PROOF_OBTAINED)
        claims, salt, pending, token, proof = self._context("claims", "salt", "pending", "jwt", "proof")

        def step() -> EphemeralSession:
            derived = derive_address(claims, salt.salt)
            if derived.lower() != salt.sui_address.lower():
                logger.error(
                    "zklogin_address_mismatch",
                    derived=short_address(derived),
                    registered=short_address(salt.sui_address),
                )
                raise AddressMismatchError("Derived address does not match the registered address")
            session = EphemeralSession(
                ephemeral_keypair=pending.keypair(),
                max_epoch=pending.max_epoch,
                randomness=pending.randomness,
                jwt=token,
                salt=salt.salt,
                sui_address=derived,
                email=claims.email,
                invite_code=salt.invite_code or pending.invite_code,
                zk_proof=proof,
                created_at=self._clock(),
            )
            self._store.store(session)
            return session

        self._session = self._guarded(step)
        self._advance(FlowState.SESSION_ACTIVE)
        logger.info("zklogin_session_active", address=short_address(self._session.sui_address))
        return self._session

    async def complete(self, callback: str) -> EphemeralSession:
        """Callback through finalize in one call."""
        self.handle_callback(callback)
        await self.resolve_salt()
        await self.obtain_proof()
        return self.finalize()
