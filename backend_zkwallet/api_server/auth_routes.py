"""
FastAPI router: POST /auth/salt.

Returns the stable salt for an OAuth identity, registering new users against an
approved, unused invite code. The same salt always yields the same zkLogin address.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from backend_zkwallet.api_server.dependencies import get_salt_registry
from backend_zkwallet.api_server.schemas import SaltRequest
from backend_zkwallet.zklogin.salt_registry import SaltRegistry

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/salt")
def get_salt(body: SaltRequest, registry: SaltRegistry = Depends(get_salt_registry)) -> dict[str, Any]:
    result = registry.resolve(
        google_sub=body.google_sub,
        email=body.email,
        invite_code=body.invite_code,
        jwt=body.jwt,
    )
    return result.to_response()
