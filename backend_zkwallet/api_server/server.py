"""
FastAPI server for zkWallet.

Mounts the auth, payments and personas routers, creates tables on startup and
maps domain errors to JSON bodies of the form {"error": message, ...}.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend_zkwallet import __version__
from backend_zkwallet.api_server.auth_routes import router as auth_router
from backend_zkwallet.api_server.payment_routes import router as payment_router
from backend_zkwallet.api_server.persona_routes import router as persona_router
from backend_zkwallet.core.exceptions import ZkWalletError
from backend_zkwallet.database import init_db
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables before serving."""
    init_db()
    logger.info("api_started", version=__version__)
    yield
    logger.info("api_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Backend zkWallet API",
    description="zkLogin salt service, persona wallets and gas-sponsored USDC split payments.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(auth_router)
app.include_router(payment_router)
app.include_router(persona_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.exception_handler(ZkWalletError)
def zkwallet_error_handler(request: Request, exc: ZkWalletError) -> JSONResponse:
    """Domain errors carry their own status code and response body."""
    status = exc.status_code or 500
    if status >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, status=status)
    else:
        logger.info("request_rejected", path=request.url.path, error=exc.message, status=status)
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: list[str] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query")]
        name = ".".join(loc) or "body"
        if name not in fields:
            fields.append(name)
    content: dict[str, Any] = {"error": f"Invalid or missing fields: {', '.join(fields)}"}
    return JSONResponse(status_code=400, content=content)
