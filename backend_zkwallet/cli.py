"""
Operator commands.

Usage:
  python -m backend_zkwallet init-db
  python -m backend_zkwallet create-invite CODE [--unapproved] [--artist NAME]
  python -m backend_zkwallet new-sponsor-key
  python -m backend_zkwallet serve
"""

from __future__ import annotations

import argparse
import sys

from solders.keypair import Keypair

from backend_zkwallet.config import get_settings
from backend_zkwallet.database import init_db, repositories
from backend_zkwallet.sui.keys import export_secret_hex, keypair_address
from backend_zkwallet.zkwallet_logging import get_logger

logger = get_logger(__name__)


def _init_db(args: argparse.Namespace) -> int:
    init_db()
    logger.info("cli_db_initialized")
    return 0


def _create_invite(args: argparse.Namespace) -> int:
    init_db()
    code = repositories.normalize_invite_code(args.code)
    if not code:
        logger.error("cli_invite_empty")
        return 1
    if repositories.get_invitation(code) is not None:
        logger.error("cli_invite_exists", invite_code=code)
        return 1
    repositories.create_invitation(code, approved=not args.unapproved, artist_name=args.artist)
    print(code)
    return 0


def _new_sponsor_key(args: argparse.Namespace) -> int:
    """Print a fresh Ed25519 secret (hex) and its Sui address. Fund the address with SUI."""
    kp = Keypair()
    print(f"SUI_SPONSOR_PRIVATE_KEY={export_secret_hex(kp)}")
    print(f"# address: {keypair_address(kp)}")
    return 0


def serve() -> None:
    """Run the API server in the main thread."""
    import uvicorn

    from backend_zkwallet.api_server.server import app

    settings = get_settings()
    if not settings.sponsor_private_key:
        logger.warning("serve_sponsor_missing", message="SUI_SPONSOR_PRIVATE_KEY unset; purchases will fail")
    if not settings.treasury_address:
        logger.warning("serve_treasury_missing", message="TREASURY_ADDRESS unset; pending splits cannot be paid")
    logger.info("serve_starting", host=settings.api_host, port=settings.api_port, network=settings.sui_network)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level)


def _serve(args: argparse.Namespace) -> int:
    serve()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="backend_zkwallet", description="zkWallet operator commands.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables").set_defaults(func=_init_db)

    invite = sub.add_parser("create-invite", help="Register an invite code")
    invite.add_argument("code", help="Invite code (stored upper-case)")
    invite.add_argument("--unapproved", action="store_true", help="Store as not yet approved")
    invite.add_argument("--artist", default=None, help="Artist name for the invitation")
    invite.set_defaults(func=_create_invite)

    sub.add_parser("new-sponsor-key", help="Generate a gas sponsor keypair").set_defaults(func=_new_sponsor_key)
    sub.add_parser("serve", help="Run the API server").set_defaults(func=_serve)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
