"""
Main entrypoint: zkWallet FastAPI server.

Env: SUI_NETWORK, SUI_RPC_URL, SUI_SPONSOR_PRIVATE_KEY, KEYPAIR_ENCRYPTION_SECRET,
TREASURY_ADDRESS, DATABASE_PATH / DATABASE_URL, API_HOST, API_PORT, LOG_LEVEL.

Same as: uvicorn backend_zkwallet.api_server.server:app --host 0.0.0.0 --port 8000
"""

from backend_zkwallet.cli import serve

if __name__ == "__main__":
    serve()
