"""
Core utilities: exception taxonomy and cross-cutting concerns shared by
the zkLogin flow, persona wallets, payments and the API server.
"""
