"""
Backend zkWallet: zkLogin identities, persona wallets and sponsored USDC payments on Sui.

OAuth sign-in is bound to an ephemeral keypair through a zero-knowledge proof;
each account derives encrypted persona wallets from its zkLogin salt, and
purchases are split across resolved recipients in one gas-sponsored transaction.
"""

__version__ = "0.1.0"
