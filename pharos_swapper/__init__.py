"""Wrap -> swap -> swap back automation for a batch of Pharos testnet wallets."""

__version__ = "0.1.0"
