"""Solana activity summaries and declarative filters for observed addresses."""

__version__ = "0.1.0"
