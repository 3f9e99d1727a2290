"""Helius data source - Parsed transaction history and asset metadata."""

from solana_activity.helius.client import (
    HeliusClient,
    HeliusClientError,
    HeliusRequestError,
    HeliusRetryError,
    HeliusRPCError,
)

__all__ = [
    "HeliusClient",
    "HeliusClientError",
    "HeliusRPCError",
    "HeliusRequestError",
    "HeliusRetryError",
]
