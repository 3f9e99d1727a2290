"""Lookup tables - Known addresses and asset metadata."""

from solana_activity.lookups.models import (
    AccountRecord,
    AddressInfo,
    AssetInfo,
    FungibleTokenInfo,
    InvalidAccountError,
    LookupSnapshot,
    NftInfo,
    build_address_book,
    summarize_asset,
)

__all__ = [
    "AccountRecord",
    "AddressInfo",
    "AssetInfo",
    "FungibleTokenInfo",
    "InvalidAccountError",
    "LookupSnapshot",
    "NftInfo",
    "build_address_book",
    "summarize_asset",
]
