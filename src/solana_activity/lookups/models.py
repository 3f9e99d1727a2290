"""Address and asset lookup tables used when filtering summaries."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

import base58

# Solana public keys are 32 bytes
ADDRESS_LENGTH_BYTES = 32

IMAGE_MIME_TYPES = ("image/jpeg", "image/png", "image/gif")


class InvalidAccountError(ValueError):
    """Raised when an imported account record is malformed."""


def is_valid_address(address: str) -> bool:
    """Return True if ``address`` is base58 and decodes to a 32-byte key."""
    try:
        return len(base58.b58decode(address)) == ADDRESS_LENGTH_BYTES
    except ValueError:
        return False


@dataclass(frozen=True)
class AddressInfo:
    """Label and tags attached to a known address."""

    label: str
    tags: tuple[str, ...] = ()

    def has_tag(self, tag: str) -> bool:
        """Case-insensitive exact tag match."""
        wanted = tag.lower()
        return any(t.lower() == wanted for t in self.tags)


@dataclass(frozen=True)
class AccountRecord:
    """An imported account: address plus user-supplied metadata."""

    address: str
    label: str
    notes: str = ""
    tags: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountRecord:
        """Create an AccountRecord from an imported account entry.

        Raises:
            InvalidAccountError: If the address is not a valid Solana
                address or a field has the wrong type.
        """
        address = data.get("address")
        if not isinstance(address, str) or not is_valid_address(address):
            raise InvalidAccountError(f"Invalid address: {address!r}")

        tags = data.get("tags", [])
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise InvalidAccountError(f"Tags for {address} must be a list of strings")

        label = data.get("label", "")
        notes = data.get("notes", "")
        if not isinstance(label, str) or not isinstance(notes, str):
            raise InvalidAccountError(f"Label and notes for {address} must be strings")

        return cls(address=address, label=label, notes=notes, tags=tuple(tags))

    def to_address_info(self) -> AddressInfo:
        return AddressInfo(label=self.label, tags=self.tags)


def build_address_book(records: Iterable[AccountRecord]) -> dict[str, AddressInfo]:
    """Index account records by address (later records win)."""
    return {record.address: record.to_address_info() for record in records}


@dataclass(frozen=True)
class FungibleTokenInfo:
    """Metadata for a fungible token mint.

    ``symbol`` may be missing upstream; such tokens never match a symbol filter.
    """

    decimals: int
    symbol: str | None = None
    name: str | None = None
    image: str | None = None


@dataclass(frozen=True)
class NftInfo:
    """Metadata for an NFT (regular or compressed)."""

    name: str
    image: str | None = None


AssetInfo = Union[FungibleTokenInfo, NftInfo]


def _first_image(files: Iterable[dict[str, Any]]) -> str | None:
    for f in files:
        if f.get("mime") in IMAGE_MIME_TYPES:
            cdn_uri = f.get("cdn_uri")
            return str(cdn_uri) if cdn_uri else None
    return None


def summarize_asset(asset: dict[str, Any]) -> AssetInfo:
    """Reduce a Helius DAS asset to the fields filters need.

    Args:
        asset: A single item of a ``getAssetBatch`` response.

    Returns:
        FungibleTokenInfo for ``FungibleToken`` interfaces, NftInfo otherwise.
    """
    content = asset.get("content") or {}
    metadata = content.get("metadata") or {}
    image = _first_image(content.get("files") or [])

    if asset.get("interface") == "FungibleToken":
        token_info = asset.get("token_info") or {}
        symbol = metadata.get("symbol") or token_info.get("symbol")
        return FungibleTokenInfo(
            decimals=int(token_info.get("decimals") or 0),
            symbol=str(symbol) if symbol else None,
            name=metadata.get("name") or None,
            image=image,
        )

    return NftInfo(name=str(metadata.get("name") or ""), image=image)


def asset_info_to_dict(info: AssetInfo) -> dict[str, Any]:
    """Serialize asset info for caching."""
    if isinstance(info, FungibleTokenInfo):
        return {
            "kind": "fungibleToken",
            "decimals": info.decimals,
            "symbol": info.symbol,
            "name": info.name,
            "image": info.image,
        }
    return {"kind": "NFT", "name": info.name, "image": info.image}


def asset_info_from_dict(data: dict[str, Any]) -> AssetInfo:
    """Inverse of :func:`asset_info_to_dict`.

    Raises:
        ValueError: If the kind is not recognised.
    """
    kind = data.get("kind")
    if kind == "fungibleToken":
        return FungibleTokenInfo(
            decimals=int(data.get("decimals") or 0),
            symbol=data.get("symbol"),
            name=data.get("name"),
            image=data.get("image"),
        )
    if kind == "NFT":
        return NftInfo(name=str(data.get("name") or ""), image=data.get("image"))
    raise ValueError(f"Unknown asset kind: {kind!r}")


@dataclass(frozen=True)
class LookupSnapshot:
    """Point-in-time, read-only view of the address and asset tables."""

    addresses: Mapping[str, AddressInfo] = field(default_factory=dict)
    assets: Mapping[str, AssetInfo] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        addresses: Mapping[str, AddressInfo],
        assets: Mapping[str, AssetInfo],
    ) -> LookupSnapshot:
        """Copy the given tables into read-only mappings."""
        return cls(
            addresses=MappingProxyType(dict(addresses)),
            assets=MappingProxyType(dict(assets)),
        )
