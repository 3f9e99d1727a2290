"""Transaction events and summaries produced by the summarizer.

Events form a closed union: every consumer branches over the six event
classes below, so adding a kind is caught by type checkers wherever an
``assert_never`` guards the branches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union


class EventKind(str, Enum):
    """Wire tag of a transaction event."""

    RECEIVED_SOL = "received_sol"
    SENT_SOL = "sent_sol"
    RECEIVED_TOKEN = "received_token"
    SENT_TOKEN = "sent_token"
    RECEIVED_NFT = "received_nft"
    SENT_NFT = "sent_nft"


class KnownApp(str, Enum):
    """Apps recognised from a transaction's declared source."""

    EXCHANGE_ART = "Exchange Art"
    SOLANART = "Solanart"
    MAGIC_EDEN = "Magic Eden"
    HYPERSPACE = "Hyperspace"
    TENSOR = "Tensor"
    JUPITER = "Jupiter"
    METAPLEX = "Metaplex"
    RAYDIUM = "Raydium"

    @classmethod
    def from_source(cls, source: str | None) -> KnownApp | None:
        """Map a Helius source (e.g. ``MAGIC_EDEN``) to a known app."""
        if not source:
            return None
        return cls.__members__.get(source)


@dataclass(frozen=True)
class ReceivedSol:
    kind: ClassVar[EventKind] = EventKind.RECEIVED_SOL

    lamports: int
    from_addresses: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "lamports": str(self.lamports),
            "from": list(self.from_addresses),
        }


@dataclass(frozen=True)
class SentSol:
    kind: ClassVar[EventKind] = EventKind.SENT_SOL

    lamports: int
    to_addresses: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "lamports": str(self.lamports),
            "to": list(self.to_addresses),
        }


@dataclass(frozen=True)
class ReceivedToken:
    kind: ClassVar[EventKind] = EventKind.RECEIVED_TOKEN

    mint: str
    unit_amount: int
    decimals: int
    from_addresses: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "mint": self.mint,
            "unitAmount": str(self.unit_amount),
            "decimals": self.decimals,
            "from": list(self.from_addresses),
        }


@dataclass(frozen=True)
class SentToken:
    kind: ClassVar[EventKind] = EventKind.SENT_TOKEN

    mint: str
    unit_amount: int
    decimals: int
    to_addresses: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "mint": self.mint,
            "unitAmount": str(self.unit_amount),
            "decimals": self.decimals,
            "to": list(self.to_addresses),
        }


@dataclass(frozen=True)
class ReceivedNft:
    kind: ClassVar[EventKind] = EventKind.RECEIVED_NFT

    asset_id: str
    from_address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"kind": self.kind.value, "assetId": self.asset_id}
        if self.from_address is not None:
            result["from"] = self.from_address
        return result


@dataclass(frozen=True)
class SentNft:
    kind: ClassVar[EventKind] = EventKind.SENT_NFT

    asset_id: str
    to_address: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "assetId": self.asset_id, "to": self.to_address}


TransactionEvent = Union[ReceivedSol, SentSol, ReceivedToken, SentToken, ReceivedNft, SentNft]


def event_from_dict(data: dict[str, Any]) -> TransactionEvent:
    """Rebuild an event from its ``to_dict`` form.

    Raises:
        ValueError: If the event kind is not recognised.
    """
    kind = EventKind(data["kind"])
    if kind is EventKind.RECEIVED_SOL:
        return ReceivedSol(
            lamports=int(data["lamports"]),
            from_addresses=tuple(data.get("from") or ()),
        )
    if kind is EventKind.SENT_SOL:
        return SentSol(lamports=int(data["lamports"]), to_addresses=tuple(data.get("to") or ()))
    if kind is EventKind.RECEIVED_TOKEN:
        return ReceivedToken(
            mint=str(data["mint"]),
            unit_amount=int(data["unitAmount"]),
            decimals=int(data["decimals"]),
            from_addresses=tuple(data.get("from") or ()),
        )
    if kind is EventKind.SENT_TOKEN:
        return SentToken(
            mint=str(data["mint"]),
            unit_amount=int(data["unitAmount"]),
            decimals=int(data["decimals"]),
            to_addresses=tuple(data.get("to") or ()),
        )
    if kind is EventKind.RECEIVED_NFT:
        return ReceivedNft(asset_id=str(data["assetId"]), from_address=data.get("from"))
    return SentNft(asset_id=str(data["assetId"]), to_address=str(data["to"]))


@dataclass(frozen=True)
class TransactionSummary:
    """Human-meaningful view of one transaction relative to an observed address.

    Attributes:
        success: False when the transaction failed on chain (no events then).
        fee_payer: Account charged the transaction fee.
        signature: Transaction signature.
        timestamp: Block time in unix seconds.
        events: Canonical events, relative to the observed address.
        known_app: App derived from the transaction source, if recognised.
    """

    success: bool
    fee_payer: str
    signature: str
    timestamp: int
    events: tuple[TransactionEvent, ...] = field(default_factory=tuple)
    known_app: KnownApp | None = None

    def asset_ids(self) -> set[str]:
        """Return the token mints and NFT asset ids referenced by events."""
        ids: set[str] = set()
        for event in self.events:
            if isinstance(event, (ReceivedToken, SentToken)):
                ids.add(event.mint)
            elif isinstance(event, (ReceivedNft, SentNft)):
                ids.add(event.asset_id)
        return ids

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary (amounts as strings)."""
        result: dict[str, Any] = {
            "success": self.success,
            "feePayer": self.fee_payer,
            "signature": self.signature,
            "timestamp": self.timestamp,
            "events": [event.to_dict() for event in self.events],
        }
        if self.known_app is not None:
            result["knownApp"] = self.known_app.value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionSummary:
        known_app = data.get("knownApp")
        return cls(
            success=bool(data.get("success", True)),
            fee_payer=str(data["feePayer"]),
            signature=str(data["signature"]),
            timestamp=int(data["timestamp"]),
            events=tuple(event_from_dict(e) for e in data.get("events") or []),
            known_app=KnownApp(known_app) if known_app else None,
        )
