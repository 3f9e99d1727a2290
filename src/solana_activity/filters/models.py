"""Filter conditions over transaction summaries.

The JSON form of a filter is exchanged with an external text-to-filter
service, so parsing and serialization keep the exact wire shape:

```json
[
  {"type": "transaction", "conditions": {"timestamp": {"gt": 1691510400}}},
  {"type": "event", "conditions": {"kind": "sent_token", "fromTag": "hot"}}
]
```

Unknown condition types, asset-condition kinds and fields of the wrong
JSON type are kept as ``Unrecognized*`` values rather than rejected;
they never match.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union


class FilterParseError(ValueError):
    """Raised when a filter is not a list of condition objects."""


@dataclass(frozen=True)
class TimestampCondition:
    """Inclusive timestamp bounds in unix seconds."""

    gt: int | float | None = None
    lt: int | float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimestampCondition:
        """Bounds are kept as given; fractional bounds are not rounded."""
        return cls(gt=data.get("gt"), lt=data.get("lt"))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.gt is not None:
            result["gt"] = self.gt
        if self.lt is not None:
            result["lt"] = self.lt
        return result


@dataclass(frozen=True)
class TokenAssetCondition:
    """Fungible token symbol match (case-insensitive)."""

    symbol: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "token", "symbol": self.symbol}


@dataclass(frozen=True)
class NftAssetCondition:
    """NFT name substring match (case-insensitive)."""

    name_contains: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "NFT", "nameContains": self.name_contains}


@dataclass(frozen=True)
class UnrecognizedAssetCondition:
    raw: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw)


AssetCondition = Union[TokenAssetCondition, NftAssetCondition, UnrecognizedAssetCondition]


def _parse_asset_condition(data: dict[str, Any]) -> AssetCondition:
    kind = data.get("kind")
    if kind == "token" and isinstance(data.get("symbol"), str):
        return TokenAssetCondition(symbol=data["symbol"])
    if kind == "NFT" and isinstance(data.get("nameContains"), str):
        return NftAssetCondition(name_contains=data["nameContains"])
    return UnrecognizedAssetCondition(raw=dict(data))


@dataclass(frozen=True)
class EventConditions:
    """Sub-predicates that a single event must all satisfy.

    ``kind`` is kept as the raw wire string; an unknown kind matches no event.
    """

    kind: str | None = None
    from_tag: str | None = None
    to_tag: str | None = None
    asset_condition: AssetCondition | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventConditions:
        asset_condition = data.get("assetCondition")
        return cls(
            kind=data.get("kind"),
            from_tag=data.get("fromTag"),
            to_tag=data.get("toTag"),
            asset_condition=(
                _parse_asset_condition(asset_condition)
                if isinstance(asset_condition, dict)
                else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.kind is not None:
            result["kind"] = self.kind
        if self.from_tag is not None:
            result["fromTag"] = self.from_tag
        if self.to_tag is not None:
            result["toTag"] = self.to_tag
        if self.asset_condition is not None:
            result["assetCondition"] = self.asset_condition.to_dict()
        return result


@dataclass(frozen=True)
class TransactionConditions:
    """Predicates on the transaction as a whole."""

    for_address_tag: str | None = None
    timestamp: TimestampCondition | None = None
    known_app: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionConditions:
        timestamp = data.get("timestamp")
        return cls(
            for_address_tag=data.get("forAddressTag"),
            timestamp=TimestampCondition.from_dict(timestamp) if isinstance(timestamp, dict) else None,
            known_app=data.get("knownApp"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.for_address_tag is not None:
            result["forAddressTag"] = self.for_address_tag
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp.to_dict()
        if self.known_app is not None:
            result["knownApp"] = self.known_app
        return result


@dataclass(frozen=True)
class EventFilterCondition:
    """Passes when any event of a summary satisfies ``conditions``."""

    conditions: EventConditions

    def to_dict(self) -> dict[str, Any]:
        return {"type": "event", "conditions": self.conditions.to_dict()}


@dataclass(frozen=True)
class TransactionFilterCondition:
    conditions: TransactionConditions

    def to_dict(self) -> dict[str, Any]:
        return {"type": "transaction", "conditions": self.conditions.to_dict()}


@dataclass(frozen=True)
class UnrecognizedFilterCondition:
    """A condition with an unknown ``type``; it excludes every summary."""

    raw: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw)


FilterCondition = Union[EventFilterCondition, TransactionFilterCondition, UnrecognizedFilterCondition]

_EVENT_STRING_FIELDS = ("kind", "fromTag", "toTag")
_TRANSACTION_STRING_FIELDS = ("forAddressTag", "knownApp")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _has_valid_types(condition_type: str, conditions: dict[str, Any]) -> bool:
    """Check that every field present in ``conditions`` has its expected JSON type."""
    if condition_type == "event":
        string_fields = _EVENT_STRING_FIELDS
        asset_condition = conditions.get("assetCondition")
        if asset_condition is not None and not isinstance(asset_condition, dict):
            return False
    else:
        string_fields = _TRANSACTION_STRING_FIELDS
        timestamp = conditions.get("timestamp")
        if timestamp is not None:
            if not isinstance(timestamp, dict):
                return False
            if any(
                timestamp.get(bound) is not None and not _is_number(timestamp[bound])
                for bound in ("gt", "lt")
            ):
                return False

    return all(
        conditions.get(name) is None or isinstance(conditions[name], str)
        for name in string_fields
    )


def parse_filter_condition(data: dict[str, Any]) -> FilterCondition:
    """Parse one condition object.

    Conditions of an unknown type, or whose fields have the wrong JSON
    type, parse to ``UnrecognizedFilterCondition`` and never match.
    """
    condition_type = data.get("type")
    conditions = data.get("conditions")
    if not isinstance(conditions, dict):
        return UnrecognizedFilterCondition(raw=dict(data))
    if condition_type in ("event", "transaction") and not _has_valid_types(condition_type, conditions):
        return UnrecognizedFilterCondition(raw=dict(data))
    if condition_type == "event":
        return EventFilterCondition(conditions=EventConditions.from_dict(conditions))
    if condition_type == "transaction":
        return TransactionFilterCondition(conditions=TransactionConditions.from_dict(conditions))
    return UnrecognizedFilterCondition(raw=dict(data))


def parse_filter(data: str | list[Any]) -> list[FilterCondition]:
    """Parse a filter from a JSON string or an already-decoded list.

    Raises:
        FilterParseError: If the input is not a JSON list of objects.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise FilterParseError(f"Filter is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise FilterParseError(f"Filter must be a list, got {type(data).__name__}")

    conditions: list[FilterCondition] = []
    for item in data:
        if not isinstance(item, dict):
            raise FilterParseError(f"Filter condition must be an object, got {type(item).__name__}")
        conditions.append(parse_filter_condition(item))
    return conditions


def filter_to_json(conditions: list[FilterCondition]) -> str:
    """Serialize a filter back to its compact JSON wire form."""
    return json.dumps([c.to_dict() for c in conditions], separators=(",", ":"))
