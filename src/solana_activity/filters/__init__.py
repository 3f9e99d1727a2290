"""Filter layer - Declarative conditions over transaction summaries."""

from solana_activity.filters.evaluator import apply_filter
from solana_activity.filters.models import (
    EventConditions,
    EventFilterCondition,
    FilterCondition,
    FilterParseError,
    NftAssetCondition,
    TimestampCondition,
    TokenAssetCondition,
    TransactionConditions,
    TransactionFilterCondition,
    filter_to_json,
    parse_filter,
)

__all__ = [
    "EventConditions",
    "EventFilterCondition",
    "FilterCondition",
    "FilterParseError",
    "NftAssetCondition",
    "TimestampCondition",
    "TokenAssetCondition",
    "TransactionConditions",
    "TransactionFilterCondition",
    "apply_filter",
    "filter_to_json",
    "parse_filter",
]
