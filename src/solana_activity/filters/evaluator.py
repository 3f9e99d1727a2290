"""Filter evaluation over transaction summaries.

A summary is kept only if every condition of the filter passes. Lookup
data that is missing (unknown address, unknown asset, token without a
symbol) makes the condition fail instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import assert_never

from solana_activity.filters.models import (
    AssetCondition,
    EventConditions,
    EventFilterCondition,
    FilterCondition,
    NftAssetCondition,
    TimestampCondition,
    TokenAssetCondition,
    TransactionConditions,
    TransactionFilterCondition,
    UnrecognizedAssetCondition,
    UnrecognizedFilterCondition,
)
from solana_activity.lookups.models import AddressInfo, AssetInfo, FungibleTokenInfo, NftInfo
from solana_activity.summarizer.events import (
    ReceivedNft,
    ReceivedSol,
    ReceivedToken,
    SentNft,
    SentSol,
    SentToken,
    TransactionEvent,
    TransactionSummary,
)

logger = logging.getLogger(__name__)


def _from_addresses(event: TransactionEvent, fee_payer: str) -> tuple[str, ...]:
    """Addresses on the sending side of an event.

    Received events carry their senders; for sent events the fee payer
    is assumed to be the sender.
    """
    if isinstance(event, (ReceivedSol, ReceivedToken)):
        return event.from_addresses
    if isinstance(event, ReceivedNft):
        return (event.from_address,) if event.from_address else ()
    if isinstance(event, (SentSol, SentToken, SentNft)):
        return (fee_payer,)
    assert_never(event)


def _to_addresses(event: TransactionEvent, fee_payer: str) -> tuple[str, ...]:
    """Addresses on the receiving side of an event (fee payer for received events)."""
    if isinstance(event, (SentSol, SentToken)):
        return event.to_addresses
    if isinstance(event, SentNft):
        return (event.to_address,) if event.to_address else ()
    if isinstance(event, (ReceivedSol, ReceivedToken, ReceivedNft)):
        return (fee_payer,)
    assert_never(event)


def _any_tagged(addresses: Iterable[str], tag: str, address_book: Mapping[str, AddressInfo]) -> bool:
    for address in addresses:
        info = address_book.get(address)
        if info is not None and info.has_tag(tag):
            return True
    return False


def _matches_asset_condition(
    event: TransactionEvent,
    condition: AssetCondition,
    assets: Mapping[str, AssetInfo],
) -> bool:
    if isinstance(condition, TokenAssetCondition):
        if not isinstance(event, (ReceivedToken, SentToken)):
            return False
        token = assets.get(event.mint)
        if not isinstance(token, FungibleTokenInfo):
            return False
        if not token.symbol:
            logger.debug("Token %s has no symbol, cannot match %s", event.mint, condition.symbol)
            return False
        return token.symbol.lower() == condition.symbol.lower()

    if isinstance(condition, NftAssetCondition):
        if not isinstance(event, (ReceivedNft, SentNft)):
            return False
        nft = assets.get(event.asset_id)
        if not isinstance(nft, NftInfo):
            return False
        return condition.name_contains.lower() in nft.name.lower()

    if isinstance(condition, UnrecognizedAssetCondition):
        return False

    assert_never(condition)


def event_matches(
    event: TransactionEvent,
    conditions: EventConditions,
    *,
    fee_payer: str,
    addresses: Mapping[str, AddressInfo],
    assets: Mapping[str, AssetInfo],
) -> bool:
    """Return True if ``event`` satisfies every sub-predicate of ``conditions``."""
    if conditions.kind and event.kind.value != conditions.kind:
        return False
    if conditions.from_tag and not _any_tagged(
        _from_addresses(event, fee_payer), conditions.from_tag, addresses
    ):
        return False
    if conditions.to_tag and not _any_tagged(
        _to_addresses(event, fee_payer), conditions.to_tag, addresses
    ):
        return False
    if conditions.asset_condition is not None and not _matches_asset_condition(
        event, conditions.asset_condition, assets
    ):
        return False
    return True


def _matches_timestamp(timestamp: int, condition: TimestampCondition) -> bool:
    if condition.gt is not None and timestamp < condition.gt:
        return False
    if condition.lt is not None and timestamp > condition.lt:
        return False
    return True


def transaction_matches(
    summary: TransactionSummary,
    conditions: TransactionConditions,
    *,
    addresses: Mapping[str, AddressInfo],
) -> bool:
    """Return True if the summary satisfies the transaction-level conditions."""
    if conditions.for_address_tag:
        # Summaries are fetched for fee-paid transactions, so the fee payer is the observed address
        info = addresses.get(summary.fee_payer)
        if info is None or not info.has_tag(conditions.for_address_tag):
            return False
    if conditions.known_app:
        if summary.known_app is None:
            return False
        if summary.known_app.value.lower() != conditions.known_app.lower():
            return False
    if conditions.timestamp is not None and not _matches_timestamp(
        summary.timestamp, conditions.timestamp
    ):
        return False
    return True


def condition_matches(
    summary: TransactionSummary,
    condition: FilterCondition,
    *,
    addresses: Mapping[str, AddressInfo],
    assets: Mapping[str, AssetInfo],
) -> bool:
    """Evaluate one filter condition against a summary."""
    if isinstance(condition, EventFilterCondition):
        return any(
            event_matches(
                event,
                condition.conditions,
                fee_payer=summary.fee_payer,
                addresses=addresses,
                assets=assets,
            )
            for event in summary.events
        )
    if isinstance(condition, TransactionFilterCondition):
        return transaction_matches(summary, condition.conditions, addresses=addresses)
    if isinstance(condition, UnrecognizedFilterCondition):
        return False
    assert_never(condition)


def apply_filter(
    summaries: Sequence[TransactionSummary],
    conditions: Sequence[FilterCondition],
    addresses: Mapping[str, AddressInfo],
    assets: Mapping[str, AssetInfo],
) -> list[TransactionSummary]:
    """Keep the summaries that satisfy every condition, in their original order.

    Args:
        summaries: Summaries to filter.
        conditions: Filter conditions, combined with AND.
        addresses: Known addresses (labels and tags), read only.
        assets: Known token and NFT metadata, read only.

    Returns:
        The matching summaries. An empty filter keeps everything.
    """
    kept = [
        summary
        for summary in summaries
        if all(
            condition_matches(summary, condition, addresses=addresses, assets=assets)
            for condition in conditions
        )
    ]
    logger.debug("Filter kept %d of %d summaries", len(kept), len(summaries))
    return kept
