"""Pipeline orchestrator for account activity.

This module wires the Helius client, the summarizer and the filter
evaluator together: fetch history for each imported account, summarize
it relative to that account, resolve asset metadata for everything the
summaries reference, then apply a filter against a read-only snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from redis.asyncio import Redis

from solana_activity.config import Settings, get_settings
from solana_activity.filters.evaluator import apply_filter
from solana_activity.filters.models import FilterCondition
from solana_activity.helius.client import HeliusClient
from solana_activity.lookups.models import (
    AccountRecord,
    AssetInfo,
    LookupSnapshot,
    build_address_book,
)
from solana_activity.summarizer.classifier import summarize
from solana_activity.summarizer.events import TransactionSummary
from solana_activity.summarizer.models import RawTransaction

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Raised when the pipeline cannot run with the given configuration."""


def summarize_or_fail(transaction: RawTransaction, address: str) -> TransactionSummary:
    """Summarize a transaction, reporting failed transactions without events."""
    if not transaction.success:
        return TransactionSummary(
            success=False,
            fee_payer=transaction.fee_payer,
            signature=transaction.signature,
            timestamp=transaction.timestamp,
        )
    return summarize(transaction, address)


@dataclass
class PipelineStats:
    """Counters for one or more pipeline runs."""

    accounts_synced: int = 0
    transactions_summarized: int = 0
    failed_transactions: int = 0
    events_emitted: int = 0
    assets_resolved: int = 0
    last_run_at: datetime | None = None


@dataclass(frozen=True)
class ActivityReport:
    """Result of a pipeline run.

    Attributes:
        summaries: Every summary across accounts, newest first.
        filtered: The summaries that passed the filter, same order.
        lookups: Snapshot the filter was evaluated against.
    """

    summaries: tuple[TransactionSummary, ...]
    filtered: tuple[TransactionSummary, ...]
    lookups: LookupSnapshot = field(default_factory=LookupSnapshot)


class ActivityPipeline:
    """Fetches, summarizes and filters activity for a set of accounts.

    Example:
        ```python
        records = [AccountRecord.from_dict(a) for a in imported_accounts]
        async with ActivityPipeline(get_settings()) as pipeline:
            report = await pipeline.run(
                records,
                filter_conditions=parse_filter('[{"type":"event","conditions":{"kind":"sent_sol"}}]'),
            )
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: HeliusClient | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings (defaults to ``get_settings()``).
            client: Optional preconfigured client; otherwise one is built
                from settings on first use.
        """
        self._settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._redis: Redis | None = None
        self._stats = PipelineStats()

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    async def __aenter__(self) -> ActivityPipeline:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the client and Redis connection if this pipeline created them."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _get_client(self) -> HeliusClient:
        if self._client is not None:
            return self._client

        try:
            self._settings.validate_requirements(command="fetch")
        except ValueError as e:
            raise PipelineError(str(e)) from e

        helius = self._settings.helius
        if helius.api_key is None:
            raise PipelineError("HELIUS_API_KEY is required to fetch transactions and assets")
        if self._settings.redis.url:
            self._redis = Redis.from_url(self._settings.redis.url)

        self._client = HeliusClient(
            helius.api_key.get_secret_value(),
            api_url=helius.api_url,
            rpc_url=helius.rpc_url,
            redis=self._redis,
            asset_cache_ttl_seconds=self._settings.redis.asset_cache_ttl_seconds,
            max_requests_per_second=helius.max_requests_per_second,
            max_retries=helius.max_retries,
            retry_delay_seconds=helius.retry_delay_seconds,
            timeout=helius.request_timeout_seconds,
        )
        return self._client

    def default_since(self) -> datetime:
        """Start of the default history window."""
        return datetime.now(UTC) - timedelta(days=self._settings.history.lookback_days)

    async def summarize_account(
        self,
        record: AccountRecord,
        *,
        since: datetime,
    ) -> list[TransactionSummary]:
        """Fetch and summarize the history of one account since ``since``."""
        history = self._settings.history
        transactions = await self._get_client().get_full_transaction_history(
            record.address,
            since,
            page_limit=history.page_limit,
            commitment=history.commitment,
            fee_payer_only=history.fee_payer_only,
        )

        summaries = [summarize_or_fail(tx, record.address) for tx in transactions]

        failed = sum(1 for s in summaries if not s.success)
        self._stats.accounts_synced += 1
        self._stats.transactions_summarized += len(summaries)
        self._stats.failed_transactions += failed
        self._stats.events_emitted += sum(len(s.events) for s in summaries)

        logger.info(
            "Synced account %s (%s): %d transactions, %d failed",
            record.label or "(no label)",
            record.address[:8] + "...",
            len(summaries),
            failed,
        )
        return summaries

    async def load_assets(self, summaries: Sequence[TransactionSummary]) -> dict[str, AssetInfo]:
        """Resolve metadata for every mint and asset id the summaries reference."""
        asset_ids: set[str] = set()
        for summary in summaries:
            asset_ids |= summary.asset_ids()
        if not asset_ids:
            return {}

        assets = await self._get_client().get_all_assets(
            asset_ids,
            batch_size=self._settings.history.asset_batch_size,
        )
        self._stats.assets_resolved += len(assets)
        return assets

    async def run(
        self,
        records: Sequence[AccountRecord],
        *,
        filter_conditions: Sequence[FilterCondition] = (),
        since: datetime | None = None,
    ) -> ActivityReport:
        """Sync every account, resolve assets and apply the filter.

        Args:
            records: Imported accounts; their tags feed tag-based conditions.
            filter_conditions: Conditions combined with AND (empty keeps all).
            since: Oldest block time to include (defaults to the configured
                lookback window).

        Returns:
            ActivityReport with all summaries and the filtered subset.
        """
        effective_since = since or self.default_since()

        summaries: list[TransactionSummary] = []
        for record in records:
            summaries.extend(await self.summarize_account(record, since=effective_since))
        summaries.sort(key=lambda s: s.timestamp, reverse=True)

        assets = await self.load_assets(summaries)
        lookups = LookupSnapshot.create(build_address_book(records), assets)

        filtered = apply_filter(summaries, filter_conditions, lookups.addresses, lookups.assets)
        self._stats.last_run_at = datetime.now(UTC)

        logger.info(
            "Pipeline run complete: %d accounts, %d summaries, %d matched filter",
            len(records),
            len(summaries),
            len(filtered),
        )
        return ActivityReport(
            summaries=tuple(summaries),
            filtered=tuple(filtered),
            lookups=lookups,
        )
