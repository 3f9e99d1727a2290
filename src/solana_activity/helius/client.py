"""Helius API client with rate limiting, retries and asset caching.

This module provides an async client for the two Helius surfaces the
summarizer depends on:
- The REST API for parsed transaction history (``/addresses/{a}/transactions``)
  and parsed transactions by signature (``/transactions``)
- The DAS JSON-RPC ``getAssetBatch`` method for token and NFT metadata
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

import httpx
from redis.asyncio import Redis

from solana_activity.lookups.models import (
    AssetInfo,
    asset_info_from_dict,
    asset_info_to_dict,
    summarize_asset,
)
from solana_activity.summarizer.models import RawTransaction

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_API_URL = "https://api.helius.xyz/v0"
DEFAULT_RPC_URL = "https://mainnet.helius-rpc.com"
DEFAULT_MAX_REQUESTS_PER_SECOND = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_ASSET_CACHE_TTL_SECONDS = 24 * 3600

# Upstream limits
MAX_HISTORY_PAGE_SIZE = 100
MAX_ASSET_BATCH_SIZE = 1000

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)

Commitment = Literal["confirmed", "finalized"]


class HeliusClientError(Exception):
    """Base exception for Helius client errors."""


class HeliusRequestError(HeliusClientError):
    """Raised for non-retryable HTTP errors (e.g. 400, 401, 404)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HeliusRPCError(HeliusClientError):
    """Raised when a JSON-RPC call returns an error object."""


class HeliusRetryError(HeliusClientError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.last_exception = last_exception


@dataclass
class RateLimiter:
    """Token bucket rate limiter."""

    max_tokens: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    @classmethod
    def create(cls, max_requests_per_second: float) -> RateLimiter:
        """Create a rate limiter with specified max requests per second."""
        return cls(
            max_tokens=max_requests_per_second,
            refill_rate=max_requests_per_second,
            tokens=max_requests_per_second,
            last_refill=time.monotonic(),
        )

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        while True:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return
            wait_time = (tokens - self.tokens) / self.refill_rate
            await asyncio.sleep(wait_time)


def split_into_batches(items: Sequence[str], batch_size: int) -> list[list[str]]:
    """Split ``items`` into consecutive lists of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


class HeliusClient:
    """Async Helius client with rate limiting, retries and Redis caching.

    Example:
        ```python
        async with HeliusClient(api_key="...") as client:
            page = await client.get_transaction_history(address, limit=100)
            assets = await client.get_all_assets({"EPjF...Dt1v"})
        ```
    """

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = DEFAULT_API_URL,
        rpc_url: str = DEFAULT_RPC_URL,
        redis: Redis | None = None,
        asset_cache_ttl_seconds: int = DEFAULT_ASSET_CACHE_TTL_SECONDS,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Helius client.

        Args:
            api_key: Helius API key, sent as the ``api-key`` query parameter.
            api_url: REST API base URL.
            rpc_url: JSON-RPC endpoint URL.
            redis: Optional Redis client for asset metadata caching.
            asset_cache_ttl_seconds: Cache TTL for asset metadata.
            max_requests_per_second: Client-side rate limit.
            max_retries: Retry attempts on transient failures.
            retry_delay_seconds: Initial delay between retries.
            timeout: Request timeout in seconds.
            http_client: Optional preconfigured httpx client (tests inject
                one backed by ``httpx.MockTransport``).
        """
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._rpc_url = rpc_url.rstrip("/")
        self._redis = redis
        self._asset_cache_ttl = asset_cache_ttl_seconds
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._rate_limiter = RateLimiter.create(max_requests_per_second)
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._cache_prefix = "helius:asset:"
        self._rpc_request_id = 0

    async def __aenter__(self) -> HeliusClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        """Send a request with rate limiting, retry and exponential backoff.

        Raises:
            HeliusRequestError: On a non-retryable HTTP status.
            HeliusRetryError: If all retries fail.
        """
        query = {"api-key": self._api_key, **(params or {})}
        last_error: Exception | None = None
        delay = self._retry_delay

        for attempt in range(self._max_retries + 1):
            await self._rate_limiter.acquire()
            try:
                response = await self._http.request(method, url, params=query, json=json_body)
                if response.status_code in RETRY_STATUS_CODES:
                    raise httpx.HTTPStatusError(
                        f"Retryable status {response.status_code}",
                        request=response.request,
                        response=response,
                    )
                if response.is_error:
                    raise HeliusRequestError(
                        f"{method} {url} failed with status {response.status_code}",
                        status_code=response.status_code,
                    )
                return response.json()
            except (httpx.TransportError, httpx.HTTPStatusError) as e:
                last_error = e
                if attempt == self._max_retries:
                    break
                logger.warning(
                    "Helius %s %s failed (attempt %d/%d): %s. Retrying in %.1f seconds...",
                    method,
                    url,
                    attempt + 1,
                    self._max_retries + 1,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
                delay *= 2

        raise HeliusRetryError(
            f"All {self._max_retries + 1} attempts failed for {method} {url}",
            last_exception=last_error,
        )

    async def _rpc(self, method: str, params: Any) -> Any:
        self._rpc_request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": str(self._rpc_request_id),
            "method": method,
            "params": params,
        }
        body = await self._request("POST", self._rpc_url, json_body=payload)
        if not isinstance(body, dict):
            raise HeliusRPCError(f"Unexpected {method} response type: {type(body).__name__}")
        if body.get("error"):
            raise HeliusRPCError(f"{method} failed: {body['error']}")
        return body.get("result")

    # Transactions

    async def get_transaction_history(
        self,
        address: str,
        *,
        before: str | None = None,
        limit: int = MAX_HISTORY_PAGE_SIZE,
        commitment: Commitment = "confirmed",
    ) -> list[RawTransaction]:
        """Fetch one page of parsed transactions for ``address``, newest first.

        Args:
            address: Account address.
            before: Only return transactions older than this signature.
            limit: Page size (1-100).
            commitment: Commitment level.

        Returns:
            Parsed transactions in upstream order.
        """
        if not 1 <= limit <= MAX_HISTORY_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_HISTORY_PAGE_SIZE}")

        params: dict[str, Any] = {"commitment": commitment, "limit": limit}
        if before:
            params["before"] = before

        data = await self._request(
            "GET",
            f"{self._api_url}/addresses/{address}/transactions",
            params=params,
        )
        return [RawTransaction.from_dict(tx) for tx in data or []]

    async def get_transactions(self, signatures: Sequence[str]) -> list[RawTransaction]:
        """Fetch parsed transactions by signature."""
        if not signatures:
            return []
        data = await self._request(
            "POST",
            f"{self._api_url}/transactions",
            json_body={"transactions": list(signatures)},
        )
        return [RawTransaction.from_dict(tx) for tx in data or []]

    async def get_full_transaction_history(
        self,
        address: str,
        since: datetime,
        *,
        page_limit: int = MAX_HISTORY_PAGE_SIZE,
        commitment: Commitment = "confirmed",
        fee_payer_only: bool = True,
    ) -> list[RawTransaction]:
        """Fetch every transaction for ``address`` at or after ``since``.

        Pages backwards from the newest transaction. Upstream may return
        short pages even when older transactions exist, so paging stops
        only once a page holds a candidate older than ``since`` or no
        candidate at all. With ``fee_payer_only``, transactions paid for
        by other accounts are dropped and are not candidates.

        Args:
            address: Account address.
            since: Oldest block time to include (timezone-aware).
            page_limit: Page size for each request.
            commitment: Commitment level.
            fee_payer_only: Keep only transactions paid for by ``address``.

        Returns:
            Transactions newest first.
        """
        if since.tzinfo is None:
            raise ValueError("since must be timezone-aware")
        since_timestamp = since.timestamp()

        collected: list[RawTransaction] = []
        before: str | None = None

        while True:
            page = await self.get_transaction_history(
                address,
                before=before,
                limit=page_limit,
                commitment=commitment,
            )
            candidates = [tx for tx in page if tx.fee_payer == address] if fee_payer_only else page
            kept = [tx for tx in candidates if tx.timestamp >= since_timestamp]
            collected.extend(kept)

            if not kept or len(kept) != len(candidates):
                break
            before = kept[-1].signature

        logger.debug("Fetched %d transactions for %s since %s", len(collected), address, since)
        return collected

    # Assets

    async def get_asset_batch(self, ids: Sequence[str]) -> list[dict[str, Any]]:
        """Fetch raw DAS assets for up to 1000 ids."""
        if len(ids) > MAX_ASSET_BATCH_SIZE:
            raise ValueError(f"getAssetBatch accepts at most {MAX_ASSET_BATCH_SIZE} ids")
        if not ids:
            return []
        result = await self._rpc(
            "getAssetBatch",
            {
                "ids": list(ids),
                "options": {
                    "showUnverifiedCollections": False,
                    "showCollectionMetadata": False,
                    "showInscription": False,
                },
            },
        )
        # Unknown ids come back as null entries
        return [asset for asset in result or [] if asset]

    def _cache_key(self, asset_id: str) -> str:
        return f"{self._cache_prefix}{asset_id}"

    async def _get_cached_assets(self, ids: Sequence[str]) -> dict[str, AssetInfo]:
        if not self._redis or not ids:
            return {}
        try:
            values = await self._redis.mget([self._cache_key(i) for i in ids])
        except Exception as e:
            logger.warning("Asset cache get failed: %s", e)
            return {}

        cached: dict[str, AssetInfo] = {}
        for asset_id, value in zip(ids, values, strict=True):
            if value is None:
                continue
            try:
                raw = value.decode() if isinstance(value, bytes) else str(value)
                cached[asset_id] = asset_info_from_dict(json.loads(raw))
            except ValueError as e:
                logger.warning("Failed to parse cached asset %s: %s", asset_id, e)
        return cached

    async def _cache_assets(self, assets: dict[str, AssetInfo]) -> None:
        if not self._redis or not assets:
            return
        try:
            for asset_id, info in assets.items():
                await self._redis.set(
                    self._cache_key(asset_id),
                    json.dumps(asset_info_to_dict(info)),
                    ex=self._asset_cache_ttl,
                )
        except Exception as e:
            logger.warning("Asset cache set failed: %s", e)

    async def get_all_assets(
        self,
        ids: Iterable[str],
        *,
        batch_size: int = MAX_ASSET_BATCH_SIZE,
    ) -> dict[str, AssetInfo]:
        """Fetch summarized metadata for every asset id, using the cache first.

        Args:
            ids: Token mints and NFT asset ids.
            batch_size: Ids per ``getAssetBatch`` request (max 1000).

        Returns:
            Dictionary of asset id to asset info. Ids unknown upstream are absent.
        """
        unique_ids = sorted(set(ids))
        assets = await self._get_cached_assets(unique_ids)
        missing = [i for i in unique_ids if i not in assets]

        fetched: dict[str, AssetInfo] = {}
        for batch in split_into_batches(missing, min(batch_size, MAX_ASSET_BATCH_SIZE)):
            for raw_asset in await self.get_asset_batch(batch):
                fetched[str(raw_asset["id"])] = summarize_asset(raw_asset)

        await self._cache_assets(fetched)
        assets.update(fetched)

        logger.debug(
            "Resolved %d assets (%d cached, %d fetched, %d unknown)",
            len(assets),
            len(assets) - len(fetched),
            len(fetched),
            len(unique_ids) - len(assets),
        )
        return assets
