"""Batch fetching, caching and the chart data query lifecycle.

The three source kinds (equity, candles, sentiment) are fetched concurrently,
but candles are fetched one ticker at a time to stay under the price venue's
rate limits. Any failure fails the whole batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Sequence

from tradechart.data.assemble import create_datasets
from tradechart.data.sources import (
    COMPLETED_STATUSES,
    CandleSource,
    EquityHistorySource,
    SentimentHistorySource,
    SourceIds,
    resolve_source_ids,
)
from tradechart.data.timestamps import normalize_time_range
from tradechart.exceptions import ChartError, DataSourceError
from tradechart.types import (
    ChartDataResult,
    DataSourceDescriptor,
    FetchKey,
    RawCandlePoint,
    RawDataBundle,
    RawEquityPoint,
    RawSentimentPoint,
    TimeRange,
)

logger = logging.getLogger(__name__)

DEFAULT_NUM_BUCKETS = 50
DEFAULT_CANDLE_INTERVAL = "5m"

# Cached bundles are served without a round trip for this long.
FRESHNESS_SECONDS = 30.0
# Cache entries not accessed for this long are dropped.
IDLE_EVICTION_SECONDS = 5 * 60.0


class BatchFetchOrchestrator:
    """Fetches raw records for every source kind in one batch.

    :param equity_source: Bucketed equity aggregation collaborator.
    :param candle_source: Per-ticker candle collaborator.
    :param sentiment_source: Structured sentiment collaborator.
    """

    def __init__(
        self,
        equity_source: EquityHistorySource,
        candle_source: CandleSource,
        sentiment_source: SentimentHistorySource,
    ) -> None:
        self.equity_source = equity_source
        self.candle_source = candle_source
        self.sentiment_source = sentiment_source

    async def fetch_all(
        self,
        ids: SourceIds,
        time_range: TimeRange,
        num_buckets: int = DEFAULT_NUM_BUCKETS,
        candle_interval: str = DEFAULT_CANDLE_INTERVAL,
    ) -> RawDataBundle:
        """Fetch equity, candles and sentiment concurrently.

        A kind whose id set is empty is skipped without a network call.

        :param ids: Deduplicated entity ids and tickers.
        :param time_range: Window to fetch.
        :param num_buckets: Bucket count for equity aggregation.
        :param candle_interval: Candle interval.
        :returns: Raw records keyed by entity id or ticker.
        :raises DataSourceError: If any kind fails; the others are cancelled.
        """
        tasks = [
            asyncio.ensure_future(self._fetch_equity(ids.entity_ids, time_range, num_buckets)),
            asyncio.ensure_future(self._fetch_candles(ids.tickers, time_range, candle_interval)),
            asyncio.ensure_future(self._fetch_sentiment(ids.entity_ids, time_range)),
        ]

        try:
            equity, candles, sentiment = await asyncio.gather(*tasks)
        except Exception as e:
            for task in tasks:
                task.cancel()
            logger.error("Batch fetch failed: %s", e)
            if isinstance(e, DataSourceError):
                raise
            raise DataSourceError(f"Batch fetch failed: {e}") from e
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        return RawDataBundle(equity=equity, candles=candles, sentiment=sentiment)

    async def _fetch_equity(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
        num_buckets: int,
    ) -> dict[str, list[RawEquityPoint]]:
        if not entity_ids:
            return {}

        rows = await self.equity_source.fetch_equity_buckets(
            entity_ids, time_range, num_buckets
        )
        grouped: dict[str, list[RawEquityPoint]] = {eid: [] for eid in entity_ids}
        for row in rows:
            if row.entity_id in grouped:
                grouped[row.entity_id].append(
                    RawEquityPoint(timestamp=row.bucket_timestamp, equity=row.equity)
                )
        logger.debug("Fetched %d equity rows for %d entities", len(rows), len(entity_ids))
        return grouped

    async def _fetch_candles(
        self,
        tickers: Sequence[str],
        time_range: TimeRange,
        interval: str,
    ) -> dict[str, list[RawCandlePoint]]:
        results: dict[str, list[RawCandlePoint]] = {}
        # One ticker at a time: the price venue throttles concurrent requests.
        for ticker in tickers:
            results[ticker] = await self.candle_source.fetch_candles(
                ticker, interval, time_range
            )
            logger.debug("Fetched %d candles for %s", len(results[ticker]), ticker)
        return results

    async def _fetch_sentiment(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
    ) -> dict[str, list[RawSentimentPoint]]:
        if not entity_ids:
            return {}

        rows = await self.sentiment_source.fetch_sentiment(
            entity_ids, time_range, COMPLETED_STATUSES
        )
        grouped: dict[str, list[RawSentimentPoint]] = {eid: [] for eid in entity_ids}
        for row in rows:
            if row.entity_id in grouped and row.sentiment_score is not None:
                grouped[row.entity_id].append(
                    RawSentimentPoint(timestamp=row.timestamp, score=row.sentiment_score)
                )
        logger.debug("Fetched %d sentiment rows for %d entities", len(rows), len(entity_ids))
        return grouped


class FetchCache:
    """Time-bounded cache of raw bundles keyed by :class:`FetchKey`.

    :param freshness_seconds: Age below which an entry is served as-is.
    :param idle_seconds: Idle time after which an entry is evicted.
    :param clock: Monotonic clock returning seconds.
    """

    def __init__(
        self,
        freshness_seconds: float = FRESHNESS_SECONDS,
        idle_seconds: float = IDLE_EVICTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.freshness_seconds = freshness_seconds
        self.idle_seconds = idle_seconds
        self.clock = clock
        # key -> (fetched_at, last_access, bundle)
        self._entries: dict[FetchKey, tuple[float, float, RawDataBundle]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: FetchKey) -> bool:
        return key in self._entries

    def get_fresh(self, key: FetchKey) -> RawDataBundle | None:
        """Return the bundle for key if it is still fresh.

        :param key: Cache key.
        :returns: Cached bundle, or None if missing or stale.
        """
        now = self.clock()
        self.evict_idle(now)

        entry = self._entries.get(key)
        if entry is None:
            return None

        fetched_at, _, bundle = entry
        self._entries[key] = (fetched_at, now, bundle)
        if now - fetched_at < self.freshness_seconds:
            return bundle
        return None

    def put(self, key: FetchKey, bundle: RawDataBundle) -> None:
        """Store a freshly fetched bundle."""
        now = self.clock()
        self.evict_idle(now)
        self._entries[key] = (now, now, bundle)

    def evict_idle(self, now: float | None = None) -> int:
        """Drop entries idle for longer than the idle window.

        :param now: Current clock reading (read from the clock if None).
        :returns: Number of entries evicted.
        """
        if now is None:
            now = self.clock()
        expired = [
            key
            for key, (_, last_access, _) in self._entries.items()
            if now - last_access >= self.idle_seconds
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Clear the cache."""
        self._entries.clear()


def build_fetch_key(
    ids: SourceIds,
    time_range: TimeRange,
    num_buckets: int,
    interval: str,
) -> FetchKey:
    """Build an order-independent cache key for a batch fetch."""
    return FetchKey(
        entity_ids=tuple(sorted(ids.entity_ids)),
        tickers=tuple(sorted(ids.tickers)),
        start=time_range.start,
        end=time_range.end,
        num_buckets=num_buckets,
        interval=interval,
    )


class ChartDataQuery:
    """Fetch-normalize-assemble lifecycle for one chart.

    ``result`` holds the last published :class:`ChartDataResult`. A newer
    :meth:`run` supersedes any in-flight one, and :meth:`close` cancels
    in-flight work; in both cases the stale result is never published.

    :param orchestrator: Batch fetcher.
    :param cache: Bundle cache shared across queries (a private one if None).
    :param enabled: Whether runs may fetch at all.
    """

    def __init__(
        self,
        orchestrator: BatchFetchOrchestrator,
        cache: FetchCache | None = None,
        enabled: bool = True,
    ) -> None:
        self.orchestrator = orchestrator
        self.cache = cache if cache is not None else FetchCache()
        self.enabled = enabled
        self.result: ChartDataResult | None = None
        self._generation = 0
        self._task: asyncio.Task[RawDataBundle] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(
        self,
        sources: Sequence[DataSourceDescriptor],
        start_time: Any,
        end_time: Any,
        num_buckets: int = DEFAULT_NUM_BUCKETS,
        candle_interval: str = DEFAULT_CANDLE_INTERVAL,
    ) -> ChartDataResult:
        """Fetch and assemble datasets for the given sources and range.

        :param sources: Source descriptors.
        :param start_time: Range start (ms, s, ISO string or datetime).
        :param end_time: Range end (ms, s, ISO string or datetime).
        :param num_buckets: Bucket count for equity aggregation.
        :param candle_interval: Candle interval.
        :returns: The result of this run (published only if still current).
        :raises TimeRangeError: If the range is invalid; nothing is fetched.
        :raises ChartError: If the query has been closed.
        :raises asyncio.CancelledError: If this run is superseded or closed mid-fetch.
        """
        if self._closed:
            raise ChartError("Chart data query is closed")

        time_range = normalize_time_range(start_time, end_time)
        ids = resolve_source_ids(sources)

        self._generation += 1
        generation = self._generation
        self._cancel_in_flight()

        if not self.enabled or ids.is_empty:
            result = ChartDataResult(time_range=time_range)
            self._publish(generation, result)
            return result

        key = build_fetch_key(ids, time_range, num_buckets, candle_interval)
        bundle = self.cache.get_fresh(key)

        if bundle is None:
            self._publish(generation, ChartDataResult(time_range=time_range, is_loading=True))
            task = asyncio.ensure_future(
                self.orchestrator.fetch_all(ids, time_range, num_buckets, candle_interval)
            )
            self._task = task
            try:
                bundle = await task
            except DataSourceError as e:
                result = ChartDataResult(time_range=time_range, error=e)
                self._publish(generation, result)
                return result
            finally:
                if self._task is task:
                    self._task = None
            self.cache.put(key, bundle)
        else:
            logger.debug("Serving cached bundle for %s", key)

        result = ChartDataResult(
            datasets=create_datasets(sources, bundle, time_range),
            time_range=time_range,
        )
        self._publish(generation, result)
        return result

    def close(self) -> None:
        """Cancel in-flight work and stop publishing results."""
        self._closed = True
        self._cancel_in_flight()

    def _cancel_in_flight(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _publish(self, generation: int, result: ChartDataResult) -> None:
        if self._closed or generation != self._generation:
            logger.debug("Discarding stale chart result (generation %d)", generation)
            return
        self.result = result


__all__ = [
    "DEFAULT_NUM_BUCKETS",
    "DEFAULT_CANDLE_INTERVAL",
    "FRESHNESS_SECONDS",
    "IDLE_EVICTION_SECONDS",
    "BatchFetchOrchestrator",
    "FetchCache",
    "build_fetch_key",
    "ChartDataQuery",
]
