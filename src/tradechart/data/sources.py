"""Source resolution and upstream collaborators.

This module provides the source resolver plus protocol-based interfaces for
the three upstream collaborators (bucketed equity aggregation, candle history,
structured sentiment) with concrete implementations for Supabase, Hyperliquid,
Yahoo Finance and in-memory fixtures.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from tradechart.data.timestamps import to_iso
from tradechart.exceptions import DataSourceError
from tradechart.types import (
    AccountEquitySource,
    CandleHistorySource,
    DataSourceDescriptor,
    EquityBucketRow,
    FrozenModel,
    RawCandlePoint,
    SentimentRow,
    SentimentSource,
    TimeRange,
)

logger = logging.getLogger(__name__)

COMPLETED_STATUSES = ("completed",)


# ---------------------------------------------------------------------------
# Source Resolver
# ---------------------------------------------------------------------------


class SourceIds(FrozenModel):
    """Deduplicated identifiers needed to serve a set of descriptors.

    :param entity_ids: Entity ids for equity and sentiment sources.
    :param tickers: Tickers for candle sources.
    """

    entity_ids: tuple[str, ...] = ()
    tickers: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.entity_ids and not self.tickers


def resolve_source_ids(sources: Sequence[DataSourceDescriptor]) -> SourceIds:
    """Collect unique entity ids and tickers in a single pass.

    An entity referenced by both an equity and a sentiment line appears once,
    so each id/ticker is fetched at most once per batch.

    :param sources: Source descriptors in caller order.
    :returns: Ids and tickers in first-seen order.
    """
    entity_ids: dict[str, None] = {}
    tickers: dict[str, None] = {}

    for source in sources:
        if isinstance(source, (AccountEquitySource, SentimentSource)):
            entity_ids.setdefault(str(source.entity_id), None)
        elif isinstance(source, CandleHistorySource):
            tickers.setdefault(str(source.ticker), None)

    return SourceIds(entity_ids=tuple(entity_ids), tickers=tuple(tickers))


# ---------------------------------------------------------------------------
# Collaborator Interfaces
# ---------------------------------------------------------------------------


class EquityHistorySource(ABC):
    """Bucketed aggregation query over account equity snapshots."""

    @abstractmethod
    async def fetch_equity_buckets(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
        num_buckets: int,
    ) -> list[EquityBucketRow]:
        """Fetch equity aggregated into a fixed number of time buckets.

        :param entity_ids: Entities to fetch.
        :param time_range: Window to aggregate over.
        :param num_buckets: Number of buckets per entity.
        :returns: Rows for all entities, ordered by bucket time.
        :raises DataSourceError: If the query fails.
        """
        ...


class CandleSource(ABC):
    """Historical candle query for a single ticker."""

    @abstractmethod
    async def fetch_candles(
        self,
        ticker: str,
        interval: str,
        time_range: TimeRange,
    ) -> list[RawCandlePoint]:
        """Fetch candles for one ticker.

        :param ticker: Ticker to fetch.
        :param interval: Candle interval (e.g. "5m").
        :param time_range: Window to fetch.
        :returns: Candles in chronological order.
        :raises DataSourceError: If the query fails.
        """
        ...


class SentimentHistorySource(ABC):
    """Structured sentiment query over completed assessments."""

    @abstractmethod
    async def fetch_sentiment(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
        statuses: Sequence[str] = COMPLETED_STATUSES,
    ) -> list[SentimentRow]:
        """Fetch sentiment scores.

        :param entity_ids: Entities to fetch.
        :param time_range: Window to fetch.
        :param statuses: Assessment statuses to include.
        :returns: Rows for all entities, ordered by timestamp.
        :raises DataSourceError: If the query fails.
        """
        ...


# ---------------------------------------------------------------------------
# HTTP Implementations
# ---------------------------------------------------------------------------


class _HttpSource:
    """Shared request handling for httpx-backed collaborators.

    :param source_params: Provider parameters.
        - timeout: Request timeout in seconds (default: 30)
    :param client: Client to reuse; a short-lived one is opened per request if None.
    """

    def __init__(
        self,
        source_params: dict[str, Any] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.params = source_params or {}
        self.timeout = self.params.get("timeout", 30)
        self._client = client

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            if self._client is not None:
                response = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise DataSourceError(
                f"HTTP {e.response.status_code} from {url}: {e.response.text[:200]}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise DataSourceError(f"Request to {url} failed: {e}") from e


class _SupabaseSource(_HttpSource):
    """PostgREST access to the trading-desk Supabase project.

    :param source_params: Required parameters:
        - url: Project URL.
        Optional parameters:
        - api_key: API key; read from ``api_key_env`` when absent.
        - api_key_env: Environment variable holding the key (default: SUPABASE_ANON_KEY)
        - timeout: Request timeout in seconds (default: 30)
    """

    def __init__(
        self,
        source_params: dict[str, Any] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(source_params, client)
        self.url = self.params.get("url")
        if not self.url:
            raise DataSourceError(
                f"{type(self).__name__} requires 'url' in source_params"
            )
        self.url = self.url.rstrip("/")
        self.api_key = self.params.get("api_key") or os.environ.get(
            self.params.get("api_key_env", "SUPABASE_ANON_KEY"), ""
        )

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _expect_rows(payload: Any, what: str) -> list[dict[str, Any]]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise DataSourceError(f"Unexpected {what} payload: {payload!r:.200}")
        return payload


class SupabaseEquitySource(_SupabaseSource, EquityHistorySource):
    """Equity buckets from the ``get_multi_agent_snapshots_bucketed`` RPC."""

    RPC_NAME = "get_multi_agent_snapshots_bucketed"

    async def fetch_equity_buckets(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
        num_buckets: int,
    ) -> list[EquityBucketRow]:
        payload = await self._request(
            "POST",
            f"{self.url}/rest/v1/rpc/{self.RPC_NAME}",
            headers=self.headers,
            json={
                "p_agent_ids": list(entity_ids),
                "p_start_time": to_iso(time_range.start),
                "p_end_time": to_iso(time_range.end),
                "p_num_buckets": num_buckets,
            },
        )
        return [
            EquityBucketRow(
                entity_id=row["agent_id"],
                bucket_timestamp=row.get("bucket_timestamp"),
                equity=row.get("equity"),
            )
            for row in self._expect_rows(payload, "equity bucket")
            if row.get("agent_id") is not None
        ]


class SupabaseSentimentSource(_SupabaseSource, SentimentHistorySource):
    """Headline sentiment scores from the ``assessments`` table."""

    SELECT = (
        "agent_id,timestamp,"
        "sentiment_score:parsed_llm_response->headline->sentiment_score"
    )

    async def fetch_sentiment(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
        statuses: Sequence[str] = COMPLETED_STATUSES,
    ) -> list[SentimentRow]:
        params = [
            ("select", self.SELECT),
            ("agent_id", f"in.({','.join(entity_ids)})"),
            ("timestamp", f"gte.{to_iso(time_range.start)}"),
            ("timestamp", f"lte.{to_iso(time_range.end)}"),
            ("status", f"in.({','.join(statuses)})"),
            ("order", "timestamp.asc"),
        ]
        payload = await self._request(
            "GET",
            f"{self.url}/rest/v1/assessments",
            headers=self.headers,
            params=params,
        )
        return [
            SentimentRow(
                entity_id=row["agent_id"],
                timestamp=row.get("timestamp"),
                sentiment_score=row.get("sentiment_score"),
            )
            for row in self._expect_rows(payload, "sentiment")
            if row.get("agent_id") is not None
        ]


class HyperliquidCandleSource(_HttpSource, CandleSource):
    """Candles from the Hyperliquid ``candleSnapshot`` info endpoint.

    :param source_params: Optional parameters:
        - base_url: API root (default: https://api.hyperliquid.xyz)
        - timeout: Request timeout in seconds (default: 30)
    """

    DEFAULT_BASE_URL = "https://api.hyperliquid.xyz"

    INTERVALS = frozenset([
        "1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h",
        "8h", "12h", "1d", "3d", "1w", "1M",
    ])

    def __init__(
        self,
        source_params: dict[str, Any] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(source_params, client)
        self.base_url = self.params.get("base_url", self.DEFAULT_BASE_URL).rstrip("/")

    async def fetch_candles(
        self,
        ticker: str,
        interval: str,
        time_range: TimeRange,
    ) -> list[RawCandlePoint]:
        if interval not in self.INTERVALS:
            raise DataSourceError(
                f"Unsupported interval '{interval}'. Supported: {sorted(self.INTERVALS)}"
            )

        payload = await self._request(
            "POST",
            f"{self.base_url}/info",
            json={
                "type": "candleSnapshot",
                "req": {
                    "coin": ticker.upper(),
                    "interval": interval,
                    "startTime": time_range.start,
                    "endTime": time_range.end,
                },
            },
        )
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise DataSourceError(f"Unexpected candle payload for '{ticker}'")

        return [
            RawCandlePoint(
                timestamp=candle.get("t"),
                open=candle.get("o"),
                high=candle.get("h"),
                low=candle.get("l"),
                close=candle.get("c"),
                volume=candle.get("v"),
            )
            for candle in payload
        ]


# ---------------------------------------------------------------------------
# Yahoo Finance
# ---------------------------------------------------------------------------


class YahooCandleSource(CandleSource):
    """Candles from Yahoo Finance via yfinance.

    yfinance is blocking, so each call runs in a worker thread.

    :param source_params: Optional parameters for configuring the source.
        - timeout: Request timeout in seconds (default: 30)
    """

    # Map our interval format to yfinance interval format
    INTERVAL_MAP = {
        "1m": "1m",
        "2m": "2m",
        "5m": "5m",
        "15m": "15m",
        "30m": "30m",
        "1h": "60m",
        "90m": "90m",
        "1d": "1d",
        "5d": "5d",
        "1w": "1wk",
        "1M": "1mo",
    }

    def __init__(self, source_params: dict[str, Any] | None = None) -> None:
        self.params = source_params or {}
        self.timeout = self.params.get("timeout", 30)

    async def fetch_candles(
        self,
        ticker: str,
        interval: str,
        time_range: TimeRange,
    ) -> list[RawCandlePoint]:
        yf_interval = self.INTERVAL_MAP.get(interval)
        if yf_interval is None:
            raise DataSourceError(
                f"Unsupported interval '{interval}'. "
                f"Supported: {list(self.INTERVAL_MAP.keys())}"
            )
        return await asyncio.to_thread(self._history, ticker, yf_interval, time_range)

    def _history(
        self,
        ticker: str,
        yf_interval: str,
        time_range: TimeRange,
    ) -> list[RawCandlePoint]:
        try:
            import yfinance as yf
        except ImportError as e:
            raise DataSourceError(
                "yfinance is not installed. Install it with: pip install yfinance"
            ) from e

        try:
            df = yf.Ticker(ticker).history(
                start=datetime.fromtimestamp(time_range.start / 1000, tz=timezone.utc),
                end=datetime.fromtimestamp(time_range.end / 1000, tz=timezone.utc),
                interval=yf_interval,
                timeout=self.timeout,
            )
        except Exception as e:
            raise DataSourceError(
                f"Failed to fetch candles for ticker '{ticker}': {e}"
            ) from e

        if df.empty:
            logger.warning("No Yahoo candles for %s", ticker)
            return []

        candles = []
        for timestamp, row in df.iterrows():
            ts = timestamp.to_pydatetime()
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=timezone.utc)
            candles.append(
                RawCandlePoint(
                    timestamp=ts,
                    open=float(row["Open"]),
                    high=float(row["High"]),
                    low=float(row["Low"]),
                    close=float(row["Close"]),
                    volume=float(row["Volume"]),
                )
            )
        return candles


# ---------------------------------------------------------------------------
# In-Memory Fixtures
# ---------------------------------------------------------------------------


class StaticEquitySource(EquityHistorySource):
    """Equity source serving pre-configured rows.

    :param rows: Rows returned for every request (filtered to requested ids).
    :param error: Exception to raise instead of returning rows.
    """

    def __init__(
        self,
        rows: list[EquityBucketRow] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.rows = rows or []
        self.error = error
        self.calls: list[tuple[tuple[str, ...], TimeRange, int]] = []

    async def fetch_equity_buckets(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
        num_buckets: int,
    ) -> list[EquityBucketRow]:
        self.calls.append((tuple(entity_ids), time_range, num_buckets))
        if self.error is not None:
            raise self.error
        wanted = set(entity_ids)
        return [row for row in self.rows if row.entity_id in wanted]


class StaticCandleSource(CandleSource):
    """Candle source serving pre-configured candles per ticker.

    :param candles: Candles keyed by ticker.
    :param error: Exception to raise instead of returning candles.
    :param delay: Seconds to sleep inside each call.
    """

    def __init__(
        self,
        candles: dict[str, list[RawCandlePoint]] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.candles = candles or {}
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str, TimeRange]] = []
        self.events: list[str] = []

    async def fetch_candles(
        self,
        ticker: str,
        interval: str,
        time_range: TimeRange,
    ) -> list[RawCandlePoint]:
        self.calls.append((ticker, interval, time_range))
        self.events.append(f"start:{ticker}")
        if self.delay:
            await asyncio.sleep(self.delay)
        self.events.append(f"end:{ticker}")
        if self.error is not None:
            raise self.error
        return list(self.candles.get(ticker, []))


class StaticSentimentSource(SentimentHistorySource):
    """Sentiment source serving pre-configured rows.

    :param rows: Rows returned for every request (filtered to requested ids).
    :param error: Exception to raise instead of returning rows.
    """

    def __init__(
        self,
        rows: list[SentimentRow] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.rows = rows or []
        self.error = error
        self.calls: list[tuple[tuple[str, ...], TimeRange, tuple[str, ...]]] = []

    async def fetch_sentiment(
        self,
        entity_ids: Sequence[str],
        time_range: TimeRange,
        statuses: Sequence[str] = COMPLETED_STATUSES,
    ) -> list[SentimentRow]:
        self.calls.append((tuple(entity_ids), time_range, tuple(statuses)))
        if self.error is not None:
            raise self.error
        wanted = set(entity_ids)
        return [row for row in self.rows if row.entity_id in wanted]


# ---------------------------------------------------------------------------
# Resolution From Configuration
# ---------------------------------------------------------------------------


def _static_fixture(source_params: dict[str, Any] | None, key: str, shape: Any) -> Any:
    """Validate one fixture section of the static provider's parameters.

    :param source_params: Parameters of the "static" provider.
    :param key: Section name ("equity", "candles" or "sentiment").
    :param shape: Expected type of the section.
    :returns: Validated fixture, or None if the section is absent.
    :raises DataSourceError: If the section does not match ``shape``.
    """
    raw = (source_params or {}).get(key)
    if raw is None:
        return None
    try:
        return TypeAdapter(shape).validate_python(raw)
    except ValidationError as e:
        raise DataSourceError(f"Invalid static '{key}' fixture: {e}") from e


def resolve_equity_source(
    provider: str, source_params: dict[str, Any] | None = None
) -> EquityHistorySource:
    """Construct an equity collaborator by provider name.

    :param provider: Provider name ("supabase" or "static").
    :param source_params: Provider-specific parameters. The static provider
        serves the rows listed under "equity".
    :returns: Equity collaborator.
    :raises DataSourceError: If the provider is unrecognized or a static
        fixture is malformed.
    """
    name = provider.lower()
    if name == "supabase":
        return SupabaseEquitySource(source_params)
    elif name == "static":
        return StaticEquitySource(
            _static_fixture(source_params, "equity", list[EquityBucketRow])
        )
    raise DataSourceError(
        f"Unrecognized equity provider: '{provider}'. Supported: supabase, static"
    )


def resolve_candle_source(
    provider: str, source_params: dict[str, Any] | None = None
) -> CandleSource:
    """Construct a candle collaborator by provider name.

    :param provider: Provider name ("hyperliquid", "yahoo" or "static").
    :param source_params: Provider-specific parameters. The static provider
        serves the per-ticker candles listed under "candles".
    :returns: Candle collaborator.
    :raises DataSourceError: If the provider is unrecognized or a static
        fixture is malformed.
    """
    name = provider.lower()
    if name == "hyperliquid":
        return HyperliquidCandleSource(source_params)
    elif name == "yahoo":
        return YahooCandleSource(source_params)
    elif name == "static":
        return StaticCandleSource(
            _static_fixture(source_params, "candles", dict[str, list[RawCandlePoint]])
        )
    raise DataSourceError(
        f"Unrecognized candle provider: '{provider}'. "
        f"Supported: hyperliquid, yahoo, static"
    )


def resolve_sentiment_source(
    provider: str, source_params: dict[str, Any] | None = None
) -> SentimentHistorySource:
    """Construct a sentiment collaborator by provider name.

    :param provider: Provider name ("supabase" or "static").
    :param source_params: Provider-specific parameters. The static provider
        serves the rows listed under "sentiment".
    :returns: Sentiment collaborator.
    :raises DataSourceError: If the provider is unrecognized or a static
        fixture is malformed.
    """
    name = provider.lower()
    if name == "supabase":
        return SupabaseSentimentSource(source_params)
    elif name == "static":
        return StaticSentimentSource(
            _static_fixture(source_params, "sentiment", list[SentimentRow])
        )
    raise DataSourceError(
        f"Unrecognized sentiment provider: '{provider}'. Supported: supabase, static"
    )


__all__ = [
    "COMPLETED_STATUSES",
    "SourceIds",
    "resolve_source_ids",
    "EquityHistorySource",
    "CandleSource",
    "SentimentHistorySource",
    "SupabaseEquitySource",
    "SupabaseSentimentSource",
    "HyperliquidCandleSource",
    "YahooCandleSource",
    "StaticEquitySource",
    "StaticCandleSource",
    "StaticSentimentSource",
    "resolve_equity_source",
    "resolve_candle_source",
    "resolve_sentiment_source",
]
