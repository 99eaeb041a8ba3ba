"""Core type definitions for the chart pipeline.

All data models use Pydantic BaseModel for automatic validation, JSON
serialization, and better error messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Callable, Literal, NewType, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from tradechart.exceptions import DataValidationError

# Type aliases for domain-specific identifiers
EntityId = NewType("EntityId", str)
Ticker = NewType("Ticker", str)
DatasetId = NewType("DatasetId", str)


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class FrozenModel(BaseModel):
    """Base model with frozen (immutable) configuration."""

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Time Types
# ---------------------------------------------------------------------------


class TimeRange(FrozenModel):
    """Inclusive time window in epoch milliseconds.

    :param start: Start of the range (inclusive).
    :param end: End of the range (inclusive).
    """

    start: int
    end: int

    @model_validator(mode="after")
    def _check_order(self) -> TimeRange:
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self


# ---------------------------------------------------------------------------
# Source Descriptors
# ---------------------------------------------------------------------------


class DataSourceType(str, Enum):
    """Kind of series a descriptor asks for."""

    ACCOUNT_EQUITY = "accountEquity"
    CANDLE_HISTORY = "candleHistory"
    SENTIMENT = "sentiment"


CandleField = Literal["open", "high", "low", "close"]


class _SourceDescriptor(BaseModel):
    """Fields shared by every source descriptor.

    :param label: Display label overriding the generated default.
    :param color: Line color overriding the per-kind default.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    label: str | None = None
    color: str | None = None


class AccountEquitySource(_SourceDescriptor):
    """Account equity history for one entity, charted as percent change.

    :param entity_id: Agent/account identifier.
    """

    type: Literal["accountEquity"] = "accountEquity"
    entity_id: EntityId = Field(alias="entityId")


class CandleHistorySource(_SourceDescriptor):
    """OHLC candle history for a ticker, charted as percent change.

    :param ticker: Market ticker (e.g. "BTC").
    :param field: OHLC field to chart.
    """

    type: Literal["candleHistory"] = "candleHistory"
    ticker: Ticker
    field: CandleField = "close"


class SentimentSource(_SourceDescriptor):
    """Sentiment score history for one entity, charted unchanged.

    :param entity_id: Agent/account identifier.
    """

    type: Literal["sentiment"] = "sentiment"
    entity_id: EntityId = Field(alias="entityId")


DataSourceDescriptor = Annotated[
    Union[AccountEquitySource, CandleHistorySource, SentimentSource],
    Field(discriminator="type"),
]

_descriptor_list = TypeAdapter(list[DataSourceDescriptor])


def parse_source_descriptors(raw: list[dict[str, Any]]) -> list[DataSourceDescriptor]:
    """Validate raw mappings into typed source descriptors.

    :param raw: Mappings with a ``type`` key plus kind-specific fields.
    :returns: Typed descriptors in input order.
    :raises DataValidationError: If any mapping is not a valid descriptor.
    """
    try:
        return _descriptor_list.validate_python(raw)
    except ValidationError as e:
        raise DataValidationError(f"Invalid source descriptor: {e}") from e


# ---------------------------------------------------------------------------
# Raw Collaborator Data
# ---------------------------------------------------------------------------


class RawEquityPoint(FrozenModel):
    """Equity sample as returned upstream.

    Fields are deliberately untyped: timestamps and values may arrive as
    strings or numbers in mixed units and are validated point-by-point later.

    :param timestamp: Sample time (seconds, milliseconds, ISO string or date).
    :param equity: Account equity.
    """

    timestamp: Any
    equity: Any


class RawCandlePoint(FrozenModel):
    """OHLCV candle as returned upstream.

    :param timestamp: Candle open time.
    :param open: Opening price.
    :param high: Highest price.
    :param low: Lowest price.
    :param close: Closing price.
    :param volume: Traded volume.
    """

    timestamp: Any
    open: Any = None
    high: Any = None
    low: Any = None
    close: Any = None
    volume: Any = None


class RawSentimentPoint(FrozenModel):
    """Sentiment sample, score already bounded to [-1, 1].

    :param timestamp: Assessment time.
    :param score: Sentiment score.
    """

    timestamp: Any
    score: Any


class EquityBucketRow(FrozenModel):
    """Row from the bucketed equity aggregation query.

    :param entity_id: Entity the bucket belongs to.
    :param bucket_timestamp: Bucket start time.
    :param equity: Aggregated equity for the bucket.
    """

    entity_id: str
    bucket_timestamp: Any
    equity: Any


class SentimentRow(FrozenModel):
    """Row from the structured sentiment query.

    :param entity_id: Entity the assessment belongs to.
    :param timestamp: Assessment time.
    :param sentiment_score: Headline sentiment score, or None if absent.
    """

    entity_id: str
    timestamp: Any
    sentiment_score: Any = None


class RawDataBundle(FrozenModel):
    """Raw records for one batch fetch, keyed by entity id or ticker.

    :param equity: Equity points per entity id.
    :param candles: Candles per ticker.
    :param sentiment: Sentiment points per entity id.
    """

    equity: dict[str, list[RawEquityPoint]] = Field(default_factory=dict)
    candles: dict[str, list[RawCandlePoint]] = Field(default_factory=dict)
    sentiment: dict[str, list[RawSentimentPoint]] = Field(default_factory=dict)


class FetchKey(FrozenModel):
    """Composite cache key for one batch fetch.

    :param entity_ids: Sorted entity ids.
    :param tickers: Sorted tickers.
    :param start: Range start in epoch ms.
    :param end: Range end in epoch ms.
    :param num_buckets: Bucket count for equity aggregation.
    :param interval: Candle interval.
    """

    entity_ids: tuple[str, ...]
    tickers: tuple[str, ...]
    start: int
    end: int
    num_buckets: int
    interval: str


# ---------------------------------------------------------------------------
# Normalized Data
# ---------------------------------------------------------------------------


class NormalizedPoint(FrozenModel):
    """Point on the common time/value space.

    :param timestamp: Epoch milliseconds.
    :param value: Normalized value (percent change or raw score).
    """

    timestamp: int
    value: float


class DatasetMetadata(FrozenModel):
    """Summary of a dataset's points.

    :param point_count: Number of points.
    :param first_timestamp: Timestamp of the first point.
    :param last_timestamp: Timestamp of the last point.
    """

    point_count: int
    first_timestamp: int
    last_timestamp: int


class Dataset(FrozenModel):
    """Renderer-facing normalized series. Never built with zero points.

    :param id: Stable identifier derived from the source.
    :param label: Display label.
    :param data: Points in ascending timestamp order.
    :param color: Line color.
    :param source_type: Kind of source the series came from.
    :param metadata: Point summary.
    """

    id: DatasetId
    label: str
    data: list[NormalizedPoint]
    color: str | None = None
    source_type: DataSourceType
    metadata: DatasetMetadata


class ChartDataResult(FrozenModel):
    """Outcome of one chart data query.

    :param datasets: Assembled datasets (empty while loading or on error).
    :param time_range: Normalized time range of the query.
    :param is_loading: Whether a fetch is in flight.
    :param error: Fetch error, if the batch failed.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    datasets: list[Dataset] = Field(default_factory=list)
    time_range: TimeRange
    is_loading: bool = False
    error: Exception | None = None


# ---------------------------------------------------------------------------
# Renderer Types
# ---------------------------------------------------------------------------


AxisGroup = Literal["left", "right"]


class LinePoint(FrozenModel):
    """Point on a chart line.

    :param time: Position on the shared time axis, in [0, 1].
    :param value: Value on the line's axis group.
    """

    time: float
    value: float


class ChartLine(FrozenModel):
    """Line handed to the renderer.

    :param id: Line identifier.
    :param name: Name shown in the touch overlay.
    :param color: Stroke color.
    :param data: Points in ascending time order.
    :param axis_group: Y-axis the line is scaled against.
    :param format_value: Formatter for tick labels and overlay values.
    """

    id: str
    name: str
    color: str
    data: list[LinePoint] = Field(default_factory=list)
    axis_group: AxisGroup = "left"
    format_value: Callable[[float], str] | None = None


# ---------------------------------------------------------------------------
# Configuration Types
# ---------------------------------------------------------------------------


class ProviderConfig(FrozenModel):
    """Collaborator provider per data kind.

    :param equity: Equity aggregation provider ("supabase" or "static").
    :param candles: Candle provider ("hyperliquid", "yahoo" or "static").
    :param sentiment: Sentiment provider ("supabase" or "static").
    """

    equity: str = "supabase"
    candles: str = "hyperliquid"
    sentiment: str = "supabase"


class RenderConfig(FrozenModel):
    """Output settings for the render command.

    :param width: Chart width.
    :param aspect_ratio: Height-to-width ratio.
    :param output: SVG output path.
    :param use_sample_data: Draw sample lines when no dataset has data.
    """

    width: float = 350.0
    aspect_ratio: float = 3 / 7
    output: str = "chart.svg"
    use_sample_data: bool = False


class ChartConfig(FrozenModel):
    """Configuration for fetching and rendering one chart.

    :param sources: Source descriptors, one line each.
    :param time_range: Visible window.
    :param num_buckets: Bucket count for equity aggregation.
    :param candle_interval: Candle interval.
    :param providers: Collaborator provider per data kind.
    :param provider_params: Parameters keyed by provider name.
    :param render: Output settings.
    """

    sources: list[DataSourceDescriptor]
    time_range: TimeRange
    num_buckets: int = 50
    candle_interval: str = "5m"
    providers: ProviderConfig = Field(default_factory=ProviderConfig)
    provider_params: dict[str, dict[str, Any]] = Field(default_factory=dict)
    render: RenderConfig = Field(default_factory=RenderConfig)

    def params_for(self, provider: str) -> dict[str, Any]:
        return dict(self.provider_params.get(provider.lower(), {}))


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

__all__ = [
    # Type aliases
    "EntityId",
    "Ticker",
    "DatasetId",
    # Base models
    "FrozenModel",
    # Time
    "TimeRange",
    # Descriptors
    "DataSourceType",
    "CandleField",
    "AccountEquitySource",
    "CandleHistorySource",
    "SentimentSource",
    "DataSourceDescriptor",
    "parse_source_descriptors",
    # Raw data
    "RawEquityPoint",
    "RawCandlePoint",
    "RawSentimentPoint",
    "EquityBucketRow",
    "SentimentRow",
    "RawDataBundle",
    "FetchKey",
    # Normalized data
    "NormalizedPoint",
    "DatasetMetadata",
    "Dataset",
    "ChartDataResult",
    # Renderer
    "AxisGroup",
    "LinePoint",
    "ChartLine",
    # Configuration
    "ProviderConfig",
    "RenderConfig",
    "ChartConfig",
]
