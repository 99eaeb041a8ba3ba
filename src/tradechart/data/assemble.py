"""Binding normalized points to caller-facing datasets and chart lines."""

from __future__ import annotations

from typing import Mapping, Sequence

from tradechart.data.normalize import (
    candles_to_percent_change,
    equity_to_percent_change,
    sentiment_to_normalized,
)
from tradechart.types import (
    AccountEquitySource,
    AxisGroup,
    CandleHistorySource,
    ChartLine,
    Dataset,
    DatasetId,
    DatasetMetadata,
    DataSourceDescriptor,
    DataSourceType,
    LinePoint,
    NormalizedPoint,
    RawDataBundle,
    SentimentSource,
    TimeRange,
)

# Used when a descriptor does not supply its own color.
DEFAULT_COLORS = {
    DataSourceType.ACCOUNT_EQUITY: "#00ff9f",
    DataSourceType.CANDLE_HISTORY: "#ffaa00",
    DataSourceType.SENTIMENT: "#ff6b35",
}

DEFAULT_AXIS_GROUPS: dict[DataSourceType, AxisGroup] = {
    DataSourceType.ACCOUNT_EQUITY: "left",
    DataSourceType.CANDLE_HISTORY: "left",
    DataSourceType.SENTIMENT: "right",
}


def format_percent(value: float) -> str:
    """Format a percent-change value, e.g. ``+1.25%``."""
    return f"{value:+.2f}%"


def format_score(value: float) -> str:
    """Format a sentiment score, e.g. ``0.42``."""
    return f"{value:.2f}"


def create_dataset(
    source: DataSourceDescriptor,
    bundle: RawDataBundle,
    time_range: TimeRange,
) -> Dataset | None:
    """Build the dataset for one source descriptor.

    :param source: Descriptor selecting the series and its presentation.
    :param bundle: Raw records from the batch fetch.
    :param time_range: Normalized window.
    :returns: Dataset, or None if no points survive normalization.
    """
    data: list[NormalizedPoint]
    start, end = time_range.start, time_range.end

    if isinstance(source, AccountEquitySource):
        entity_id = str(source.entity_id)
        dataset_id = f"account-{entity_id}"
        label = source.label or f"Agent {entity_id[:8]}"
        data = equity_to_percent_change(bundle.equity.get(entity_id, []), start, end)
    elif isinstance(source, CandleHistorySource):
        ticker = str(source.ticker)
        dataset_id = f"candle-{ticker}-{source.field}"
        label = source.label or f"{ticker} ({source.field})"
        data = candles_to_percent_change(
            bundle.candles.get(ticker, []), start, end, source.field
        )
    elif isinstance(source, SentimentSource):
        entity_id = str(source.entity_id)
        dataset_id = f"sentiment-{entity_id}"
        label = source.label or f"Sentiment ({entity_id[:8]})"
        data = sentiment_to_normalized(bundle.sentiment.get(entity_id, []), start, end)
    else:
        return None

    if not data:
        return None

    source_type = DataSourceType(source.type)
    return Dataset(
        id=DatasetId(dataset_id),
        label=label,
        data=data,
        color=source.color or DEFAULT_COLORS[source_type],
        source_type=source_type,
        metadata=DatasetMetadata(
            point_count=len(data),
            first_timestamp=data[0].timestamp,
            last_timestamp=data[-1].timestamp,
        ),
    )


def create_datasets(
    sources: Sequence[DataSourceDescriptor],
    bundle: RawDataBundle,
    time_range: TimeRange,
) -> list[Dataset]:
    """Build datasets for every descriptor, dropping empty ones.

    :param sources: Descriptors in caller order.
    :param bundle: Raw records from the batch fetch.
    :param time_range: Normalized window.
    :returns: Non-empty datasets in descriptor order.
    """
    datasets = (create_dataset(source, bundle, time_range) for source in sources)
    return [dataset for dataset in datasets if dataset is not None]


def datasets_to_lines(
    datasets: Sequence[Dataset],
    axis_groups: Mapping[str, AxisGroup] | None = None,
) -> list[ChartLine]:
    """Convert datasets to renderer lines on a shared [0, 1] time axis.

    Timestamps are scaled against the global min/max across all datasets so
    every line shares one horizontal axis.

    :param datasets: Datasets to convert.
    :param axis_groups: Axis group overrides keyed by dataset id. Sentiment
        defaults to the right axis, everything else to the left.
    :returns: One line per dataset.
    """
    if not datasets:
        return []

    timestamps = [p.timestamp for d in datasets for p in d.data]
    first = min(timestamps)
    span = (max(timestamps) - first) or 1
    overrides = axis_groups or {}

    lines = []
    for dataset in datasets:
        is_sentiment = dataset.source_type == DataSourceType.SENTIMENT
        lines.append(
            ChartLine(
                id=dataset.id,
                name=dataset.label,
                color=dataset.color or DEFAULT_COLORS[dataset.source_type],
                data=[
                    LinePoint(time=(p.timestamp - first) / span, value=p.value)
                    for p in dataset.data
                ],
                axis_group=overrides.get(
                    dataset.id, DEFAULT_AXIS_GROUPS[dataset.source_type]
                ),
                format_value=format_score if is_sentiment else format_percent,
            )
        )
    return lines


__all__ = [
    "DEFAULT_COLORS",
    "DEFAULT_AXIS_GROUPS",
    "format_percent",
    "format_score",
    "create_dataset",
    "create_datasets",
    "datasets_to_lines",
]
