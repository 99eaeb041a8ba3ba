"""Data fetching, normalization and dataset assembly module."""

from tradechart.data.assemble import create_dataset, create_datasets, datasets_to_lines
from tradechart.data.fetch import BatchFetchOrchestrator, ChartDataQuery, FetchCache
from tradechart.data.normalize import (
    candles_to_percent_change,
    equity_to_percent_change,
    filter_to_time_range,
    sentiment_to_normalized,
)
from tradechart.data.sources import (
    CandleSource,
    EquityHistorySource,
    SentimentHistorySource,
    resolve_candle_source,
    resolve_equity_source,
    resolve_sentiment_source,
    resolve_source_ids,
)
from tradechart.data.timestamps import normalize_time_range, normalize_timestamp

__all__ = [
    "normalize_timestamp",
    "normalize_time_range",
    "resolve_source_ids",
    "EquityHistorySource",
    "CandleSource",
    "SentimentHistorySource",
    "resolve_equity_source",
    "resolve_candle_source",
    "resolve_sentiment_source",
    "BatchFetchOrchestrator",
    "FetchCache",
    "ChartDataQuery",
    "filter_to_time_range",
    "equity_to_percent_change",
    "candles_to_percent_change",
    "sentiment_to_normalized",
    "create_dataset",
    "create_datasets",
    "datasets_to_lines",
]
