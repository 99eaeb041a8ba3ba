"""Tests for core type definitions."""

import pytest
from pydantic import ValidationError

from tradechart.exceptions import DataValidationError
from tradechart.types import (
    AccountEquitySource,
    CandleHistorySource,
    ChartConfig,
    ChartDataResult,
    ChartLine,
    DataSourceType,
    FetchKey,
    RawCandlePoint,
    RawDataBundle,
    SentimentSource,
    TimeRange,
    parse_source_descriptors,
)

# ---------------------------------------------------------------------------
# Time Range
# ---------------------------------------------------------------------------


def test_time_range_accepts_equal_bounds() -> None:
    """A zero-length range is valid."""
    tr = TimeRange(start=1000, end=1000)
    assert tr.start == tr.end == 1000


def test_time_range_rejects_reversed_bounds() -> None:
    """start after end should fail validation."""
    with pytest.raises(ValidationError):
        TimeRange(start=2000, end=1000)


def test_time_range_is_frozen() -> None:
    """TimeRange is immutable."""
    tr = TimeRange(start=0, end=1)
    with pytest.raises(ValidationError):
        tr.start = 5  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Source Descriptors
# ---------------------------------------------------------------------------


class TestSourceDescriptors:
    """Tests for descriptor parsing."""

    def test_parse_camel_case_keys(self) -> None:
        """entityId is accepted as the wire spelling."""
        [source] = parse_source_descriptors([{"type": "accountEquity", "entityId": "A"}])

        assert isinstance(source, AccountEquitySource)
        assert source.entity_id == "A"

    def test_parse_snake_case_keys(self) -> None:
        """entity_id is accepted as well."""
        [source] = parse_source_descriptors([{"type": "sentiment", "entity_id": "B"}])

        assert isinstance(source, SentimentSource)
        assert source.entity_id == "B"

    def test_candle_field_defaults_to_close(self) -> None:
        """Candle descriptors chart the close unless told otherwise."""
        [source] = parse_source_descriptors([{"type": "candleHistory", "ticker": "BTC"}])

        assert isinstance(source, CandleHistorySource)
        assert source.field == "close"

    def test_parse_preserves_order_and_overrides(self) -> None:
        """Descriptors keep caller order, label and color."""
        sources = parse_source_descriptors(
            [
                {"type": "candleHistory", "ticker": "ETH", "field": "high", "label": "Ether"},
                {"type": "accountEquity", "entityId": "A", "color": "#123456"},
            ]
        )

        assert [s.type for s in sources] == ["candleHistory", "accountEquity"]
        assert sources[0].label == "Ether"
        assert sources[0].field == "high"
        assert sources[1].color == "#123456"

    def test_unknown_type_raises(self) -> None:
        """An unknown discriminator is a validation error."""
        with pytest.raises(DataValidationError, match="Invalid source descriptor"):
            parse_source_descriptors([{"type": "orderBook", "ticker": "BTC"}])

    def test_invalid_candle_field_raises(self) -> None:
        """Only OHLC fields can be charted."""
        with pytest.raises(DataValidationError):
            parse_source_descriptors(
                [{"type": "candleHistory", "ticker": "BTC", "field": "volume"}]
            )

    def test_missing_entity_id_raises(self) -> None:
        """Entity sources need an id."""
        with pytest.raises(DataValidationError):
            parse_source_descriptors([{"type": "accountEquity"}])

    def test_source_type_enum_matches_discriminator(self) -> None:
        """DataSourceType values line up with descriptor type tags."""
        assert DataSourceType("accountEquity") is DataSourceType.ACCOUNT_EQUITY
        assert DataSourceType("candleHistory") is DataSourceType.CANDLE_HISTORY
        assert DataSourceType("sentiment") is DataSourceType.SENTIMENT


# ---------------------------------------------------------------------------
# Raw And Result Types
# ---------------------------------------------------------------------------


def test_raw_candle_point_accepts_mixed_types() -> None:
    """Raw points are not validated at construction."""
    candle = RawCandlePoint(timestamp="not-a-time", close="42.5", open=None)

    assert candle.timestamp == "not-a-time"
    assert candle.close == "42.5"
    assert candle.high is None


def test_raw_data_bundle_defaults_empty() -> None:
    """A bundle starts with empty maps."""
    bundle = RawDataBundle()

    assert bundle.equity == {}
    assert bundle.candles == {}
    assert bundle.sentiment == {}


def test_fetch_key_is_hashable() -> None:
    """Equal keys hash equally so they can index a cache."""
    a = FetchKey(entity_ids=("A",), tickers=("BTC",), start=0, end=1, num_buckets=50, interval="5m")
    b = FetchKey(entity_ids=("A",), tickers=("BTC",), start=0, end=1, num_buckets=50, interval="5m")

    assert a == b
    assert {a: 1}[b] == 1


def test_chart_data_result_carries_error() -> None:
    """ChartDataResult holds an arbitrary exception."""
    error = RuntimeError("boom")
    result = ChartDataResult(time_range=TimeRange(start=0, end=1), error=error)

    assert result.error is error
    assert result.datasets == []
    assert result.is_loading is False


def test_chart_line_defaults() -> None:
    """Lines default to the left axis with no formatter."""
    line = ChartLine(id="x", name="X", color="#fff")

    assert line.axis_group == "left"
    assert line.format_value is None
    assert line.data == []


def test_chart_config_defaults() -> None:
    """ChartConfig fills optional sections with defaults."""
    config = ChartConfig(
        sources=parse_source_descriptors([{"type": "candleHistory", "ticker": "BTC"}]),
        time_range=TimeRange(start=0, end=1000),
    )

    assert config.num_buckets == 50
    assert config.candle_interval == "5m"
    assert config.providers.candles == "hyperliquid"
    assert config.render.use_sample_data is False
    assert config.params_for("supabase") == {}
