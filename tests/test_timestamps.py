"""Tests for timestamp normalization."""

from datetime import date, datetime, timedelta, timezone

import pytest

from tradechart.data.timestamps import normalize_time_range, normalize_timestamp, to_iso
from tradechart.exceptions import TimeRangeError


class TestNormalizeTimestamp:
    """Tests for normalize_timestamp."""

    @pytest.mark.parametrize("seconds", [0, 1, 1_700_000_000, 999_999_999_999])
    def test_seconds_are_scaled(self, seconds: int) -> None:
        """Numbers below 1e12 are epoch seconds."""
        assert normalize_timestamp(seconds) == seconds * 1000

    @pytest.mark.parametrize("millis", [1_000_000_000_000, 1_700_000_000_000])
    def test_milliseconds_pass_through(self, millis: int) -> None:
        """Numbers at or above 1e12 are already milliseconds."""
        assert normalize_timestamp(millis) == millis

    def test_fractional_seconds_round_to_ms(self) -> None:
        """Fractional seconds keep millisecond precision."""
        assert normalize_timestamp(1.5) == 1500

    def test_iso_string_with_z(self) -> None:
        """ISO strings parse like standard date parsing."""
        expected = int(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc).timestamp() * 1000)
        assert normalize_timestamp("2024-01-15T10:30:00Z") == expected

    def test_iso_string_with_offset(self) -> None:
        """Offsets are honored."""
        assert normalize_timestamp("2024-01-15T12:30:00+02:00") == normalize_timestamp(
            "2024-01-15T10:30:00Z"
        )

    def test_iso_string_without_offset_is_utc(self) -> None:
        """Offset-less strings are read as UTC."""
        assert normalize_timestamp("2024-01-15T10:30:00") == normalize_timestamp(
            "2024-01-15T10:30:00Z"
        )

    def test_iso_string_with_trimmed_fraction(self) -> None:
        """Fractions with trailing zeros trimmed still parse."""
        assert normalize_timestamp("2024-01-15T10:30:00.12345Z") == normalize_timestamp(
            "2024-01-15T10:30:00.123Z"
        )
        assert normalize_timestamp("2024-01-15T10:30:00.5+00:00") == normalize_timestamp(
            "2024-01-15T10:30:00.500Z"
        )

    def test_numeric_string(self) -> None:
        """Numeric strings follow the numeric rules."""
        assert normalize_timestamp("1700000000") == 1_700_000_000_000
        assert normalize_timestamp("1700000000000") == 1_700_000_000_000

    def test_aware_datetime(self) -> None:
        """Aware datetimes convert exactly."""
        dt = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=7)
        assert normalize_timestamp(dt) == 1_704_067_200_007

    def test_naive_datetime_is_utc(self) -> None:
        """Naive datetimes are read as UTC."""
        assert normalize_timestamp(datetime(2024, 1, 1)) == 1_704_067_200_000

    def test_date_is_midnight_utc(self) -> None:
        """Dates map to midnight UTC."""
        assert normalize_timestamp(date(2024, 1, 1)) == 1_704_067_200_000

    @pytest.mark.parametrize(
        "value",
        ["not-a-date", "", "   ", None, True, float("nan"), float("inf"), [1, 2], {}],
    )
    def test_unparseable_returns_none(self, value: object) -> None:
        """Anything unparseable or non-finite yields None."""
        assert normalize_timestamp(value) is None


class TestNormalizeTimeRange:
    """Tests for normalize_time_range."""

    def test_mixed_inputs(self) -> None:
        """Each end is normalized independently."""
        tr = normalize_time_range(1_700_000_000, "2023-11-14T22:13:21Z")

        assert tr.start == 1_700_000_000_000
        assert tr.end == 1_700_000_001_000

    def test_equal_bounds_allowed(self) -> None:
        """start == end is a valid range."""
        tr = normalize_time_range(1000, 1000)
        assert tr.start == tr.end

    def test_reversed_range_raises(self) -> None:
        """start after end is a hard error."""
        with pytest.raises(TimeRangeError, match="after end"):
            normalize_time_range(2000, 1000)

    @pytest.mark.parametrize("end", [1e20, -1e20, "1e20"])
    def test_unrepresentable_bound_raises(self, end: object) -> None:
        """Bounds beyond the datetime range are rejected up front."""
        with pytest.raises(TimeRangeError, match="Invalid time range"):
            normalize_time_range(0, end)

    def test_unparseable_bound_raises(self) -> None:
        """An unparseable bound is a hard error."""
        with pytest.raises(TimeRangeError, match="Invalid time range"):
            normalize_time_range("garbage", 1000)


def test_to_iso_formats_utc_milliseconds() -> None:
    """to_iso renders millisecond UTC timestamps with a Z suffix."""
    assert to_iso(1_704_067_200_007) == "2024-01-01T00:00:00.007Z"
    assert to_iso(0) == "1970-01-01T00:00:00.000Z"


def test_to_iso_accepts_any_normalized_bound() -> None:
    """Every normalized bound can be formatted."""
    tr = normalize_time_range(-62_000_000_000, 253_000_000_000_000)

    assert to_iso(tr.start).startswith("0005-")
    assert to_iso(tr.end).startswith("9987-")
