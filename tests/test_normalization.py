"""Tests for provider payload normalization."""
import pytest

from app.normalization import (
    calculate_volatility, normalize_date, parse_flare_class, transform_flare_events
)
from tests.factories import unix


class TestParseFlareClass:
    @pytest.mark.parametrize("class_type,expected", [
        ("M2.5", 2.5),
        ("X1.0", 10.0),
        ("C5", 0.5),
        ("x2", 20.0),
    ])
    def test_known_classes(self, class_type, expected):
        assert parse_flare_class(class_type) == pytest.approx(expected)

    @pytest.mark.parametrize("class_type", ["B1.0", "M", "", None, 5, "M2.5a"])
    def test_rejects_unparseable(self, class_type):
        with pytest.raises(ValueError):
            parse_flare_class(class_type)


class TestNormalizeDate:
    def test_utc_date(self):
        assert normalize_date("2024-01-01T10:15Z") == "2024-01-01"

    def test_offset_converted_to_utc(self):
        assert normalize_date("2024-01-01T23:30:00-02:00") == "2024-01-02"

    @pytest.mark.parametrize("value", ["not a date", "", None])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            normalize_date(value)


class TestTransformFlareEvents:
    def test_skips_malformed_events(self, flare_events):
        records = transform_flare_events(flare_events)

        assert [r.date for r in records] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert [r.intensity for r in records] == pytest.approx([2.5, 10.0, 0.5])
        assert records[0].class_label == "M2.5"
        assert records[0].peak_time == "2024-01-01T10:15Z"

    def test_source_region_only_when_present(self, flare_events):
        records = transform_flare_events(flare_events)

        assert records[0].source_region == 13536
        assert records[1].source_region is None
        assert records[2].source_region is None

    def test_empty(self):
        assert transform_flare_events([]) == []
        assert transform_flare_events(None) == []


class TestCalculateVolatility:
    def test_intraday_and_day_change(self, stock_quotes):
        records = calculate_volatility(stock_quotes)

        assert [r.date for r in records] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        # intraday 4%
        assert records[0].volatility == pytest.approx(4.0)
        # day change 10% beats intraday 1.8%
        assert records[1].volatility == pytest.approx(10.0)
        # flat close, intraday 2/110
        assert records[2].volatility == pytest.approx(200 / 110)
        assert records[1].volume == 1200
        assert records[1].high == 111

    def test_zero_close_never_divides(self):
        quotes = [
            {"timestamp": unix("2024-01-01"), "open": 0, "high": 0, "low": 0, "close": 0, "volume": 0},
            {"timestamp": unix("2024-01-02"), "open": 1, "high": 1, "low": 1, "close": 1, "volume": 5},
        ]
        assert [r.volatility for r in calculate_volatility(quotes)] == [0, 0]

    def test_empty(self):
        assert calculate_volatility([]) == []

    def test_malformed_quote_skipped_without_dropping_batch(self, stock_quotes):
        stock_quotes[1]["close"] = None
        del stock_quotes[2]["volume"]
        stock_quotes.append(
            {"timestamp": unix("2024-01-04"), "open": 100, "high": 121, "low": 119, "close": 120, "volume": 800}
        )

        records = calculate_volatility(stock_quotes)

        assert [r.date for r in records] == ["2024-01-01", "2024-01-04"]
        # day change measured against the last usable close (100)
        assert records[1].volatility == pytest.approx(20.0)

    def test_non_finite_close_skipped(self):
        quotes = [
            {"timestamp": unix("2024-01-01"), "open": 1, "high": 1, "low": 1, "close": float("nan"), "volume": 5},
            {"timestamp": unix("2024-01-02"), "open": 2, "high": 2, "low": 2, "close": 2, "volume": 5},
        ]
        records = calculate_volatility(quotes)
        assert [r.date for r in records] == ["2024-01-02"]
        assert records[0].volatility == 0
