"""Tests for the temporal merge."""
import math

from app.data_transform import merge_datasets
from app.models import ComposedRecord
from tests.factories import flare, market


class TestMergeDatasets:
    def test_aligned_days(self):
        flares = [flare("2024-01-01", 2.5), flare("2024-01-02", 3.0)]
        stocks = [market("2024-01-01", 0.5, 1000), market("2024-01-02", 0.6, 1200)]

        assert merge_datasets(flares, stocks) == [
            ComposedRecord(date="2024-01-01", flare=2.5, volatility=0.5, trades=1000),
            ComposedRecord(date="2024-01-02", flare=3.0, volatility=0.6, trades=1200),
        ]

    def test_intersection_not_union(self):
        flares = [flare("2024-01-01", 1), flare("2024-01-02", 2), flare("2024-01-04", 4)]
        stocks = [market("2024-01-02", 1), market("2024-01-03", 1), market("2024-01-04", 1)]

        result = merge_datasets(flares, stocks)

        assert [r.date for r in result] == ["2024-01-02", "2024-01-04"]
        assert len(result) <= min(len(flares), len(stocks))

    def test_output_sorted_by_date(self):
        flares = [flare("2024-01-03", 3), flare("2024-01-01", 1), flare("2024-01-02", 2)]
        stocks = [market("2024-01-02", 1), market("2024-01-03", 1), market("2024-01-01", 1)]

        dates = [r.date for r in merge_datasets(flares, stocks)]
        assert dates == sorted(dates)
        assert len(set(dates)) == len(dates)

    def test_first_occurrence_wins(self):
        flares = [flare("2024-01-01", 1.5), flare("2024-01-01", 9.0)]
        stocks = [market("2024-01-01", 0.4), market("2024-01-01", 7.0)]

        result = merge_datasets(flares, stocks)

        assert len(result) == 1
        assert result[0].flare == 1.5
        assert result[0].volatility == 0.4

    def test_nan_flare_drops_exactly_one_day(self):
        stocks = [market(f"2024-01-0{d}", 1) for d in (1, 2, 3)]
        valid = [flare(f"2024-01-0{d}", d) for d in (1, 2, 3)]
        with_nan = [flare("2024-01-01", 1), flare("2024-01-02", math.nan), flare("2024-01-03", 3)]

        assert len(merge_datasets(with_nan, stocks)) == len(merge_datasets(valid, stocks)) - 1

    def test_invalid_market_fields_dropped(self):
        flares = [flare("2024-01-01", 1), flare("2024-01-02", 2)]
        stocks = [market("2024-01-01", math.inf), market("2024-01-02", 1, volume=None)]

        assert merge_datasets(flares, stocks) == []

    def test_records_without_date_skipped(self):
        flares = [flare("", 1), flare("2024-01-02", 2), None]
        stocks = [market("", 1), market("2024-01-02", 1)]

        assert [r.date for r in merge_datasets(flares, stocks)] == ["2024-01-02"]

    def test_empty_inputs(self):
        stocks = [market("2024-01-01", 1)]
        flares = [flare("2024-01-01", 1)]

        assert merge_datasets([], stocks) == []
        assert merge_datasets(flares, []) == []
        assert merge_datasets(None, stocks) == []
