"""
Series Serialization Tests

The cache body format is a JSON array of [time, value] pairs.
"""

import json

import pytest

from viss_backend.contracts.series import Metric, TimeSeries, TimelinePoint
from viss_backend.domain.serialization import parse_series, parse_time_series, serialize_series


class TestSerializeSeries:

    def test_compact_pairs_in_order(self):
        series = TimeSeries(Metric.POPULATION, (TimelinePoint(0.0, 500), TimelinePoint(0.5, 501)))
        assert serialize_series(series) == "[[0.0,500],[0.5,501]]"

    def test_empty_series(self):
        assert serialize_series(TimeSeries(Metric.HIV_INCIDENCE)) == "[]"

    def test_float_values_round_trip_exactly(self):
        value = 100.0 / 501
        text = serialize_series(TimeSeries(Metric.HIV_PREVALENCE, (TimelinePoint(1.2, value),)))
        assert json.loads(text)[0][1] == value

    def test_duplicate_times_kept(self):
        series = TimeSeries(Metric.POPULATION, (TimelinePoint(1.0, 1), TimelinePoint(1.0, 2)))
        assert serialize_series(series) == "[[1.0,1],[1.0,2]]"

    def test_nan_rejected(self):
        series = TimeSeries(Metric.HIV_PREVALENCE, (TimelinePoint(0.0, float("nan")),))
        with pytest.raises(ValueError):
            serialize_series(series)


class TestParseSeries:

    def test_reads_pairs(self):
        assert parse_series("[[0.0,500],[0.5,501]]") == ((0.0, 500), (0.5, 501))

    def test_integer_times_become_floats(self):
        time, _ = parse_series("[[1,2]]")[0]
        assert isinstance(time, float)

    def test_typed_parse(self):
        series = parse_time_series("[[0.0,0]]", Metric.HIV_INFECTIONS)
        assert series.metric == Metric.HIV_INFECTIONS
        assert series.points == (TimelinePoint(0.0, 0),)

    @pytest.mark.parametrize("text", [
        '{"a": 1}',
        "[[1.0]]",
        "[[1.0,2,3]]",
        '[[1.0,"x"]]',
        "[[true,1]]",
        "[1.0]",
    ])
    def test_rejects_non_series(self, text):
        with pytest.raises(ValueError):
            parse_series(text)
