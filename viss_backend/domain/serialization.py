import json
from typing import Any, Tuple, Union

from ..contracts.series import Metric, Number, TimeSeries, TimelinePoint


PairSequence = Tuple[Tuple[float, Number], ...]


class TimelineEncoder(json.JSONEncoder):
    """
    JSON Encoder that prioritizes Fidelity over Flexibility.

    RULES:
    1. A TimeSeries becomes an array of [time, value] pairs, in order.
    2. A TimelinePoint becomes a 2-element array.
    3. Numbers keep Python's default float/int text form (repr round-trips).
    4. NaN / Infinity are rejected (allow_nan=False at the call site).
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, TimeSeries):
            return [[p.time, p.value] for p in obj.points]
        if isinstance(obj, TimelinePoint):
            return [obj.time, obj.value]
        return super().default(obj)


def serialize_series(series: Union[TimeSeries, PairSequence]) -> str:
    """Render '[[t0,v0],[t1,v1],...]', or '[]' for an empty series."""
    return json.dumps(
        series,
        cls=TimelineEncoder,
        separators=(",", ":"),
        allow_nan=False
    )


def parse_series(text: str) -> PairSequence:
    """
    Inverse of serialize_series.

    Raises ValueError when the text is not an array of numeric pairs.
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("series must be a JSON array")

    pairs = []
    for index, item in enumerate(data):
        if not isinstance(item, list) or len(item) != 2:
            raise ValueError(f"series item {index} is not a [time, value] pair")
        time, value = item
        if not _is_number(time) or not _is_number(value):
            raise ValueError(f"series item {index} has a non-numeric member")
        pairs.append((float(time), value))
    return tuple(pairs)


def parse_time_series(text: str, metric: Metric) -> TimeSeries:
    return TimeSeries(
        metric=metric,
        points=tuple(TimelinePoint(t, v) for t, v in parse_series(text))
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
