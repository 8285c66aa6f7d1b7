"""
Series Contracts

Output types of the temporal layer and input types of the storage layer.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union

from .base import Error


Number = Union[int, float]


class Metric(Enum):
    """
    Published metrics.

    The value is the cache key token (colon-separated, case-sensitive).
    """
    POPULATION = "population"
    HIV_INFECTIONS = "hiv:infections"
    HIV_PREVALENCE = "hiv:prevalence"
    HIV_INCIDENCE = "hiv:incidence"

    @property
    def route_name(self) -> str:
        """URL-safe name used by the HTTP layer (e.g. hiv_infections)."""
        return self.value.replace(":", "_")

    @staticmethod
    def from_route_name(name: str) -> Optional[Metric]:
        for metric in Metric:
            if metric.route_name == name:
                return metric
        return None


@dataclass(frozen=True)
class TimelinePoint:
    """One (time, value) sample. time is simulation years since epoch."""
    time: float
    value: Number

    def as_pair(self) -> Tuple[float, Number]:
        return (self.time, self.value)


@dataclass(frozen=True)
class TimeSeries:
    """
    Ordered, immutable sequence of points.

    Order is insertion order from the scan. Points are never
    sorted or deduplicated, duplicate times are legal.
    """
    metric: Metric
    points: Tuple[TimelinePoint, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[TimelinePoint]:
        return iter(self.points)

    def pairs(self) -> Tuple[Tuple[float, Number], ...]:
        return tuple(p.as_pair() for p in self.points)


@dataclass(frozen=True)
class TimelineBundle:
    """The four series produced by one aggregation pass."""
    population: TimeSeries
    infections: TimeSeries
    prevalence: TimeSeries
    incidence: TimeSeries

    def by_metric(self) -> Dict[Metric, TimeSeries]:
        return {
            Metric.POPULATION: self.population,
            Metric.HIV_INFECTIONS: self.infections,
            Metric.HIV_PREVALENCE: self.prevalence,
            Metric.HIV_INCIDENCE: self.incidence,
        }


@dataclass(frozen=True)
class PublishResult:
    """
    Outcome of one publish attempt.

    keys holds only the metrics whose concrete write succeeded.
    An unreachable cache yields empty keys and a single error.
    """
    keys: Tuple[Tuple[Metric, str], ...] = field(default_factory=tuple)
    errors: Tuple[Error, ...] = field(default_factory=tuple)
    endpoint: Optional[str] = None

    @property
    def published(self) -> bool:
        return bool(self.keys)

    def key_for(self, metric: Metric) -> Optional[str]:
        for m, key in self.keys:
            if m == metric:
                return key
        return None
