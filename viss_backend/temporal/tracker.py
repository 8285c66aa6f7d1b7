"""
Running Aggregate Tracker
=========================

Single forward pass over event records.

INVARIANTS:
- One tracker per pass, all state is local to the instance
- Records are applied in arrival order, never re-sorted
- Every series starts with a point at time 0.0 built from pre-scan state
- Year buckets snapshot population BEFORE the opening event's delta
- Prevalence is total: 0 when population is 0, clamped to [0, 100]
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import math

from ..contracts.events import (
    EventRecord, BirthEvent, MortalityEvent, TransmissionEvent,
    IgnoredEvent
)
from ..contracts.series import Number, TimelinePoint
from .registry import HivRegistry


MODEL_EPOCH_YEAR = 1980  # calendar year of simulation time 0.0


@dataclass
class TrackerConfig:
    """Configuration for the aggregate tracker."""
    epoch_year: int = MODEL_EPOCH_YEAR


# =============================================================================
# YEAR BUCKETS
# =============================================================================

@dataclass
class YearBucket:
    """Mutable per-year accumulator used during the scan."""
    year: int
    population_at_year_start: int
    infections: int = 0


@dataclass(frozen=True)
class YearSummary:
    """Frozen view of a YearBucket once the pass is over."""
    year: int
    population_at_year_start: int
    infections: int


# =============================================================================
# PASS RESULT
# =============================================================================

@dataclass(frozen=True)
class TrackerSnapshot:
    """
    Everything the Timeline Builder needs from one pass.

    Point tuples are in scan order; years are in first-encounter order.
    """
    epoch_year: int
    start_population: int
    final_population: int
    cumulative_infections: int
    population_points: Tuple[TimelinePoint, ...]
    infection_points: Tuple[TimelinePoint, ...]
    prevalence_points: Tuple[TimelinePoint, ...]
    years: Tuple[YearSummary, ...]
    positive_individuals: FrozenSet[str] = field(default_factory=frozenset)
    records_applied: int = 0
    ignored_records: int = 0
    ignored_removals: int = 0
    out_of_order_records: int = 0


# =============================================================================
# TRACKER
# =============================================================================

class RunningAggregateTracker:
    """
    Owns the evolving aggregates of one pass.

    Population, cumulative infections, the HIV registry and the
    year buckets all live here and nowhere else.
    """

    def __init__(self, start_population: int, config: Optional[TrackerConfig] = None):
        if start_population < 0:
            raise ValueError("start_population must be >= 0")

        self._config = config or TrackerConfig()
        self._start_population = start_population

        self._population = start_population
        self._cumulative_infections = 0
        self._registry = HivRegistry()
        self._buckets: Dict[int, YearBucket] = {}

        self._population_points: List[TimelinePoint] = []
        self._infection_points: List[TimelinePoint] = []
        self._prevalence_points: List[TimelinePoint] = []

        self._records_applied = 0
        self._ignored_records = 0
        self._out_of_order = 0
        self._last_time: Optional[float] = None

        # Pre-scan points at t=0
        self._population_points.append(TimelinePoint(0.0, self._population))
        self._infection_points.append(TimelinePoint(0.0, self._cumulative_infections))
        self._prevalence_points.append(TimelinePoint(0.0, self.prevalence()))

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def population(self) -> int:
        return self._population

    @property
    def cumulative_infections(self) -> int:
        return self._cumulative_infections

    @property
    def registry(self) -> HivRegistry:
        return self._registry

    def year_of(self, time: float) -> int:
        return int(math.floor(self._config.epoch_year + time))

    def prevalence(self) -> float:
        """Percent of the current population that is HIV-positive."""
        if self._population <= 0:
            return 0.0
        value = 100.0 * len(self._registry) / self._population
        return min(100.0, max(0.0, value))

    # -------------------------------------------------------------------------
    # Scan
    # -------------------------------------------------------------------------

    def apply(self, record: EventRecord):
        """Apply one record. Order of the steps below is significant."""
        time = record.time

        if self._last_time is not None and time < self._last_time:
            self._out_of_order += 1
        self._last_time = time

        bucket = self._open_bucket(time)

        if isinstance(record, IgnoredEvent):
            self._ignored_records += 1
            return

        self._records_applied += 1

        if isinstance(record, BirthEvent):
            self._population += 1
            self._append(self._population_points, time, self._population)

        elif isinstance(record, MortalityEvent):
            self._population -= 1
            self._registry.remove(record.individual_id)
            self._append(self._population_points, time, self._population)

        elif isinstance(record, TransmissionEvent):
            self._cumulative_infections += 1
            bucket.infections += 1
            self._registry.insert(record.recipient_id)
            self._append(self._infection_points, time, self._cumulative_infections)

        self._append(self._prevalence_points, time, self.prevalence())

    def consume(self, records: Iterable[EventRecord]) -> TrackerSnapshot:
        for record in records:
            self.apply(record)
        return self.snapshot()

    def snapshot(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            epoch_year=self._config.epoch_year,
            start_population=self._start_population,
            final_population=self._population,
            cumulative_infections=self._cumulative_infections,
            population_points=tuple(self._population_points),
            infection_points=tuple(self._infection_points),
            prevalence_points=tuple(self._prevalence_points),
            years=tuple(
                YearSummary(
                    year=b.year,
                    population_at_year_start=b.population_at_year_start,
                    infections=b.infections
                )
                for b in self._buckets.values()
            ),
            positive_individuals=self._registry.frozen(),
            records_applied=self._records_applied,
            ignored_records=self._ignored_records,
            ignored_removals=self._registry.ignored_removals,
            out_of_order_records=self._out_of_order
        )

    def _open_bucket(self, time: float) -> YearBucket:
        year = self.year_of(time)
        bucket = self._buckets.get(year)
        if bucket is None:
            bucket = YearBucket(year=year, population_at_year_start=self._population)
            self._buckets[year] = bucket
        return bucket

    @staticmethod
    def _append(points: List[TimelinePoint], time: float, value: Number):
        points.append(TimelinePoint(time, value))


def aggregate(
    records: Iterable[EventRecord],
    start_population: int,
    config: Optional[TrackerConfig] = None
) -> TrackerSnapshot:
    """Run one pass with a fresh tracker and return its snapshot."""
    return RunningAggregateTracker(start_population, config).consume(records)
