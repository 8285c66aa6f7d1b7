"""
Timeline Builder
================

Reshape a TrackerSnapshot into the four public series.

Population, infections and prevalence are already in final form after
the scan. Incidence is derived afterwards in its own pass over the year
buckets, and years with no population at their start are left out
instead of being reported as zero.
"""

from __future__ import annotations
from typing import Tuple

from ..contracts.series import Metric, TimeSeries, TimelineBundle, TimelinePoint
from .tracker import TrackerSnapshot


class TimelineBuilder:
    """Stateless: build() may be called on any number of snapshots."""

    def build(self, snapshot: TrackerSnapshot) -> TimelineBundle:
        return TimelineBundle(
            population=TimeSeries(Metric.POPULATION, snapshot.population_points),
            infections=TimeSeries(Metric.HIV_INFECTIONS, snapshot.infection_points),
            prevalence=TimeSeries(Metric.HIV_PREVALENCE, snapshot.prevalence_points),
            incidence=TimeSeries(Metric.HIV_INCIDENCE, self.incidence_points(snapshot))
        )

    @staticmethod
    def incidence_points(snapshot: TrackerSnapshot) -> Tuple[TimelinePoint, ...]:
        points = []
        for bucket in sorted(snapshot.years, key=lambda y: y.year):
            start = bucket.population_at_year_start
            if start <= 0:
                continue
            points.append(TimelinePoint(
                time=float(bucket.year - snapshot.epoch_year),
                value=100.0 * bucket.infections / start
            ))
        return tuple(points)
