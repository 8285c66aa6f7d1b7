"""
Temporal Layer

RESPONSIBILITY: Single-pass aggregation of event records into time series
ALLOWED INPUTS: EventRecord streams (from ingestion) and a start population
OUTPUTS: TrackerSnapshot, TimelineBundle

WHAT THIS LAYER MUST NOT DO:
============================
- Read files or talk to the cache
- Re-sort, re-read or buffer the record stream
- Share state between passes
"""

from .registry import HivRegistry
from .tracker import (
    MODEL_EPOCH_YEAR, TrackerConfig, TrackerSnapshot, YearSummary,
    RunningAggregateTracker, aggregate
)
from .timeline import TimelineBuilder

__all__ = [
    "HivRegistry",
    "MODEL_EPOCH_YEAR",
    "TrackerConfig",
    "TrackerSnapshot",
    "YearSummary",
    "RunningAggregateTracker",
    "aggregate",
    "TimelineBuilder",
]
