"""
Property Tests for Timeline Invariants
Verifies the single-pass aggregation rules over generated event streams.
"""

from hypothesis import given, strategies as st
from hypothesis.strategies import composite

from viss_backend.contracts.events import (
    BirthEvent, EventKind, IgnoredEvent, MortalityEvent, TransmissionEvent
)
from viss_backend.contracts.series import Metric, TimeSeries, TimelinePoint
from viss_backend.domain.serialization import parse_series, serialize_series
from viss_backend.temporal import TimelineBuilder, aggregate

# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

IDS = st.sampled_from(["A1", "B1", "C1", "D1", "E1", None])
finite_floats = st.floats(allow_nan=False, allow_infinity=False, width=64)


@composite
def event_records(draw, time):
    """One record of any kind at the given time."""
    kind = draw(st.sampled_from(["birth", "normalmortality", "aidsmortality", "transmission", "other"]))

    if kind == "birth":
        return BirthEvent(time=time)
    if kind == "transmission":
        return TransmissionEvent(time=time, source_id=draw(IDS), recipient_id=draw(IDS))
    if kind == "other":
        return IgnoredEvent(time=time, raw_kind="relationshipformed")
    return MortalityEvent(time=time, kind=EventKind(kind), individual_id=draw(IDS))


@composite
def event_streams(draw, max_size=60):
    """Time-ordered record streams, as the simulator writes them."""
    gaps = draw(st.lists(st.floats(min_value=0.0, max_value=1.5), max_size=max_size))
    records = []
    time = 0.0
    for gap in gaps:
        time += gap
        records.append(draw(event_records(time)))
    return records


@composite
def births_only(draw):
    times = sorted(draw(st.lists(st.floats(min_value=0.0, max_value=40.0), max_size=40)))
    return [BirthEvent(time=t) for t in times]


@composite
def time_series(draw):
    values = st.one_of(st.integers(min_value=-10**6, max_value=10**6), finite_floats)
    points = draw(st.lists(st.tuples(finite_floats, values), max_size=30))
    return TimeSeries(Metric.POPULATION, tuple(TimelinePoint(t, v) for t, v in points))


start_populations = st.integers(min_value=0, max_value=50)


# =============================================================================
# PROPERTY TESTS
# =============================================================================

@given(time_series())
def test_serialize_parse_round_trip(series):
    """Serialized series parse back to the same pairs, in order."""
    parsed = parse_series(serialize_series(series))
    assert parsed == tuple((float(p.time), p.value) for p in series.points)


@given(event_streams(), start_populations)
def test_prevalence_stays_within_bounds(records, start):
    """Prevalence is a percentage for every emitted point."""
    snapshot = aggregate(records, start)
    for point in snapshot.prevalence_points:
        assert 0.0 <= point.value <= 100.0


@given(event_streams(), start_populations)
def test_every_series_opens_at_time_zero(records, start):
    """Pre-scan state is emitted before any record is applied."""
    snapshot = aggregate(records, start)
    assert snapshot.population_points[0] == TimelinePoint(0.0, start)
    assert snapshot.infection_points[0] == TimelinePoint(0.0, 0)
    assert snapshot.prevalence_points[0] == TimelinePoint(0.0, 0.0)


@given(births_only(), start_populations)
def test_births_only_population_is_monotone(records, start):
    """With births only, population never decreases and prevalence stays 0."""
    snapshot = aggregate(records, start)
    values = [p.value for p in snapshot.population_points]

    assert values == sorted(values)
    assert values[-1] == start + len(records)
    assert all(p.value == 0.0 for p in snapshot.prevalence_points)


@given(event_streams(), start_populations)
def test_registry_membership_window(records, start):
    """An id is positive from its infection until its next death, and only then."""
    expected = set()
    for record in records:
        if isinstance(record, TransmissionEvent) and record.recipient_id:
            expected.add(record.recipient_id)
        elif isinstance(record, MortalityEvent) and record.individual_id:
            expected.discard(record.individual_id)

    snapshot = aggregate(records, start)
    assert snapshot.positive_individuals == frozenset(expected)


@given(event_streams(), start_populations)
def test_cumulative_infections_count_every_transmission(records, start):
    snapshot = aggregate(records, start)
    transmissions = sum(isinstance(r, TransmissionEvent) for r in records)

    assert snapshot.cumulative_infections == transmissions
    assert len(snapshot.infection_points) == transmissions + 1


@given(event_streams(), start_populations)
def test_incidence_omits_years_without_population(records, start):
    """One incidence point per year whose start population is positive."""
    snapshot = aggregate(records, start)
    incidence = TimelineBuilder().build(snapshot).incidence

    populated = sorted(y.year for y in snapshot.years if y.population_at_year_start > 0)
    assert [p.time for p in incidence] == [float(year - snapshot.epoch_year) for year in populated]
