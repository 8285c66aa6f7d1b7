"""
Pipeline Integration Tests

Event log -> aggregate -> publish -> retrieve, through TimelineEngine.

AXIOM UNDER TEST:
=================
Nothing below the engine aborts a run. Cache and input trouble
degrade to "no keys" with a recorded error.
"""

import json
import os

import pytest

from viss_backend.contracts.base import ErrorCode, RunContext
from viss_backend.contracts.events import AuditEventType
from viss_backend.contracts.series import Metric
from viss_backend.storage import InMemoryCacheStore

from .fixtures import (
    EXPECTED_INCIDENCE, EXPECTED_INFECTIONS, EXPECTED_POPULATION, EXPECTED_PREVALENCE,
    NOISY_LINES, PUBLISHED_AT, START_POPULATION, create_engine, write_fake_simulator, write_log
)

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs /bin/sh")


# =============================================================================
# PROCESS RUN
# =============================================================================

class TestProcessRun:

    def test_publishes_reference_series(self, tmp_path, scenario_log):
        store = InMemoryCacheStore()
        engine = create_engine(tmp_path, store)

        run = engine.process_run(scenario_log, RunContext(START_POPULATION))

        assert run.error is None
        assert set(run.keys) == set(Metric)
        assert json.loads(store.get(run.keys[Metric.POPULATION])) == EXPECTED_POPULATION
        assert json.loads(store.get(run.keys[Metric.HIV_INFECTIONS])) == EXPECTED_INFECTIONS

        prevalence = json.loads(store.get(run.keys[Metric.HIV_PREVALENCE]))
        assert [p[0] for p in prevalence] == [p[0] for p in EXPECTED_PREVALENCE]
        assert [p[1] for p in prevalence] == pytest.approx([p[1] for p in EXPECTED_PREVALENCE])

        incidence = json.loads(store.get(run.keys[Metric.HIV_INCIDENCE]))
        assert [p[1] for p in incidence] == pytest.approx([p[1] for p in EXPECTED_INCIDENCE])

    def test_noise_does_not_change_series(self, tmp_path, scenario_log):
        clean_store, noisy_store = InMemoryCacheStore(), InMemoryCacheStore()
        noisy_log = write_log(tmp_path / "noisy.csv", NOISY_LINES)

        create_engine(tmp_path, clean_store).process_run(scenario_log, RunContext(START_POPULATION))
        run = create_engine(tmp_path, noisy_store).process_run(noisy_log, RunContext(START_POPULATION))

        assert clean_store.snapshot() == noisy_store.snapshot()
        assert run.ingestion_stats.malformed_lines == 3

    def test_unknown_start_population_skips_everything(self, tmp_path, scenario_log):
        store = InMemoryCacheStore()
        run = create_engine(tmp_path, store).process_run(scenario_log, RunContext())

        assert run.keys == {}
        assert run.error.code == ErrorCode.START_POPULATION_UNKNOWN
        assert store.keys() == []

    def test_missing_log(self, tmp_path):
        run = create_engine(tmp_path, InMemoryCacheStore()).process_run(
            str(tmp_path / "absent.csv"), RunContext(10)
        )
        assert run.error.code == ErrorCode.LOG_NOT_FOUND

    def test_undecodable_bytes_do_not_fail_the_pass(self, tmp_path):
        path = tmp_path / "dev_eventlog.csv"
        path.write_bytes(b"0.5,birth\n0.7,other,\xff\xfe\n1.0,birth\n")
        engine = create_engine(tmp_path, InMemoryCacheStore())

        result = engine.aggregate(str(path), RunContext(10))

        assert result.is_success
        bundle, stats = result.value
        assert bundle.population.pairs() == ((0.0, 10), (0.5, 11), (1.0, 12))
        assert stats.malformed_lines == 1

    def test_cache_down_still_aggregates(self, tmp_path, scenario_log):
        engine = create_engine(tmp_path)  # no store registered: every endpoint fails

        run = engine.process_run(scenario_log, RunContext(START_POPULATION))

        assert run.bundle is not None
        assert run.keys == {}
        assert run.publish.errors[0].code == ErrorCode.CACHE_UNREACHABLE
        assert engine.get_metrics().total("cache_failures_total") == 1

    def test_retrieval_round_trip(self, tmp_path, scenario_log):
        engine = create_engine(tmp_path, InMemoryCacheStore())
        run = engine.process_run(scenario_log, RunContext(START_POPULATION, seed=3))

        latest = engine.get_latest_timeline(Metric.POPULATION)
        by_key = engine.get_timeline(run.keys[Metric.POPULATION])

        assert latest.value == by_key.value
        assert run.keys[Metric.POPULATION] == f"population:timeline:{PUBLISHED_AT}:seed:3"


# =============================================================================
# SIMULATION RUN
# =============================================================================

@posix_only
class TestRunSimulation:

    def test_end_to_end(self, tmp_path):
        store = InMemoryCacheStore()
        engine = create_engine(tmp_path, store, executable=write_fake_simulator(tmp_path))

        result = engine.run_simulation(men=250, women=250, sim_time=3, seed=11)

        assert result.success
        assert result.config_updated
        assert result.stats.start_population == START_POPULATION
        assert result.stats.length_of_time == 2.0
        assert "seed: 11" in result.report.output
        assert result.timelines.keys[Metric.POPULATION] == \
            f"population:timeline:{PUBLISHED_AT}:seed:11"
        latest = store.get("population:timeline:latest")
        assert json.loads(store.get(latest)) == EXPECTED_POPULATION

        config_text = (tmp_path / "test_config1.txt").read_text()
        assert "population.nummen = 250" in config_text
        assert "population.simtime = 3" in config_text

    def test_report_without_start_population_publishes_nothing(self, tmp_path):
        script = tmp_path / "quiet_sim.sh"
        script.write_text("#!/bin/sh\necho crashed early\nexit 1\n")
        script.chmod(0o755)
        store = InMemoryCacheStore()
        engine = create_engine(tmp_path, store, executable=str(script))

        result = engine.run_simulation()

        assert result.success
        assert result.report.return_code == 1
        assert result.timelines.error.code == ErrorCode.START_POPULATION_UNKNOWN
        assert result.timelines.keys == {}
        assert not result.config_updated
        assert store.keys() == []

    def test_missing_simulator(self, tmp_path):
        engine = create_engine(tmp_path, InMemoryCacheStore(), executable=str(tmp_path / "nope"))

        result = engine.run_simulation(men=1)

        assert not result.success
        assert result.error.code == ErrorCode.SIMULATOR_FAILED
        assert result.report is None
        assert engine.observability_layer.get_errors()


# =============================================================================
# OBSERVABILITY
# =============================================================================

class TestAuditTrail:

    def test_layers_report_into_one_log(self, tmp_path, scenario_log):
        engine = create_engine(tmp_path, InMemoryCacheStore())
        engine.process_run(scenario_log, RunContext(START_POPULATION))

        layers = {e.layer for e in engine.get_audit_log()}
        assert {"ingestion", "temporal", "storage"} <= layers

        actions = [e.action for e in engine.get_audit_log(["storage"])]
        assert actions.count("series_written") == 4
        assert actions.count("pointer_moved") == 4

    def test_publish_skip_is_an_error_entry(self, tmp_path, scenario_log):
        engine = create_engine(tmp_path)
        engine.process_run(scenario_log, RunContext(START_POPULATION))

        errors = engine.observability_layer.get_errors()
        assert [e.action for e in errors] == ["publish_skipped"]
        assert errors[0].event_type == AuditEventType.ERROR

    def test_metrics_recorded(self, tmp_path, scenario_log):
        engine = create_engine(tmp_path, InMemoryCacheStore())
        engine.process_run(scenario_log, RunContext(START_POPULATION))

        metrics = engine.get_metrics()
        assert metrics.total("log_lines_read_total") == 3
        assert metrics.total("events_applied_total") == 3
        assert metrics.total("cache_writes_total") == 4
        assert metrics.get_latest("aggregation_duration_ms") is not None

    def test_audit_report(self, tmp_path, scenario_log):
        engine = create_engine(tmp_path, InMemoryCacheStore())
        engine.process_run(scenario_log, RunContext(START_POPULATION))

        report = engine.get_audit_report()
        assert report["total_entries"] == len(engine.get_audit_log())
        assert report["by_layer"]["storage"] == 8

    def test_recorded_labels_match_definitions(self, tmp_path, scenario_log):
        """Every point carries exactly the label names its metric declares."""
        engine = create_engine(tmp_path)
        engine.process_run(scenario_log, RunContext(START_POPULATION))

        metrics = engine.get_metrics()
        names = ("log_lines_read_total", "events_applied_total",
                 "cache_writes_total", "cache_failures_total")
        for name in names:
            declared = metrics.get_definition(name).labels
            for point in metrics.get_metric(name):
                assert tuple(label for label, _ in point.labels) == tuple(sorted(declared))
