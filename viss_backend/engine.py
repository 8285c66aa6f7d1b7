"""
Engine Orchestration Module

This module provides the unified interface for coordinating all
backend layers while maintaining strict boundary separation.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. Engine orchestrates flow without creating coupling
3. All operations are traceable through observability
4. No shared mutable state between aggregation passes
5. Nothing below the engine aborts a run: failures degrade to
   "stage skipped" and are recorded as Error values
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import threading
import time

from .contracts.base import Error, ErrorCode, Result, RunContext
from .contracts.events import AuditLogEntry
from .contracts.series import Metric, PublishResult, TimelineBundle
from .ingestion import EventLogReader, IngestionConfig, IngestionStats
from .temporal import RunningAggregateTracker, TimelineBuilder, TrackerConfig
from .storage import CacheConfig, CacheConnector
from .storage.publisher import CachePublisher
from .storage.resolver import RetrievalResolver
from .simulation import (
    SimulationConfig, SimulationReport, SimulatorRunner, ReportStats,
    parse_report, rewrite_config, updates_for
)
from .observability import ObservabilityEngine, ObservabilityConfig


@dataclass
class EngineConfig:
    """Unified configuration for the entire backend."""
    ingestion: IngestionConfig = None
    tracker: TrackerConfig = None
    cache: CacheConfig = None
    simulation: SimulationConfig = None
    observability: ObservabilityConfig = None

    def __post_init__(self):
        self.ingestion = self.ingestion or IngestionConfig()
        self.tracker = self.tracker or TrackerConfig()
        self.cache = self.cache or CacheConfig()
        self.simulation = self.simulation or SimulationConfig()
        self.observability = self.observability or ObservabilityConfig()

    @staticmethod
    def from_env(echo: bool = False) -> EngineConfig:
        return EngineConfig(
            cache=CacheConfig.from_env(),
            simulation=SimulationConfig.from_env(),
            observability=ObservabilityConfig(echo=echo)
        )


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class RunTimelines:
    """
    Outcome of aggregate + publish for one run.

    bundle is None when aggregation was skipped; publish is None when
    there was nothing to publish. error explains a skipped aggregation.
    """
    context: RunContext
    bundle: Optional[TimelineBundle] = None
    publish: Optional[PublishResult] = None
    ingestion_stats: Optional[IngestionStats] = None
    error: Optional[Error] = None

    @property
    def keys(self) -> Dict[Metric, str]:
        if self.publish is None:
            return {}
        return dict(self.publish.keys)


@dataclass(frozen=True)
class SimulationRunResult:
    """Everything /run_simulation reports back."""
    report: Optional[SimulationReport]
    stats: ReportStats
    timelines: RunTimelines
    config_updated: bool = False
    error: Optional[Error] = None

    @property
    def success(self) -> bool:
        return self.error is None


# =============================================================================
# ENGINE
# =============================================================================

class TimelineEngine:
    """
    Unified backend for simulation timelines.

    LAYER FLOW:
    ===========
    1. Simulation: run parameters -> report + event log on disk
    2. Ingestion: event log -> EventRecord stream
    3. Temporal: EventRecord stream -> TrackerSnapshot -> TimelineBundle
    4. Storage: TimelineBundle -> cache keys (+ latest pointers)
    5. Observability: records all layer activity

    Reads go straight to the storage layer's resolver.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        connector: Optional[CacheConnector] = None,
        clock: Optional[Callable[[], int]] = None
    ):
        self._config = config or EngineConfig()

        self._connector = connector or CacheConnector(self._config.cache)
        self._publisher = CachePublisher(self._connector, clock=clock)
        self._resolver = RetrievalResolver(self._connector)
        self._builder = TimelineBuilder()
        self._simulator = SimulatorRunner(self._config.simulation)
        self._observability = ObservabilityEngine(self._config.observability)

        # Simulator config, report and event log share one directory
        self._workspace_lock = threading.Lock()
        self._audit_lock = threading.Lock()

    # =========================================================================
    # AGGREGATION INTERFACE
    # =========================================================================

    def aggregate(self, log_path: str, context: RunContext) -> Result:
        """
        One forward pass over the log at log_path.

        Result.success((TimelineBundle, IngestionStats)), or a failure
        whose code says why the pass was skipped.
        """
        if not context.can_aggregate:
            error = Error.create(
                ErrorCode.START_POPULATION_UNKNOWN,
                "Start population unknown, aggregation skipped",
                start_population=str(context.start_population)
            )
            self._observability.log_audit("aggregation_skipped", details=error.message, layer="temporal")
            return Result.failure(error)

        reader = EventLogReader(log_path, self._config.ingestion)
        source = reader.validate_source()
        if source.is_failure:
            self._observability.log_audit(
                "aggregation_skipped", entity_id=log_path,
                details=source.error.message, layer="temporal"
            )
            return source

        started = time.perf_counter()
        tracker = RunningAggregateTracker(context.start_population, self._config.tracker)
        try:
            snapshot = tracker.consume(reader)
        except OSError as e:
            error = Error.create(ErrorCode.LOG_UNREADABLE, str(e), path=log_path)
            self._observability.log_audit(
                "aggregation_failed", entity_id=log_path, outcome="failure",
                details=str(e), layer="temporal"
            )
            return Result.failure(error)
        duration_ms = (time.perf_counter() - started) * 1000

        bundle = self._builder.build(snapshot)
        stats = reader.stats

        self._sync(reader.get_audit_log())
        self._observability.log_audit(
            "aggregation_completed",
            entity_id=log_path,
            details=(
                f"records={snapshot.records_applied} ignored={snapshot.ignored_records} "
                f"final_population={snapshot.final_population} "
                f"infections={snapshot.cumulative_infections}"
            ),
            layer="temporal"
        )
        self._observability.collect_metric("log_lines_read_total", stats.lines_read)
        self._observability.collect_metric("log_lines_malformed_total", stats.malformed_lines)
        self._observability.collect_metric("events_applied_total", snapshot.records_applied)
        self._observability.collect_metric("aggregation_duration_ms", duration_ms)

        return Result.success((bundle, stats))

    def publish(self, bundle: TimelineBundle, context: RunContext) -> PublishResult:
        result = self._publisher.publish(bundle, context)
        self._sync(self._publisher.drain_audit_log())

        self._observability.collect_metric(
            "cache_writes_total", len(result.keys), {"key_type": "timeline"}
        )
        if result.errors:
            self._observability.collect_metric(
                "cache_failures_total", len(result.errors), {"operation": "set"}
            )
        return result

    def process_run(self, log_path: str, context: RunContext) -> RunTimelines:
        """Aggregate then publish. Never raises on input or cache trouble."""
        aggregated = self.aggregate(log_path, context)
        if aggregated.is_failure:
            return RunTimelines(context=context, error=aggregated.error)

        bundle, stats = aggregated.value
        published = self.publish(bundle, context)
        return RunTimelines(
            context=context,
            bundle=bundle,
            publish=published,
            ingestion_stats=stats
        )

    # =========================================================================
    # SIMULATION INTERFACE
    # =========================================================================

    def run_simulation(
        self,
        men: Optional[int] = None,
        women: Optional[int] = None,
        sim_time: Optional[int] = None,
        seed: Optional[int] = None
    ) -> SimulationRunResult:
        """
        Configure, run the simulator, then aggregate and publish its log.

        The workspace lock covers everything that touches the shared
        directory (config, report, log scan). Publishing happens after.
        """
        sim_cfg = self._config.simulation

        with self._workspace_lock:
            updated = rewrite_config(sim_cfg.config_path, updates_for(men, women, sim_time))
            if updated.is_failure:
                return self._failed_run(updated.error, seed)

            ran = self._simulator.run(seed)
            self._sync(self._simulator.drain_audit_log())
            if ran.is_failure:
                return self._failed_run(ran.error, seed)

            report: SimulationReport = ran.value
            self._observability.collect_metric("simulation_duration_ms", report.duration_ms)

            stats = parse_report(report.output)
            context = RunContext(start_population=stats.start_population, seed=seed)
            aggregated = self.aggregate(sim_cfg.event_log_path, context)

        if aggregated.is_failure:
            timelines = RunTimelines(context=context, error=aggregated.error)
        else:
            bundle, ingestion_stats = aggregated.value
            timelines = RunTimelines(
                context=context,
                bundle=bundle,
                publish=self.publish(bundle, context),
                ingestion_stats=ingestion_stats
            )

        return SimulationRunResult(
            report=report,
            stats=stats,
            timelines=timelines,
            config_updated=bool(updated.value)
        )

    def _failed_run(self, error: Error, seed: Optional[int]) -> SimulationRunResult:
        self._observability.log_audit(
            "simulation_failed", outcome="failure", details=error.message, layer="simulation"
        )
        return SimulationRunResult(
            report=None,
            stats=ReportStats(),
            timelines=RunTimelines(context=RunContext(seed=seed), error=error),
            error=error
        )

    # =========================================================================
    # RETRIEVAL INTERFACE
    # =========================================================================

    def get_timeline(self, key: str) -> Result:
        result = self._resolver.get_by_key(key)
        self._sync(self._resolver.drain_audit_log())
        return result

    def get_latest_timeline(self, metric: Metric) -> Result:
        result = self._resolver.get_latest(metric)
        self._sync(self._resolver.drain_audit_log())
        return result

    # =========================================================================
    # OBSERVABILITY INTERFACE
    # =========================================================================

    def get_audit_log(self, layers: Optional[List[str]] = None) -> List[AuditLogEntry]:
        return self._observability.get_unified_log(layers)

    def get_audit_report(self) -> Dict:
        return self._observability.generate_audit_report()

    def get_metrics(self):
        return self._observability.get_metrics()

    def _sync(self, entries: List[AuditLogEntry]):
        with self._audit_lock:
            self._observability.collect_all(entries)

    # =========================================================================
    # DIRECT LAYER ACCESS (for advanced use cases)
    # =========================================================================

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def connector(self) -> CacheConnector:
        return self._connector

    @property
    def resolver(self) -> RetrievalResolver:
        return self._resolver

    @property
    def observability_layer(self) -> ObservabilityEngine:
        return self._observability
