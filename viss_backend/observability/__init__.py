"""
Observability & Audit Layer

RESPONSIBILITY: Logging, metrics, run audit trail
ALLOWED INPUTS: Audit entries and metric samples from other layers
OUTPUTS: Unified audit log, metric series, audit reports

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Filter or interpret events (only record them)
- Make decisions based on logged data
- Block or delay other layer operations

BOUNDARY ENFORCEMENT:
=====================
- Receives immutable AuditLogEntry / MetricPoint values
- Provides read-only access to logs and metrics
- Console echo is the only side effect, and only when enabled
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from enum import Enum

# ONLY import from contracts - never from other layers' implementations
from ..contracts.base import Timestamp
from ..contracts.events import AuditLogEntry, AuditEventType, MetricPoint


# =============================================================================
# LOG COLLECTORS (One per layer)
# =============================================================================

class LogCollector:
    """
    Append-only collector for one layer's audit entries.
    """

    def __init__(self, layer_name: str):
        self._layer_name = layer_name
        self._entries: List[AuditLogEntry] = []

    def collect(self, entry: AuditLogEntry):
        """Collect an audit entry (append-only)."""
        self._entries.append(entry)

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered by type."""
        if event_type:
            return [e for e in self._entries if e.event_type == event_type]
        return list(self._entries)

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricType(Enum):
    """Types of metrics collected."""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMING = "timing"


@dataclass
class MetricDefinition:
    """Definition of a metric to collect."""
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


class MetricsCollector:
    """
    Collect metrics from all layers.

    Metrics are append-only time series data points.
    """

    def __init__(self):
        self._metrics: Dict[str, List[MetricPoint]] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._register_default_metrics()

    def _register_default_metrics(self):
        """Register standard metrics."""
        defaults = [
            MetricDefinition(
                name="log_lines_read_total",
                metric_type=MetricType.COUNTER,
                description="Event log lines read by aggregation passes"
            ),
            MetricDefinition(
                name="log_lines_malformed_total",
                metric_type=MetricType.COUNTER,
                description="Event log lines skipped as malformed"
            ),
            MetricDefinition(
                name="events_applied_total",
                metric_type=MetricType.COUNTER,
                description="Events that changed at least one aggregate"
            ),
            MetricDefinition(
                name="aggregation_duration_ms",
                metric_type=MetricType.TIMING,
                description="Wall time of one aggregation pass"
            ),
            MetricDefinition(
                name="cache_writes_total",
                metric_type=MetricType.COUNTER,
                description="Successful cache SETs",
                labels=("key_type",)
            ),
            MetricDefinition(
                name="cache_failures_total",
                metric_type=MetricType.COUNTER,
                description="Failed cache operations",
                labels=("operation",)
            ),
            MetricDefinition(
                name="simulation_duration_ms",
                metric_type=MetricType.TIMING,
                description="Wall time of one simulator invocation"
            ),
        ]

        for definition in defaults:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        """Register a new metric definition."""
        self._definitions[definition.name] = definition
        if definition.name not in self._metrics:
            self._metrics[definition.name] = []

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        """Record a metric data point."""
        if metric_name not in self._metrics:
            self._metrics[metric_name] = []

        label_tuple = tuple(sorted(labels.items())) if labels else ()

        point = MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=Timestamp.now(),
            labels=label_tuple
        )
        self._metrics[metric_name].append(point)

    def get_metric(self, metric_name: str) -> List[MetricPoint]:
        return list(self._metrics.get(metric_name, []))

    def get_latest(self, metric_name: str) -> Optional[MetricPoint]:
        """Get the latest value for a metric."""
        points = self._metrics.get(metric_name, [])
        return points[-1] if points else None

    def total(self, metric_name: str) -> float:
        """Sum of all recorded values (meaningful for counters)."""
        return sum(p.value for p in self._metrics.get(metric_name, []))

    def get_definition(self, metric_name: str) -> Optional[MetricDefinition]:
        return self._definitions.get(metric_name)


# =============================================================================
# OBSERVABILITY ENGINE (Orchestrates all observability)
# =============================================================================

LAYERS = ("ingestion", "temporal", "storage", "simulation", "engine")


@dataclass
class ObservabilityConfig:
    """Configuration for observability engine."""
    enable_metrics: bool = True
    echo: bool = False  # mirror entries to stdout (the API server turns this on)
    echo_prefix: str = "[viss-api]"


class ObservabilityEngine:
    """
    Central Observability Engine.

    BOUNDARY ENFORCEMENT:
    - ONLY observes, never modifies
    - Provides read-only access to collected data
    """

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()

        self._collectors: Dict[str, LogCollector] = {
            name: LogCollector(name) for name in LAYERS
        }

        self._metrics = MetricsCollector() if self._config.enable_metrics else None

    def collect_audit(self, entry: AuditLogEntry):
        """Collect an audit log entry from any layer."""
        collector = self._collectors.get(entry.layer)
        if collector is None:
            collector = self._collectors.setdefault(entry.layer, LogCollector(entry.layer))
        collector.collect(entry)

        if self._config.echo:
            self._echo(entry)

    def collect_all(self, entries: List[AuditLogEntry]):
        for entry in entries:
            self.collect_audit(entry)

    def log_audit(
        self,
        action: str,
        entity_id: Optional[str] = None,
        outcome: str = "success",
        details: str = "",
        layer: str = "engine"
    ):
        """Helper to log audit entry directly."""
        event_type = AuditEventType.ERROR if outcome == "failure" else AuditEventType.SYSTEM
        self.collect_audit(AuditLogEntry.create(
            event_type=event_type,
            layer=layer,
            action=action,
            entity_id=entity_id,
            metadata=(("outcome", outcome), ("details", details))
        ))

    def collect_metric(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        """Collect a metric data point."""
        if self._metrics:
            self._metrics.record(metric_name, value, labels)

    def get_unified_log(
        self,
        layers: Optional[List[str]] = None
    ) -> List[AuditLogEntry]:
        """Get unified log from all or specified layers, oldest first."""
        target_layers = layers or list(self._collectors.keys())

        all_entries = []
        for layer_name in target_layers:
            collector = self._collectors.get(layer_name)
            if collector:
                all_entries.extend(collector.get_entries())

        all_entries.sort(key=lambda e: e.timestamp.value)
        return all_entries

    def get_errors(self) -> List[AuditLogEntry]:
        return [
            e for e in self.get_unified_log()
            if e.event_type == AuditEventType.ERROR
        ]

    def get_metrics(self) -> Optional[MetricsCollector]:
        """Get metrics collector (read-only access)."""
        return self._metrics

    def generate_audit_report(self) -> Dict:
        """Summarize collected entries by layer and type."""
        entries = self.get_unified_log()

        by_layer = {}
        by_type = {}

        for entry in entries:
            by_layer[entry.layer] = by_layer.get(entry.layer, 0) + 1
            by_type[entry.event_type.value] = by_type.get(entry.event_type.value, 0) + 1

        return {
            'total_entries': len(entries),
            'by_layer': by_layer,
            'by_event_type': by_type,
            'generated_at': Timestamp.now().to_iso()
        }

    def _echo(self, entry: AuditLogEntry):
        marker = "[!]" if entry.event_type == AuditEventType.ERROR else "[*]"
        details = " ".join(f"{k}={v}" for k, v in entry.metadata)
        subject = f" {entry.entity_id}" if entry.entity_id else ""
        print(f"{self._config.echo_prefix} {marker} {entry.layer}.{entry.action}{subject} {details}".rstrip())
