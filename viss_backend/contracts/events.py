"""
Event Contracts

Typed records flowing between the ingestion, temporal and observability
layers.

DESIGN:
=======
Log lines are positional and kind-dependent. Each recognized kind has its
own frozen record type (a tagged union keyed by EventKind); every other
kind decodes to IgnoredEvent so that unknown kinds stay legal input.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union
import hashlib

from .base import Timestamp


# =============================================================================
# EVENT KINDS
# =============================================================================

class EventKind(Enum):
    """Event kinds that drive aggregate updates."""
    BIRTH = "birth"
    NORMAL_MORTALITY = "normalmortality"
    AIDS_MORTALITY = "aidsmortality"
    TRANSMISSION = "transmission"

    @staticmethod
    def lookup(raw_kind: str) -> Optional[EventKind]:
        """Return the matching kind, or None for kinds this engine ignores."""
        try:
            return EventKind(raw_kind)
        except ValueError:
            return None

    @property
    def is_mortality(self) -> bool:
        return self in (EventKind.NORMAL_MORTALITY, EventKind.AIDS_MORTALITY)


# =============================================================================
# EVENT RECORDS (Tagged union)
# =============================================================================

@dataclass(frozen=True)
class BirthEvent:
    """A new individual entered the population."""
    time: float
    kind: EventKind = EventKind.BIRTH


@dataclass(frozen=True)
class MortalityEvent:
    """
    An individual died (normal or AIDS-related mortality).

    individual_id is None when the line was too short to carry it.
    """
    time: float
    kind: EventKind
    individual_id: Optional[str] = None


@dataclass(frozen=True)
class TransmissionEvent:
    """
    HIV passed from source to recipient.

    Either id may be None when the line was too short to carry it;
    the infection still counts.
    """
    time: float
    source_id: Optional[str] = None
    recipient_id: Optional[str] = None
    kind: EventKind = EventKind.TRANSMISSION


@dataclass(frozen=True)
class IgnoredEvent:
    """
    A well-formed line of a kind that triggers no aggregate update.

    Still relevant: its time can open a new calendar-year bucket.
    """
    time: float
    raw_kind: str


EventRecord = Union[BirthEvent, MortalityEvent, TransmissionEvent, IgnoredEvent]


# =============================================================================
# OBSERVABILITY LAYER CONTRACTS
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    INGESTION = "ingestion"
    AGGREGATION = "aggregation"
    PUBLISH = "publish"
    RETRIEVAL = "retrieval"
    SIMULATION = "simulation"
    ERROR = "error"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: Timestamp
    layer: str  # Which layer generated this
    action: str
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(
        event_type: AuditEventType,
        layer: str,
        action: str,
        entity_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        metadata: tuple = ()
    ) -> AuditLogEntry:
        """Factory stamping the entry with the current time and a content id."""
        now = Timestamp.now()
        entry_hash = hashlib.sha256(
            f"{layer}|{action}|{entity_id}|{now.value.timestamp()}".encode()
        ).hexdigest()[:16]
        return AuditLogEntry(
            entry_id=f"audit_{entry_hash}",
            event_type=event_type,
            timestamp=now,
            layer=layer,
            action=action,
            entity_id=entity_id,
            entity_type=entity_type,
            metadata=tuple((k, str(v)) for k, v in metadata)
        )

    def meta(self, key: str) -> Optional[str]:
        for k, v in self.metadata:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class MetricPoint:
    """Immutable metric data point."""
    metric_name: str
    value: float
    timestamp: Timestamp
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
