"""
Ingestion Layer

RESPONSIBILITY: Turn raw simulator event-log lines into typed records
ALLOWED INPUTS: A UTF-8 event log file, or individual lines
OUTPUTS: EventRecord values (tagged union, see contracts.events)

WHAT THIS LAYER MUST NOT DO:
============================
- Maintain population or infection state
- Re-sort, deduplicate or buffer records
- Read the log more than once
- Raise on malformed lines (they are skipped and counted)

LINE FORMAT:
============
    <time>,<kind>,<field2>,<field3>,<field4>,<field5>,<field6>,...

Fields are split on the literal ',' with no quoting. Field 0 is always
the time and field 1 the kind. The remaining fields are positional and
depend on the kind:

    transmission            field 2 = source id, field 6 = recipient id
    normalmortality         field 2 = individual id
    aidsmortality           field 2 = individual id

Missing positional fields leave the id empty; the record is still used.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional
import math
import os

# ONLY import from contracts - never from other layers
from ..contracts.base import Error, ErrorCode, Result
from ..contracts.events import (
    EventKind, EventRecord, BirthEvent, MortalityEvent, TransmissionEvent,
    IgnoredEvent, AuditLogEntry, AuditEventType
)


TIME_FIELD = 0
KIND_FIELD = 1
SOURCE_ID_FIELD = 2
RECIPIENT_ID_FIELD = 6
INDIVIDUAL_ID_FIELD = 2


# =============================================================================
# PER-KIND DECODERS
# =============================================================================

def _field(fields: List[str], index: int) -> Optional[str]:
    """Positional field, or None when the row is too short or the cell is blank."""
    if index >= len(fields):
        return None
    value = fields[index].strip()
    return value or None


def _decode_birth(time: float, fields: List[str]) -> EventRecord:
    return BirthEvent(time=time)


def _decode_mortality(kind: EventKind) -> Callable[[float, List[str]], EventRecord]:
    def decode(time: float, fields: List[str]) -> EventRecord:
        return MortalityEvent(
            time=time,
            kind=kind,
            individual_id=_field(fields, INDIVIDUAL_ID_FIELD)
        )
    return decode


def _decode_transmission(time: float, fields: List[str]) -> EventRecord:
    return TransmissionEvent(
        time=time,
        source_id=_field(fields, SOURCE_ID_FIELD),
        recipient_id=_field(fields, RECIPIENT_ID_FIELD)
    )


DECODERS: Dict[EventKind, Callable[[float, List[str]], EventRecord]] = {
    EventKind.BIRTH: _decode_birth,
    EventKind.NORMAL_MORTALITY: _decode_mortality(EventKind.NORMAL_MORTALITY),
    EventKind.AIDS_MORTALITY: _decode_mortality(EventKind.AIDS_MORTALITY),
    EventKind.TRANSMISSION: _decode_transmission,
}


# =============================================================================
# LINE PARSER
# =============================================================================

@dataclass
class IngestionConfig:
    """Configuration for event-log ingestion."""
    encoding: str = "utf-8"
    delimiter: str = ","


@dataclass
class IngestionStats:
    """
    Counters for one pass over a log.

    Mutable, owned by the reader that produced it.
    """
    lines_read: int = 0
    blank_lines: int = 0
    malformed_lines: int = 0  # includes undecodable_lines
    undecodable_lines: int = 0
    records_emitted: int = 0


class EventRecordParser:
    """
    Stateless line decoder.

    parse_line returns None for "skip" (blank or malformed line),
    otherwise a typed record. It never raises on line content.
    """

    def __init__(self, config: Optional[IngestionConfig] = None):
        self._config = config or IngestionConfig()

    def parse_line(self, line: str) -> Optional[EventRecord]:
        line = line.rstrip("\r\n")
        if not line.strip():
            return None

        fields = line.split(self._config.delimiter)
        if len(fields) <= KIND_FIELD:
            return None

        try:
            time = float(fields[TIME_FIELD].strip())
        except ValueError:
            return None
        if not math.isfinite(time):
            return None

        raw_kind = fields[KIND_FIELD].strip()
        kind = EventKind.lookup(raw_kind)
        if kind is None:
            return IgnoredEvent(time=time, raw_kind=raw_kind)

        return DECODERS[kind](time, fields)

    @staticmethod
    def is_blank(line: str) -> bool:
        return not line.strip()


# =============================================================================
# LOG READER (single forward pass)
# =============================================================================

class EventLogReader:
    """
    Forward-only reader over one event-log file.

    Iterating opens the file, yields records line by line and closes it.
    A reader is meant for exactly one pass; stats describe that pass.
    """

    def __init__(
        self,
        path: str,
        config: Optional[IngestionConfig] = None,
        parser: Optional[EventRecordParser] = None
    ):
        self._path = path
        self._config = config or IngestionConfig()
        self._parser = parser or EventRecordParser(self._config)
        self._stats = IngestionStats()
        self._audit_log: List[AuditLogEntry] = []

    @property
    def path(self) -> str:
        return self._path

    @property
    def stats(self) -> IngestionStats:
        return self._stats

    def validate_source(self) -> Result:
        """Check the log exists before a pass is attempted."""
        if not os.path.exists(self._path):
            return Result.failure(Error.create(
                ErrorCode.LOG_NOT_FOUND,
                f"Event log not found: {self._path}",
                path=self._path
            ))
        if not os.path.isfile(self._path):
            return Result.failure(Error.create(
                ErrorCode.LOG_UNREADABLE,
                f"Event log path is not a file: {self._path}",
                path=self._path
            ))
        return Result.success(self._path)

    def __iter__(self) -> Iterator[EventRecord]:
        """
        Yield records in file order.

        Lines are decoded one at a time, so a line that is not valid
        text is one malformed record and the pass goes on. OSError
        propagates: a log that cannot be read at all fails the pass,
        the caller decides how to degrade.
        """
        with open(self._path, "rb") as f:
            for raw in f:
                self._stats.lines_read += 1

                try:
                    line = raw.decode(self._config.encoding)
                except UnicodeDecodeError:
                    self._stats.undecodable_lines += 1
                    self._stats.malformed_lines += 1
                    continue

                if self._parser.is_blank(line):
                    self._stats.blank_lines += 1
                    continue

                record = self._parser.parse_line(line)
                if record is None:
                    self._stats.malformed_lines += 1
                    continue

                self._stats.records_emitted += 1
                yield record

        self._log_audit(
            action="log_scanned",
            entity_id=self._path,
            entity_type="event_log",
            metadata=(
                ("lines_read", self._stats.lines_read),
                ("malformed_lines", self._stats.malformed_lines),
                ("undecodable_lines", self._stats.undecodable_lines),
                ("records_emitted", self._stats.records_emitted),
            )
        )

    def _log_audit(
        self,
        action: str,
        entity_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        metadata: tuple = ()
    ):
        """Add entry to internal audit log."""
        self._audit_log.append(AuditLogEntry.create(
            event_type=AuditEventType.INGESTION,
            layer="ingestion",
            action=action,
            entity_id=entity_id,
            entity_type=entity_type,
            metadata=metadata
        ))

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)
