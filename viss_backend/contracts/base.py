"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior, no side effects, no dependencies.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    Every degraded path of a run maps to exactly one code.
    """
    # Ingestion errors
    LOG_NOT_FOUND = auto()
    LOG_UNREADABLE = auto()

    # Aggregation errors
    START_POPULATION_UNKNOWN = auto()

    # Cache errors
    CACHE_UNREACHABLE = auto()
    CACHE_WRITE_FAILED = auto()
    CACHE_READ_FAILED = auto()
    KEY_NOT_FOUND = auto()
    POINTER_NOT_FOUND = auto()

    # Simulator boundary errors
    SIMULATOR_FAILED = auto()
    CONFIG_UNREADABLE = auto()
    REPORT_PARSE_FAILED = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: str) -> Error:
        """Build an error stamped with the current UTC time."""
        return Error(
            code=code,
            message=message,
            timestamp=Timestamp.now().value,
            context=tuple((k, str(v)) for k, v in context.items())
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable wall-clock timestamp.
    All timestamps are UTC, never local time.

    Simulation time is NOT a Timestamp: it is a plain float of
    fractional years since the simulation epoch.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    def to_iso(self) -> str:
        return self.value.isoformat()


# =============================================================================
# RUN CONTEXT (Supplied by the caller, never derived from the log)
# =============================================================================

@dataclass(frozen=True)
class RunContext:
    """
    Caller-supplied facts about one simulation run.

    start_population comes from the simulator's textual report.
    None or a negative value means "unknown": aggregation is skipped.
    seed is only used to namespace cache keys.
    """
    start_population: Optional[int] = None
    seed: Optional[int] = None

    @property
    def can_aggregate(self) -> bool:
        return self.start_population is not None and self.start_population >= 0
