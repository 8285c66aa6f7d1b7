"""
Simulator report parsing.

Only three facts are pulled out of the free-text report; everything
else in it is passed through to the caller untouched.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import re


START_POPULATION_RE = re.compile(r"Started with ([0-9]+) people")
END_POPULATION_RE = re.compile(r"ending with ([0-9]+) ")
SIMULATION_TIME_RE = re.compile(r"Current simulation time is ([0-9.]+)")


@dataclass(frozen=True)
class ReportStats:
    """Facts extracted from one report. None means "not found"."""
    start_population: Optional[int] = None
    end_population: Optional[int] = None
    length_of_time: Optional[float] = None


def parse_report(output: str) -> ReportStats:
    return ReportStats(
        start_population=_first_int(START_POPULATION_RE, output),
        end_population=_first_int(END_POPULATION_RE, output),
        length_of_time=_first_float(SIMULATION_TIME_RE, output),
    )


def _first_int(pattern: re.Pattern, text: str) -> Optional[int]:
    match = pattern.search(text)
    return int(match.group(1)) if match else None


def _first_float(pattern: re.Pattern, text: str) -> Optional[float]:
    match = pattern.search(text)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        # e.g. "1.2.3" still matches [0-9.]+
        return None
