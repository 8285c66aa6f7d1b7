"""
Simulation Boundary Layer

RESPONSIBILITY: Drive the external simulator and read back what it leaves
ALLOWED INPUTS: Run parameters (men, women, time, seed)
OUTPUTS: SimulationReport, ReportStats, the event log path

WHAT THIS LAYER MUST NOT DO:
============================
- Model disease progression or event scheduling (the simulator does that)
- Parse the event log (that's the ingestion layer's job)
- Talk to the cache

The simulator is an opaque executable invoked as

    <executable> <config_file> <parallel_flag> <mode> [extra args...]

inside a working directory that holds its config file, and where it
writes its event log. Its stdout+stderr is the textual report.
"""

from .config_file import CONFIG_KEYS, rewrite_config, updates_for
from .report import ReportStats, parse_report
from .runner import SimulationConfig, SimulationReport, SimulatorRunner

__all__ = [
    "SimulationConfig",
    "CONFIG_KEYS",
    "rewrite_config",
    "updates_for",
    "ReportStats",
    "parse_report",
    "SimulationReport",
    "SimulatorRunner",
]
