"""
Integration Test Fixtures

Fixed event logs and helpers for deterministic testing.
All fixtures are explicit - no random generation.
"""

import os
import stat
from typing import Dict, Iterable, Optional

from viss_backend.engine import EngineConfig, TimelineEngine
from viss_backend.simulation import SimulationConfig
from viss_backend.storage import (
    CacheConfig, CacheConnector, CacheStore, InMemoryCacheStore, fixed_store_factory
)


# =============================================================================
# FIXED CLOCK (deterministic keys)
# =============================================================================

PUBLISHED_AT = 1700000000


def fixed_clock() -> int:
    return PUBLISHED_AT


# =============================================================================
# EVENT LOG FIXTURES
# =============================================================================

START_POPULATION = 500

# One birth, one infection, the infected individual dies.
SCENARIO_LINES = (
    "0.5,birth,C9,f,0",
    "1.2,transmission,A1,m,30,x,B1,f,25",
    "2.0,aidsmortality,B1,f,25",
)

# Same run with noise the scan must tolerate.
NOISY_LINES = (
    "0.1,relationshipformed,A1,m,30,x,B1,f,25",
    "",
    "0.5,birth,C9,f,0",
    "not-a-time,birth",
    "justonefield",
    "1.2,transmission,A1,m,30,x,B1,f,25",
    "nan,birth",
    "2.0,aidsmortality,B1,f,25",
)

EXPECTED_POPULATION = [[0.0, 500], [0.5, 501], [2.0, 500]]
EXPECTED_INFECTIONS = [[0.0, 0], [1.2, 1]]
EXPECTED_PREVALENCE = [[0.0, 0.0], [0.5, 0.0], [1.2, 100.0 / 501], [2.0, 0.0]]
EXPECTED_INCIDENCE = [[0.0, 0.0], [1.0, 100.0 / 501], [2.0, 0.0]]


def write_log(path, lines: Iterable[str]) -> str:
    """Write lines as an event log and return its path as str."""
    with open(path, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")
    return str(path)


# =============================================================================
# SIMULATOR STAND-IN
# =============================================================================

def write_fake_simulator(
    directory,
    lines: Iterable[str] = SCENARIO_LINES,
    start_population: int = START_POPULATION,
    end_population: int = START_POPULATION,
    exit_code: int = 0,
    name: str = "fake_sim.sh"
) -> str:
    """
    Shell script that behaves like the simulator binary.

    Prints the report lines the server parses, echoes its arguments
    and the seed variable, and writes dev_eventlog.csv in its cwd.
    """
    log_body = "\\n".join(lines)
    script = (
        "#!/bin/sh\n"
        f"printf '{log_body}\\n' > dev_eventlog.csv\n"
        'echo "args: $@"\n'
        'echo "seed: ${MNRM_DEBUG_SEED:-none}"\n'
        f'echo "Started with {start_population} people"\n'
        f'echo "Simulation ended, ending with {end_population} people"\n'
        'echo "Current simulation time is 2.0"\n'
        f"exit {exit_code}\n"
    )
    path = os.path.join(str(directory), name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(script)
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

def memory_connector(stores: Optional[Dict[str, CacheStore]] = None) -> CacheConnector:
    """Connector whose primary endpoint is an in-memory store."""
    if stores is None:
        stores = {"primary": InMemoryCacheStore()}
    return CacheConnector(CacheConfig(), store_factory=fixed_store_factory(stores))


def create_engine(
    workdir,
    store: Optional[InMemoryCacheStore] = None,
    executable: Optional[str] = None
) -> TimelineEngine:
    simulation = SimulationConfig(workdir=str(workdir))
    if executable:
        simulation.executable = executable

    stores = {"primary": store} if store is not None else {}
    return TimelineEngine(
        EngineConfig(simulation=simulation),
        connector=memory_connector(stores),
        clock=fixed_clock
    )
