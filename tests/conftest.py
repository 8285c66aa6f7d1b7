"""
Shared test fixtures.

Makes tests/ importable so layer tests can reuse integration.fixtures.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from integration.fixtures import SCENARIO_LINES, write_log  # noqa: E402
from viss_backend.storage import InMemoryCacheStore  # noqa: E402


@pytest.fixture
def memory_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def scenario_log(tmp_path) -> str:
    """The 500-person reference run as a log file."""
    return write_log(tmp_path / "dev_eventlog.csv", SCENARIO_LINES)
