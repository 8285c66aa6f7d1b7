"""
API Mapper
==========

Transforms engine results into JSON-ready response bodies.
Timeline keys are exposed; series bodies never are.
"""
from typing import Any, Dict, Optional

from ..contracts.series import Metric
from ..engine import SimulationRunResult


KEY_FIELDS = {
    Metric.POPULATION: "population_timeline_key",
    Metric.HIV_INFECTIONS: "hiv_infections_timeline_key",
    Metric.HIV_PREVALENCE: "hiv_prevalence_timeline_key",
    Metric.HIV_INCIDENCE: "hiv_incidence_timeline_key",
}


def map_run_to_dto(
    result: SimulationRunResult,
    men: Optional[int],
    women: Optional[int],
    sim_time: Optional[int],
    seed: Optional[int]
) -> Dict[str, Any]:
    """Map SimulationRunResult to the /run_simulation response body."""
    report = result.report
    keys = result.timelines.keys

    dto: Dict[str, Any] = {
        "success": result.success,
        "men": men,
        "women": women,
        "time": sim_time,
        "seed": seed,
        "config_updated": result.config_updated,
        "return_code": report.return_code if report else None,
        "output": report.output if report else "",
        "start_population": result.stats.start_population,
        "end_population": result.stats.end_population,
        "length_of_time": result.stats.length_of_time,
    }

    for metric, field_name in KEY_FIELDS.items():
        dto[field_name] = keys.get(metric)

    if result.error:
        dto["error"] = result.error.message
    elif result.timelines.error:
        dto["timelines_skipped"] = result.timelines.error.code.name

    return dto
