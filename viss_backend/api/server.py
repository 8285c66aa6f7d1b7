"""
VISS Timeline API Server
========================

HTTP surface over the timeline engine.

Endpoints:
- GET  /healthz                         -> liveness
- POST /run_simulation                  -> run simulator, aggregate, publish
- GET  /get-eventlog                    -> raw event log (text/csv)
- GET  /{series}_timeline/latest        -> latest published series
- GET  /{series}_timeline/{key}         -> series stored under key

series is one of: population, hiv_infections, hiv_prevalence, hiv_incidence

Usage:
    uvicorn viss_backend.api.server:app --reload
"""
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Mapping, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response
from pydantic import BaseModel, field_validator
from starlette.concurrency import run_in_threadpool

from ..contracts.base import ErrorCode, Result
from ..contracts.series import Metric
from ..engine import TimelineEngine, EngineConfig
from ..storage.publisher import is_timeline_key
from .mapper import map_run_to_dto

# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        env = os.environ if environ is None else environ
        return ServerConfig(
            host=env.get("HOST") or "0.0.0.0",
            port=int(env.get("PORT") or 8000),
            reload=env.get("VISS_RELOAD") == "1"
        )


# Global Engine Instance
engine_instance: Optional[TimelineEngine] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the engine on startup."""
    global engine_instance

    config = EngineConfig.from_env(echo=True)
    print(f"[viss-api] [*] Simulator workdir: {os.path.abspath(config.simulation.workdir)}")
    print(f"[viss-api] [*] Cache endpoints: {', '.join(e.describe() for e in config.cache.endpoints())}")

    engine_instance = TimelineEngine(config)
    print("[viss-api] [*] Engine initialized.")

    yield

    print("[viss-api] [*] Shutting down.")
    engine_instance = None


app = FastAPI(
    title="VISS Timeline API",
    version="0.1.0",
    description="Simulation runs and their published epidemiological timelines",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def get_engine() -> TimelineEngine:
    if engine_instance is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine_instance


class RunRequest(BaseModel):
    """Body of POST /run_simulation. Absent fields leave the config as is.

    -1 is accepted as an explicit "absent" for older clients; any other
    negative value is rejected with 422.
    """
    men: Optional[int] = None
    women: Optional[int] = None
    time: Optional[int] = None
    seed: Optional[int] = None

    @field_validator("men", "women", "time", "seed")
    @classmethod
    def absent_or_non_negative(cls, value: Optional[int]) -> Optional[int]:
        if value == -1:
            return None
        if value is not None and value < 0:
            raise ValueError("must be non-negative, or -1 for absent")
        return value


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/healthz")
async def healthz():
    return {"ok": True}


@app.post("/run_simulation")
async def run_simulation(request: RunRequest, engine: TimelineEngine = Depends(get_engine)):
    """
    Rewrite the config, run the simulator, then publish its timelines.

    Cache or aggregation trouble never fails the request; the
    corresponding *_timeline_key fields are just null.
    """
    result = await run_in_threadpool(
        engine.run_simulation,
        request.men,
        request.women,
        request.time,
        request.seed
    )
    dto = map_run_to_dto(result, request.men, request.women, request.time, request.seed)

    if not result.success:
        raise HTTPException(status_code=500, detail=dto)
    return dto


@app.get("/get-eventlog")
async def get_eventlog(engine: TimelineEngine = Depends(get_engine)):
    path = engine.config.simulation.event_log_path
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail=f"{os.path.basename(path)} not found")
    return FileResponse(path, media_type="text/csv")


@app.get("/{series}_timeline/latest")
async def get_latest_timeline(series: str, engine: TimelineEngine = Depends(get_engine)):
    metric = _metric_or_404(series)
    result = await run_in_threadpool(engine.get_latest_timeline, metric)
    return _series_response(result)


@app.get("/{series}_timeline/{key}")
async def get_timeline_by_key(series: str, key: str, engine: TimelineEngine = Depends(get_engine)):
    metric = _metric_or_404(series)
    if not is_timeline_key(metric, key):
        raise HTTPException(status_code=404, detail=f"{key} is not a {series} timeline key")
    result = await run_in_threadpool(engine.get_timeline, key)
    return _series_response(result)


# =============================================================================
# HELPERS
# =============================================================================

def _metric_or_404(series: str) -> Metric:
    metric = Metric.from_route_name(series)
    if metric is None:
        raise HTTPException(status_code=404, detail=f"Unknown timeline: {series}")
    return metric


def _series_response(result: Result) -> Response:
    """Stored bodies are already JSON; pass them through unchanged."""
    if result.is_success:
        return Response(content=result.value, media_type="application/json")

    if result.error.code in (ErrorCode.CACHE_UNREACHABLE, ErrorCode.CACHE_READ_FAILED):
        raise HTTPException(status_code=503, detail=result.error.message)
    raise HTTPException(status_code=404, detail=result.error.message)
