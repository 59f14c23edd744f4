"""
FastAPI REM Computation Server.

Provides REST API endpoints for generating radio environment maps from a
scenario description.

Endpoints:
- POST /rem/generate - Generate a REM for a scenario
- GET /health - Health check with available model types
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from nrrem import __version__
from nrrem.config.schema import ScenarioConfig
from nrrem.rem.beamforming import RemMode
from nrrem.rem.errors import ModelInstantiationError, RemConfigurationError, RemError
from nrrem.rem.propagation import MODEL_REGISTRY
from nrrem.rem.summary import summarize
from nrrem.scene.builder import build_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("REM computation server started")
    yield
    logger.info("REM computation server shutting down")


app = FastAPI(
    title="nrrem REM Computation Server",
    description="Generate SNR/SINR radio environment maps",
    version=__version__,
    lifespan=lifespan,
)


# ============================================================================
# Request/Response Models
# ============================================================================


class RemRequest(BaseModel):
    """Request to generate a REM."""

    scenario: ScenarioConfig
    mode: RemMode | None = Field(default=None, description="Override of rem.mode")
    iterations: int | None = Field(
        default=None, description="Override of rem.iterations", ge=1, le=10000
    )
    seed: int | None = Field(default=None, description="Override of rem.seed", ge=0)


class RemPointResponse(BaseModel):
    """One REM point."""

    x: float
    y: float
    z: float
    snr_db: float
    sinr_db: float


class RemSummaryResponse(BaseModel):
    """Aggregate statistics of a REM."""

    min_snr_db: float
    max_snr_db: float
    mean_snr_db: float
    min_sinr_db: float
    max_sinr_db: float
    mean_sinr_db: float
    best_point: list[float]


class RemResponse(BaseModel):
    """Generated REM."""

    name: str
    mode: RemMode
    iterations: int
    num_points: int
    points: list[RemPointResponse]
    summary: RemSummaryResponse
    computation_time_ms: float


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    model_types: list[str]


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Check server health and list registered propagation models."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        model_types=sorted(MODEL_REGISTRY),
    )


@app.post("/rem/generate", response_model=RemResponse)
def generate_rem(request: RemRequest) -> RemResponse:
    """
    Generate a REM for the given scenario.

    Scene construction failures return 422; failures while sampling return 500.
    """
    start_time = time.perf_counter()

    try:
        engine = build_engine(
            request.scenario,
            mode=request.mode,
            iterations=request.iterations,
            seed=request.seed,
        )
        engine.configure()
    except (RemConfigurationError, ModelInstantiationError) as e:
        logger.error("Invalid REM request: %s", e)
        raise HTTPException(status_code=422, detail=str(e)) from e

    try:
        points = engine.run()
    except RemError as e:
        logger.error("REM generation failed: %s", e)
        raise HTTPException(status_code=500, detail=f"REM generation failed: {e}") from e

    summary = summarize(points)
    elapsed_ms = (time.perf_counter() - start_time) * 1000

    return RemResponse(
        name=request.scenario.name,
        mode=engine.mode,
        iterations=engine.iterations,
        num_points=len(points),
        points=[
            RemPointResponse(
                x=p.position[0],
                y=p.position[1],
                z=p.position[2],
                snr_db=p.avg_snr_db,
                sinr_db=p.avg_sinr_db,
            )
            for p in points
        ],
        summary=RemSummaryResponse(
            min_snr_db=summary.min_snr_db,
            max_snr_db=summary.max_snr_db,
            mean_snr_db=summary.mean_snr_db,
            min_sinr_db=summary.min_sinr_db,
            max_sinr_db=summary.max_sinr_db,
            mean_sinr_db=summary.mean_sinr_db,
            best_point=list(summary.best_point),
        ),
        computation_time_ms=elapsed_ms,
    )
