import gzip
import json
import time

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

from nbody.constants import LOG_LEVEL
from nbody.logging_config import setup_logging
from nbody.physics import samples_for_system

setup_logging(LOG_LEVEL)

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class BodyIn(BaseModel):
    name: Optional[str] = None
    mass: float = Field(gt=0)
    radius: float = Field(default=0.0, ge=0)
    position: List[float] = Field(min_length=3, max_length=3)
    velocity: List[float] = Field(min_length=3, max_length=3)


class SimulateRequest(BaseModel):
    bodies: Optional[List[BodyIn]] = None
    preset: Optional[Literal["cloud", "earth_moon"]] = None
    count: Optional[int] = Field(default=None, ge=1, le=20000)
    seed: Optional[int] = None
    durationSec: float = Field(gt=0)
    dtSec: float = Field(gt=0)
    integrator: Literal["leapfrog", "euler"] = "leapfrog"
    sdMaxRatio: Optional[float] = Field(default=None, ge=0)
    octreeDepth: Optional[int] = Field(default=None, ge=1, le=15)
    profile: Optional[bool] = False


class TrajectorySample(BaseModel):
    t: float
    positions: List[List[float]]


class BodyMetadata(BaseModel):
    name: Optional[str] = None
    mass: float
    radius: float
    kind: str


class TraversalStatsOut(BaseModel):
    leaf: int
    composite: int
    total: int
    nodes: int
    depth: int


class EnergyOut(BaseModel):
    initial: float
    final: float


class SimulateResponse(BaseModel):
    bodyMetadata: List[BodyMetadata]
    samples: List[TrajectorySample]
    stats: TraversalStatsOut
    energy: EnergyOut
    octreeSegments: Optional[List[float]] = None
    meta: dict


@app.post("/api/simulate", response_model=SimulateResponse)
def simulate(req: SimulateRequest):
    """
    Run a simulation and return sampled positions. Optionally profiles the
    physics and JSON serialization when `profile` is true.
    """
    payload = req.model_dump()
    profile_enabled = bool(req.profile)
    profile_meta = {"timingsMs": {}} if profile_enabled else None

    physics_start = time.perf_counter()
    try:
        result = samples_for_system(payload, req.durationSec, req.dtSec)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if profile_enabled:
        profile_meta["timingsMs"]["samples_for_system"] = (
            time.perf_counter() - physics_start
        ) * 1000.0

    meta = {"dtSec": req.dtSec, "integrator": req.integrator}
    if profile_enabled:
        profile_meta["serverTimestamp"] = time.time()
        meta["profile"] = profile_meta

    response_payload = {**result, "meta": meta}

    if profile_enabled:
        # serialization stats describe the body, so they travel as headers
        serialize_start = time.perf_counter()
        serialized = json.dumps(response_payload, separators=(",", ":")).encode("utf-8")
        serialize_ms = (time.perf_counter() - serialize_start) * 1000.0
        headers = {
            "Server-Timing": f"serialize;dur={serialize_ms:.3f}",
            "X-Payload-Bytes": str(len(serialized)),
            "X-Payload-Gzip-Bytes": str(len(gzip.compress(serialized))),
        }
        return Response(content=serialized, media_type="application/json", headers=headers)

    return response_payload
