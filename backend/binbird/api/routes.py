from __future__ import annotations

from fastapi import APIRouter

from binbird.api.v1 import optimize, runs

router = APIRouter()
router.include_router(optimize.router, prefix="/v1/optimize", tags=["routing"])
router.include_router(runs.router, prefix="/v1/runs", tags=["runs"])
