from __future__ import annotations

from pydantic import BaseModel, Field

from binbird.schemas.runs import LatLng


class OptimizeRequest(BaseModel):
    start: LatLng
    end: LatLng
    waypoints: list[LatLng] = Field(default_factory=list)


class RouteLegResponse(BaseModel):
    distance_meters: float
    duration_seconds: int
    start_address: str | None = None
    end_address: str | None = None


class OptimizeResponse(BaseModel):
    polyline: str
    order: list[int]
    legs: list[RouteLegResponse] = Field(default_factory=list)
    provider: str
    total_distance_meters: float
    total_duration_seconds: int
