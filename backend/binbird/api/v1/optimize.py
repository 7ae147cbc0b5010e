from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, status

from binbird.schemas.routing import OptimizeRequest, OptimizeResponse, RouteLegResponse
from binbird.services.routing import RouteOptimizationError, optimize_route


router = APIRouter()


@router.post(
    "/",
    response_model=OptimizeResponse,
    status_code=status.HTTP_200_OK,
)
async def optimize(payload: OptimizeRequest) -> OptimizeResponse:
    if not payload.waypoints:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, "At least one waypoint is required"
        )

    try:
        result = await asyncio.to_thread(
            optimize_route,
            (payload.start.lat, payload.start.lng),
            (payload.end.lat, payload.end.lng),
            [(point.lat, point.lng) for point in payload.waypoints],
        )
    except RouteOptimizationError as exc:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    return OptimizeResponse(
        polyline=result.polyline,
        order=result.order,
        legs=[
            RouteLegResponse(
                distance_meters=leg.distance_meters,
                duration_seconds=leg.duration_seconds,
                start_address=leg.start_address,
                end_address=leg.end_address,
            )
            for leg in result.legs
        ],
        provider=result.provider,
        total_distance_meters=result.total_distance_meters,
        total_duration_seconds=result.total_duration_seconds,
    )
