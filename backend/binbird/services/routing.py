from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx

from binbird.core.config import get_settings
from binbird.core.logging import get_logger
from binbird.domain.geometry import build_distance_matrix, encode_polyline
from binbird.domain.optimization import solve_open_path


_logger = get_logger(__name__)
_DIRECTIONS_ENDPOINT = "https://maps.googleapis.com/maps/api/directions/json"
_AVERAGE_SPEED_MPS = 11.11
_MAX_GOOGLE_WAYPOINTS = 25

Coordinate = tuple[float, float]


class RouteOptimizationError(RuntimeError):
    """Raised when no ordered route can be produced for a request."""


@dataclass(slots=True)
class RouteLegSummary:
    distance_meters: float
    duration_seconds: int
    start_address: str | None = None
    end_address: str | None = None


@dataclass(slots=True)
class OptimizedRoute:
    polyline: str
    order: list[int]
    provider: str
    legs: list[RouteLegSummary] = field(default_factory=list)

    @property
    def total_distance_meters(self) -> float:
        return sum(leg.distance_meters for leg in self.legs)

    @property
    def total_duration_seconds(self) -> int:
        return sum(leg.duration_seconds for leg in self.legs)


def optimize_route(
    start: Coordinate,
    end: Coordinate,
    waypoints: Sequence[Coordinate],
) -> OptimizedRoute:
    """
    Order ``waypoints`` between fixed ``start`` and ``end`` points.

    ``order`` in the result is a permutation of the waypoint indices.
    """
    if not waypoints:
        raise RouteOptimizationError("At least one waypoint is required")

    settings = get_settings()
    _logger.info(
        "Route optimization started",
        waypoints=len(waypoints),
        provider=settings.routing_provider,
    )

    if settings.routing_provider == "google":
        if not settings.google_maps_api_key:
            _logger.info("Google directions skipped", reason="missing_api_key")
        elif len(waypoints) > _MAX_GOOGLE_WAYPOINTS:
            _logger.info(
                "Google directions skipped",
                reason="too_many_waypoints",
                waypoints=len(waypoints),
            )
        else:
            return _fetch_google_directions(
                start,
                end,
                waypoints,
                api_key=settings.google_maps_api_key,
                timeout=settings.routing_timeout,
            )

    return solve_route_locally(
        start,
        end,
        waypoints,
        time_limit_seconds=settings.routing_time_limit_seconds,
    )


def _format_point(point: Coordinate) -> str:
    return f"{point[0]},{point[1]}"


def _fetch_google_directions(
    start: Coordinate,
    end: Coordinate,
    waypoints: Sequence[Coordinate],
    *,
    api_key: str,
    timeout: float,
) -> OptimizedRoute:
    params = {
        "origin": _format_point(start),
        "destination": _format_point(end),
        "mode": "driving",
        "waypoints": "optimize:true|" + "|".join(_format_point(p) for p in waypoints),
        "key": api_key,
    }

    try:
        response = httpx.get(_DIRECTIONS_ENDPOINT, params=params, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as exc:
        _logger.warning("Google directions request failed", error=str(exc))
        raise RouteOptimizationError(f"Directions request failed: {exc}") from exc
    except ValueError as exc:
        raise RouteOptimizationError("Directions response was not JSON") from exc

    return _parse_directions_response(data, len(waypoints))


def _parse_directions_response(data: Any, waypoint_count: int) -> OptimizedRoute:
    if not isinstance(data, dict):
        raise RouteOptimizationError("Directions response was not an object")
    status = data.get("status")
    if status != "OK":
        _logger.warning("Google directions rejected", status=status)
        raise RouteOptimizationError(f"Directions status {status}")

    routes = data.get("routes") or []
    if not routes:
        raise RouteOptimizationError("No routes returned from directions API")
    route = routes[0] or {}

    try:
        order = [int(index) for index in route.get("waypoint_order") or []]
    except (TypeError, ValueError) as exc:
        raise RouteOptimizationError("Directions waypoint order is malformed") from exc
    if sorted(order) != list(range(waypoint_count)):
        _logger.warning(
            "Google directions order invalid", order=order, waypoints=waypoint_count
        )
        raise RouteOptimizationError("Directions waypoint order is not a permutation")

    legs = [
        RouteLegSummary(
            distance_meters=float((leg.get("distance") or {}).get("value") or 0.0),
            duration_seconds=int((leg.get("duration") or {}).get("value") or 0),
            start_address=leg.get("start_address"),
            end_address=leg.get("end_address"),
        )
        for leg in route.get("legs") or []
    ]
    encoded = (route.get("overview_polyline") or {}).get("points") or ""

    _logger.info("Route optimization finished", provider="google", legs=len(legs))
    return OptimizedRoute(polyline=encoded, order=order, provider="google", legs=legs)


def solve_route_locally(
    start: Coordinate,
    end: Coordinate,
    waypoints: Sequence[Coordinate],
    *,
    time_limit_seconds: int = 5,
) -> OptimizedRoute:
    """Order waypoints with OR-Tools over straight-line distances."""

    points = [tuple(start), *(tuple(p) for p in waypoints), tuple(end)]
    matrix = build_distance_matrix(points)
    end_index = len(points) - 1

    route_indices = solve_open_path(
        matrix,
        start_index=0,
        end_index=end_index,
        time_limit_seconds=time_limit_seconds,
    )
    if route_indices is None:
        _logger.warning("Route solver fallback", waypoints=len(waypoints))
        route_indices = list(range(len(points)))

    order = [index - 1 for index in route_indices if 0 < index < end_index]

    legs: list[RouteLegSummary] = []
    for from_index, to_index in zip(route_indices, route_indices[1:]):
        distance = float(matrix[from_index][to_index])
        legs.append(
            RouteLegSummary(
                distance_meters=distance,
                duration_seconds=int(round(distance / _AVERAGE_SPEED_MPS)),
            )
        )

    path = [points[index] for index in route_indices]
    _logger.info("Route optimization finished", provider="local", legs=len(legs))
    return OptimizedRoute(
        polyline=encode_polyline(path),
        order=order,
        provider="local",
        legs=legs,
    )
