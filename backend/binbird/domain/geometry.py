from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt
from typing import Iterable, Sequence


_EARTH_RADIUS_METERS = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points
    on the earth (specified in decimal degrees).
    """
    lat1_rad, lon1_rad = radians(lat1), radians(lon1)
    lat2_rad, lon2_rad = radians(lat2), radians(lon2)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = sin(dlat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return _EARTH_RADIUS_METERS * c


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks: list[str] = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable[tuple[float, float]], precision: int = 5) -> str:
    """Encode ``(lat, lng)`` pairs with the Google encoded polyline format."""

    factor = 10**precision
    prev_lat = 0
    prev_lng = 0
    encoded: list[str] = []
    for lat, lng in points:
        lat_i = round(lat * factor)
        lng_i = round(lng * factor)
        encoded.append(_encode_value(lat_i - prev_lat))
        encoded.append(_encode_value(lng_i - prev_lng))
        prev_lat, prev_lng = lat_i, lng_i
    return "".join(encoded)


def _decode_value(encoded: str, index: int) -> tuple[int, int] | None:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            return None
        byte = ord(encoded[index]) - 63
        index += 1
        result |= (byte & 0x1F) << shift
        shift += 5
        if byte < 0x20:
            break
    delta = ~(result >> 1) if (result & 1) else (result >> 1)
    return delta, index


def decode_polyline(encoded: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode a Google encoded polyline; a truncated tail is dropped."""

    if not encoded:
        return []
    factor = 10**precision
    index = 0
    lat = 0
    lng = 0
    coordinates: list[tuple[float, float]] = []

    while index < len(encoded):
        lat_step = _decode_value(encoded, index)
        if lat_step is None:
            break
        delta_lat, index = lat_step
        lng_step = _decode_value(encoded, index)
        if lng_step is None:
            break
        delta_lng, index = lng_step
        lat += delta_lat
        lng += delta_lng
        coordinates.append((lat / factor, lng / factor))

    return coordinates


def build_distance_matrix(points: Sequence[tuple[float, float]]) -> list[list[int]]:
    """Whole-metre haversine distances between every pair of points."""

    return [
        [
            0 if i == j else int(round(haversine_distance(a[0], a[1], b[0], b[1])))
            for j, b in enumerate(points)
        ]
        for i, a in enumerate(points)
    ]
