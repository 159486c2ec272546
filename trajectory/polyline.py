"""Encoded polyline codec for route geometry.

Implements the Google encoded polyline algorithm. Decoded coordinates use the
GeoJSON ``[lng, lat]`` order expected by map layers.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from exceptions import PolylineDecodeError


def _decode_value(encoded: str, index: int) -> tuple[int, int]:
    shift = 0
    result = 0
    while True:
        if index >= len(encoded):
            raise PolylineDecodeError(f"Truncated polyline at offset {index}")
        b = ord(encoded[index]) - 63
        index += 1
        if b < 0 or b > 63:
            raise PolylineDecodeError(f"Invalid polyline character {encoded[index - 1]!r} at offset {index - 1}")
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode_polyline(encoded: Optional[str], precision: int = 5) -> List[List[float]]:
    """Decode an encoded polyline into ``[[lng, lat], ...]``."""
    if not encoded:
        return []

    factor = 10 ** precision
    coordinates: List[List[float]] = []
    index = 0
    lat = 0
    lng = 0
    while index < len(encoded):
        d_lat, index = _decode_value(encoded, index)
        d_lng, index = _decode_value(encoded, index)
        lat += d_lat
        lng += d_lng
        coordinates.append([lng / factor, lat / factor])
    return coordinates


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(coordinates: Sequence[Sequence[float]], precision: int = 5) -> str:
    """Encode ``[[lng, lat], ...]`` into a polyline string."""
    factor = 10 ** precision
    parts = []
    prev_lat = 0
    prev_lng = 0
    for lng, lat in coordinates:
        lat_i = int(round(lat * factor))
        lng_i = int(round(lng * factor))
        parts.append(_encode_value(lat_i - prev_lat))
        parts.append(_encode_value(lng_i - prev_lng))
        prev_lat, prev_lng = lat_i, lng_i
    return "".join(parts)


def polyline_to_geojson(encoded: Optional[str]) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {},
        "geometry": {
            "type": "LineString",
            "coordinates": decode_polyline(encoded),
        },
    }


def convert_google_route(response: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Reduce a Directions API response to ``{distance, duration, geometry}``.

    Distance is in metres and duration in seconds, taken from the first leg of
    the first route.
    """
    if not response or not response.get("routes"):
        return None

    route = response["routes"][0]
    leg = route["legs"][0]
    return {
        "distance": leg["distance"]["value"],
        "duration": leg["duration"]["value"],
        "geometry": polyline_to_geojson(route["overview_polyline"]["points"]),
    }


__all__ = [
    "convert_google_route",
    "decode_polyline",
    "encode_polyline",
    "polyline_to_geojson",
]
