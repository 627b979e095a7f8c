"""Ring-level geometry helpers: WKT parsing, outer-ring selection, centroids."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Sequence

from pydantic import ValidationError

from .models import Point, Polygon

logger = logging.getLogger(__name__)

_WKT_KEYWORD = re.compile(r"^\s*(MULTI)?POLYGON\s*", re.IGNORECASE)
_WKT_RING = re.compile(r"\(([^()]+)\)")

RawRing = Sequence[Sequence[float]]


def parse_wkt(wkt: str | None) -> Polygon:
    """Parse a ``POLYGON((lon lat, ...))`` string into a polygon of lat/lon points.

    Malformed point tokens are dropped; a ring disappears only when none of
    its points parse.
    """
    if not wkt:
        return Polygon.empty()
    body = _WKT_KEYWORD.sub("", wkt.strip())
    rings: list[list[Point]] = []
    for ring_text in _WKT_RING.findall(body):
        ring = [p for p in (_parse_wkt_point(token) for token in ring_text.split(",")) if p]
        if ring:
            rings.append(ring)
    return Polygon(rings=rings)


def _parse_wkt_point(token: str) -> Point | None:
    parts = token.split()
    if len(parts) < 2:
        return None
    try:
        lon = float(parts[0])
        lat = float(parts[1])
    except ValueError:
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    try:
        return Point(lat=lat, lon=lon)
    except ValidationError:
        return None


def outer_ring(geometry: dict[str, Any] | None) -> list[list[float]]:
    """Return the raw outer ring of a GeoJSON geometry.

    For a MultiPolygon only the member whose outer ring has the most vertices
    contributes.
    """
    if not isinstance(geometry, dict):
        return []
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates") or []
    if kind == "Polygon":
        return list(coordinates[0]) if coordinates else []
    if kind == "MultiPolygon":
        best: list[list[float]] = []
        for member in coordinates:
            if member and len(member[0]) > len(best):
                best = list(member[0])
        return best
    logger.debug("unsupported_geometry_type type=%s", kind)
    return []


def ring_centroid(ring: Sequence[Point]) -> Point | None:
    """Arithmetic mean of ring vertices."""
    if not ring:
        return None
    lat = sum(p.lat for p in ring) / len(ring)
    lon = sum(p.lon for p in ring) / len(ring)
    return Point.model_construct(lat=lat, lon=lon)


def squared_distance(a: Point, b: Point) -> float:
    return (a.lat - b.lat) ** 2 + (a.lon - b.lon) ** 2
