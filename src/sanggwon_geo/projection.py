"""
Coordinate reference system detection and reprojection.

Upstream providers rarely declare the CRS of the rings they return, so the
system is chosen from the magnitude of the first coordinate component:

    abs(x) <= 180            geographic, already [lon, lat]
    180 < abs(x) < 600000    legacy Bessel UTM-K (false easting 200,000)
    abs(x) >= 600000         modern GRS80 UTM-K (false easting 1,000,000)

The thresholds are an approximation and have not been checked against
provider documentation; coordinates near a boundary can be misclassified.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from .errors import ProjectionError
from .models import Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionDefinition:
    name: str
    proj4: str
    false_easting: float
    ellipsoid: str
    scale_factor: float
    is_geographic: bool = False


WGS84 = ProjectionDefinition(
    name="WGS84",
    proj4="+proj=longlat +datum=WGS84 +no_defs",
    false_easting=0.0,
    ellipsoid="WGS84",
    scale_factor=1.0,
    is_geographic=True,
)

# EPSG:5179, used by the statistics boundary service.
UTMK_GRS80 = ProjectionDefinition(
    name="UTM-K (GRS80)",
    proj4=(
        "+proj=tmerc +lat_0=38 +lon_0=127.5 +k=0.9996 +x_0=1000000 +y_0=2000000 "
        "+ellps=GRS80 +towgs84=0,0,0,0,0,0,0 +units=m +no_defs"
    ),
    false_easting=1_000_000.0,
    ellipsoid="GRS80",
    scale_factor=0.9996,
)

# EPSG:5174, Korean 1985 modified central belt.
UTMK_BESSEL = ProjectionDefinition(
    name="UTM-K (Bessel)",
    proj4=(
        "+proj=tmerc +lat_0=38 +lon_0=127.0028902777778 +k=1 +x_0=200000 +y_0=500000 "
        "+ellps=bessel +towgs84=-115.80,474.99,674.11,1.16,-2.31,-1.63,6.43 "
        "+units=m +no_defs"
    ),
    false_easting=200_000.0,
    ellipsoid="Bessel 1841",
    scale_factor=1.0,
)

GEOGRAPHIC_LIMIT = 180.0
LEGACY_EASTING_LIMIT = 600_000.0


class CrsRule(NamedTuple):
    upper_bound: float
    inclusive: bool
    definition: ProjectionDefinition

    def matches(self, magnitude: float) -> bool:
        if self.inclusive:
            return magnitude <= self.upper_bound
        return magnitude < self.upper_bound


CRS_DECISION_TABLE: tuple[CrsRule, ...] = (
    CrsRule(GEOGRAPHIC_LIMIT, True, WGS84),
    CrsRule(LEGACY_EASTING_LIMIT, False, UTMK_BESSEL),
    CrsRule(math.inf, True, UTMK_GRS80),
)


class CoordinateReprojector:
    """Normalizes raw rings to lat/lon points, reprojecting when needed."""

    def __init__(self, decision_table: Sequence[CrsRule] = CRS_DECISION_TABLE) -> None:
        self.decision_table = tuple(decision_table)
        self._transformers: dict[str, Transformer] = {}

    def detect(self, x: float) -> ProjectionDefinition:
        magnitude = abs(x)
        for rule in self.decision_table:
            if rule.matches(magnitude):
                return rule.definition
        return self.decision_table[-1].definition

    def normalize(self, raw_ring: Sequence[Sequence[float]]) -> list[Point]:
        """Convert ``[x, y]`` pairs into points; unusable pairs are skipped."""
        points: list[Point] = []
        degraded = False
        for coord in raw_ring:
            pair = _as_pair(coord)
            if pair is None:
                continue
            x, y = pair
            definition = self.detect(x)
            if definition.is_geographic:
                if -90 <= y <= 90:
                    points.append(Point(lat=y, lon=x))
                continue
            try:
                points.append(self.project(definition, x, y))
            except ProjectionError as exc:
                if not degraded:
                    logger.warning("reprojection_degraded crs=%s error=%s", definition.name, exc)
                    degraded = True
                points.append(Point.model_construct(lat=y, lon=x))
        return points

    def project(self, definition: ProjectionDefinition, x: float, y: float) -> Point:
        transformer = self._transformer(definition)
        try:
            lon, lat = transformer.transform(x, y, errcheck=True)
        except ProjError as exc:
            raise ProjectionError(f"transform_failed: {exc}") from exc
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ProjectionError("transform_failed: non-finite result")
        if not (-90 <= lat <= 90 and -180 <= lon <= 180):
            raise ProjectionError(f"transform_failed: out of range ({lat}, {lon})")
        return Point(lat=lat, lon=lon)

    def _transformer(self, definition: ProjectionDefinition) -> Transformer:
        cached = self._transformers.get(definition.name)
        if cached is not None:
            return cached
        try:
            transformer = Transformer.from_crs(
                CRS.from_proj4(definition.proj4), CRS.from_epsg(4326), always_xy=True
            )
        except (CRSError, ProjError) as exc:
            raise ProjectionError(f"crs_unavailable: {definition.name}: {exc}") from exc
        self._transformers[definition.name] = transformer
        logger.debug("transformer_created crs=%s", definition.name)
        return transformer


def _as_pair(coord: Sequence[float]) -> tuple[float, float] | None:
    if not isinstance(coord, (list, tuple)) or len(coord) < 2:
        return None
    try:
        x = float(coord[0])
        y = float(coord[1])
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return x, y
