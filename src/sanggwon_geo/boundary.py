"""
Boundary acquisition for resolved zones.

Trade zones carry their own WKT polygon. Administrative districts have no
embedded geometry, so an ordered chain of strategies is tried until one
yields a ring:

1. statistics service: geocode the label to its own district code, then
   fetch that code's boundary for this year (falling back to last year)
2. feature service: query by the 8-digit district code
3. bundled dataset: exact district-name match, disambiguated by anchor point

Boundary acquisition never raises. A missing boundary is an empty polygon.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from importlib import resources
from pathlib import Path
from typing import Any, Callable, Sequence

from .auth import TokenManager
from .cache import PolygonCache
from .config import Settings
from .errors import AuthError, GeoResolutionError, ParseError
from .fetch import ResilientFetchClient
from .geometry import outer_ring, parse_wkt, ring_centroid, squared_distance
from .models import Point, Polygon, Zone, ZoneKind
from .projection import CoordinateReprojector

logger = logging.getLogger(__name__)

SGIS_TOKEN_EXPIRED = -401
WFS_DISTRICT_PROPERTY = "emd_cd"
WFS_CODE_LENGTH = 8
DEFAULT_DATASET_RESOURCE = "admin_boundaries_sample.geojson"


def _ring_polygon(points: list[Point]) -> Polygon:
    if len(points) < 3:
        return Polygon.empty()
    return Polygon(rings=[points])


class BoundaryStrategy(ABC):
    """One way of producing a polygon for an administrative zone."""

    name: str = "strategy"

    @abstractmethod
    async def __call__(self, zone: Zone) -> Polygon:
        pass


class StatisticsBoundaryStrategy(BoundaryStrategy):
    name = "statistics_service"

    def __init__(
        self,
        settings: Settings,
        fetcher: ResilientFetchClient,
        tokens: TokenManager,
        reprojector: CoordinateReprojector,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.tokens = tokens
        self.reprojector = reprojector
        self._today = today

    async def __call__(self, zone: Zone) -> Polygon:
        token = await self.tokens.get_token()
        adm_cd = await self._geocode(zone.display_name, token)
        if not adm_cd:
            logger.info("statistics_geocode_empty label=%s", zone.display_name)
            return Polygon.empty()

        year = self._today().year
        features = await self._boundary_features(adm_cd, year, token)
        if not features:
            # Boundary datasets are republished yearly with a lag.
            logger.info("statistics_boundary_year_fallback adm_cd=%s year=%s", adm_cd, year - 1)
            features = await self._boundary_features(adm_cd, year - 1, token)
        if not features:
            return Polygon.empty()

        ring = outer_ring(features[0].get("geometry"))
        return _ring_polygon(self.reprojector.normalize(ring))

    async def _geocode(self, label: str, token: str) -> str | None:
        data = await self.fetcher.fetch_json(
            f"{self.settings.sgis_base_url}/addr/geocode.json",
            params={"accessToken": token, "address": label},
            endpoint="sgis/addr/geocode.json",
        )
        self._check_token(data)
        if not isinstance(data, dict) or data.get("errCd") != 0:
            return None
        rows = (data.get("result") or {}).get("resultdata") or []
        if not rows:
            return None
        code = rows[0].get("adm_cd")
        return str(code) if code else None

    async def _boundary_features(self, adm_cd: str, year: int, token: str) -> list[dict[str, Any]]:
        data = await self.fetcher.fetch_json(
            f"{self.settings.sgis_base_url}/boundary/hadmarea.geojson",
            params={"accessToken": token, "adm_cd": adm_cd, "year": str(year), "low_search": 0},
            endpoint="sgis/boundary/hadmarea.geojson",
        )
        self._check_token(data)
        if not isinstance(data, dict):
            raise ParseError("boundary_payload_invalid", endpoint="sgis/boundary/hadmarea.geojson")
        features = data.get("features") or []
        return [f for f in features if isinstance(f, dict)]

    def _check_token(self, data: Any) -> None:
        if isinstance(data, dict) and data.get("errCd") == SGIS_TOKEN_EXPIRED:
            self.tokens.invalidate()
            raise AuthError("sgis_token_expired")


class FeatureServiceBoundaryStrategy(BoundaryStrategy):
    name = "feature_service"

    def __init__(
        self,
        settings: Settings,
        fetcher: ResilientFetchClient,
        reprojector: CoordinateReprojector,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.reprojector = reprojector

    async def __call__(self, zone: Zone) -> Polygon:
        if not zone.admin_code:
            return Polygon.empty()
        key = self.settings.credential("vworld_key")
        if not key:
            raise AuthError("vworld_key_missing")
        # Providers disagree on 8 vs 10 digit codes; the feature service indexes 8.
        code = zone.admin_code[:WFS_CODE_LENGTH]
        data = await self.fetcher.fetch_json(
            self.settings.vworld_wfs_url,
            params={
                "service": "WFS",
                "request": "GetFeature",
                "version": "1.1.0",
                "typename": self.settings.vworld_wfs_typename,
                "output": "application/json",
                "srsname": "EPSG:4326",
                "key": key,
                "filter": district_code_filter(code),
            },
            endpoint="vworld/wfs",
        )
        if not isinstance(data, dict):
            raise ParseError("wfs_payload_invalid", endpoint="vworld/wfs")
        features = [f for f in data.get("features") or [] if isinstance(f, dict)]
        if not features:
            return Polygon.empty()
        return _ring_polygon(self.reprojector.normalize(outer_ring(features[0].get("geometry"))))


def district_code_filter(code: str) -> str:
    return (
        "<Filter><PropertyIsEqualTo>"
        f"<PropertyName>{WFS_DISTRICT_PROPERTY}</PropertyName>"
        f"<Literal>{code}</Literal>"
        "</PropertyIsEqualTo></Filter>"
    )


@dataclass(frozen=True)
class DatasetFeature:
    district_name: str
    district_code: str
    full_name: str
    geometry: dict[str, Any]


class BundledBoundaryDataset:
    """Packaged district boundaries, read from disk on first use only."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self._features: list[DatasetFeature] | None = None

    @property
    def loaded(self) -> bool:
        return self._features is not None

    def features(self) -> list[DatasetFeature]:
        if self._features is None:
            self._features = self._load()
        return self._features

    def _read(self) -> str:
        if self.path is not None:
            return self.path.read_text(encoding="utf-8")
        return (
            resources.files("sanggwon_geo")
            .joinpath("data")
            .joinpath(DEFAULT_DATASET_RESOURCE)
            .read_text(encoding="utf-8")
        )

    def _load(self) -> list[DatasetFeature]:
        try:
            collection = json.loads(self._read())
        except (OSError, ValueError) as exc:
            logger.error("boundary_dataset_unavailable path=%s error=%s", self.path, exc)
            return []
        if not isinstance(collection, dict):
            logger.error(
                "boundary_dataset_unavailable path=%s error=not a feature collection", self.path
            )
            return []
        features: list[DatasetFeature] = []
        for raw in collection.get("features") or []:
            feature = _dataset_feature(raw)
            if feature is not None:
                features.append(feature)
        logger.info("boundary_dataset_loaded features=%s", len(features))
        return features


def _dataset_feature(raw: Any) -> DatasetFeature | None:
    if not isinstance(raw, dict) or not isinstance(raw.get("geometry"), dict):
        return None
    props = raw.get("properties") or {}
    full_name = str(props.get("adm_nm") or props.get("districtName") or "")
    name = str(props.get("districtName") or (full_name.split()[-1] if full_name else ""))
    if not name:
        return None
    code = props.get("adm_cd2") or props.get("districtCode") or props.get("adm_cd") or ""
    return DatasetFeature(
        district_name=name,
        district_code=str(code),
        full_name=full_name or name,
        geometry=raw["geometry"],
    )


def closest_to_anchor(rings: Sequence[list[Point]], anchor: Point | None) -> int:
    """Index of the ring whose vertex centroid lies nearest ``anchor``."""
    if anchor is None or len(rings) < 2:
        return 0
    best_index = 0
    best_distance = float("inf")
    for index, ring in enumerate(rings):
        centroid = ring_centroid(ring)
        if centroid is None:
            continue
        distance = squared_distance(centroid, anchor)
        if distance < best_distance:
            best_index, best_distance = index, distance
    return best_index


class BundledDatasetBoundaryStrategy(BoundaryStrategy):
    name = "bundled_dataset"

    def __init__(self, dataset: BundledBoundaryDataset, reprojector: CoordinateReprojector) -> None:
        self.dataset = dataset
        self.reprojector = reprojector

    async def __call__(self, zone: Zone) -> Polygon:
        name = zone.district_name or (zone.display_name.split()[-1] if zone.display_name else "")
        if not name:
            return Polygon.empty()
        rings = []
        for feature in self.dataset.features():
            if feature.district_name != name:
                continue
            ring = self.reprojector.normalize(outer_ring(feature.geometry))
            if len(ring) >= 3:
                rings.append(ring)
        if not rings:
            return Polygon.empty()
        if len(rings) > 1:
            logger.info("bundled_dataset_disambiguation name=%s candidates=%s", name, len(rings))
        return Polygon(rings=[rings[closest_to_anchor(rings, zone.anchor_point)]])


class BoundaryResolver:
    """Produces a polygon for any zone, consulting the cache first."""

    def __init__(self, strategies: Sequence[BoundaryStrategy], cache: PolygonCache) -> None:
        self.strategies = list(strategies)
        self.cache = cache

    async def resolve_polygon(self, zone: Zone) -> Polygon:
        cached = self.cache.get(zone.display_name)
        if cached is not None:
            return cached
        if zone.kind is ZoneKind.TRADE:
            polygon = parse_wkt(zone.raw_boundary)
            if polygon.is_empty:
                logger.warning("trade_zone_wkt_unusable zone=%s", zone.display_name)
                polygon = Polygon.empty()
        else:
            polygon = await self._run_strategies(zone)
        if not polygon.is_empty:
            self.cache.put(zone.display_name, polygon)
        return polygon

    async def resolve_zone(self, zone: Zone) -> Zone:
        return zone.with_polygon(await self.resolve_polygon(zone))

    async def _run_strategies(self, zone: Zone) -> Polygon:
        for strategy in self.strategies:
            try:
                polygon = await strategy(zone)
            except GeoResolutionError as exc:
                logger.warning(
                    "boundary_strategy_failed zone=%s strategy=%s error=%s",
                    zone.display_name,
                    strategy.name,
                    exc,
                )
                continue
            except Exception:
                logger.exception(
                    "boundary_strategy_crashed zone=%s strategy=%s", zone.display_name, strategy.name
                )
                continue
            if not polygon.is_empty:
                logger.info("boundary_resolved zone=%s strategy=%s", zone.display_name, strategy.name)
                return polygon
        logger.warning("boundary_unavailable zone=%s", zone.display_name)
        return Polygon.empty()
