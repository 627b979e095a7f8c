"""Composition root wiring the resolution components for one session."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import httpx

from .address import AddressResolver, hierarchy_hint
from .auth import TokenManager
from .boundary import (
    BoundaryResolver,
    BoundaryStrategy,
    BundledBoundaryDataset,
    BundledDatasetBoundaryStrategy,
    FeatureServiceBoundaryStrategy,
    StatisticsBoundaryStrategy,
)
from .cache import PolygonCache
from .config import Settings
from .fetch import ResilientFetchClient
from .models import Point, ResolvedAddress, StoreListing, Zone
from .progress import ProgressChannel
from .projection import CoordinateReprojector
from .stores import StoreDirectory
from .zones import ZoneLocator

logger = logging.getLogger(__name__)


class GeoResolutionEngine:
    """Owns one HTTP client, polygon cache and token manager per session."""

    def __init__(
        self,
        settings: Settings | None = None,
        http: httpx.AsyncClient | None = None,
        strategies: Sequence[BoundaryStrategy] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.fetcher = ResilientFetchClient(self.settings, http=http)
        self.cache = PolygonCache()
        self.tokens = TokenManager(self.settings, self.fetcher)
        self.reprojector = CoordinateReprojector()
        self.dataset = BundledBoundaryDataset(self.settings.boundary_dataset_path)

        self.addresses = AddressResolver(self.settings, self.fetcher)
        self.zones = ZoneLocator(self.settings, self.fetcher)
        self.stores = StoreDirectory(self.settings, self.fetcher)
        self.boundaries = BoundaryResolver(
            strategies if strategies is not None else self.default_strategies(),
            self.cache,
        )

    def default_strategies(self) -> list[BoundaryStrategy]:
        return [
            StatisticsBoundaryStrategy(self.settings, self.fetcher, self.tokens, self.reprojector),
            FeatureServiceBoundaryStrategy(self.settings, self.fetcher, self.reprojector),
            BundledDatasetBoundaryStrategy(self.dataset, self.reprojector),
        ]

    async def __aenter__(self) -> "GeoResolutionEngine":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    async def resolve_address(self, address_text: str) -> ResolvedAddress:
        return await self.addresses.resolve(address_text)

    async def find_trade_zones(self, point: Point, radius_meters: int | None = None) -> list[Zone]:
        return await self.zones.find_nearby(point, radius_meters)

    async def find_admin_districts(self, address: ResolvedAddress) -> list[Zone]:
        province, city, district = hierarchy_hint(address.canonical_label)
        return await self.zones.find_by_hierarchy(province, city, district, anchor=address.point)

    async def resolve_boundary(self, zone: Zone) -> Zone:
        return await self.boundaries.resolve_zone(zone)

    async def resolve_boundaries(self, zones: Sequence[Zone]) -> list[Zone]:
        return list(await asyncio.gather(*(self.boundaries.resolve_zone(z) for z in zones)))

    async def fetch_stores(
        self, zone: Zone, progress: ProgressChannel | None = None
    ) -> StoreListing:
        return await self.stores.fetch_for_zone(zone, progress=progress)
