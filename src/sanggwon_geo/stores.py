"""Paginated store listings for trade zones and administrative districts."""

from __future__ import annotations

import logging
import math
from typing import Any

from pydantic import ValidationError

from .config import Settings
from .errors import AuthError
from .fetch import ResilientFetchClient
from .models import Store, StoreListing, Zone, ZoneKind
from .progress import ProgressChannel
from .zones import extract_items, extract_reference_month, extract_total_count

logger = logging.getLogger(__name__)


class StoreDirectory:
    def __init__(self, settings: Settings, fetcher: ResilientFetchClient) -> None:
        self.settings = settings
        self.fetcher = fetcher

    async def fetch_for_zone(
        self, zone: Zone, progress: ProgressChannel | None = None
    ) -> StoreListing:
        if zone.kind is ZoneKind.ADMIN and zone.admin_code:
            return await self.fetch_admin_district_stores(zone.admin_code, progress=progress)
        return await self.fetch_trade_zone_stores(zone.id, progress=progress)

    async def fetch_trade_zone_stores(
        self, zone_id: str, progress: ProgressChannel | None = None
    ) -> StoreListing:
        return await self._fetch_all(
            "storeListInArea", {"key": zone_id}, phase="trade_zone_stores", progress=progress
        )

    async def fetch_admin_district_stores(
        self,
        admin_code: str,
        div_id: str = "adongCd",
        progress: ProgressChannel | None = None,
    ) -> StoreListing:
        return await self._fetch_all(
            "storeListInDong",
            {"divId": div_id, "key": admin_code},
            phase="admin_district_stores",
            progress=progress,
        )

    async def _fetch_all(
        self,
        operation: str,
        query: dict[str, Any],
        *,
        phase: str,
        progress: ProgressChannel | None,
    ) -> StoreListing:
        service_key = self.settings.credential("data_api_key")
        if not service_key:
            raise AuthError("data_api_key_missing")
        url = f"{self.settings.data_api_base_url}/{operation}"
        page_size = self.settings.page_size

        def request_for_page(page: int) -> tuple[str, dict[str, Any]]:
            return url, {
                **query,
                "numOfRows": page_size,
                "pageNo": page,
                "serviceKey": service_key,
                "type": "json",
            }

        first_url, first_params = request_for_page(1)
        first = await self.fetcher.fetch_json(
            first_url, params=first_params, endpoint=f"sdsc2/{operation}"
        )
        rows = extract_items(first) or []
        total_count = extract_total_count(first, default=len(rows))
        listing = StoreListing(
            stores=_to_stores(rows),
            reference_month=extract_reference_month(first),
            total_count=total_count,
            pages_fetched=1,
        )

        total_pages = math.ceil(total_count / page_size) if page_size else 1
        if total_pages > 1:
            pages = await self.fetcher.fetch_pages(
                request_for_page,
                total_pages,
                phase=phase,
                extract=extract_items,
                progress=progress,
            )
            listing.stores.extend(_to_stores(pages.items))
            listing.pages_fetched += pages.pages_fetched
            listing.truncated = pages.stopped_early

        if not listing.reference_month and listing.stores:
            listing.reference_month = listing.stores[0].reference_month or ""
        logger.info(
            "stores_fetched operation=%s stores=%s total=%s pages=%s truncated=%s",
            operation,
            len(listing.stores),
            total_count,
            listing.pages_fetched,
            listing.truncated,
        )
        return listing


def _to_stores(rows: list[dict[str, Any]]) -> list[Store]:
    stores: list[Store] = []
    for row in rows:
        try:
            stores.append(Store.model_validate(row))
        except ValidationError as exc:
            logger.debug("store_row_skipped error=%s", exc)
    return stores
