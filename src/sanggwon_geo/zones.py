"""Trade-zone and administrative-district lookup on the commerce-zone service."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from .config import Settings
from .errors import AuthError, NoResultsError, NotFoundError, ParseError
from .fetch import ResilientFetchClient
from .models import Point, Zone, ZoneKind

logger = logging.getLogger(__name__)

# Digits, dots and the generic trailing "동" suffix: "역삼1동" and "역삼동" compare equal.
_DISTRICT_QUALIFIERS = re.compile(r"[0-9.]+|동$")


def extract_items(payload: Any) -> list[dict[str, Any]] | None:
    """Pull the item list out of a commerce-service payload.

    Items may sit under ``body``, ``response.body`` or at the top level, and
    a single item is published as a bare object rather than a list.
    """
    if not isinstance(payload, dict):
        return None
    body = payload.get("body")
    if not isinstance(body, dict):
        response = payload.get("response")
        body = response.get("body") if isinstance(response, dict) else None
    items = body.get("items") if isinstance(body, dict) else None
    if items is None:
        items = payload.get("items")
    if items is None:
        return None
    if isinstance(items, dict):
        # Some endpoints nest once more: {"items": {"item": [...]}}
        inner = items.get("item")
        items = inner if inner is not None else [items]
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list):
        return None
    return [item for item in items if isinstance(item, dict)]


def extract_total_count(payload: Any, default: int = 0) -> int:
    if not isinstance(payload, dict):
        return default
    body = payload.get("body")
    if not isinstance(body, dict):
        response = payload.get("response")
        body = response.get("body") if isinstance(response, dict) else None
    value = body.get("totalCount") if isinstance(body, dict) else None
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def extract_reference_month(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    header = payload.get("header")
    if not isinstance(header, dict) or not header.get("stdrYm"):
        response = payload.get("response")
        header = response.get("header") if isinstance(response, dict) else None
    value = header.get("stdrYm") if isinstance(header, dict) else None
    return str(value) if value else ""


def normalize_district_name(name: str) -> str:
    return _DISTRICT_QUALIFIERS.sub("", name or "").strip()


def _fuzzy_match(candidates: list[dict[str, Any]], field: str, wanted: str) -> dict[str, Any] | None:
    for candidate in candidates:
        name = str(candidate.get(field) or "")
        if name and (wanted in name or name in wanted):
            return candidate
    return None


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ZoneLocator:
    """Finds candidate zones around a point or under an administrative hierarchy."""

    def __init__(self, settings: Settings, fetcher: ResilientFetchClient) -> None:
        self.settings = settings
        self.fetcher = fetcher

    def _service_key(self) -> str:
        key = self.settings.credential("data_api_key")
        if not key:
            raise AuthError("data_api_key_missing")
        return key

    async def find_nearby(self, point: Point, radius_meters: int | None = None) -> list[Zone]:
        """Trade zones within ``radius_meters`` of ``point``; an empty result is an error."""
        radius = radius_meters or self.settings.search_radius_meters
        payload = await self.fetcher.fetch_json(
            f"{self.settings.data_api_base_url}/storeZoneInRadius",
            params={
                "radius": radius,
                "cx": point.lon,
                "cy": point.lat,
                "serviceKey": self._service_key(),
                "type": "json",
            },
            endpoint="sdsc2/storeZoneInRadius",
        )
        if not isinstance(payload, dict):
            raise ParseError("trade_zone_payload_invalid", endpoint="sdsc2/storeZoneInRadius")
        zones = [self._trade_zone(item, point) for item in extract_items(payload) or []]
        if not zones:
            raise NoResultsError(f"no_trade_zones: ({point.lat}, {point.lon}) r={radius}m")
        logger.info("trade_zones_found count=%s radius=%s", len(zones), radius)
        return zones

    @staticmethod
    def _trade_zone(item: dict[str, Any], anchor: Point) -> Zone:
        return Zone(
            id=str(item.get("trarNo") or ""),
            display_name=str(item.get("mainTrarNm") or ""),
            province_name=str(item.get("ctprvnNm") or ""),
            city_name=str(item.get("signguNm") or ""),
            area_size=_to_float(item.get("trarArea")),
            kind=ZoneKind.TRADE,
            raw_boundary=item.get("coords") or None,
            anchor_point=anchor,
            reference_month=str(item["stdrYm"]) if item.get("stdrYm") else None,
        )

    async def find_by_hierarchy(
        self,
        province: str,
        city: str,
        district_hint: str = "",
        anchor: Point | None = None,
    ) -> list[Zone]:
        """Administrative districts of a city, narrowed by ``district_hint`` when it matches."""
        province = (province or "").strip()
        city = (city or "").strip()
        if not province:
            raise NotFoundError("province_missing")
        if not city:
            raise NotFoundError("city_missing")

        provinces = await self._hierarchy("mega")
        target_province = _fuzzy_match(provinces, "ctprvnNm", province)
        if target_province is None:
            raise NotFoundError(f"province_not_found: {province}")

        cities = await self._hierarchy("cty", ctprvnCd=target_province.get("ctprvnCd"))
        target_city = _fuzzy_match(cities, "signguNm", city)
        if target_city is None:
            raise NotFoundError(f"city_not_found: {city}")

        districts = await self._hierarchy("admi", signguCd=target_city.get("signguCd"))
        if not districts:
            raise NoResultsError(f"no_districts: {target_city.get('signguNm')}")

        selected = filter_districts(districts, district_hint)
        province_name = str(target_province.get("ctprvnNm") or province)
        city_name = str(target_city.get("signguNm") or city)
        return [
            Zone(
                id=str(item.get("adongCd") or ""),
                display_name=f"{province_name} {city_name} {item.get('adongNm') or ''}".strip(),
                province_name=province_name,
                city_name=city_name,
                district_name=str(item.get("adongNm") or ""),
                area_size=None,
                kind=ZoneKind.ADMIN,
                admin_code=str(item.get("adongCd") or ""),
                anchor_point=anchor,
            )
            for item in selected
        ]

    async def _hierarchy(self, category: str, **extra: Any) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "resId": "dong",
            "catId": category,
            "type": "json",
            "serviceKey": self._service_key(),
        }
        params.update({k: v for k, v in extra.items() if v is not None})
        try:
            payload = await self.fetcher.fetch_json(
                f"{self.settings.data_api_base_url}/baroApi",
                params=params,
                endpoint=f"sdsc2/baroApi[{category}]",
            )
        except ParseError as exc:
            logger.warning("hierarchy_lookup_unparsed category=%s error=%s", category, exc)
            return []
        return extract_items(payload) or []


def filter_districts(
    districts: list[dict[str, Any]],
    hint: str,
    name_of: Callable[[dict[str, Any]], str] = lambda d: str(d.get("adongNm") or ""),
) -> list[dict[str, Any]]:
    """Narrow districts to those matching ``hint``; no match keeps the full list."""
    hint = (hint or "").strip()
    if not hint:
        return districts
    clean_hint = normalize_district_name(hint)
    matches = [
        d
        for d in districts
        if hint in name_of(d) or (clean_hint and normalize_district_name(name_of(d)) == clean_hint)
    ]
    if not matches:
        logger.info("district_hint_unmatched hint=%s fallback=full_list", hint)
        return districts
    return matches
