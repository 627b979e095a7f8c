"""Free-text address geocoding against the V-World search API."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from .config import Settings
from .errors import AuthError, GeoResolutionError, NotFoundError
from .fetch import ResilientFetchClient
from .models import Point, ResolvedAddress

logger = logging.getLogger(__name__)

_TRAILING_PAREN = re.compile(r"\(([^)]+)\)\s*$")


@dataclass(frozen=True)
class SearchCategory:
    label: str
    search_type: str
    category: str | None = None


# Structured address matches are more precise than place search, so they go first.
SEARCH_CATEGORIES: tuple[SearchCategory, ...] = (
    SearchCategory("road", "ADDRESS", "road"),
    SearchCategory("parcel", "ADDRESS", "parcel"),
    SearchCategory("place", "PLACE"),
)


class AddressResolver:
    def __init__(self, settings: Settings, fetcher: ResilientFetchClient) -> None:
        self.settings = settings
        self.fetcher = fetcher

    async def resolve(self, address_text: str) -> ResolvedAddress:
        """Geocode an address, trying road, parcel, then place search in turn."""
        query = (address_text or "").strip()
        if not query:
            raise NotFoundError("address_empty")
        key = self.settings.credential("vworld_key")
        if not key:
            raise AuthError("vworld_key_missing")

        diagnostics: list[str] = []
        for category in SEARCH_CATEGORIES:
            resolved = await self._search(query, category, key, diagnostics)
            if resolved is not None:
                logger.info("address_resolved category=%s label=%s", category.label, resolved.canonical_label)
                return resolved

        detail = "; ".join(diagnostics)
        if detail:
            raise NotFoundError(f"address_not_found: {query} ({detail})")
        raise NotFoundError(f"address_not_found: {query}")

    async def _search(
        self,
        query: str,
        category: SearchCategory,
        key: str,
        diagnostics: list[str],
    ) -> ResolvedAddress | None:
        params: dict[str, Any] = {
            "service": "search",
            "request": "search",
            "version": "2.0",
            "crs": "EPSG:4326",
            "size": 10,
            "page": 1,
            "query": query,
            "type": category.search_type,
            "format": "json",
            "errorformat": "json",
            "key": key,
        }
        if category.category:
            params["category"] = category.category

        try:
            data = await self.fetcher.fetch_json(
                self.settings.vworld_search_url, params=params, endpoint="vworld/search"
            )
        except GeoResolutionError as exc:
            diagnostics.append(f"[{category.label}] {exc}")
            return None

        response = data.get("response") if isinstance(data, dict) else None
        if not isinstance(response, dict):
            diagnostics.append(f"[{category.label}] unexpected response shape")
            return None
        status = response.get("status")
        items = ((response.get("result") or {}).get("items")) or []
        if status == "OK" and items:
            resolved = _to_resolved_address(items[0], category.label)
            if resolved is None:
                diagnostics.append(f"[{category.label}] result without usable point")
            return resolved
        if status != "NOT_FOUND":
            error_text = (response.get("error") or {}).get("text")
            diagnostics.append(f"[{category.label}] {error_text or status}")
        return None

    async def reverse_admin_code(self, point: Point) -> str | None:
        """Return the interior-ministry district code for a point, if the provider knows it."""
        key = self.settings.credential("vworld_key")
        if not key:
            return None
        params = {
            "service": "address",
            "request": "getAddress",
            "version": "2.0",
            "crs": "EPSG:4326",
            "point": f"{point.lon},{point.lat}",
            "format": "json",
            "type": "PARCEL",
            "zipcode": "false",
            "simple": "false",
            "key": key,
        }
        try:
            data = await self.fetcher.fetch_json(
                self.settings.vworld_address_url, params=params, endpoint="vworld/address"
            )
        except GeoResolutionError as exc:
            logger.warning("reverse_geocode_failed error=%s", exc)
            return None
        response = data.get("response") if isinstance(data, dict) else None
        if not isinstance(response, dict) or response.get("status") != "OK":
            return None
        results = response.get("result") or []
        if not results:
            return None
        structure = results[0].get("structure") or {}
        code = structure.get("level4AC")
        return str(code) if code else None


def _to_resolved_address(item: dict[str, Any], category: str) -> ResolvedAddress | None:
    point_data = item.get("point") or {}
    try:
        point = Point(lat=float(point_data.get("y")), lon=float(point_data.get("x")))
    except (TypeError, ValueError, ValidationError):
        return None
    address = item.get("address") or {}
    label = address.get("road") or address.get("parcel") or item.get("title") or ""
    return ResolvedAddress(point=point, canonical_label=str(label), category=category, raw=item)


def hierarchy_hint(label: str) -> tuple[str, str, str]:
    """Split a canonical address label into (province, city, district hint).

    A trailing parenthesised group, as in road addresses like
    ``"서울특별시 강남구 테헤란로 152 (역삼동)"``, is preferred as the hint.
    """
    parts = (label or "").split()
    province = parts[0] if parts else ""
    city = parts[1] if len(parts) > 1 else ""
    match = _TRAILING_PAREN.search(label or "")
    if match:
        district = match.group(1).strip()
    else:
        district = " ".join(parts[2:])
    return province, city, district
