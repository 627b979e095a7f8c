"""Data model shared by the resolution components."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Point(BaseModel):
    """WGS84 point in degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    @field_validator("lat")
    @classmethod
    def _check_lat(cls, value: float) -> float:
        if not -90 <= value <= 90:
            raise ValueError(f"latitude out of range: {value}")
        return value

    @field_validator("lon")
    @classmethod
    def _check_lon(cls, value: float) -> float:
        if not -180 <= value <= 180:
            raise ValueError(f"longitude out of range: {value}")
        return value


class Polygon(BaseModel):
    """Ordered rings of points; an empty polygon means the boundary is unavailable."""

    model_config = ConfigDict(frozen=True)

    rings: list[list[Point]] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "Polygon":
        return cls(rings=[])

    @property
    def is_empty(self) -> bool:
        # Fewer than three points cannot enclose an area.
        return not any(len(ring) >= 3 for ring in self.rings)

    def as_lat_lon(self) -> list[list[list[float]]]:
        return [[[p.lat, p.lon] for p in ring] for ring in self.rings]


class ZoneKind(str, Enum):
    TRADE = "trade"
    ADMIN = "admin"


class Zone(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    province_name: str = ""
    city_name: str = ""
    district_name: str | None = None
    area_size: float | None = None
    kind: ZoneKind
    admin_code: str | None = None
    raw_boundary: str | None = None
    anchor_point: Point | None = None
    resolved_polygon: Polygon | None = None
    reference_month: str | None = None

    def with_polygon(self, polygon: Polygon) -> "Zone":
        return self.model_copy(update={"resolved_polygon": polygon})


class ResolvedAddress(BaseModel):
    point: Point
    canonical_label: str
    category: str
    raw: dict[str, Any] = Field(default_factory=dict)


class AuthToken(BaseModel):
    access_token: str
    expires_at: datetime


class Store(BaseModel):
    """A store row as published by the commerce-zone service."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    business_name: str = Field(default="", alias="bizesNm")
    branch_name: Optional[str] = Field(default=None, alias="brchNm")
    large_category: Optional[str] = Field(default=None, alias="indsLclsNm")
    middle_category: Optional[str] = Field(default=None, alias="indsMclsNm")
    building_name: Optional[str] = Field(default=None, alias="bldNm")
    floor: Optional[str] = Field(default=None, alias="flrNo")
    road_address: Optional[str] = Field(default=None, alias="rdnmAdr")
    lat: Optional[float] = None
    lon: Optional[float] = None
    reference_month: Optional[str] = Field(default=None, alias="stdrYm")

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> Optional[float]:
        if value in (None, ""):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator(
        "branch_name",
        "large_category",
        "middle_category",
        "building_name",
        "floor",
        "road_address",
        "reference_month",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)


class StoreListing(BaseModel):
    stores: list[Store] = Field(default_factory=list)
    reference_month: str = ""
    total_count: int = 0
    pages_fetched: int = 0
    truncated: bool = False


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: str
    current: int
    total: int
    batch_start: int | None = None

    @property
    def message(self) -> str:
        if self.batch_start is not None and self.batch_start != self.current:
            return f"{self.phase}: page {self.batch_start}-{self.current} of {self.total}"
        return f"{self.phase}: page {self.current} of {self.total}"
