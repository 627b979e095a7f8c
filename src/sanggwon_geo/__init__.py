"""Resolve Korean addresses and trade zones to boundaries and store listings."""

from .engine import GeoResolutionEngine
from .errors import (
    AllPathsFailedError,
    AuthError,
    GeoResolutionError,
    NoResultsError,
    NotFoundError,
    ParseError,
    ProjectionError,
)
from .models import Point, Polygon, ProgressEvent, ResolvedAddress, Store, StoreListing, Zone, ZoneKind

__all__ = [
    "AllPathsFailedError",
    "AuthError",
    "GeoResolutionEngine",
    "GeoResolutionError",
    "NoResultsError",
    "NotFoundError",
    "ParseError",
    "Point",
    "Polygon",
    "ProgressEvent",
    "ProjectionError",
    "ResolvedAddress",
    "Store",
    "StoreListing",
    "Zone",
    "ZoneKind",
]
