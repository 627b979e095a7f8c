"""In-process memoization of resolved boundaries."""

from __future__ import annotations

from .models import Polygon


class PolygonCache:
    """Resolved polygons keyed by zone display label.

    Provider identifiers are mutually incompatible, so the human label is the
    only shared key. Entries live for the lifetime of the owning engine.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Polygon] = {}

    def get(self, label: str) -> Polygon | None:
        return self._entries.get(label)

    def put(self, label: str, polygon: Polygon) -> None:
        self._entries[label] = polygon

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, label: object) -> bool:
        return label in self._entries

    def __len__(self) -> int:
        return len(self._entries)
