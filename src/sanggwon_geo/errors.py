"""Error taxonomy for geodata resolution."""

from __future__ import annotations


class GeoResolutionError(Exception):
    """Base error for resolution failures."""


class NotFoundError(GeoResolutionError):
    """Raised when every in-policy fallback is exhausted without a result."""


class NoResultsError(GeoResolutionError):
    """Raised when a valid request returns an explicitly empty result."""


class AuthError(GeoResolutionError):
    """Raised when a credential is missing or rejected upstream."""


class ParseError(GeoResolutionError):
    """Raised when a response body is not in the expected shape."""

    def __init__(self, message: str, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class AllPathsFailedError(GeoResolutionError):
    """Raised when every network path for a request has failed."""

    def __init__(self, message: str, last_error: Exception | None = None) -> None:
        super().__init__(message)
        self.last_error = last_error


class ProjectionError(GeoResolutionError):
    """Raised when coordinates cannot be reprojected."""
