"""Bearer token handling for the statistics boundary service."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from .config import Settings
from .errors import AuthError, GeoResolutionError
from .fetch import ResilientFetchClient, decode_payload
from .models import AuthToken

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCache:
    """Holds one access token until shortly before it expires."""

    def __init__(self, margin: timedelta, clock: Callable[[], datetime] = _utcnow) -> None:
        self.margin = margin
        self._clock = clock
        self._token: AuthToken | None = None

    def get(self) -> str | None:
        if self._token and self._clock() < (self._token.expires_at - self.margin):
            return self._token.access_token
        return None

    def set(self, token: str, expires_in_ms: int) -> AuthToken:
        self._token = AuthToken(
            access_token=token,
            expires_at=self._clock() + timedelta(milliseconds=expires_in_ms),
        )
        return self._token

    def clear(self) -> None:
        self._token = None


class TokenManager:
    """Issues SGIS access tokens, refreshing at most once at a time."""

    def __init__(
        self,
        settings: Settings,
        fetcher: ResilientFetchClient,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self._cache = TokenCache(
            timedelta(seconds=settings.token_refresh_margin_seconds), clock=clock
        )
        self._refresh_lock = asyncio.Lock()

    async def get_token(self) -> str:
        cached = self._cache.get()
        if cached:
            return cached
        async with self._refresh_lock:
            # Another caller may have refreshed while we waited.
            cached = self._cache.get()
            if cached:
                return cached
            return await self._authenticate()

    def invalidate(self) -> None:
        self._cache.clear()

    async def _authenticate(self) -> str:
        consumer_key = self.settings.credential("sgis_service_id")
        consumer_secret = self.settings.credential("sgis_secret_key")
        if not consumer_key or not consumer_secret:
            raise AuthError("sgis_credentials_missing")

        url = f"{self.settings.sgis_base_url}/auth/authentication.json"
        try:
            text = await self.fetcher.fetch_text(
                url,
                params={"consumer_key": consumer_key, "consumer_secret": consumer_secret},
            )
        except GeoResolutionError as exc:
            raise AuthError(f"sgis_auth_failed: {exc}") from exc
        data = decode_payload(text, "sgis/auth/authentication.json")

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(data, dict) or data.get("errCd") != 0 or not isinstance(result, dict):
            message = data.get("errMsg") if isinstance(data, dict) else None
            raise AuthError(f"sgis_auth_rejected: {message or 'unexpected response'}")
        token = result.get("accessToken")
        if not token:
            raise AuthError("sgis_auth_rejected: missing access token")

        try:
            timeout_ms = int(result.get("accessTimeout"))
        except (TypeError, ValueError):
            timeout_ms = 0
        if timeout_ms <= 0:
            timeout_ms = self.settings.default_token_ttl_ms

        stored = self._cache.set(str(token), timeout_ms)
        logger.info("sgis_token_refreshed expires_at=%s", stored.expires_at.isoformat())
        return stored.access_token
