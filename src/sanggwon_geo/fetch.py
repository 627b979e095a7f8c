"""HTTP fetch client that retries across direct and relayed network paths."""

from __future__ import annotations

import asyncio
import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import quote

import httpx

from .config import Settings
from .errors import AllPathsFailedError, AuthError, GeoResolutionError, ParseError
from .models import ProgressEvent
from .progress import ProgressChannel

logger = logging.getLogger(__name__)

MIN_PAGE_BATCH = 3
MAX_PAGE_BATCH = 6
MAX_EMPTY_BATCHES = 2

PageRequest = Callable[[int], "tuple[str, Mapping[str, Any]]"]
PageExtractor = Callable[[Any], "list[Any] | None"]


@dataclass(frozen=True)
class FetchPath:
    """One way of reaching an upstream URL: directly, or through a relay."""

    name: str
    template: str | None = None

    @property
    def is_direct(self) -> bool:
        return self.template is None

    def build(self, url: str) -> str:
        if self.template is None:
            return url
        return self.template.replace("{url}", quote(url, safe=""))


@dataclass
class PageResult:
    items: list[Any] = field(default_factory=list)
    pages_fetched: int = 0
    stopped_early: bool = False


def build_paths(settings: Settings) -> list[FetchPath]:
    paths: list[FetchPath] = []
    if settings.use_key_proxy and settings.key_proxy_url:
        # Placeholder credentials are meaningless upstream without the proxy.
        paths.append(FetchPath("key_proxy", f"{settings.key_proxy_url.rstrip('?')}?url={{url}}"))
    else:
        paths.append(FetchPath("direct"))
    for index, template in enumerate(settings.relay_url_templates):
        if "{url}" not in template:
            logger.warning("relay_template_ignored index=%s reason=missing_url_placeholder", index)
            continue
        paths.append(FetchPath(f"relay_{index}", template))
    return paths


class ResilientFetchClient:
    """Fetches raw response text, remembering which path last worked."""

    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient | None = None,
        paths: list[FetchPath] | None = None,
    ) -> None:
        self.settings = settings
        self.http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds),
            follow_redirects=True,
        )
        self.paths = paths or build_paths(settings)
        self._preferred_index = 0

    async def aclose(self) -> None:
        await self.http.aclose()

    @property
    def preferred_path(self) -> FetchPath:
        return self.paths[self._preferred_index]

    def _path_order(self) -> list[int]:
        first = self._preferred_index
        return [first] + [i for i in range(len(self.paths)) if i != first]

    async def fetch_text(self, url: str, *, params: Mapping[str, Any] | None = None) -> str:
        target = str(httpx.URL(url).copy_merge_params(dict(params))) if params else url
        endpoint = _redact(url)
        last_error: Exception | None = None
        for index in self._path_order():
            path = self.paths[index]
            try:
                response = await self.http.get(path.build(target))
            except httpx.HTTPError as exc:
                last_error = exc
                logger.warning("fetch_path_failed path=%s endpoint=%s error=%s", path.name, endpoint, exc)
                continue
            if not response.is_success:
                last_error = httpx.HTTPStatusError(
                    f"upstream_status_{response.status_code}",
                    request=response.request,
                    response=response,
                )
                logger.warning(
                    "fetch_path_failed path=%s endpoint=%s status=%s",
                    path.name,
                    endpoint,
                    response.status_code,
                )
                continue
            if index != self._preferred_index:
                logger.info("fetch_path_preferred path=%s", path.name)
                self._preferred_index = index
            return response.text
        raise AllPathsFailedError(f"all_paths_failed: {endpoint}", last_error=last_error)

    async def fetch_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        endpoint: str | None = None,
    ) -> Any:
        text = await self.fetch_text(url, params=params)
        return decode_payload(text, endpoint or _redact(url))

    async def fetch_pages(
        self,
        request_for_page: PageRequest,
        total_pages: int,
        *,
        phase: str,
        extract: PageExtractor,
        progress: ProgressChannel | None = None,
    ) -> PageResult:
        """Fetch pages 2..total_pages in small concurrent batches.

        Two consecutive batches without a single usable page end pagination
        early; the provider is treated as rate limiting or exhausted.
        """
        result = PageResult()
        if total_pages < 2:
            return result
        batch_size = max(MIN_PAGE_BATCH, min(MAX_PAGE_BATCH, self.settings.page_batch_size))
        empty_batches = 0
        for start in range(2, total_pages + 1, batch_size):
            end = min(start + batch_size - 1, total_pages)
            if progress is not None:
                progress.publish(
                    ProgressEvent(phase=phase, current=end, total=total_pages, batch_start=start)
                )
            pages = await asyncio.gather(
                *(self._fetch_page(request_for_page, page, extract) for page in range(start, end + 1))
            )
            usable = [items for items in pages if items is not None]
            if not usable:
                empty_batches += 1
            else:
                empty_batches = 0
                result.pages_fetched += len(usable)
                for items in usable:
                    result.items.extend(items)
            if empty_batches >= MAX_EMPTY_BATCHES:
                logger.warning(
                    "pagination_stopped_early phase=%s at_page=%s total_pages=%s",
                    phase,
                    end,
                    total_pages,
                )
                result.stopped_early = True
                break
            if end < total_pages:
                await asyncio.sleep(self.settings.page_batch_delay_seconds)
        return result

    async def _fetch_page(
        self, request_for_page: PageRequest, page: int, extract: PageExtractor
    ) -> list[Any] | None:
        url, params = request_for_page(page)
        try:
            payload = await self.fetch_json(url, params=params)
        except GeoResolutionError as exc:
            logger.debug("page_fetch_failed page=%s error=%s", page, exc)
            return None
        return extract(payload)


def decode_payload(text: str, endpoint: str) -> Any:
    """Decode a response body that may be JSON or an XML error envelope."""
    stripped = text.lstrip()
    if stripped.startswith("<"):
        message, is_auth = parse_xml_error(stripped)
        logger.warning("xml_error_envelope endpoint=%s message=%s", endpoint, message)
        if is_auth:
            raise AuthError(message)
        raise ParseError(message, endpoint=endpoint)
    try:
        return json.loads(stripped)
    except ValueError as exc:
        logger.warning("json_parse_failed endpoint=%s snippet=%r", endpoint, stripped[:120])
        raise ParseError(f"invalid_json: {endpoint}", endpoint=endpoint) from exc


def parse_xml_error(text: str) -> tuple[str, bool]:
    """Extract a readable message from an XML error envelope.

    Returns the message and whether it reports an authentication failure.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return "upstream_error: unreadable XML response", False
    values: dict[str, str] = {}
    for element in root.iter():
        tag = element.tag.rsplit("}", 1)[-1]
        if tag not in values and element.text and element.text.strip():
            values[tag] = element.text.strip()
    auth_message = values.get("returnAuthMsg")
    if auth_message:
        return f"upstream_auth_error: {auth_message} (code {values.get('returnReasonCode')})", True
    error_message = values.get("errMsg")
    if error_message:
        return f"upstream_error: {error_message}", False
    return "upstream_error: unknown XML response", False


def _redact(url: str) -> str:
    parsed = httpx.URL(url)
    return f"{parsed.scheme}://{parsed.host}{parsed.path}"
