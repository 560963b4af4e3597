"""HTTP client for the catalog API and the async driver for the pager.

The page cache is injected rather than shared ambiently, and the
controller clears it explicitly on every filter change.
"""

import json
import logging
from collections.abc import Hashable
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Protocol

import httpx

from src.client.pager import (
    FetchCommand,
    FetchFailed,
    FetchSucceeded,
    FilterChanged,
    Message,
    PagerState,
    ScrolledIntoView,
    reduce,
)

logger = logging.getLogger(__name__)

ENDPOINTS = {"search": "/api/search", "rankings": "/api/rankings"}


class CatalogClientError(Exception):
    """A fetch failed: transport error, timeout, non-2xx or ``success: false``."""


@dataclass(frozen=True)
class PageResult:
    entries: tuple[dict[str, Any], ...]
    page: int
    total: int
    has_next_page: bool


class PageCache(Protocol):
    def get(self, key: Hashable) -> Any | None: ...

    def set(self, key: Hashable, value: Any) -> None: ...

    def clear(self) -> None: ...


class InMemoryPageCache:
    """Dict-backed cache; one instance per browsing session."""

    def __init__(self) -> None:
        self._data: dict[Hashable, Any] = {}

    def get(self, key: Hashable) -> Any | None:
        return self._data.get(key)

    def set(self, key: Hashable, value: Any) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class CatalogClient:
    """Async context manager wrapping ``httpx.AsyncClient`` for the catalog API.

    Usage::

        async with CatalogClient("http://localhost:8000") as client:
            page = await client.fetch_page("search", {"q": "notes"}, page=1)
    """

    def __init__(
        self,
        base_url: str,
        *,
        cache: PageCache | None = None,
        limit: int = 20,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.cache: PageCache = cache if cache is not None else InMemoryPageCache()
        self.limit = limit

    async def __aenter__(self) -> "CatalogClient":
        self._client = httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_page(self, source: str, filters: dict[str, Any], page: int) -> PageResult:
        """Fetch one page from ``search`` or ``rankings``."""
        if source not in ENDPOINTS:
            msg = f"Unknown source '{source}'. Available: {', '.join(sorted(ENDPOINTS))}"
            raise ValueError(msg)

        params = {k: v for k, v in filters.items() if v not in (None, "", [])}
        params["page"] = page
        params["limit"] = self.limit
        key = (source, _cache_key(params))
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        body = await self._get(ENDPOINTS[source], params)
        data = body.get("data") or {}
        pagination = data.get("pagination") or {}
        result = PageResult(
            entries=tuple(data.get("websites") or ()),
            page=int(pagination.get("page", page)),
            total=int(pagination.get("total", 0)),
            has_next_page=bool(pagination.get("hasNextPage", pagination.get("hasMore", False))),
        )
        self.cache.set(key, result)
        return result

    async def fetch_categories(self, include_subcategories: bool = False) -> list[dict[str, Any]]:
        key = ("categories", include_subcategories)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        params = {"includeSubcategories": "true"} if include_subcategories else {}
        body = await self._get("/api/categories", params)
        categories = list(body.get("data") or [])
        self.cache.set(key, categories)
        return categories

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        if self._client is None:
            msg = "CatalogClient not entered - use 'async with'"
            raise RuntimeError(msg)
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            msg = f"HTTP {e.response.status_code} from {path}"
            raise CatalogClientError(msg) from e
        except httpx.HTTPError as e:
            msg = f"Request to {path} failed: {e}"
            raise CatalogClientError(msg) from e
        except json.JSONDecodeError as e:
            msg = f"Invalid JSON from {path}"
            raise CatalogClientError(msg) from e

        if not body.get("success", False):
            msg = body.get("error") or body.get("message") or f"Request to {path} was not successful"
            raise CatalogClientError(msg)
        return body


class PagerController:
    """Drives the pager state machine against a ``CatalogClient``.

    Usage::

        pager = PagerController(client, source="rankings")
        await pager.change_filters({"type": "trending", "timeRange": "week"})
        await pager.load_more()          # on viewport intersection
    """

    def __init__(self, client: CatalogClient, source: str = "search") -> None:
        self._client = client
        self._source = source
        self._state = PagerState()

    @property
    def state(self) -> PagerState:
        return self._state

    async def change_filters(self, filters: dict[str, Any]) -> PagerState:
        return await self.dispatch(FilterChanged(filters))

    async def load_more(self) -> PagerState:
        return await self.dispatch(ScrolledIntoView())

    async def dispatch(self, message: Message) -> PagerState:
        if isinstance(message, FilterChanged):
            self._client.cache.clear()
        self._state, command = reduce(self._state, message)
        if command is not None:
            await self._run(command)
        return self._state

    async def _run(self, command: FetchCommand) -> None:
        outcome: Message
        try:
            result = await self._client.fetch_page(self._source, command.filters, command.page)
        except CatalogClientError as e:
            logger.warning("Fetch of page %d failed: %s", command.page, e)
            outcome = FetchFailed(command.generation, command.page, str(e))
        else:
            outcome = FetchSucceeded(
                command.generation, command.page, result.entries, result.has_next_page,
            )
        self._state, _ = reduce(self._state, outcome)
        if self._state.generation != command.generation:
            logger.debug("Dropped stale response for generation %d", command.generation)


def _cache_key(params: dict[str, Any]) -> tuple[tuple[str, Hashable], ...]:
    items = []
    for k, v in sorted(params.items()):
        items.append((k, tuple(v) if isinstance(v, list) else v))
    return tuple(items)
