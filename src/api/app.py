"""FastAPI application exposing catalog search, rankings and categories.

Every query parameter is accepted as text and normalized by the pipeline,
so malformed input never produces a 422: bad numbers fall back to their
defaults and unknown enum values are dropped.
"""

import logging
import sqlite3
from collections.abc import Iterator
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.core.config import Settings
from src.core.db import connect
from src.core.errors import QueryError
from src.core.schemas import RankingFilters, SearchFilters
from src.pipeline.orchestrator import (
    get_category_leaders,
    get_rankings,
    list_categories,
    search_websites,
)

logger = logging.getLogger(__name__)

CATEGORY_LEADERS = "category-leaders"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API application for the given settings."""
    settings = settings or Settings()

    app = FastAPI(
        title="Catalog Search API",
        version="0.1.0",
        description="Search, rankings and categories for the tool directory",
    )
    app.state.settings = settings

    if settings.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.api.cors_origins,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

    @app.exception_handler(QueryError)
    async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Store unavailable", "message": str(exc)},
        )

    app.add_api_route("/api/search", search, methods=["GET"], tags=["search"])
    app.add_api_route("/api/rankings", rankings, methods=["GET"], tags=["rankings"])
    app.add_api_route("/api/rankings/{ranking_type}", rankings_by_type, methods=["GET"], tags=["rankings"])
    app.add_api_route("/api/categories", categories, methods=["GET"], tags=["categories"])
    app.add_api_route("/health", health_check, methods=["GET"], tags=["meta"])
    return app


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_connection(settings: Settings = Depends(get_settings)) -> Iterator[sqlite3.Connection]:
    """One connection per request, closed when the response is sent."""
    try:
        conn = connect(settings.database.path, timeout=settings.database.timeout_seconds)
    except sqlite3.Error as e:
        msg = f"Catalog store unavailable: {e}"
        raise QueryError(msg) from e
    try:
        yield conn
    finally:
        conn.close()


def _flag(value: str | None) -> bool | None:
    """Presence-truthy boolean: only the string "true" sets the flag."""
    return True if value is not None and value.strip().lower() == "true" else None


def _envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def search(
    q: str | None = Query(None, description="Free-text query"),
    category: str | None = Query(None, description="Category slug"),
    pricing_model: list[str] | None = Query(None, alias="pricingModel"),
    min_quality_score: str | None = Query(None, alias="minQualityScore"),
    is_trusted: str | None = Query(None, alias="isTrusted"),
    is_featured: str | None = Query(None, alias="isFeatured"),
    has_free_plan: str | None = Query(None, alias="hasFreePlan"),
    ssl_enabled: str | None = Query(None, alias="sslEnabled"),
    tags: list[str] | None = Query(None, alias="tag"),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: str | None = Query(None, alias="sortOrder"),
    page: str | None = Query(None),
    limit: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    conn: sqlite3.Connection = Depends(get_connection),
) -> dict[str, Any]:
    """Search approved entries.

    - **pricingModel**: repeatable, OR-combined
    - **isTrusted / isFeatured / hasFreePlan / sslEnabled**: "true" to require
    - **sortBy**: relevance, created_at, visits, likes, quality_score, title
    """
    filters = SearchFilters(
        query=q or "",
        category=category or None,
        pricing_model=pricing_model or [],
        min_quality_score=min_quality_score,
        is_trusted=_flag(is_trusted),
        is_featured=_flag(is_featured),
        has_free_plan=_flag(has_free_plan),
        ssl_enabled=_flag(ssl_enabled),
        tags=tags or [],
        sort_by=sort_by or "relevance",
        sort_order=sort_order or "desc",
        page=page,
        limit=limit,
    )
    result = search_websites(conn, filters, settings)
    data = result.model_dump(by_alias=True, mode="json")
    data["searchParams"] = filters.model_dump(by_alias=True, mode="json")
    return _envelope(data)


def rankings(
    type: str | None = Query(None, description="popular, top-rated, trending, free, new"),
    category: str | None = Query(None),
    price_filter: str | None = Query(None, alias="priceFilter"),
    time_range: str | None = Query(None, alias="timeRange"),
    search_query: str | None = Query(None, alias="searchQuery"),
    page: str | None = Query(None),
    limit: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    conn: sqlite3.Connection = Depends(get_connection),
) -> dict[str, Any]:
    """Page through a named ranking view."""
    ranking_type = (type or "popular").lower().strip()
    if ranking_type == CATEGORY_LEADERS:
        return _category_leaders(conn, settings)

    filters = RankingFilters(
        type=ranking_type,
        category=category or None,
        price_filter=price_filter or "all",
        time_range=time_range or "all",
        search_query=search_query or "",
        page=page,
        limit=limit,
    )
    result = get_rankings(conn, filters, settings)
    data = result.model_dump(by_alias=True, mode="json")
    data["meta"] = {
        "type": filters.type,
        "category": filters.category,
        "timeRange": filters.time_range,
        "totalTools": result.pagination.total,
    }
    return _envelope(data)


def rankings_by_type(
    ranking_type: str,
    category: str | None = Query(None),
    price_filter: str | None = Query(None, alias="priceFilter"),
    time_range: str | None = Query(None, alias="timeRange"),
    search_query: str | None = Query(None, alias="searchQuery"),
    page: str | None = Query(None),
    limit: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    conn: sqlite3.Connection = Depends(get_connection),
) -> dict[str, Any]:
    """Path-style alias of ``/api/rankings?type=...``."""
    return rankings(
        type=ranking_type,
        category=category,
        price_filter=price_filter,
        time_range=time_range,
        search_query=search_query,
        page=page,
        limit=limit,
        settings=settings,
        conn=conn,
    )


def categories(
    include_subcategories: str | None = Query(None, alias="includeSubcategories"),
    conn: sqlite3.Connection = Depends(get_connection),
) -> dict[str, Any]:
    """List categories with approved-entry counts (flat, or nested on request)."""
    index = list_categories(conn)
    nodes = index.tree() if _flag(include_subcategories) else index.flat()
    return _envelope([n.model_dump(by_alias=True, mode="json") for n in nodes])


def health_check() -> dict[str, str]:
    return {"status": "healthy"}


def _category_leaders(conn: sqlite3.Connection, settings: Settings) -> dict[str, Any]:
    per_category = settings.rankings.leaders_per_category
    leaders = get_category_leaders(conn, per_category=per_category)
    groups = [g.model_dump(by_alias=True, mode="json") for g in leaders]
    total = sum(len(g.websites) for g in leaders)
    return _envelope({
        "categories": groups,
        "pagination": {
            "page": 1,
            "limit": per_category,
            "total": total,
            "totalPages": 1 if total else 0,
            "hasNextPage": False,
            "hasPrevPage": False,
            "hasMore": False,
        },
        "meta": {"type": CATEGORY_LEADERS, "groupedByCategory": True, "totalTools": total},
    })
