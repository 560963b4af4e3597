"""Query façade: wires category index, filter compiler, sort strategy,
repository, assembler and pagination for one request.

Data flow:
  1. Load category index (slug resolution + name join)
  2. Compile filters → predicate (approved-only is always applied)
  3. Resolve sort strategy (always tie-broken by id)
  4. Fetch page + count with the same predicate, in one snapshot
  5. Assemble entries
  6. Merge pagination metadata

Stateless: nothing is cached between calls. Store failures propagate as
``StoreUnavailableError``; no partial page is ever returned.
"""

import logging
import sqlite3
from datetime import datetime

from src.core.categories import CategoryIndex
from src.core.config import Settings
from src.core.repository import EntryRepository
from src.core.schemas import CategoryLeaders, RankingFilters, ResultPage, SearchFilters
from src.pipeline.assembler import assemble_entries
from src.pipeline.filters import compile_ranking_filters, compile_search_filters, window_start
from src.pipeline.pagination import PageRequest, build_pagination
from src.pipeline.ranking import SortKey, SortSpec, resolve_ranking, resolve_search_sort

logger = logging.getLogger(__name__)


def search_websites(
    conn: sqlite3.Connection,
    filters: SearchFilters,
    settings: Settings,
) -> ResultPage:
    """Run an ad hoc search and return one page of results."""
    repo = EntryRepository(conn)
    categories = repo.load_categories()

    predicate = compile_search_filters(filters, categories)
    sort = resolve_search_sort(filters.sort_by, filters.sort_order, filters.query)
    request = PageRequest.from_params(filters.page, filters.limit, settings.pagination)

    records, total = repo.fetch_page(predicate, sort, request.limit, request.offset)
    websites = assemble_entries(records, categories)
    pagination = build_pagination(request, total)

    logger.info(
        "Search q=%r sort=%s page=%d: %d of %d",
        filters.query, sort.name, request.page, len(websites), total,
    )
    return ResultPage(websites=websites, pagination=pagination)


def get_rankings(
    conn: sqlite3.Connection,
    filters: RankingFilters,
    settings: Settings,
    now: datetime | None = None,
) -> ResultPage:
    """Return one page of a named ranking view.

    Views that need a time window (trending, monthly-hot) use their own
    default window when the caller asked for ``all`` or an unknown range.
    Entries created before the window are excluded, not just ranked lower.
    """
    repo = EntryRepository(conn)
    categories = repo.load_categories()

    sort = resolve_ranking(filters.type, settings.rankings.trending_default_window)
    time_range = filters.time_range
    if sort.window is not None and window_start(time_range, now) is None:
        time_range = sort.window

    predicate = compile_ranking_filters(filters, categories, time_range=time_range, now=now)
    predicate = predicate.extend(*sort.clauses)
    request = PageRequest.from_params(filters.page, filters.limit, settings.pagination)

    records, total = repo.fetch_page(predicate, sort, request.limit, request.offset)
    websites = assemble_entries(records, categories)
    pagination = build_pagination(request, total)

    logger.info(
        "Rankings type=%s range=%s page=%d: %d of %d",
        sort.name, time_range, request.page, len(websites), total,
    )
    return ResultPage(websites=websites, pagination=pagination)


def get_category_leaders(
    conn: sqlite3.Connection,
    per_category: int = 3,
) -> list[CategoryLeaders]:
    """Top ``per_category`` approved entries by quality for each root category.

    Each root counts entries of its whole subtree. Roots without approved
    entries are omitted.
    """
    repo = EntryRepository(conn)
    categories = repo.load_categories()
    sort = SortSpec("category-leaders", (SortKey("e.quality_score"),))

    leaders: list[CategoryLeaders] = []
    with repo.snapshot():
        for root in categories.roots():
            if root.tool_count == 0:
                continue
            predicate = compile_ranking_filters(
                RankingFilters(category=root.slug), categories,
            )
            records = repo.fetch_entries(predicate, sort, per_category, 0)
            leaders.append(CategoryLeaders(
                category_id=root.id,
                category_name=root.name,
                category_slug=root.slug,
                websites=assemble_entries(records, categories),
            ))

    logger.info("Category leaders: %d categories", len(leaders))
    return leaders


def list_categories(conn: sqlite3.Connection) -> CategoryIndex:
    """Category tree with approved-entry counts."""
    return EntryRepository(conn).load_categories()
