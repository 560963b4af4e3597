"""Filter compiler: request value objects → normalized predicate descriptor.

The compiler never touches the store. Its output is a ``Predicate``, a tuple
of SQL fragments over a fixed column vocabulary that the repository joins
with AND. Every predicate starts with the approved-only visibility clause.

Normalization rules:
  - empty text query          → no text clause (not "match nothing")
  - unknown category slug     → ignored
  - min_quality_score         → clamped to [0, 100]; 0 means no clause
  - unknown pricing values    → dropped; remaining values OR-combined
  - boolean flags             → only True constrains
  - tags                      → OR-combined membership
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from src.core.categories import CategoryIndex
from src.core.db import to_db_timestamp
from src.core.schemas import EntryStatus, PricingModel, RankingFilters, SearchFilters

logger = logging.getLogger(__name__)

PRICING_MODELS = frozenset(p.value for p in PricingModel)
PRICE_FILTERS = ("all", "free", "paid", "freemium")


@dataclass(frozen=True)
class Clause:
    """One parameterized SQL condition over the ``e`` (entries) alias."""

    sql: str
    params: tuple[Any, ...] = ()


VISIBLE = Clause("e.status = ?", (EntryStatus.APPROVED.value,))


@dataclass(frozen=True)
class Predicate:
    """AND-combined clauses; the visibility clause is always present and first."""

    clauses: tuple[Clause, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        rest = tuple(c for c in self.clauses if c != VISIBLE)
        object.__setattr__(self, "clauses", (VISIBLE, *rest))

    def extend(self, *clauses: Clause) -> "Predicate":
        return Predicate(self.clauses + clauses)

    def to_sql(self) -> tuple[str, list[Any]]:
        """Render as a WHERE body and its positional parameters."""
        sql = " AND ".join(f"({c.sql})" for c in self.clauses)
        params: list[Any] = []
        for c in self.clauses:
            params.extend(c.params)
        return sql, params


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# Rows of the tags array; malformed tag text yields no rows.
TAG_ELEMENTS = "json_each(CASE WHEN json_valid(e.tags) THEN e.tags ELSE '[]' END)"
TAG_TEXT_MATCH = f"EXISTS (SELECT 1 FROM {TAG_ELEMENTS} AS t WHERE t.value LIKE ? ESCAPE '\\')"


def text_clause(query: str) -> Clause | None:
    """Case-insensitive substring over title, description, tagline and each tag.

    SQLite ``LIKE`` folds case for ASCII letters only: "ecole" matches
    "Ecole" but "école" does not match "École".
    """
    query = (query or "").strip()
    if not query:
        return None
    pattern = f"%{escape_like(query)}%"
    return Clause(
        "e.title LIKE ? ESCAPE '\\' OR e.description LIKE ? ESCAPE '\\' "
        f"OR COALESCE(e.tagline, '') LIKE ? ESCAPE '\\' OR {TAG_TEXT_MATCH}",
        (pattern, pattern, pattern, pattern),
    )


def category_clause(slug: str | None, categories: CategoryIndex) -> Clause | None:
    if not slug:
        return None
    ids = categories.subtree_ids(slug)
    if ids is None:
        logger.debug("Unknown category slug '%s' ignored", slug)
        return None
    placeholders = ", ".join("?" for _ in ids)
    return Clause(f"e.category_id IN ({placeholders})", tuple(ids))


def pricing_clause(values: list[str]) -> Clause | None:
    known: list[str] = []
    for v in values:
        v = (v or "").lower().strip()
        if v in PRICING_MODELS:
            if v not in known:
                known.append(v)
        elif v:
            logger.debug("Unknown pricing model '%s' dropped", v)
    if not known:
        return None
    placeholders = ", ".join("?" for _ in known)
    return Clause(f"e.pricing_model IN ({placeholders})", tuple(known))


def quality_clause(min_score: int | None) -> Clause | None:
    if min_score is None:
        return None
    score = max(0, min(100, int(min_score)))
    if score == 0:
        return None
    return Clause("e.quality_score >= ?", (score,))


def tags_clause(tags: list[str]) -> Clause | None:
    wanted = sorted({t.strip() for t in tags if t and t.strip()})
    if not wanted:
        return None
    placeholders = ", ".join("?" for _ in wanted)
    return Clause(
        f"EXISTS (SELECT 1 FROM {TAG_ELEMENTS} AS t WHERE t.value IN ({placeholders}))",
        tuple(wanted),
    )


def flag_clause(column: str, value: bool | None) -> Clause | None:
    if value is not True:
        return None
    return Clause(f"e.{column} = 1")


def price_filter_clause(price_filter: str) -> Clause | None:
    """Ranking page price facet: free / paid / freemium."""
    pf = (price_filter or "all").lower().strip()
    if pf == "free":
        return FREE_TIER
    if pf == "paid":
        return Clause("e.pricing_model != 'free' AND e.has_free_version = 0")
    if pf == "freemium":
        return Clause("e.pricing_model = 'freemium'")
    if pf != "all":
        logger.debug("Unknown price filter '%s' ignored", pf)
    return None


FREE_TIER = Clause("e.pricing_model = 'free' OR e.has_free_version = 1")


def window_start(time_range: str, now: datetime | None = None) -> datetime | None:
    """Return the inclusive lower bound on ``created_at`` for a time range.

    ``all`` and unknown values have no bound.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    tr = (time_range or "all").lower().strip()
    if tr == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if tr == "week":
        return now - timedelta(days=7)
    if tr == "month":
        return _months_back(now, 1)
    if tr == "quarter":
        return _months_back(now, 3)
    if tr == "year":
        return _months_back(now, 12)
    if tr != "all":
        logger.debug("Unknown time range '%s' treated as 'all'", tr)
    return None


def window_clause(time_range: str, now: datetime | None = None) -> Clause | None:
    start = window_start(time_range, now)
    if start is None:
        return None
    return Clause("e.created_at >= ?", (to_db_timestamp(start),))


def compile_search_filters(filters: SearchFilters, categories: CategoryIndex) -> Predicate:
    """Compile ad hoc search filters into a predicate."""
    clauses = [
        text_clause(filters.query),
        category_clause(filters.category, categories),
        pricing_clause(filters.pricing_model),
        quality_clause(filters.min_quality_score),
        flag_clause("is_trusted", filters.is_trusted),
        flag_clause("is_featured", filters.is_featured),
        flag_clause("has_free_version", filters.has_free_plan),
        flag_clause("ssl_enabled", filters.ssl_enabled),
        tags_clause(filters.tags),
    ]
    return Predicate(tuple(c for c in clauses if c is not None))


def compile_ranking_filters(
    filters: RankingFilters,
    categories: CategoryIndex,
    time_range: str | None = None,
    now: datetime | None = None,
) -> Predicate:
    """Compile ranking-page filters into a predicate.

    ``time_range`` overrides ``filters.time_range`` when a view forces its
    own window (e.g. trending with ``all``).
    """
    clauses = [
        window_clause(time_range if time_range is not None else filters.time_range, now),
        category_clause(filters.category, categories),
        price_filter_clause(filters.price_filter),
        text_clause(filters.search_query),
    ]
    return Predicate(tuple(c for c in clauses if c is not None))


def _months_back(value: datetime, months: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
