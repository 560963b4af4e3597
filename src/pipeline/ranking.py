"""Sort strategies for search and the named ranking views.

Every strategy ends with ``id ASC`` so that ordering is total: entries that
share a primary value (same visits, same score) always come back in the
same order, which is what keeps offset pagination free of duplicates and
gaps.

Relevance policy (search only): each field containing the query,
case-insensitively, adds its weight; title 4, tagline 2, any single tag 2,
description 1. Ties fall to quality_score desc, then id. With no query,
relevance is quality_score desc. Case folding covers ASCII letters only,
as with SQLite ``LIKE``.
"""

import logging
from dataclasses import dataclass
from typing import Any

from src.pipeline.filters import FREE_TIER, TAG_TEXT_MATCH, Clause, escape_like

logger = logging.getLogger(__name__)

# Condition (one LIKE parameter each) → weight.
RELEVANCE_WEIGHTS: dict[str, int] = {
    "e.title LIKE ? ESCAPE '\\'": 4,
    "COALESCE(e.tagline, '') LIKE ? ESCAPE '\\'": 2,
    TAG_TEXT_MATCH: 2,
    "e.description LIKE ? ESCAPE '\\'": 1,
}

# sortBy value → SQL expression over the entries alias.
SEARCH_SORT_COLUMNS: dict[str, str] = {
    "created_at": "e.created_at",
    "visits": "e.visits",
    "likes": "e.likes",
    "quality_score": "e.quality_score",
    "title": "e.title COLLATE NOCASE",
}

SEARCH_SORTS = ("relevance", *SEARCH_SORT_COLUMNS)
# camelCase spellings sent by older clients.
_SORT_ALIASES = {"qualityscore": "quality_score", "createdat": "created_at"}
RANKING_TYPES = ("popular", "top-rated", "trending", "free", "new", "monthly-hot")
DEFAULT_RANKING = "popular"


@dataclass(frozen=True)
class SortKey:
    expression: str
    descending: bool = True
    params: tuple[Any, ...] = ()

    def to_sql(self) -> str:
        return f"{self.expression} {'DESC' if self.descending else 'ASC'}"


TIE_BREAK = SortKey("e.id", descending=False)


@dataclass(frozen=True)
class SortSpec:
    """Ordering plus any predicate the view itself imposes.

    ``window`` names the time range the view needs when the caller gave
    none (``all``); views that must exclude out-of-window entries set it.
    """

    name: str
    keys: tuple[SortKey, ...]
    clauses: tuple[Clause, ...] = ()
    window: str | None = None

    def __post_init__(self) -> None:
        if not self.keys or self.keys[-1] != TIE_BREAK:
            object.__setattr__(self, "keys", (*self.keys, TIE_BREAK))

    def to_sql(self) -> tuple[str, list[Any]]:
        sql = ", ".join(k.to_sql() for k in self.keys)
        params: list[Any] = []
        for k in self.keys:
            params.extend(k.params)
        return sql, params


def relevance_key(query: str) -> SortKey | None:
    query = (query or "").strip()
    if not query:
        return None
    pattern = f"%{escape_like(query)}%"
    terms = [
        f"(CASE WHEN {condition} THEN {weight} ELSE 0 END)"
        for condition, weight in RELEVANCE_WEIGHTS.items()
    ]
    return SortKey(" + ".join(terms), descending=True, params=(pattern,) * len(terms))


def resolve_search_sort(sort_by: str | None, sort_order: str | None, query: str = "") -> SortSpec:
    """Map a search ``sortBy``/``sortOrder`` pair to a sort spec.

    Unknown ``sortBy`` falls back to relevance; unknown order to desc.
    """
    key = (sort_by or "relevance").lower().strip()
    key = _SORT_ALIASES.get(key, key)
    order = (sort_order or "desc").lower().strip()
    if order not in ("asc", "desc"):
        logger.debug("Unknown sort order '%s', using desc", order)
        order = "desc"

    if key not in SEARCH_SORTS:
        logger.info("Unknown sortBy '%s', falling back to relevance", key)
        key = "relevance"

    if key == "relevance":
        keys: list[SortKey] = []
        rel = relevance_key(query)
        if rel is not None:
            keys.append(rel)
        keys.append(SortKey("e.quality_score", descending=True))
        return SortSpec("relevance", tuple(keys))

    return SortSpec(key, (SortKey(SEARCH_SORT_COLUMNS[key], descending=order == "desc"),))


def resolve_ranking(ranking_type: str | None, trending_window: str = "week") -> SortSpec:
    """Map a ranking view name to its sort spec; unknown names use ``popular``."""
    name = (ranking_type or DEFAULT_RANKING).lower().strip()
    if name not in RANKING_TYPES:
        logger.info("Unknown ranking type '%s', falling back to %s", name, DEFAULT_RANKING)
        name = DEFAULT_RANKING

    if name == "popular":
        return SortSpec(name, (SortKey("e.visits"),))
    if name == "top-rated":
        return SortSpec(name, (SortKey("e.quality_score"),))
    if name == "trending":
        return SortSpec(name, (SortKey("e.visits"),), window=trending_window)
    if name == "free":
        return SortSpec(name, (SortKey("e.quality_score"),), clauses=(FREE_TIER,))
    if name == "new":
        return SortSpec(name, (SortKey("e.created_at"),))
    # monthly-hot
    return SortSpec(name, (SortKey("(e.visits * 0.7 + e.likes * 0.3)"),), window="month")
