"""Offset/limit windows and page metadata.

A page past the last one is a normal, empty terminal page: callers get
``has_next_page=False`` and the real ``total``, never an error. Page numbers
are capped so that ``offset + limit`` fits a SQLite integer.
"""

import math
from dataclasses import dataclass
from typing import Any

from src.core.config import PaginationConfig
from src.core.schemas import Pagination, parse_int

# Largest integer SQLite accepts as a bound parameter.
SQLITE_MAX_INT = 2**63 - 1


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        page: Any = None,
        limit: Any = None,
        config: PaginationConfig | None = None,
    ) -> "PageRequest":
        """Clamp raw page/limit values into a valid window.

        ``page < 1`` becomes 1 and ``page`` is capped at the last page SQLite
        can address; ``limit`` is bounded to ``[1, max_limit]``; missing or
        unparseable values take the configured defaults.
        """
        config = config or PaginationConfig()
        p = parse_int(page, 1) or 1
        n = parse_int(limit, config.default_limit)
        if n is None:
            n = config.default_limit
        n = max(1, min(config.max_limit, n))
        max_page = (SQLITE_MAX_INT - n) // n + 1
        return cls(page=max(1, min(max_page, p)), limit=n)


def build_pagination(request: PageRequest, total: int) -> Pagination:
    total = max(0, total)
    total_pages = math.ceil(total / request.limit) if total else 0
    return Pagination(
        page=request.page,
        limit=request.limit,
        total=total,
        total_pages=total_pages,
        has_next_page=request.page < total_pages,
        has_prev_page=request.page > 1,
    )
