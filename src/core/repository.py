"""Read-only entry repository over the SQLite catalog.

Translates a compiled ``Predicate`` and ``SortSpec`` into SQL. The page
query and the count query of one request run inside a single read
transaction, so under WAL they observe the same snapshot even while
visit/like counters are being written by another connection.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from src.core.categories import CategoryIndex
from src.core.errors import StoreUnavailableError
from src.core.schemas import CategoryRecord, EntryRecord, EntryStatus
from src.pipeline.filters import Predicate
from src.pipeline.ranking import SortSpec

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = (
    "id", "title", "slug", "url", "description", "tagline", "thumbnail",
    "logo_url", "category_id", "tags", "pricing_model", "has_free_version",
    "quality_score", "visits", "likes", "is_featured", "is_trusted",
    "ssl_enabled", "status", "created_at", "features", "screenshots",
    "pros_cons",
)
_SELECT_ENTRIES = "SELECT " + ", ".join(f"e.{c}" for c in _ENTRY_COLUMNS) + " FROM entries AS e"


class EntryRepository:
    """Read accessor for entries and category aggregates.

    Usage::

        repo = EntryRepository(conn)
        with repo.snapshot():
            rows = repo.fetch_entries(predicate, sort, limit=20, offset=0)
            total = repo.count(predicate)
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        """Run the enclosed reads in one transaction (one consistent view)."""
        try:
            nested = self._conn.in_transaction
        except sqlite3.ProgrammingError as e:
            msg = f"Catalog store unavailable: {e}"
            raise StoreUnavailableError(msg) from e
        if nested:
            yield
            return
        self._execute("BEGIN")
        try:
            yield
        finally:
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                logger.warning("Failed to close read transaction: %s", e)

    def fetch_entries(
        self,
        predicate: Predicate,
        sort: SortSpec,
        limit: int,
        offset: int,
    ) -> list[EntryRecord]:
        where_sql, params = predicate.to_sql()
        order_sql, order_params = sort.to_sql()
        rows = self._execute(
            f"{_SELECT_ENTRIES} WHERE {where_sql} ORDER BY {order_sql} LIMIT ? OFFSET ?",
            [*params, *order_params, limit, offset],
        ).fetchall()
        return [EntryRecord.model_validate(dict(row)) for row in rows]

    def count(self, predicate: Predicate) -> int:
        where_sql, params = predicate.to_sql()
        row = self._execute(
            f"SELECT COUNT(*) AS count FROM entries AS e WHERE {where_sql}", params,
        ).fetchone()
        return int(row["count"]) if row is not None else 0

    def fetch_page(
        self,
        predicate: Predicate,
        sort: SortSpec,
        limit: int,
        offset: int,
    ) -> tuple[list[EntryRecord], int]:
        """Return (page rows, total) computed from the same predicate and snapshot."""
        with self.snapshot():
            rows = self.fetch_entries(predicate, sort, limit, offset)
            total = self.count(predicate)
        return rows, total

    def load_categories(self) -> CategoryIndex:
        """Build the category tree with approved-entry aggregates (two queries)."""
        with self.snapshot():
            records = [
                CategoryRecord.model_validate(dict(row))
                for row in self._execute(
                    "SELECT id, name, slug, parent_id, sort_order FROM categories",
                ).fetchall()
            ]
            counts = {
                int(row["category_id"]): int(row["count"])
                for row in self._execute(
                    """
                    SELECT category_id, COUNT(*) AS count FROM entries
                    WHERE status = ?
                    GROUP BY category_id
                    """,
                    [EntryStatus.APPROVED.value],
                ).fetchall()
            }
        return CategoryIndex.build(records, counts)

    def _execute(self, sql: str, params: list | tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            logger.exception("Catalog store query failed")
            msg = f"Catalog store unavailable: {e}"
            raise StoreUnavailableError(msg) from e
