"""Tests for the entry repository against a real SQLite file."""

import sqlite3

import pytest

from src.core.db import insert_category, insert_entry
from src.core.errors import StoreUnavailableError
from src.core.repository import EntryRepository
from src.core.schemas import NewCategory, NewEntry
from src.pipeline.filters import Clause, Predicate
from src.pipeline.ranking import SortKey, SortSpec


def _entry(slug: str, category: str = "ai", **kw: object) -> NewEntry:
    defaults: dict[str, object] = {
        "title": slug.title(),
        "slug": slug,
        "url": f"https://{slug}.example.com",
        "category": category,
        "status": "approved",
    }
    defaults.update(kw)
    return NewEntry(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def repo(db: sqlite3.Connection) -> EntryRepository:
    insert_category(db, NewCategory(name="AI", slug="ai"))
    insert_category(db, NewCategory(name="Writing", slug="writing", parent="ai"))
    insert_entry(db, _entry("alpha", visits=10))
    insert_entry(db, _entry("beta", category="writing", visits=30))
    insert_entry(db, _entry("gamma", visits=30))
    insert_entry(db, _entry("hidden", visits=999, status="pending"))
    insert_entry(db, _entry("rejected", visits=999, status="rejected"))
    return EntryRepository(db)


BY_VISITS = SortSpec("popular", (SortKey("e.visits"),))


class TestFetch:
    def test_only_approved(self, repo: EntryRepository) -> None:
        rows = repo.fetch_entries(Predicate(), BY_VISITS, 10, 0)
        assert {r.slug for r in rows} == {"alpha", "beta", "gamma"}

    def test_ties_broken_by_id(self, repo: EntryRepository) -> None:
        rows = repo.fetch_entries(Predicate(), BY_VISITS, 10, 0)
        assert [r.slug for r in rows] == ["beta", "gamma", "alpha"]

    def test_limit_offset(self, repo: EntryRepository) -> None:
        rows = repo.fetch_entries(Predicate(), BY_VISITS, 1, 1)
        assert [r.slug for r in rows] == ["gamma"]

    def test_count_uses_same_predicate(self, repo: EntryRepository) -> None:
        predicate = Predicate((Clause("e.visits >= ?", (30,)),))
        rows, total = repo.fetch_page(predicate, BY_VISITS, 1, 0)
        assert len(rows) == 1
        assert total == 2

    def test_page_past_end_is_empty(self, repo: EntryRepository) -> None:
        rows, total = repo.fetch_page(Predicate(), BY_VISITS, 20, 40)
        assert rows == []
        assert total == 3


class TestSnapshot:
    def test_transaction_closed_after_page(self, repo: EntryRepository, db: sqlite3.Connection) -> None:
        repo.fetch_page(Predicate(), BY_VISITS, 10, 0)
        assert db.in_transaction is False

    def test_nested_snapshot_reuses_outer(self, repo: EntryRepository, db: sqlite3.Connection) -> None:
        with repo.snapshot():
            repo.fetch_page(Predicate(), BY_VISITS, 10, 0)
            assert db.in_transaction is True
        assert db.in_transaction is False

    def test_writer_does_not_split_page_and_count(
        self, repo: EntryRepository, db: sqlite3.Connection, db_path,  # type: ignore[no-untyped-def]
    ) -> None:
        writer = sqlite3.connect(str(db_path))
        try:
            with repo.snapshot():
                before = repo.count(Predicate())
                writer.execute(
                    "UPDATE entries SET status = 'approved' WHERE slug = 'hidden'",
                )
                writer.commit()
                assert repo.count(Predicate()) == before
            assert repo.count(Predicate()) == before + 1
        finally:
            writer.close()


class TestCategories:
    def test_counts_only_approved(self, repo: EntryRepository) -> None:
        index = repo.load_categories()
        assert index.by_slug("ai").tool_count == 3  # type: ignore[union-attr]
        assert index.by_slug("ai").direct_count == 2  # type: ignore[union-attr]
        assert index.by_slug("writing").tool_count == 1  # type: ignore[union-attr]


class TestStoreUnavailable:
    def test_missing_table(self, repo: EntryRepository, db: sqlite3.Connection) -> None:
        db.execute("DROP TABLE entries")
        with pytest.raises(StoreUnavailableError):
            repo.fetch_page(Predicate(), BY_VISITS, 10, 0)

    def test_closed_connection(self, repo: EntryRepository, db: sqlite3.Connection) -> None:
        db.close()
        with pytest.raises(StoreUnavailableError):
            repo.load_categories()
