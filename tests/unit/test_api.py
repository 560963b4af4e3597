"""Tests for the HTTP endpoints (FastAPI TestClient over a seeded file DB)."""

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.core.config import DatabaseConfig, Settings
from src.core.db import insert_category, insert_entry
from src.core.schemas import NewCategory, NewEntry

NOW = datetime.now(timezone.utc)


def _entry(slug: str, category: str = "writing", **kw: object) -> NewEntry:
    defaults: dict[str, object] = {
        "title": slug.title(),
        "slug": slug,
        "url": f"https://{slug}.example.com",
        "category": category,
        "status": "approved",
        "created_at": NOW - timedelta(days=30),
    }
    defaults.update(kw)
    return NewEntry(**defaults)  # type: ignore[arg-type]


@pytest.fixture()
def client(db: sqlite3.Connection, db_path: Path) -> TestClient:
    insert_category(db, NewCategory(name="AI", slug="ai", sort_order=1))
    insert_category(db, NewCategory(name="Writing", slug="writing", parent="ai"))
    insert_category(db, NewCategory(name="Dev", slug="dev", sort_order=2))
    insert_entry(db, _entry("notewise", tagline="Notes that write themselves",
                            pricing_model="free", quality_score=90, visits=50))
    insert_entry(db, _entry("draftly", pricing_model="paid", quality_score=70, visits=500,
                            is_trusted=True, tags=["writing"]))
    insert_entry(db, _entry("freshie", category="dev", pricing_model="freemium",
                            quality_score=60, visits=100, created_at=NOW - timedelta(days=2)))
    insert_entry(db, _entry("queued", status="pending", visits=10_000))
    return TestClient(create_app(Settings(database=DatabaseConfig(path=str(db_path)))))


def _slugs(body: dict) -> list[str]:  # type: ignore[type-arg]
    return [w["slug"] for w in body["data"]["websites"]]


class TestSearchEndpoint:
    def test_envelope(self, client: TestClient) -> None:
        r = client.get("/api/search")
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["data"]["pagination"]["total"] == 3
        assert body["data"]["searchParams"]["sortBy"] == "relevance"

    def test_pending_never_returned(self, client: TestClient) -> None:
        assert "queued" not in _slugs(client.get("/api/search", params={"sortBy": "visits"}).json())

    def test_text_query(self, client: TestClient) -> None:
        body = client.get("/api/search", params={"q": "NOTES"}).json()
        assert _slugs(body) == ["notewise"]

    def test_pricing_model_repeatable(self, client: TestClient) -> None:
        body = client.get(
            "/api/search", params=[("pricingModel", "free"), ("pricingModel", "freemium")],
        ).json()
        assert sorted(_slugs(body)) == ["freshie", "notewise"]

    def test_category_includes_subcategories(self, client: TestClient) -> None:
        body = client.get("/api/search", params={"category": "ai"}).json()
        assert sorted(_slugs(body)) == ["draftly", "notewise"]

    def test_trusted_flag(self, client: TestClient) -> None:
        assert _slugs(client.get("/api/search", params={"isTrusted": "true"}).json()) == ["draftly"]
        assert len(_slugs(client.get("/api/search", params={"isTrusted": "false"}).json())) == 3

    def test_tag_filter(self, client: TestClient) -> None:
        assert _slugs(client.get("/api/search", params={"tag": "writing"}).json()) == ["draftly"]

    def test_sort_by_visits_ascending(self, client: TestClient) -> None:
        body = client.get("/api/search", params={"sortBy": "visits", "sortOrder": "asc"}).json()
        assert _slugs(body) == ["notewise", "freshie", "draftly"]

    def test_garbage_params_normalized(self, client: TestClient) -> None:
        r = client.get("/api/search", params={
            "page": "abc", "limit": "-3", "minQualityScore": "lots", "sortBy": "bogus",
        })
        assert r.status_code == 200
        pagination = r.json()["data"]["pagination"]
        assert pagination["page"] == 1
        assert pagination["limit"] == 1

    def test_page_past_end(self, client: TestClient) -> None:
        body = client.get("/api/search", params={"page": "9", "limit": "2"}).json()
        assert body["data"]["websites"] == []
        assert body["data"]["pagination"]["total"] == 3
        assert body["data"]["pagination"]["hasNextPage"] is False
        assert body["data"]["pagination"]["hasMore"] is False

    def test_huge_page_is_empty_terminal_page(self, client: TestClient) -> None:
        r = client.get("/api/search", params={"page": "99999999999999999999"})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["data"]["websites"] == []
        assert body["data"]["pagination"]["total"] == 3
        assert body["data"]["pagination"]["hasNextPage"] is False

    def test_json_punctuation_matches_nothing(self, client: TestClient) -> None:
        assert _slugs(client.get("/api/search", params={"q": "["}).json()) == []

    def test_entry_wire_form(self, client: TestClient) -> None:
        entry = client.get("/api/search", params={"q": "notewise"}).json()["data"]["websites"][0]
        assert entry["categorySlug"] == "writing"
        assert entry["qualityScore"] == 90
        assert entry["prosCons"] == {"pros": [], "cons": []}


class TestRankingsEndpoint:
    def test_popular_default(self, client: TestClient) -> None:
        body = client.get("/api/rankings").json()
        assert _slugs(body) == ["draftly", "freshie", "notewise"]
        assert body["data"]["meta"]["type"] == "popular"
        assert body["data"]["meta"]["totalTools"] == 3

    def test_top_rated(self, client: TestClient) -> None:
        body = client.get("/api/rankings", params={"type": "top-rated"}).json()
        assert _slugs(body) == ["notewise", "draftly", "freshie"]

    def test_trending_uses_default_window(self, client: TestClient) -> None:
        body = client.get("/api/rankings", params={"type": "trending", "timeRange": "all"}).json()
        assert _slugs(body) == ["freshie"]

    def test_free_view(self, client: TestClient) -> None:
        body = client.get("/api/rankings", params={"type": "free"}).json()
        assert _slugs(body) == ["notewise"]

    def test_path_form(self, client: TestClient) -> None:
        body = client.get("/api/rankings/new").json()
        assert _slugs(body)[0] == "freshie"

    def test_unknown_type_falls_back(self, client: TestClient) -> None:
        r = client.get("/api/rankings", params={"type": "weird"})
        assert r.status_code == 200
        assert _slugs(r.json()) == ["draftly", "freshie", "notewise"]

    def test_huge_page(self, client: TestClient) -> None:
        r = client.get("/api/rankings", params={"type": "new", "page": str(10**25), "limit": "1"})
        assert r.status_code == 200
        assert r.json()["data"]["websites"] == []
        assert r.json()["data"]["meta"]["totalTools"] == 3

    def test_category_leaders(self, client: TestClient) -> None:
        body = client.get("/api/rankings", params={"type": "category-leaders"}).json()
        groups = body["data"]["categories"]
        assert [g["categorySlug"] for g in groups] == ["ai", "dev"]
        assert [w["slug"] for w in groups[0]["websites"]] == ["notewise", "draftly"]
        assert body["data"]["meta"]["groupedByCategory"] is True


class TestCategoriesEndpoint:
    def test_flat(self, client: TestClient) -> None:
        body = client.get("/api/categories").json()
        counts = {c["slug"]: c["toolCount"] for c in body["data"]}
        assert counts == {"ai": 2, "writing": 2, "dev": 1}

    def test_nested(self, client: TestClient) -> None:
        body = client.get("/api/categories", params={"includeSubcategories": "true"}).json()
        assert [c["slug"] for c in body["data"]] == ["ai", "dev"]
        assert body["data"][0]["children"][0]["slug"] == "writing"


class TestStoreUnavailable:
    def test_missing_tables_return_500(self, tmp_path: Path) -> None:
        settings = Settings(database=DatabaseConfig(path=str(tmp_path / "empty.db")))
        r = TestClient(create_app(settings)).get("/api/search")
        assert r.status_code == 500
        assert r.json()["success"] is False
        assert r.json()["error"] == "Store unavailable"

    def test_rankings_also_fail_whole(self, tmp_path: Path) -> None:
        settings = Settings(database=DatabaseConfig(path=str(tmp_path / "empty.db")))
        r = TestClient(create_app(settings)).get("/api/rankings")
        assert r.status_code == 500
        assert "data" not in r.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "healthy"}
