"""Tests for page request clamping and pagination metadata."""

from src.core.config import PaginationConfig
from src.core.schemas import parse_int
from src.pipeline.pagination import SQLITE_MAX_INT, PageRequest, build_pagination


class TestParseInt:
    def test_values(self) -> None:
        assert parse_int("3") == 3
        assert parse_int(" 7 ") == 7
        assert parse_int(4) == 4

    def test_garbage_returns_default(self) -> None:
        assert parse_int("abc", 1) == 1
        assert parse_int("", 5) == 5
        assert parse_int(None, 2) == 2
        assert parse_int("1.5") is None
        assert parse_int(True, 9) == 9


class TestPageRequest:
    def test_defaults(self) -> None:
        r = PageRequest.from_params()
        assert (r.page, r.limit, r.offset) == (1, 20, 0)

    def test_offset(self) -> None:
        assert PageRequest.from_params(3, 10).offset == 20

    def test_page_below_one(self) -> None:
        assert PageRequest.from_params(0).page == 1
        assert PageRequest.from_params(-4).page == 1

    def test_limit_clamped(self) -> None:
        cfg = PaginationConfig(default_limit=10, max_limit=50)
        assert PageRequest.from_params(1, 500, cfg).limit == 50
        assert PageRequest.from_params(1, 0, cfg).limit == 1
        assert PageRequest.from_params(1, "many", cfg).limit == 10

    def test_huge_page_capped_to_sqlite_range(self) -> None:
        r = PageRequest.from_params("99999999999999999999", 20)
        assert r.page > 1
        assert r.offset + r.limit <= SQLITE_MAX_INT

    def test_cap_follows_limit(self) -> None:
        r = PageRequest.from_params(10**30, 1)
        assert r.offset + r.limit == SQLITE_MAX_INT


class TestBuildPagination:
    def test_first_of_two(self) -> None:
        p = build_pagination(PageRequest(1, 20), 25)
        assert p.total_pages == 2
        assert p.has_next_page is True
        assert p.has_prev_page is False

    def test_last_page(self) -> None:
        p = build_pagination(PageRequest(2, 20), 25)
        assert p.has_next_page is False
        assert p.has_prev_page is True

    def test_past_the_end(self) -> None:
        p = build_pagination(PageRequest(3, 20), 25)
        assert p.total == 25
        assert p.has_next_page is False
        assert p.has_prev_page is True

    def test_empty(self) -> None:
        p = build_pagination(PageRequest(1, 20), 0)
        assert p.total_pages == 0
        assert p.has_next_page is False

    def test_exact_multiple(self) -> None:
        assert build_pagination(PageRequest(2, 10), 20).has_next_page is False
