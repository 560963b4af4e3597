"""Tests for the category tree: subtree resolution and count rollup."""

from src.core.categories import CategoryIndex
from src.core.schemas import CategoryRecord


def _cat(cid: int, slug: str, parent_id: int | None = None, sort_order: int = 0) -> CategoryRecord:
    return CategoryRecord(id=cid, name=slug.title(), slug=slug, parent_id=parent_id, sort_order=sort_order)


def _index() -> CategoryIndex:
    records = [
        _cat(1, "ai", sort_order=1),
        _cat(2, "writing", parent_id=1),
        _cat(3, "image", parent_id=1),
        _cat(4, "copy", parent_id=2),
        _cat(5, "dev", sort_order=2),
    ]
    return CategoryIndex.build(records, {1: 1, 2: 2, 4: 3, 5: 4})


class TestSubtree:
    def test_includes_descendants(self) -> None:
        assert _index().subtree_ids("ai") == [1, 2, 3, 4]

    def test_leaf(self) -> None:
        assert _index().subtree_ids("copy") == [4]

    def test_unknown_slug(self) -> None:
        assert _index().subtree_ids("nope") is None


class TestCounts:
    def test_rollup_counts_each_entry_once(self) -> None:
        index = _index()
        assert index.by_slug("copy").tool_count == 3  # type: ignore[union-attr]
        assert index.by_slug("writing").tool_count == 5  # type: ignore[union-attr]
        assert index.by_slug("ai").tool_count == 6  # type: ignore[union-attr]
        assert index.by_slug("ai").direct_count == 1  # type: ignore[union-attr]
        assert index.by_slug("image").tool_count == 0  # type: ignore[union-attr]

    def test_root_totals_sum_to_all_entries(self) -> None:
        index = _index()
        assert sum(r.tool_count for r in index.roots()) == 1 + 2 + 3 + 4


class TestShape:
    def test_roots_in_sort_order(self) -> None:
        assert [r.slug for r in _index().roots()] == ["ai", "dev"]

    def test_tree_nests_children(self) -> None:
        tree = _index().tree()
        ai = tree[0]
        assert [c.slug for c in ai.children] == ["writing", "image"]
        assert ai.children[0].children[0].slug == "copy"

    def test_flat_has_no_children(self) -> None:
        flat = _index().flat()
        assert len(flat) == 5
        assert all(n.children == [] for n in flat)

    def test_missing_parent_treated_as_root(self) -> None:
        index = CategoryIndex.build([_cat(1, "a"), _cat(2, "b", parent_id=99)])
        assert {r.slug for r in index.roots()} == {"a", "b"}
        assert index.by_slug("b").parent_id is None  # type: ignore[union-attr]

    def test_cycle_does_not_hang(self) -> None:
        index = CategoryIndex.build([_cat(1, "a", parent_id=2), _cat(2, "b", parent_id=1)], {1: 1})
        assert len(index) == 2
        assert index.subtree_ids("a") == [1, 2]
