"""In-memory category tree with approved-entry aggregates.

Built once per request from two queries (all categories, direct counts per
category). Every entry has exactly one category, so rolling direct counts
up the parent chain counts each entry once at every ancestor level.
"""

import logging
from collections.abc import Iterable, Mapping

from src.core.schemas import CategoryNode, CategoryRecord

logger = logging.getLogger(__name__)


class CategoryIndex:
    """Immutable lookup over the category tree.

    Usage::

        index = CategoryIndex.build(records, direct_counts)
        ids = index.subtree_ids("ai-tools")      # None if slug unknown
        node = index.by_id(42)
    """

    def __init__(self, nodes: dict[int, CategoryNode], children: dict[int | None, list[int]]) -> None:
        self._nodes = nodes
        self._children = children
        self._by_slug = {n.slug: n.id for n in nodes.values()}

    @classmethod
    def build(
        cls,
        records: Iterable[CategoryRecord],
        direct_counts: Mapping[int, int] | None = None,
    ) -> "CategoryIndex":
        direct_counts = direct_counts or {}
        records = sorted(records, key=lambda r: (r.sort_order, r.id))
        known = {r.id for r in records}

        children: dict[int | None, list[int]] = {None: []}
        for r in records:
            parent = r.parent_id if r.parent_id in known else None
            if r.parent_id is not None and parent is None:
                logger.warning(
                    "Category '%s' references missing parent %s; treating as root",
                    r.slug, r.parent_id,
                )
            children.setdefault(parent, []).append(r.id)

        nodes: dict[int, CategoryNode] = {}
        by_id = {r.id: r for r in records}

        def visit(cid: int, path: frozenset[int]) -> int:
            # Guards against parent cycles in hand-edited data.
            if cid in path:
                logger.warning("Category cycle detected at id %d", cid)
                return 0
            r = by_id[cid]
            direct = int(direct_counts.get(cid, 0))
            total = direct
            for child in children.get(cid, []):
                total += visit(child, path | {cid})
            nodes[cid] = CategoryNode(
                id=r.id,
                name=r.name,
                slug=r.slug,
                parent_id=r.parent_id if r.parent_id in known else None,
                sort_order=r.sort_order,
                tool_count=total,
                direct_count=direct,
            )
            return total

        for root in children[None]:
            visit(root, frozenset())
        # Nodes only reachable through a cycle never hang off a root.
        for r in records:
            if r.id not in nodes:
                visit(r.id, frozenset())

        return cls(nodes, children)

    def __len__(self) -> int:
        return len(self._nodes)

    def by_id(self, category_id: int) -> CategoryNode | None:
        return self._nodes.get(category_id)

    def by_slug(self, slug: str) -> CategoryNode | None:
        cid = self._by_slug.get(slug)
        return self._nodes[cid] if cid is not None else None

    def subtree_ids(self, slug: str) -> list[int] | None:
        """Return the ids of the category and all its descendants, or None."""
        node = self.by_slug(slug)
        if node is None:
            return None
        result: list[int] = []
        stack = [node.id]
        while stack:
            cid = stack.pop()
            if cid in result:
                continue
            result.append(cid)
            stack.extend(self._children.get(cid, []))
        return sorted(result)

    def roots(self) -> list[CategoryNode]:
        return [self._nodes[cid] for cid in self._children.get(None, []) if cid in self._nodes]

    def flat(self) -> list[CategoryNode]:
        """All categories in (sort_order, id) order, without nested children."""
        return sorted(self._nodes.values(), key=lambda n: (n.sort_order, n.id))

    def tree(self) -> list[CategoryNode]:
        """Root categories with their descendants nested under ``children``."""
        def nest(cid: int) -> CategoryNode:
            node = self._nodes[cid]
            kids = [nest(c) for c in self._children.get(cid, []) if c != cid and c in self._nodes]
            return node.model_copy(update={"children": kids})

        return [nest(cid) for cid in self._children.get(None, []) if cid in self._nodes]
