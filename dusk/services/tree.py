from __future__ import annotations

from collections.abc import Iterator

from dusk.models.enums import NodeKind
from dusk.models.scan import Node

AGGREGATE_SUFFIX = "/__other__"


def _by_size(node: Node) -> int:
    return node.size


def fold_children(children: list[Node], parent_path: str, max_children: int) -> list[Node]:
    """Keep the first *max_children* of a size-sorted list, folding the rest.

    The folded entries become one ``"(N smaller items)"`` file node, added only
    when it would carry a nonzero size.
    """
    if len(children) <= max_children:
        return children
    kept = children[:max_children]
    dropped = children[max_children:]
    dropped_size = sum(child.size for child in dropped)
    if dropped_size > 0:
        kept.append(
            Node(
                name=f"({len(dropped)} smaller items)",
                path=parent_path + AGGREGATE_SUFFIX,
                size=dropped_size,
                kind=NodeKind.FILE,
            )
        )
    return kept


def copy_tree(root: Node) -> Node:
    """Deep copy of *root* sharing no Node or list with the original."""
    clone = _copy_node(root)
    stack: list[tuple[Node, Node]] = [(root, clone)]
    while stack:
        src, dst = stack.pop()
        if src.children is None:
            continue
        dst.children = []
        for child in src.children:
            child_clone = _copy_node(child)
            dst.children.append(child_clone)
            stack.append((child, child_clone))
    return clone


def _copy_node(node: Node) -> Node:
    return Node(
        name=node.name,
        path=node.path,
        size=node.size,
        kind=node.kind,
        extension=node.extension,
        truncated=node.truncated,
    )


def _post_order(root: Node) -> list[tuple[Node, list[Node], int]]:
    """(node, children, depth) for nodes with children; reversed() is bottom-up."""
    order: list[tuple[Node, list[Node], int]] = []
    visit: list[tuple[Node, int]] = [(root, 0)]
    while visit:
        node, depth = visit.pop()
        children = node.children
        if not children:
            continue
        order.append((node, children, depth))
        visit.extend((child, depth + 1) for child in children)
    return order


def recalc_sizes(root: Node) -> None:
    """Bottom-up pass: sum children sizes into directories and sort by size descending.

    Nodes without children (files, truncated or unexpanded directories,
    empty directories) keep the size they already have.
    """
    for node, children, _ in reversed(_post_order(root)):
        children.sort(key=_by_size, reverse=True)
        node.size = sum(child.size for child in children)


def apply_child_limits(root: Node, child_limit_depth: int, max_children: int) -> None:
    """Fold children beyond *max_children* for every node at ``depth >= child_limit_depth``.

    Deeper levels are folded first, so each decision sees sizes as they stand
    after the levels below it were capped.
    """
    for node, children, depth in reversed(_post_order(root)):
        if depth >= child_limit_depth:
            node.children = fold_children(children, node.path, max_children)


def snapshot(root: Node, child_limit_depth: int = 2, max_children: int = 30) -> Node:
    """Independent, size-consistent, capped copy of a working tree.

    The copy is summed and sorted, capped, then summed and sorted again
    because folding changes sizes and ordering.
    """
    clone = copy_tree(root)
    recalc_sizes(clone)
    apply_child_limits(clone, child_limit_depth, max_children)
    recalc_sizes(clone)
    return clone


def iter_nodes(root: Node) -> Iterator[Node]:
    """Iterate all nodes in the tree rooted at *root* (depth-first)."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        if node.children:
            stack.extend(node.children)


def remove_node(root: Node, target_path: str) -> Node | None:
    """Return a copy of *root* without the node at *target_path*.

    Ancestor sizes are recomputed along the way.  Returns ``None`` when the
    root itself is the target.
    """
    if root.path == target_path:
        return None
    clone = copy_tree(root)
    for node, children, _ in reversed(_post_order(clone)):
        kept = [child for child in children if child.path != target_path]
        node.children = kept
        node.size = sum(child.size for child in kept)
    return clone
