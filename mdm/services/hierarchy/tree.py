"""
Hierarchy store: pure functions over a snapshot of parent/child records.

Works on any record with `id` and `parent_id`. Nothing here owns state;
callers pass the current collection on every call.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, TypeVar

from mdm.core.logging import get_logger
from mdm.schemas.common.base import HierarchicalEntity
from mdm.schemas.hierarchy import TreeNode
from mdm.services.common.errors import CycleDetectedError

logger = get_logger(__name__)

T = TypeVar("T", bound=HierarchicalEntity)


def _index(records: Sequence[T]) -> Dict[str, T]:
    return {record.id: record for record in records}


def find_dangling_parents(records: Sequence[T]) -> List[T]:
    """Records whose `parent_id` points at nothing in `records`."""
    by_id = _index(records)
    return [r for r in records if r.parent_id is not None and r.parent_id not in by_id]


def build_tree(records: Sequence[T]) -> List[TreeNode[T]]:
    """
    Arrange `records` into a forest.

    Roots are records without a parent or whose parent is not in
    `records`. Siblings keep input order. Records caught in a parent
    cycle are unreachable from any root and are left out with a warning.
    """
    nodes: Dict[str, TreeNode[T]] = {record.id: TreeNode(record=record) for record in records}
    roots: List[TreeNode[T]] = []

    for record in records:
        node = nodes[record.id]
        parent = nodes.get(record.parent_id) if record.parent_id is not None else None
        if parent is None or parent is node:
            if record.parent_id is not None and parent is None:
                logger.warning(
                    f"Dangling parent reference: {record.id} -> {record.parent_id}",
                    extra={"record_id": record.id, "parent_id": record.parent_id},
                )
            roots.append(node)
        else:
            parent.children.append(node)

    placed = 0
    stack = [(root, 0) for root in reversed(roots)]
    while stack:
        node, level = stack.pop()
        node.level = level
        placed += 1
        stack.extend((child, level + 1) for child in reversed(node.children))

    if placed < len(nodes):
        logger.warning(f"{len(nodes) - placed} records unreachable from any root (parent cycle)")

    return roots


def resolve_ancestors(id: str, records: Sequence[T]) -> List[T]:
    """
    Ancestors of `id`, immediate parent first.

    Stops at a root or at a dangling parent reference.

    Raises:
        CycleDetectedError: if the walk visits more nodes than exist
    """
    by_id = _index(records)
    ancestors: List[T] = []
    current = by_id.get(id)
    limit = len(records)

    while current is not None and current.parent_id is not None:
        parent = by_id.get(current.parent_id)
        if parent is None:
            logger.warning(
                f"Dangling parent reference: {current.id} -> {current.parent_id}",
                extra={"record_id": current.id, "parent_id": current.parent_id},
            )
            break
        ancestors.append(parent)
        if len(ancestors) > limit:
            raise CycleDetectedError(
                f"Cycle detected above '{id}'",
                details={"record_id": id, "visited": [a.id for a in ancestors[:limit]]},
            )
        current = parent

    return ancestors


def validate_parent(candidate_id: str, parent_id: Optional[str], records: Sequence[T]) -> bool:
    """
    Whether `candidate_id` may take `parent_id` as its parent.

    False for self-parenting and whenever `parent_id` is `candidate_id`
    or one of its descendants. A missing parent is not judged here.
    """
    if parent_id is None:
        return True
    if parent_id == candidate_id:
        return False

    # Walk up from the proposed parent looking for the candidate
    by_id = _index(records)
    seen = set()
    current = by_id.get(parent_id)
    while current is not None:
        if current.id == candidate_id:
            return False
        if current.id in seen:
            # Pre-existing cycle above the parent; accepting would join it
            return False
        seen.add(current.id)
        if current.parent_id is None:
            return True
        next_parent = by_id.get(current.parent_id)
        if next_parent is None:
            logger.warning(
                f"Dangling parent reference: {current.id} -> {current.parent_id}",
                extra={"record_id": current.id, "parent_id": current.parent_id},
            )
        current = next_parent
    return True


def collect_descendants(id: str, records: Sequence[T]) -> List[T]:
    """Every descendant of `id`, parents before their children."""
    children: Dict[str, List[T]] = {}
    for record in records:
        if record.parent_id is not None:
            children.setdefault(record.parent_id, []).append(record)

    result: List[T] = []
    seen = {id}
    queue = list(children.get(id, []))
    while queue:
        record = queue.pop(0)
        if record.id in seen:
            continue
        seen.add(record.id)
        result.append(record)
        queue.extend(children.get(record.id, []))
    return result


def children_of(id: str, records: Sequence[T]) -> List[T]:
    return [record for record in records if record.parent_id == id]
