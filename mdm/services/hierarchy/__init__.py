from mdm.services.hierarchy.tree import (
    build_tree,
    children_of,
    collect_descendants,
    find_dangling_parents,
    resolve_ancestors,
    validate_parent,
)

__all__ = [
    "build_tree",
    "children_of",
    "collect_descendants",
    "find_dangling_parents",
    "resolve_ancestors",
    "validate_parent",
]
