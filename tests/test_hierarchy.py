"""
Hierarchy store tests: tree building, ancestor resolution, cycle checks.
"""

from datetime import datetime, timezone

import pytest

from mdm.schemas import Category
from mdm.services.common.errors import CycleDetectedError
from mdm.services.hierarchy import (
    build_tree,
    children_of,
    collect_descendants,
    find_dangling_parents,
    resolve_ancestors,
    validate_parent,
)


def category(id, parent_id=None, name=None):
    return Category(
        id=id,
        name=name or id.title(),
        parent_id=parent_id,
        created_by="system",
        created_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def chain():
    """root -> mid -> leaf, plus a second child of root."""
    return [
        category("root"),
        category("mid", "root"),
        category("leaf", "mid"),
        category("sibling", "root"),
    ]


class TestBuildTree:

    def test_places_children_under_parents(self, chain):
        roots = build_tree(chain)

        assert [n.id for n in roots] == ["root"]
        assert [n.id for n in roots[0].children] == ["mid", "sibling"]
        assert [n.id for n in roots[0].children[0].children] == ["leaf"]

    def test_levels_count_depth_from_root(self, chain):
        levels = {node.id: node.level for node in build_tree(chain)[0].walk()}
        assert levels == {"root": 0, "mid": 1, "leaf": 2, "sibling": 1}

    def test_siblings_keep_input_order(self):
        records = [category("a"), category("z", "a"), category("m", "a"), category("b", "a")]
        assert [n.id for n in build_tree(records)[0].children] == ["z", "m", "b"]

    def test_dangling_parent_becomes_root(self):
        records = [category("orphan", "gone"), category("other")]

        roots = build_tree(records)

        assert [n.id for n in roots] == ["orphan", "other"]
        assert [r.id for r in find_dangling_parents(records)] == ["orphan"]

    def test_empty_input(self):
        assert build_tree([]) == []

    def test_cycle_members_are_left_out(self):
        records = [category("a", "b"), category("b", "a"), category("c")]
        assert [n.id for n in build_tree(records)] == ["c"]


class TestResolveAncestors:

    def test_immediate_parent_first(self, chain):
        assert [a.id for a in resolve_ancestors("leaf", chain)] == ["mid", "root"]

    def test_root_has_no_ancestors(self, chain):
        assert resolve_ancestors("root", chain) == []

    def test_stops_at_dangling_parent(self):
        records = [category("a", "missing"), category("b", "a")]
        assert [a.id for a in resolve_ancestors("b", records)] == ["a"]

    def test_cycle_raises(self):
        records = [category("a", "b"), category("b", "c"), category("c", "a")]
        with pytest.raises(CycleDetectedError):
            resolve_ancestors("a", records)

    def test_self_loop_raises(self):
        with pytest.raises(CycleDetectedError):
            resolve_ancestors("a", [category("a", "a")])


class TestValidateParent:

    def test_no_parent_is_valid(self, chain):
        assert validate_parent("leaf", None, chain) is True

    def test_self_parent_is_invalid(self, chain):
        assert validate_parent("mid", "mid", chain) is False

    @pytest.mark.parametrize("descendant", ["mid", "leaf", "sibling"])
    def test_descendant_parent_is_invalid(self, chain, descendant):
        assert validate_parent("root", descendant, chain) is False

    def test_long_chain_cycle_is_detected(self):
        records = [category("n0")] + [category(f"n{i}", f"n{i - 1}") for i in range(1, 50)]
        assert validate_parent("n0", "n49", records) is False

    def test_moving_under_unrelated_branch_is_valid(self, chain):
        assert validate_parent("leaf", "sibling", chain) is True

    def test_new_record_under_existing_parent(self, chain):
        assert validate_parent("fresh", "leaf", chain) is True


class TestTraversal:

    def test_collect_descendants_parents_first(self, chain):
        assert [d.id for d in collect_descendants("root", chain)] == ["mid", "sibling", "leaf"]

    def test_collect_descendants_of_leaf(self, chain):
        assert collect_descendants("leaf", chain) == []

    def test_children_of(self, chain):
        assert [c.id for c in children_of("root", chain)] == ["mid", "sibling"]
