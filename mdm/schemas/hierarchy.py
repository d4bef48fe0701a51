"""
Hierarchical reference data: categories, geographies and business roles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, TypeVar

from pydantic import Field

from mdm.schemas.common.base import HierarchicalEntity
from mdm.schemas.common.enums import GeographyType

__all__ = ["Category", "Geography", "Role", "TreeNode"]


class Category(HierarchicalEntity):
    pass


class Geography(HierarchicalEntity):
    type: GeographyType


class Role(HierarchicalEntity):
    """Business role; `department` is a free-text label."""

    department: str = Field(default="")


TRecord = TypeVar("TRecord", bound=HierarchicalEntity)


@dataclass
class TreeNode(Generic[TRecord]):
    """One node of a hierarchy forest."""

    record: TRecord
    level: int = 0
    children: List["TreeNode[TRecord]"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.record.id

    def walk(self):
        """Depth-first, pre-order iteration over this subtree."""
        yield self
        for child in self.children:
            yield from child.walk()
