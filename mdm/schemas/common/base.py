"""
Base schema classes with common fields and configurations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mdm.schemas.common.enums import ApprovalStatus, Status

__all__ = [
    "BaseSchema",
    "AuditStampMixin",
    "BaseEntity",
    "HierarchicalEntity",
]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.

    Attributes are snake_case in Python; camelCase aliases are accepted on
    input so payloads from the presentation layer validate unchanged.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )


class AuditStampMixin(BaseModel):
    """Creation and modification stamps."""

    created_by: str = Field(..., min_length=1)
    created_date: datetime
    modified_by: Optional[str] = None
    modified_date: Optional[datetime] = None


class BaseEntity(BaseSchema, AuditStampMixin):
    """Fields shared by every governed record."""

    id: str = Field(..., min_length=1)
    status: Status = Status.ACTIVE
    approval_status: ApprovalStatus = ApprovalStatus.PENDING


class HierarchicalEntity(BaseEntity):
    """Record with an optional parent of the same type."""

    name: str = Field(..., min_length=1)
    parent_id: Optional[str] = None
