"""
User records.
"""

from __future__ import annotations

from typing import List

from pydantic import Field

from mdm.schemas.common.base import BaseEntity
from mdm.schemas.common.enums import UserRole

__all__ = ["User"]


class User(BaseEntity):
    """
    Governed user record.

    `user_role` is the system permission role used by access control;
    `role_id` references the business Role hierarchy.
    """

    full_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    phone_number: str = Field(default="")
    department: str = Field(default="")
    role_id: str = Field(..., min_length=1)
    geography_ids: List[str] = Field(default_factory=list)
    category_ids: List[str] = Field(default_factory=list)
    user_role: UserRole = UserRole.VIEWER
