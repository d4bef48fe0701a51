"""
Dashboard statistics.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, List

from pydantic import Field

from mdm.schemas.approval import ApprovalRequest
from mdm.schemas.common.base import BaseSchema

__all__ = ["DashboardStats"]


class DashboardStats(BaseSchema):
    """Headline figures for the governance dashboard."""

    as_of: date
    record_counts: Dict[str, int] = Field(default_factory=dict)
    pending_approvals: int = 0
    approved_today: int = 0
    rejected_today: int = 0
    recent_requests: List[ApprovalRequest] = Field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(self.record_counts.values())
