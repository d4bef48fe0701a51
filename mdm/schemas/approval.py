"""
Approval rules and approval requests.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import Field, field_validator, model_validator

from mdm.schemas.common.base import BaseEntity, BaseSchema
from mdm.schemas.common.enums import LogicOperator, Operator, RequestStatus

__all__ = ["RuleCondition", "ApprovalRule", "ApprovalRequest"]


def parse_number(value: Any) -> Optional[float]:
    """Return `value` as a float, or None when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


class RuleCondition(BaseSchema):
    """
    One comparison of a candidate attribute against `value`.

    `logic_operator` joins this condition to the next one in the rule.
    """

    id: Optional[str] = None
    attribute_id: str = Field(..., min_length=1)
    operator: Operator
    value: Union[str, List[str]]
    logic_operator: Optional[LogicOperator] = None

    @model_validator(mode="after")
    def check_value_for_operator(self) -> "RuleCondition":
        if self.operator in (Operator.IN, Operator.NOT_IN):
            return self
        if isinstance(self.value, list):
            raise ValueError(f"operator '{self.operator.value}' takes a single value")
        if self.operator is Operator.REGEX:
            try:
                re.compile(self.value)
            except re.error as e:
                raise ValueError(f"invalid pattern {self.value!r}: {e}") from e
        elif self.operator.is_numeric and parse_number(self.value) is None:
            raise ValueError(
                f"operator '{self.operator.value}' requires a numeric value, got {self.value!r}"
            )
        return self

    def value_set(self) -> List[str]:
        """Membership set for `in`/`not_in`: a list, or a comma-delimited string."""
        if isinstance(self.value, list):
            return [str(item).strip() for item in self.value]
        return [item.strip() for item in self.value.split(",")]


class ApprovalRule(BaseEntity):
    rule_name: str = Field(..., min_length=1)
    entity_type: str = Field(..., min_length=1)
    conditions: List[RuleCondition] = Field(default_factory=list)
    assigned_roles: List[str] = Field(default_factory=list)
    assigned_users: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_has_approvers(self) -> "ApprovalRule":
        if not self.assigned_roles and not self.assigned_users:
            raise ValueError("a rule needs at least one assigned role or user")
        return self


class ApprovalRequest(BaseSchema):
    """
    A staged change awaiting a decision.

    `assigned_to` is resolved once at submission and never re-resolved.
    """

    id: str = Field(..., min_length=1)
    entity_type: str
    entity_id: str
    requested_by: str
    assigned_to: List[str] = Field(default_factory=list)
    status: RequestStatus = RequestStatus.PENDING
    comments: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    created_date: datetime
    matched_rule_ids: List[str] = Field(default_factory=list)
    decided_by: Optional[str] = None
    decided_date: Optional[datetime] = None

    @field_validator("assigned_to")
    @classmethod
    def dedupe_assignees(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))
