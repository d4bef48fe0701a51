"""
Approval rule evaluation.

Decides whether a candidate change needs approval and who the approvers
are. Conditions compare values from the candidate's `attribute_values`
(looked up through the Attribute's `field_name`) and combine left to
right with each condition's logic operator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from mdm.config.settings import Settings
from mdm.core.logging import get_logger
from mdm.schemas.approval import ApprovalRule, RuleCondition, parse_number
from mdm.schemas.attribute import Attribute
from mdm.schemas.common.enums import (
    ApprovalStatus,
    LogicOperator,
    Operator,
    RecordType,
    Status,
    UserRole,
)
from mdm.schemas.user import User
from mdm.services.common.errors import ValidationError

logger = get_logger(__name__)

_MISSING = object()


def stringify(value: Any) -> str:
    """String form used by equality, membership and pattern operators."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def evaluate_condition(condition: RuleCondition, values: Mapping[str, Any], key: str) -> bool:
    """
    Evaluate one condition against `values[key]`.

    A missing value never matches. Numeric operators do not match when
    either side is not a number.

    Raises:
        ValidationError: on an invalid regex pattern
    """
    raw = values.get(key, _MISSING)
    if raw is _MISSING or raw is None:
        return False

    operator = condition.operator
    if operator.is_numeric:
        left = parse_number(raw)
        right = parse_number(condition.value) if not isinstance(condition.value, list) else None
        if left is None or right is None:
            return False
        if operator is Operator.GREATER_THAN:
            return left > right
        if operator is Operator.LESS_THAN:
            return left < right
        if operator is Operator.GREATER_EQUAL:
            return left >= right
        return left <= right

    text = stringify(raw)
    if operator is Operator.EQUALS:
        return text == stringify(condition.value)
    if operator is Operator.NOT_EQUALS:
        return text != stringify(condition.value)
    if operator is Operator.IN:
        return text in condition.value_set()
    if operator is Operator.NOT_IN:
        return text not in condition.value_set()
    if operator is Operator.REGEX:
        try:
            return re.search(str(condition.value), text) is not None
        except re.error as e:
            raise ValidationError(
                f"Malformed regex condition on '{condition.attribute_id}': {e}",
                field="conditions",
            ) from e

    raise ValidationError(f"Unsupported operator '{operator}'", field="conditions")


@dataclass
class RuleEvaluation:
    """Outcome of evaluating the live rules for one candidate."""

    triggered_rules: List[ApprovalRule] = field(default_factory=list)
    approvers: List[str] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def approval_required(self) -> bool:
        return bool(self.triggered_rules)

    @property
    def matched_rule_ids(self) -> List[str]:
        return [rule.id for rule in self.triggered_rules]


class RuleEngine:
    """
    Evaluates approval rules and resolves approver sets.

    Args:
        settings: supplies the fallback routing policy used when no rule
            triggers (`fail_closed` or `default_group`)
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    # ------------------------------------------------------------------ #
    # Matching
    # ------------------------------------------------------------------ #

    @staticmethod
    def is_live(rule: ApprovalRule) -> bool:
        return rule.status is Status.ACTIVE and rule.approval_status is ApprovalStatus.APPROVED

    @staticmethod
    def governs(rule: ApprovalRule, record_type: str, candidate: Mapping[str, Any]) -> bool:
        """A rule governs its record type, or Entity records of its entity_type."""
        if rule.entity_type == record_type:
            return True
        return (
            record_type == RecordType.ENTITY.value
            and candidate.get("entity_type") == rule.entity_type
        )

    def applicable_rules(
        self,
        record_type: str,
        candidate: Mapping[str, Any],
        rules: Iterable[ApprovalRule],
    ) -> List[ApprovalRule]:
        return [r for r in rules if self.is_live(r) and self.governs(r, record_type, candidate)]

    # ------------------------------------------------------------------ #
    # Evaluation
    # ------------------------------------------------------------------ #

    @staticmethod
    def candidate_values(candidate: Mapping[str, Any]) -> Dict[str, Any]:
        """Top-level candidate fields overlaid with its attribute values."""
        values = {k: v for k, v in candidate.items() if k != "attribute_values"}
        values.update(candidate.get("attribute_values") or {})
        return values

    @staticmethod
    def field_key(attribute_id: str, attributes: Mapping[str, Attribute]) -> str:
        """attribute id -> Attribute.field_name, or the id itself when unknown."""
        attribute = attributes.get(attribute_id)
        return attribute.field_name if attribute is not None else attribute_id

    def evaluate_rule(
        self,
        rule: ApprovalRule,
        values: Mapping[str, Any],
        attributes: Mapping[str, Attribute],
    ) -> bool:
        """
        Left fold of the rule's conditions.

        The logic operator of condition i joins it to condition i+1;
        absent operators mean AND. A rule without conditions always
        triggers.
        """
        if not rule.conditions:
            return True

        result: Optional[bool] = None
        joiner = LogicOperator.AND
        for condition in rule.conditions:
            matched = evaluate_condition(condition, values, self.field_key(condition.attribute_id, attributes))
            if result is None:
                result = matched
            elif joiner is LogicOperator.OR:
                result = result or matched
            else:
                result = result and matched
            joiner = condition.logic_operator or LogicOperator.AND
        return bool(result)

    def resolve_approvers(
        self,
        triggered: Sequence[ApprovalRule],
        users: Sequence[User],
    ) -> List[str]:
        """Active members of assigned roles, plus explicitly assigned users."""
        approvers: List[str] = []
        for rule in triggered:
            roles = set(rule.assigned_roles)
            approvers.extend(
                u.id for u in users if u.role_id in roles and u.status is Status.ACTIVE
            )
            approvers.extend(rule.assigned_users)
        return list(dict.fromkeys(approvers))

    def fallback_approvers(self, users: Sequence[User]) -> List[str]:
        """
        Approvers when no rule triggers.

        Raises:
            ValidationError: under `fail_closed`, or when the default group
                resolves to nobody
        """
        policy = self.settings.APPROVAL_FALLBACK_POLICY
        if policy == "fail_closed":
            raise ValidationError(
                "No approval rule applies to this change and the fallback policy is fail_closed",
                details={"policy": policy},
            )

        roles = {UserRole(role) for role in self.settings.DEFAULT_APPROVER_ROLES}
        approvers = list(self.settings.DEFAULT_APPROVER_IDS)
        approvers.extend(
            u.id for u in users if u.user_role in roles and u.status is Status.ACTIVE
        )
        approvers = list(dict.fromkeys(approvers))
        if not approvers:
            raise ValidationError(
                "No approval rule applies and the default approver group is empty",
                details={"policy": policy},
            )
        return approvers

    def evaluate(
        self,
        record_type: str,
        candidate: Mapping[str, Any],
        rules: Iterable[ApprovalRule],
        attributes: Sequence[Attribute],
        users: Sequence[User],
    ) -> RuleEvaluation:
        """
        Evaluate every live rule governing `candidate`.

        Returns:
            The triggered rules and the resolved approvers; when nothing
            triggers, approvers come from the fallback policy.
        """
        attributes_by_id = {a.id: a for a in attributes}
        values = self.candidate_values(candidate)
        applicable = self.applicable_rules(record_type, candidate, rules)

        triggered = [r for r in applicable if self.evaluate_rule(r, values, attributes_by_id)]
        logger.info(
            f"{len(triggered)} of {len(applicable)} rules triggered for {record_type}",
            extra={"triggered_rules": [r.id for r in triggered]},
        )

        if triggered:
            approvers = self.resolve_approvers(triggered, users)
            if not approvers:
                raise ValidationError(
                    "Triggered approval rules resolve to no approvers",
                    details={"rules": [r.id for r in triggered]},
                )
            return RuleEvaluation(triggered_rules=triggered, approvers=approvers)

        return RuleEvaluation(approvers=self.fallback_approvers(users), used_fallback=True)
