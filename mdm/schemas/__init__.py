"""
Record schemas for every governed type, plus the type-tag registry.
"""

from typing import Dict, Type

from mdm.schemas.analytics import DashboardStats
from mdm.schemas.approval import ApprovalRequest, ApprovalRule, RuleCondition
from mdm.schemas.attribute import Attribute, Entity, ValidationRule
from mdm.schemas.audit import AuditLog
from mdm.schemas.common.base import BaseEntity, BaseSchema, HierarchicalEntity
from mdm.schemas.common.enums import (
    ApprovalStatus,
    AuditAction,
    DataType,
    GeographyType,
    LogicOperator,
    Operator,
    Permission,
    RecordType,
    RequestStatus,
    Status,
    UserRole,
    ValidationRuleType,
)
from mdm.schemas.hierarchy import Category, Geography, Role, TreeNode
from mdm.schemas.user import User

# Closed mapping from type tag to schema
RECORD_SCHEMAS: Dict[RecordType, Type[BaseEntity]] = {
    RecordType.CATEGORY: Category,
    RecordType.GEOGRAPHY: Geography,
    RecordType.ROLE: Role,
    RecordType.USER: User,
    RecordType.ATTRIBUTE: Attribute,
    RecordType.ENTITY: Entity,
    RecordType.APPROVAL_RULE: ApprovalRule,
}


def schema_for(record_type: RecordType) -> Type[BaseEntity]:
    return RECORD_SCHEMAS[RecordType(record_type)]


__all__ = [
    "RECORD_SCHEMAS",
    "schema_for",
    "BaseSchema",
    "BaseEntity",
    "HierarchicalEntity",
    "Category",
    "Geography",
    "Role",
    "TreeNode",
    "User",
    "Attribute",
    "ValidationRule",
    "Entity",
    "ApprovalRule",
    "RuleCondition",
    "ApprovalRequest",
    "AuditLog",
    "DashboardStats",
    "RecordType",
    "Status",
    "ApprovalStatus",
    "RequestStatus",
    "UserRole",
    "Permission",
    "GeographyType",
    "DataType",
    "ValidationRuleType",
    "Operator",
    "LogicOperator",
    "AuditAction",
]
