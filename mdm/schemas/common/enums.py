"""
All enumeration types used across the governance core.
"""

from enum import Enum

__all__ = [
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


class RecordType(str, Enum):
    """Governed record kinds. Closed set; each has one registered schema."""

    CATEGORY = "Category"
    GEOGRAPHY = "Geography"
    ROLE = "Role"
    USER = "User"
    ATTRIBUTE = "Attribute"
    ENTITY = "Entity"
    APPROVAL_RULE = "ApprovalRule"

    @property
    def is_hierarchical(self) -> bool:
        return self in (RecordType.CATEGORY, RecordType.GEOGRAPHY, RecordType.ROLE)


class Status(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ApprovalStatus(str, Enum):
    """Approval state carried on every governed record."""

    DRAFT = "Draft"
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class RequestStatus(str, Enum):
    """Approval request state. Approved and Rejected are terminal."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class UserRole(str, Enum):
    """System permission role, distinct from the business Role record."""

    MAKER = "Maker"
    CHECKER = "Checker"
    ADMIN = "Admin"
    VIEWER = "Viewer"


class Permission(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    VIEW = "view"


class GeographyType(str, Enum):
    COUNTRY = "Country"
    STATE = "State"
    CITY = "City"
    ZONE = "Zone"


class DataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DROPDOWN = "dropdown"
    BOOLEAN = "boolean"
    DATE = "date"


class ValidationRuleType(str, Enum):
    LENGTH = "length"
    RANGE = "range"
    REGEX = "regex"
    REQUIRED = "required"


class Operator(str, Enum):
    """Rule condition comparison operators."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    REGEX = "regex"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"

    @property
    def is_numeric(self) -> bool:
        return self in (
            Operator.GREATER_THAN,
            Operator.LESS_THAN,
            Operator.GREATER_EQUAL,
            Operator.LESS_EQUAL,
        )


class LogicOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT_FOR_APPROVAL = "SUBMIT_FOR_APPROVAL"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
