# mdm/services/common/permissions.py
"""
Permission and authorization utilities.

Maps a principal's system role (Maker, Checker, Admin, Viewer) to the
action verbs it may invoke. Every mutating command checks this before
touching state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Mapping, Optional, Union

from mdm.core.logging import get_logger
from mdm.schemas.common.enums import Permission, Status, UserRole
from mdm.schemas.user import User

from .errors import ForbiddenError

logger = get_logger(__name__)

# Fixed role matrix
PERMISSION_MATRIX: Mapping[UserRole, FrozenSet[Permission]] = {
    UserRole.ADMIN: frozenset({
        Permission.CREATE,
        Permission.EDIT,
        Permission.DELETE,
        Permission.APPROVE,
        Permission.REJECT,
        Permission.VIEW,
    }),
    UserRole.CHECKER: frozenset({Permission.APPROVE, Permission.REJECT, Permission.VIEW}),
    UserRole.MAKER: frozenset({Permission.CREATE, Permission.EDIT, Permission.VIEW}),
    UserRole.VIEWER: frozenset({Permission.VIEW}),
}


class PermissionDenied(ForbiddenError):
    """Raised when a principal lacks required permissions."""

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        role: Optional[UserRole] = None,
        required_permission: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            required_permission=required_permission,
            details={
                "user_id": user_id,
                "role": role.value if role else None,
                "required_permission": required_permission,
            },
        )
        self.user_id = user_id
        self.role = role


@dataclass(frozen=True)
class Principal:
    """
    Represents an authenticated caller.

    Attributes:
        user_id: Id of the User record acting
        role: System permission role
        active: Inactive users hold no permissions
    """
    user_id: str
    role: UserRole
    active: bool = True

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(user_id=user.id, role=user.user_role, active=user.status is Status.ACTIVE)

    def has_role(self, role: UserRole) -> bool:
        return self.role == role


PrincipalLike = Union[Principal, UserRole, str, None]


def role_permissions(role: Union[UserRole, str]) -> FrozenSet[Permission]:
    """Permission set of a system role; empty for unknown roles."""
    try:
        return PERMISSION_MATRIX.get(UserRole(role), frozenset())
    except ValueError:
        return frozenset()


def has_permission(principal: PrincipalLike, action: Union[Permission, str]) -> bool:
    """
    Check whether `principal` may perform `action`.

    `principal` may be a Principal, or a bare role for matrix lookups.
    No principal, or an inactive one, has no permissions.

    Example:
        >>> has_permission(UserRole.VIEWER, Permission.EDIT)
        False
    """
    if principal is None:
        return False
    if isinstance(principal, Principal):
        if not principal.active:
            return False
        role = principal.role
    else:
        role = principal

    try:
        action = Permission(action)
    except ValueError:
        return False
    return action in role_permissions(role)


def require_permission(
    principal: Optional[Principal],
    action: Union[Permission, str],
    *,
    error_message: Optional[str] = None,
) -> None:
    """
    Assert that principal may perform `action`.

    Raises:
        PermissionDenied: If principal lacks the permission
    """
    if has_permission(principal, action):
        return

    action_value = action.value if isinstance(action, Permission) else str(action)
    if principal is None:
        msg = error_message or f"No authenticated principal for '{action_value}'"
        logger.warning(msg)
        raise PermissionDenied(msg, required_permission=action_value)

    msg = error_message or (
        f"User {principal.user_id} with role '{principal.role.value}' "
        f"lacks permission '{action_value}'"
    )
    logger.warning(msg)
    raise PermissionDenied(
        msg,
        user_id=principal.user_id,
        role=principal.role,
        required_permission=action_value,
    )
