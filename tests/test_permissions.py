"""
Access control tests: the role matrix and enforcement at the service.
"""

import pytest

from mdm.schemas.common.enums import Permission, RecordType, Status, UserRole
from mdm.services.common.errors import ErrorCode, ForbiddenError
from mdm.services.common.permissions import (
    PermissionDenied,
    Principal,
    has_permission,
    require_permission,
    role_permissions,
)


class TestMatrix:

    def test_admin_can_do_everything(self):
        assert role_permissions(UserRole.ADMIN) == frozenset(Permission)

    @pytest.mark.parametrize("action", [Permission.APPROVE, Permission.REJECT, Permission.VIEW])
    def test_checker_decides(self, action):
        assert has_permission(UserRole.CHECKER, action)

    @pytest.mark.parametrize("action", [Permission.CREATE, Permission.EDIT, Permission.DELETE])
    def test_checker_cannot_author(self, action):
        assert not has_permission(UserRole.CHECKER, action)

    def test_maker_authors_but_cannot_decide_or_delete(self):
        assert role_permissions(UserRole.MAKER) == {Permission.CREATE, Permission.EDIT, Permission.VIEW}

    def test_viewer_cannot_edit(self):
        assert has_permission(UserRole.VIEWER, Permission.VIEW)
        assert not has_permission(UserRole.VIEWER, Permission.EDIT)

    def test_no_principal_has_no_permissions(self):
        assert has_permission(None, Permission.VIEW) is False

    def test_inactive_principal_has_no_permissions(self):
        principal = Principal(user_id="u", role=UserRole.ADMIN, active=False)
        assert has_permission(principal, Permission.VIEW) is False

    def test_unknown_action_is_denied(self):
        assert has_permission(UserRole.ADMIN, "publish") is False

    def test_require_permission_raises_forbidden(self):
        principal = Principal(user_id="v", role=UserRole.VIEWER)
        with pytest.raises(ForbiddenError) as exc:
            require_permission(principal, Permission.DELETE)

        assert isinstance(exc.value, PermissionDenied)
        assert exc.value.code is ErrorCode.FORBIDDEN
        assert exc.value.required_permission == "delete"


class TestServiceEnforcement:

    def test_viewer_cannot_create(self, service, viewer):
        with pytest.raises(ForbiddenError):
            service.create(RecordType.CATEGORY, {"name": "Hats"}, viewer)

        assert service.repos.get(RecordType.CATEGORY).count() == 1
        assert service.repos.audit_log.count() == 0

    def test_viewer_cannot_update(self, service, viewer):
        with pytest.raises(ForbiddenError):
            service.update(RecordType.CATEGORY, "clothing", {"name": "Apparel"}, viewer)

        assert service.repos.get(RecordType.CATEGORY).get_by_id("clothing").name == "Clothing"

    def test_maker_cannot_delete(self, service, maker):
        with pytest.raises(ForbiddenError):
            service.delete(RecordType.CATEGORY, "clothing", maker)
        assert service.repos.get(RecordType.CATEGORY).exists("clothing")

    def test_checker_cannot_submit(self, service, checker):
        with pytest.raises(ForbiddenError):
            service.submit_for_approval(RecordType.CATEGORY, "clothing", checker, {"name": "Apparel"})
        assert service.repos.approval_requests.count() == 0

    def test_viewer_can_read(self, service, viewer):
        assert [c.name for c in service.list(RecordType.CATEGORY, viewer)] == ["Clothing"]

    def test_admin_can_do_everything(self, service, admin):
        created = service.create(RecordType.CATEGORY, {"name": "Hats"}, admin)
        service.update(RecordType.CATEGORY, created.id, {"name": "Caps"}, admin)
        service.delete(RecordType.CATEGORY, created.id, admin)

        assert not service.repos.get(RecordType.CATEGORY).exists(created.id)

    def test_deactivated_user_loses_access(self, service, admin):
        service.update(RecordType.USER, "maker", {"status": Status.INACTIVE}, admin)
        maker = service.principal_for("maker")

        with pytest.raises(ForbiddenError):
            service.list(RecordType.CATEGORY, maker)
