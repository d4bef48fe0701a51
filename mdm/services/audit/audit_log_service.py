# mdm/services/audit/audit_log_service.py
from __future__ import annotations

from typing import List, Optional, Union

from mdm.repositories.audit import AuditLogRepository
from mdm.schemas.audit import AuditLog
from mdm.schemas.common.enums import AuditAction, Permission, RecordType
from mdm.services.common.permissions import Principal, require_permission


class AuditLogService:
    """
    Read side of the audit trail:

    - List entries filtered by record type, record id, user and action
    - Change history of one record
    - Activity of one user
    """

    def __init__(self, audit_log: AuditLogRepository) -> None:
        self._audit_log = audit_log

    def list_logs(
        self,
        principal: Principal,
        *,
        entity_type: Optional[Union[RecordType, str]] = None,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        action: Optional[Union[AuditAction, str]] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        """
        Entries matching every given filter, oldest first.
        """
        require_permission(principal, Permission.VIEW)
        if isinstance(entity_type, RecordType):
            entity_type = entity_type.value
        return self._audit_log.find(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            action=action,
            limit=limit,
        )

    def entity_history(
        self,
        principal: Principal,
        entity_type: Union[RecordType, str],
        entity_id: str,
    ) -> List[AuditLog]:
        require_permission(principal, Permission.VIEW)
        return self._audit_log.get_entity_history(RecordType(entity_type).value, entity_id)

    def user_activity(
        self,
        principal: Principal,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        require_permission(principal, Permission.VIEW)
        return self._audit_log.find(user_id=user_id, limit=limit)
