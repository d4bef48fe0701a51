from __future__ import annotations

from typing import List, Optional

from mdm.db.provider import APPROVAL_REQUEST_COLLECTION, PersistenceProvider
from mdm.repositories.base import BaseRepository
from mdm.schemas.approval import ApprovalRequest
from mdm.schemas.common.enums import RequestStatus


class ApprovalRequestRepository(BaseRepository[ApprovalRequest]):
    """Approval requests. Audited by the workflow, not per write."""

    def __init__(self, provider: PersistenceProvider):
        super().__init__(APPROVAL_REQUEST_COLLECTION, ApprovalRequest, provider, audit_log=None)

    def find_pending_for_entity(self, entity_type: str, entity_id: str) -> Optional[ApprovalRequest]:
        matches = self.find(
            lambda r: r.entity_type == entity_type
            and r.entity_id == entity_id
            and r.status is RequestStatus.PENDING
        )
        return matches[0] if matches else None

    def find_by_status(self, status: Optional[RequestStatus] = None) -> List[ApprovalRequest]:
        if status is None:
            return self.list()
        status = RequestStatus(status)
        return self.find(lambda r: r.status is status)

    def find_assigned_to(
        self,
        user_id: str,
        status: Optional[RequestStatus] = RequestStatus.PENDING,
    ) -> List[ApprovalRequest]:
        return [r for r in self.find_by_status(status) if user_id in r.assigned_to]
