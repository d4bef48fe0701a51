"""
Repository factory: one repository per governed record type, sharing a
persistence provider and the audit log.
"""

from typing import Dict, Iterator

from mdm.core.logging import get_logger
from mdm.db.provider import PersistenceProvider
from mdm.repositories.approval.approval_request_repository import ApprovalRequestRepository
from mdm.repositories.audit.audit_log_repository import AuditLogRepository
from mdm.repositories.base.base_repository import BaseRepository
from mdm.schemas import RECORD_SCHEMAS
from mdm.schemas.common.base import BaseEntity
from mdm.schemas.common.enums import RecordType

logger = get_logger(__name__)


class RepositoryFactory:
    """
    Builds and holds the repositories for one governance instance.

    Nothing here is global: each factory loads its own collections from
    the provider it was given.
    """

    def __init__(self, provider: PersistenceProvider):
        self.provider = provider
        self.audit_log = AuditLogRepository(provider)
        self.approval_requests = ApprovalRequestRepository(provider)
        self._records: Dict[RecordType, BaseRepository[BaseEntity]] = {
            record_type: BaseRepository(record_type.value, schema, provider, self.audit_log)
            for record_type, schema in RECORD_SCHEMAS.items()
        }
        logger.debug(f"Initialized {len(self._records)} record repositories")

    def get(self, record_type: RecordType) -> BaseRepository[BaseEntity]:
        return self._records[RecordType(record_type)]

    def __iter__(self) -> Iterator[RecordType]:
        return iter(self._records)
