"""
Repositories: the sole writers of persisted state.
"""

from mdm.repositories.base import AuditContext, BaseRepository
from mdm.repositories.audit import AuditLogRepository
from mdm.repositories.approval import ApprovalRequestRepository
from mdm.repositories.base.repository_factory import RepositoryFactory

__all__ = [
    "AuditContext",
    "BaseRepository",
    "AuditLogRepository",
    "ApprovalRequestRepository",
    "RepositoryFactory",
]
