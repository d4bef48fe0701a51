from mdm.db.provider import (
    APPROVAL_REQUEST_COLLECTION,
    AUDIT_LOG_COLLECTION,
    InMemoryPersistenceProvider,
    PersistenceProvider,
)

__all__ = [
    "APPROVAL_REQUEST_COLLECTION",
    "AUDIT_LOG_COLLECTION",
    "InMemoryPersistenceProvider",
    "PersistenceProvider",
]
