"""
Base repository with standardized CRUD operations and audit integration.

Each repository owns one collection. Writers serialise on the collection
lock, persist the next state through the persistence provider, and only
then publish it; readers take the published snapshot without locking.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)
from uuid import uuid4

from pydantic import BaseModel

from mdm.core.logging import get_logger
from mdm.db.provider import PersistenceProvider
from mdm.schemas.common.enums import AuditAction
from mdm.services.common.errors import NotFoundError, ValidationError
from mdm.services.common.mapping import diff_payloads, to_payload, to_record

if TYPE_CHECKING:
    from mdm.repositories.audit.audit_log_repository import AuditLogRepository

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=BaseModel)


@dataclass(frozen=True)
class AuditContext:
    """Who is acting, for the audit trail."""

    user_id: str


class BaseRepository(Generic[ModelType]):
    """
    Generic repository over one named collection.

    Provides list/get/create/update/delete. Every audited mutation appends
    exactly one entry to the audit log.
    """

    def __init__(
        self,
        collection: str,
        model: Type[ModelType],
        provider: PersistenceProvider,
        audit_log: Optional["AuditLogRepository"] = None,
    ):
        """
        Initialize repository and load the collection from the provider.

        Args:
            collection: Collection name in the persistence provider
            model: Pydantic schema of the stored records
            provider: Persistence provider
            audit_log: Audit log repository; None disables auditing
        """
        self.collection = collection
        self.model = model
        self.provider = provider
        self.audit_log = audit_log
        self._write_lock = threading.RLock()
        self._records: Dict[str, ModelType] = {
            record.id: record
            for record in (to_record(model, row) for row in provider.load_all(collection))
        }

    # ==================== Read Operations ====================

    def list(self) -> List[ModelType]:
        """Point-in-time copy of every record, in insertion order."""
        snapshot = self._records
        return [record.model_copy(deep=True) for record in snapshot.values()]

    def find_by_id(self, id: str) -> Optional[ModelType]:
        record = self._records.get(id)
        return record.model_copy(deep=True) if record is not None else None

    def get_by_id(self, id: str) -> ModelType:
        """
        Get record by ID or raise.

        Raises:
            NotFoundError: If the record does not exist
        """
        record = self.find_by_id(id)
        if record is None:
            raise NotFoundError(self.collection, id)
        return record

    def exists(self, id: str) -> bool:
        return id in self._records

    def find(self, predicate: Callable[[ModelType], bool]) -> List[ModelType]:
        return [record for record in self.list() if predicate(record)]

    def count(self) -> int:
        return len(self._records)

    def new_id(self) -> str:
        """Fresh UUID that does not collide with any stored id."""
        while True:
            candidate = str(uuid4())
            if candidate not in self._records:
                return candidate

    # ==================== Write Operations ====================

    def create(
        self,
        entity: ModelType,
        audit_context: Optional[AuditContext] = None,
        audit: bool = True,
    ) -> ModelType:
        """
        Append a validated record.

        Args:
            entity: Record to store; its id must be unused
            audit_context: Acting user
            audit: Whether to write a CREATE audit entry

        Returns:
            Stored record

        Raises:
            ValidationError: If the id is already taken
        """
        with self._write_lock:
            self._require_context(audit, audit_context)
            if entity.id in self._records:
                raise ValidationError(
                    f"{self.collection} with id '{entity.id}' already exists", field="id"
                )
            stored = entity.model_copy(deep=True)
            records = dict(self._records)
            records[stored.id] = stored
            self._publish(records)

            if audit:
                self._audit(AuditAction.CREATE, stored.id, audit_context, to_payload(stored))

        logger.info(f"Created {self.collection} with id: {stored.id}")
        return stored.model_copy(deep=True)

    def update(
        self,
        id: str,
        data: Mapping[str, Any],
        audit_context: Optional[AuditContext] = None,
        audit: bool = True,
    ) -> ModelType:
        """
        Shallow-merge `data` over the stored record.

        The merged record is validated in full before anything is
        written. Nothing is stamped automatically.

        Raises:
            NotFoundError: If the record does not exist
            ValidationError: If the merged record is invalid
        """
        with self._write_lock:
            self._require_context(audit, audit_context)
            existing = self._records.get(id)
            if existing is None:
                raise NotFoundError(self.collection, id)

            before = to_payload(existing)
            merged = {**existing.model_dump(), **dict(data), "id": id}
            updated = to_record(self.model, merged)
            after = to_payload(updated)

            records = dict(self._records)
            records[id] = updated
            self._publish(records)

            if audit:
                self._audit(AuditAction.UPDATE, id, audit_context, diff_payloads(before, after))

        logger.info(f"Updated {self.collection} with id: {id}")
        return updated.model_copy(deep=True)

    def delete(
        self,
        id: str,
        audit_context: Optional[AuditContext] = None,
        audit: bool = True,
    ) -> None:
        """
        Remove a record.

        Raises:
            NotFoundError: If the record does not exist
        """
        with self._write_lock:
            self._require_context(audit, audit_context)
            if id not in self._records:
                raise NotFoundError(self.collection, id)
            records = dict(self._records)
            del records[id]
            self._publish(records)

            if audit:
                self._audit(AuditAction.DELETE, id, audit_context)

        logger.info(f"Deleted {self.collection} with id: {id}")

    def apply_batch(
        self,
        updates: Optional[Mapping[str, Mapping[str, Any]]] = None,
        deletes: Sequence[str] = (),
        audit_context: Optional[AuditContext] = None,
        audit: bool = True,
    ) -> None:
        """
        Apply several updates and deletions as a single write.

        Every change is validated against the next state before the
        collection is persisted once; on any failure nothing is applied
        and nothing is audited. Audit entries follow the write, updates
        first, then deletions in the given order.

        Raises:
            NotFoundError: If a target record does not exist
            ValidationError: If a merged record is invalid
        """
        updates = dict(updates or {})
        with self._write_lock:
            self._require_context(audit, audit_context)
            records = dict(self._records)
            diffs: List[Tuple[str, Dict[str, Any]]] = []

            for id, data in updates.items():
                existing = records.get(id)
                if existing is None:
                    raise NotFoundError(self.collection, id)
                updated = to_record(self.model, {**existing.model_dump(), **dict(data), "id": id})
                diffs.append((id, diff_payloads(to_payload(existing), to_payload(updated))))
                records[id] = updated

            for id in deletes:
                if id not in records:
                    raise NotFoundError(self.collection, id)
                del records[id]

            self._publish(records)

            if audit:
                for id, changes in diffs:
                    self._audit(AuditAction.UPDATE, id, audit_context, changes)
                for id in deletes:
                    self._audit(AuditAction.DELETE, id, audit_context)

        logger.info(f"Batch on {self.collection}: {len(updates)} updated, {len(deletes)} deleted")

    # ==================== Internals ====================

    def _publish(self, records: Dict[str, ModelType]) -> None:
        # Persist first; a provider failure leaves the published snapshot untouched
        self.provider.save_all(self.collection, [to_payload(r) for r in records.values()])
        self._records = records

    def _require_context(self, audit: bool, audit_context: Optional[AuditContext]) -> None:
        if audit and self.audit_log is not None and audit_context is None:
            raise ValidationError(
                f"Mutating {self.collection} requires an acting user", field="user_id"
            )

    def _audit(
        self,
        action: AuditAction,
        entity_id: str,
        audit_context: Optional[AuditContext],
        changes: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self.audit_log is None or audit_context is None:
            return
        self.audit_log.record(
            action=action,
            entity_type=self.collection,
            entity_id=entity_id,
            user_id=audit_context.user_id,
            changes=changes,
        )
