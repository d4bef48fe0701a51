"""
Append-only audit log.

Entries are written once and never updated or removed; the repository
exposes no mutating operation other than `record`.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from mdm.core.logging import get_event_logger
from mdm.db.provider import AUDIT_LOG_COLLECTION, PersistenceProvider
from mdm.schemas.audit import AuditLog
from mdm.schemas.common.enums import AuditAction
from mdm.services.common.mapping import to_payload, to_record

event_logger = get_event_logger("mdm.audit")


class AuditLogRepository:
    """Audit trail storage with filtered reads."""

    def __init__(self, provider: PersistenceProvider):
        self.provider = provider
        self._lock = threading.Lock()
        self._entries: tuple = tuple(
            to_record(AuditLog, row) for row in provider.load_all(AUDIT_LOG_COLLECTION)
        )
        self._ids = {entry.id for entry in self._entries}

    def record(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        user_id: str,
        changes: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """Append one entry with a generated id and the current timestamp."""
        with self._lock:
            entry_id = str(uuid4())
            while entry_id in self._ids:
                entry_id = str(uuid4())

            entry = AuditLog(
                id=entry_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                timestamp=datetime.now(timezone.utc),
                changes=changes,
            )
            # Only the new entry is written; stored entries are never rewritten
            self.provider.append(AUDIT_LOG_COLLECTION, [to_payload(entry)])
            self._entries = self._entries + (entry,)
            self._ids.add(entry_id)

        event_logger.info(
            "audit_entry",
            audit_action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
        )
        return entry

    def list(self) -> List[AuditLog]:
        return list(self._entries)

    def find(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        action: Optional[Union[AuditAction, str]] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        """
        Entries matching every given filter, oldest first.

        Args:
            entity_type: Collection name, e.g. "Category"
            entity_id: Record id
            user_id: Acting user
            action: Audit action
            limit: Keep only the newest `limit` matches
        """
        action = AuditAction(action) if action is not None else None
        matches = [
            entry for entry in self._entries
            if (entity_type is None or entry.entity_type == entity_type)
            and (entity_id is None or entry.entity_id == entity_id)
            and (user_id is None or entry.user_id == user_id)
            and (action is None or entry.action == action)
        ]
        if limit is not None:
            matches = matches[-limit:] if limit > 0 else []
        return matches

    def get_entity_history(self, entity_type: str, entity_id: str) -> List[AuditLog]:
        return self.find(entity_type=entity_type, entity_id=entity_id)

    def count(self) -> int:
        return len(self._entries)
