"""
Persistence provider contract and the in-memory implementation.

The core reads and writes whole collections through a provider. Records
cross this boundary as JSON-compatible dicts; schema validation stays on
the repository side.
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from mdm.core.logging import get_logger

logger = get_logger(__name__)

# Collections that are not governed records but still persisted
APPROVAL_REQUEST_COLLECTION = "ApprovalRequest"
AUDIT_LOG_COLLECTION = "AuditLog"


class PersistenceProvider(ABC):
    """Durable storage of named collections."""

    @abstractmethod
    def load_all(self, collection: str) -> List[Dict[str, Any]]:
        """Return every record of `collection` in stored order."""

    @abstractmethod
    def save_all(self, collection: str, records: List[Dict[str, Any]]) -> None:
        """Replace `collection` with `records` as one crash-consistent write."""

    def append(self, collection: str, records: List[Dict[str, Any]]) -> None:
        """Add `records` after the stored ones, for append-only collections."""
        self.save_all(collection, self.load_all(collection) + list(records))

    def close(self) -> None:
        """Release provider resources."""


class InMemoryPersistenceProvider(PersistenceProvider):
    """Process-local provider, used for tests and ephemeral deployments."""

    def __init__(self):
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def load_all(self, collection: str) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._collections.get(collection, []))

    def save_all(self, collection: str, records: List[Dict[str, Any]]) -> None:
        snapshot = copy.deepcopy(records)
        with self._lock:
            self._collections[collection] = snapshot
        logger.debug(f"Saved {len(snapshot)} records to {collection}")

    def append(self, collection: str, records: List[Dict[str, Any]]) -> None:
        snapshot = copy.deepcopy(records)
        with self._lock:
            self._collections.setdefault(collection, []).extend(snapshot)
        logger.debug(f"Appended {len(snapshot)} records to {collection}")
