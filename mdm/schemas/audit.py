"""
Audit trail entries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ConfigDict

from mdm.schemas.common.base import BaseSchema
from mdm.schemas.common.enums import AuditAction

__all__ = ["AuditLog"]


class AuditLog(BaseSchema):
    """Append-only record of one mutating action."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    id: str
    action: AuditAction
    entity_type: str
    entity_id: str
    user_id: str
    timestamp: datetime
    changes: Optional[Dict[str, Any]] = None
