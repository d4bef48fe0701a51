"""
Shared service-layer infrastructure.

- **errors**: typed failures surfaced to callers
- **permissions**: role-based access control
- **mapping**: record validation and payload conversion
"""
from __future__ import annotations

from . import errors, mapping, permissions

__all__ = ["errors", "mapping", "permissions"]
