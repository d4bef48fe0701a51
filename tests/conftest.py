"""
Shared fixtures: a fresh governance instance per test with a small
population of users, one per system role.
"""

from datetime import datetime, timezone

import pytest

from mdm.config.settings import Settings
from mdm.db.provider import InMemoryPersistenceProvider
from mdm.schemas import Category, Role, User
from mdm.schemas.common.enums import ApprovalStatus, RecordType, UserRole
from mdm.services.common.errors import PersistenceError
from mdm.services.governance import build_governance_service

SEEDED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def stamped(**fields):
    """Record fields for rows inserted directly into a repository."""
    return {
        "created_by": "system",
        "created_date": SEEDED_AT,
        "approval_status": ApprovalStatus.APPROVED,
        **fields,
    }


@pytest.fixture
def settings():
    """Explicit settings, independent of the environment and any .env file."""
    return Settings(
        _env_file=None,
        PERSISTENCE_BACKEND="memory",
        LOG_LEVEL="WARNING",
        APPROVAL_FALLBACK_POLICY="default_group",
        DEFAULT_APPROVER_IDS=[],
        DEFAULT_APPROVER_ROLES=["Checker", "Admin"],
        ENFORCE_APPROVER_ASSIGNMENT=True,
        ALLOW_SELF_APPROVAL=False,
        HIERARCHY_DELETE_POLICY="reject",
        BLOCK_DELETE_WHILE_PENDING=True,
    )


class RecordingProvider(InMemoryPersistenceProvider):
    """In-memory provider that logs writes per collection and can refuse them."""

    def __init__(self):
        super().__init__()
        self.writes = []
        self.appends = []
        self.failing = set()

    def save_all(self, collection, records):
        self._guard(collection)
        self.writes.append(collection)
        super().save_all(collection, records)

    def append(self, collection, records):
        self._guard(collection)
        self.appends.append(collection)
        super().append(collection, records)

    def _guard(self, collection):
        if collection in self.failing:
            raise PersistenceError(f"Failed to save {collection}", details={"collection": collection})


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def service(settings, provider):
    """Governance instance with one business role and one user per system role."""
    svc = build_governance_service(settings=settings, provider=provider)

    roles = svc.repos.get(RecordType.ROLE)
    roles.create(Role(**stamped(id="role-head", name="Head of Merchandising")), audit=False)
    roles.create(
        Role(**stamped(id="role-buyer", name="Buyer", parent_id="role-head")), audit=False
    )

    users = svc.repos.get(RecordType.USER)
    for user_id, user_role, role_id in (
        ("admin", UserRole.ADMIN, "role-head"),
        ("maker", UserRole.MAKER, "role-buyer"),
        ("checker", UserRole.CHECKER, "role-head"),
        ("viewer", UserRole.VIEWER, "role-buyer"),
    ):
        users.create(
            User(**stamped(
                id=user_id,
                full_name=f"{user_id.title()} User",
                email=f"{user_id}@example.com",
                role_id=role_id,
                user_role=user_role,
            )),
            audit=False,
        )

    svc.repos.get(RecordType.CATEGORY).create(
        Category(**stamped(id="clothing", name="Clothing")), audit=False
    )
    yield svc
    svc.close()


@pytest.fixture
def admin(service):
    return service.principal_for("admin")


@pytest.fixture
def maker(service):
    return service.principal_for("maker")


@pytest.fixture
def checker(service):
    return service.principal_for("checker")


@pytest.fixture
def viewer(service):
    return service.principal_for("viewer")
