"""
SQLAlchemy persistence provider tests against SQLite.
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from mdm.db.init_db import drop_db, init_db
from mdm.db.session import create_db_engine, create_session_factory
from mdm.db.sqlalchemy_provider import SqlAlchemyPersistenceProvider
from mdm.schemas.common.enums import ApprovalStatus, AuditAction, RecordType, RequestStatus
from mdm.services.common.errors import PersistenceError
from mdm.services.governance import build_governance_service


@pytest.fixture
def db_settings(settings, tmp_path):
    return settings.model_copy(update={
        "PERSISTENCE_BACKEND": "sqlalchemy",
        "DATABASE_URL": f"sqlite:///{tmp_path / 'mdm.db'}",
    })


@pytest.fixture
def memory_provider(settings):
    engine = create_db_engine(settings.model_copy(update={"DATABASE_URL": "sqlite://"}))
    provider = SqlAlchemyPersistenceProvider(create_session_factory(engine), engine=engine)
    yield provider
    provider.close()


class TestProvider:

    def test_init_db_creates_table(self, memory_provider):
        assert "mdm_stored_record" in inspect(memory_provider._engine).get_table_names()

    def test_save_and_load_preserve_order(self, memory_provider):
        rows = [{"id": "b", "name": "second"}, {"id": "a", "name": "first"}]
        memory_provider.save_all("Category", rows)

        assert memory_provider.load_all("Category") == rows

    def test_save_replaces_collection(self, memory_provider):
        memory_provider.save_all("Category", [{"id": "a"}, {"id": "b"}])
        memory_provider.save_all("Category", [{"id": "c"}])

        assert memory_provider.load_all("Category") == [{"id": "c"}]

    def test_collections_are_independent(self, memory_provider):
        memory_provider.save_all("Category", [{"id": "1"}])
        memory_provider.save_all("Role", [{"id": "1", "name": "r"}])

        assert memory_provider.load_all("Category") == [{"id": "1"}]
        assert memory_provider.load_all("Geography") == []

    def test_append_adds_after_stored_rows(self, memory_provider):
        memory_provider.save_all("AuditLog", [{"id": "a"}])
        memory_provider.append("AuditLog", [{"id": "b"}, {"id": "c"}])
        memory_provider.append("AuditLog", [{"id": "d"}])

        assert [r["id"] for r in memory_provider.load_all("AuditLog")] == ["a", "b", "c", "d"]

    def test_append_to_empty_collection(self, memory_provider):
        memory_provider.append("AuditLog", [{"id": "a"}])
        assert memory_provider.load_all("AuditLog") == [{"id": "a"}]

    def test_failed_append_keeps_previous_state(self, memory_provider):
        memory_provider.append("AuditLog", [{"id": "a"}])

        with pytest.raises(PersistenceError):
            memory_provider.append("AuditLog", [{"id": "a"}])

        assert memory_provider.load_all("AuditLog") == [{"id": "a"}]

    def test_failed_save_keeps_previous_state(self, memory_provider):
        memory_provider.save_all("Category", [{"id": "a"}])

        # duplicate primary key inside one collection aborts the transaction
        with pytest.raises(PersistenceError) as exc:
            memory_provider.save_all("Category", [{"id": "x"}, {"id": "x"}])

        assert exc.value.details["collection"] == "Category"
        assert memory_provider.load_all("Category") == [{"id": "a"}]

    def test_missing_table_is_wrapped(self, memory_provider):
        drop_db(memory_provider._engine)

        with pytest.raises(PersistenceError) as exc:
            memory_provider.load_all("Category")
        assert isinstance(exc.value.__cause__, OperationalError)

        init_db(memory_provider._engine)
        assert memory_provider.load_all("Category") == []


class TestRestart:

    def test_state_survives_restart(self, db_settings):
        first = build_governance_service(settings=db_settings, seed=True)
        maker = first.principal_for("2")
        checker = first.principal_for("1")
        request = first.submit_for_approval(
            RecordType.CATEGORY, None, maker, {"name": "Tablets", "parentId": "1"}
        )
        first.approve(request.id, checker, "ok")
        first.close()

        second = build_governance_service(settings=db_settings)
        viewer = second.principal_for("1")

        tablets = second.get_by_id(RecordType.CATEGORY, request.entity_id, viewer)
        assert tablets.approval_status is ApprovalStatus.APPROVED
        assert second.get_request(request.id, viewer).status is RequestStatus.APPROVED
        actions = [e.action for e in second.entity_history(RecordType.CATEGORY, tablets.id, viewer)]
        assert actions == [AuditAction.SUBMIT_FOR_APPROVAL, AuditAction.APPROVE]
        second.close()

    def test_seeding_skips_populated_collections(self, db_settings):
        first = build_governance_service(settings=db_settings, seed=True)
        first.close()

        second = build_governance_service(settings=db_settings, seed=True)
        assert second.repos.get(RecordType.CATEGORY).count() == 3
        second.close()
