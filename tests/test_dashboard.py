"""
Dashboard statistics and audit query tests.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as SchemaValidationError

from mdm.schemas.common.enums import AuditAction, RecordType, RequestStatus
from mdm.services.common.errors import ForbiddenError


@pytest.fixture
def activity(service, maker, checker):
    """Three categories submitted: one approved, one rejected, one pending."""
    ids = []
    for name in ("Hats", "Scarves", "Gloves"):
        created = service.create(RecordType.CATEGORY, {"name": name, "parentId": "clothing"}, maker)
        request = service.submit_for_approval(RecordType.CATEGORY, created.id, maker, {})
        ids.append(request.id)
    service.approve(ids[0], checker)
    service.reject(ids[1], checker, "Out of season")
    return ids


class TestDashboard:

    def test_counts(self, service, viewer, activity):
        stats = service.dashboard(viewer)

        assert stats.record_counts["Category"] == 4
        assert stats.record_counts["User"] == 4
        assert stats.record_counts["Role"] == 2
        assert stats.record_counts["ApprovalRule"] == 0
        assert stats.total_records == 10
        assert stats.pending_approvals == 1
        assert stats.approved_today == 1
        assert stats.rejected_today == 1

    def test_recent_requests_newest_first(self, service, viewer, activity):
        recent = service.dashboard_service.get_stats(viewer, recent_limit=2).recent_requests
        assert [r.id for r in recent] == [activity[2], activity[1]]

    def test_decisions_from_other_days_are_not_counted(self, service, viewer, activity):
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        service.repos.approval_requests.update(activity[0], {"decided_date": yesterday}, audit=False)

        stats = service.dashboard(viewer)

        assert stats.approved_today == 0
        assert stats.rejected_today == 1

    def test_empty_instance(self, service, viewer):
        stats = service.dashboard(viewer)
        assert stats.pending_approvals == 0
        assert stats.recent_requests == []

    def test_requires_a_principal(self, service):
        with pytest.raises(ForbiddenError):
            service.dashboard(None)


class TestAuditQueries:

    def test_filter_by_user_and_action(self, service, viewer, activity):
        by_checker = service.audit_logs(viewer, user_id="checker")
        assert {e.action for e in by_checker} == {AuditAction.APPROVE, AuditAction.REJECT}

        submissions = service.audit_logs(viewer, action=AuditAction.SUBMIT_FOR_APPROVAL)
        assert len(submissions) == 3

    def test_limit_keeps_newest(self, service, viewer, activity):
        newest = service.audit_logs(viewer, limit=1)
        assert newest[0].action is AuditAction.REJECT

    def test_filter_by_record_type(self, service, viewer, activity):
        assert len(service.audit_logs(viewer, entity_type=RecordType.CATEGORY)) == 8
        assert service.audit_logs(viewer, entity_type=RecordType.USER) == []

    def test_user_activity(self, service, viewer, activity):
        entries = service.audit.user_activity(viewer, "maker")
        assert [e.action for e in entries].count(AuditAction.CREATE) == 3

    def test_list_requests_by_status(self, service, viewer, activity):
        assert [r.id for r in service.list_requests(viewer, status=RequestStatus.REJECTED)] == [activity[1]]
        assert len(service.list_requests(viewer)) == 3

    def test_audit_entries_are_immutable(self, service, viewer, activity):
        entry = service.audit_logs(viewer)[0]
        with pytest.raises(SchemaValidationError):
            entry.user_id = "someone-else"
