"""
Dashboard statistics over the current snapshot of every collection.
"""

from datetime import date, datetime, timezone
from typing import Callable, Optional

from mdm.config.settings import Settings
from mdm.core.logging import get_logger
from mdm.repositories.base.repository_factory import RepositoryFactory
from mdm.schemas.analytics import DashboardStats
from mdm.schemas.common.enums import Permission, RequestStatus
from mdm.services.common.permissions import Principal, require_permission

logger = get_logger(__name__)


def _today() -> date:
    return datetime.now(timezone.utc).date()


class DashboardService:
    """
    Builds the dashboard figures.

    "Today" is the UTC calendar date of a request's decision.
    """

    def __init__(
        self,
        repos: RepositoryFactory,
        settings: Settings,
        today: Callable[[], date] = _today,
    ):
        self.repos = repos
        self.settings = settings
        self.today = today

    def get_stats(self, principal: Principal, recent_limit: Optional[int] = None) -> DashboardStats:
        require_permission(principal, Permission.VIEW)

        as_of = self.today()
        requests = self.repos.approval_requests.list()
        limit = self.settings.RECENT_REQUESTS_LIMIT if recent_limit is None else recent_limit

        def decided_today(status: RequestStatus) -> int:
            return sum(
                1 for r in requests
                if r.status is status
                and r.decided_date is not None
                and r.decided_date.astimezone(timezone.utc).date() == as_of
            )

        # Newest first; ties keep reverse submission order
        recent = list(reversed(sorted(requests, key=lambda r: r.created_date)))[: max(limit, 0)]

        stats = DashboardStats(
            as_of=as_of,
            record_counts={t.value: self.repos.get(t).count() for t in self.repos},
            pending_approvals=sum(1 for r in requests if r.status is RequestStatus.PENDING),
            approved_today=decided_today(RequestStatus.APPROVED),
            rejected_today=decided_today(RequestStatus.REJECTED),
            recent_requests=recent,
        )
        logger.debug(f"Dashboard stats computed: {stats.pending_approvals} pending")
        return stats
