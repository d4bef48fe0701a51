from mdm.services.analytics.dashboard_service import DashboardService

__all__ = ["DashboardService"]
