from mdm.services.governance.governance_service import GovernanceService
from mdm.services.governance.service_factory import build_governance_service, create_provider

__all__ = ["GovernanceService", "build_governance_service", "create_provider"]
