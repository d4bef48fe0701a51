from mdm.repositories.approval.approval_request_repository import ApprovalRequestRepository

__all__ = ["ApprovalRequestRepository"]
