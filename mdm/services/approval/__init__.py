from mdm.services.approval.approval_workflow_service import ApprovalWorkflowService

__all__ = ["ApprovalWorkflowService"]
