from mdm.services.audit.audit_log_service import AuditLogService

__all__ = ["AuditLogService"]
