"""
Governance facade: the command/query API used by the presentation layer.

Every command checks the caller's permission before touching state,
stamps creation/modification fields from the caller and the clock, and
validates references and hierarchy integrity before anything is written.
"""

from __future__ import annotations

import threading
from functools import wraps
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from mdm.config.settings import Settings
from mdm.core.logging import bind_acting_user, get_logger
from mdm.repositories.base import AuditContext
from mdm.repositories.base.repository_factory import RepositoryFactory
from mdm.schemas import schema_for
from mdm.schemas.analytics import DashboardStats
from mdm.schemas.approval import ApprovalRequest
from mdm.schemas.audit import AuditLog
from mdm.schemas.common.base import BaseEntity
from mdm.schemas.common.enums import (
    ApprovalStatus,
    Permission,
    RecordType,
    RequestStatus,
)
from mdm.schemas.hierarchy import TreeNode
from mdm.services.analytics import DashboardService
from mdm.services.approval import ApprovalWorkflowService
from mdm.services.audit import AuditLogService
from mdm.services.common.errors import (
    AlreadyPendingError,
    CycleDetectedError,
    ReferentialIntegrityError,
    ValidationError,
)
from mdm.services.common.mapping import normalize_input, to_payload, to_record
from mdm.services.common.permissions import Principal, require_permission
from mdm.services.hierarchy import build_tree, children_of, collect_descendants, validate_parent
from mdm.services.rules import RuleEngine

logger = get_logger(__name__)

# Fields only the service itself may write
PROTECTED_FIELDS = frozenset({"id", "created_by", "created_date", "modified_by", "modified_date"})

# List-valued reference fields: (record type holding them, field, referenced type)
LIST_REFERENCES: Tuple[Tuple[RecordType, str, RecordType], ...] = (
    (RecordType.USER, "geography_ids", RecordType.GEOGRAPHY),
    (RecordType.USER, "category_ids", RecordType.CATEGORY),
    (RecordType.ENTITY, "attribute_ids", RecordType.ATTRIBUTE),
    (RecordType.ENTITY, "category_ids", RecordType.CATEGORY),
    (RecordType.ENTITY, "geography_ids", RecordType.GEOGRAPHY),
    (RecordType.APPROVAL_RULE, "assigned_roles", RecordType.ROLE),
    (RecordType.APPROVAL_RULE, "assigned_users", RecordType.USER),
)

# Scalar reference fields
SCALAR_REFERENCES: Tuple[Tuple[RecordType, str, RecordType], ...] = (
    (RecordType.USER, "role_id", RecordType.ROLE),
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def command(method):
    """Bind the acting principal to log lines emitted by a command."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        principal = kwargs.get("principal")
        if principal is None:
            principal = next((a for a in args if isinstance(a, Principal)), None)
        with bind_acting_user(principal.user_id if principal is not None else None):
            return method(self, *args, **kwargs)
    return wrapper


class GovernanceService:
    """
    Owns all mutable state of one governance instance.

    Build one with `build_governance_service()`; nothing here is global,
    so independent instances (one per test, say) never share state.
    """

    def __init__(
        self,
        settings: Settings,
        repos: RepositoryFactory,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.repos = repos
        self.clock = clock
        # Serialises integrity checks with the writes they guard
        self._structure_lock = threading.RLock()
        self.rule_engine = RuleEngine(settings)
        self.workflow = ApprovalWorkflowService(
            repos,
            self.rule_engine,
            settings,
            integrity_check=self._check_staged,
            structure_lock=self._structure_lock,
            clock=clock,
        )
        self.audit = AuditLogService(repos.audit_log)
        self.dashboard_service = DashboardService(repos, settings, today=lambda: clock().date())

    # ================================================================== #
    # Principals
    # ================================================================== #

    def principal_for(self, user_id: str) -> Principal:
        """
        Principal of a stored user.

        Raises:
            NotFoundError: if no such user exists
        """
        user = self.repos.get(RecordType.USER).get_by_id(user_id)
        return Principal.from_user(user)

    # ================================================================== #
    # Queries
    # ================================================================== #

    def list(self, record_type: RecordType, principal: Principal) -> List[BaseEntity]:
        require_permission(principal, Permission.VIEW)
        return self.repos.get(record_type).list()

    def get_by_id(self, record_type: RecordType, id: str, principal: Principal) -> BaseEntity:
        require_permission(principal, Permission.VIEW)
        return self.repos.get(record_type).get_by_id(id)

    def tree(self, record_type: RecordType, principal: Principal) -> List[TreeNode]:
        """
        Forest view of a hierarchical type.

        Raises:
            ValidationError: for a type without a parent hierarchy
        """
        require_permission(principal, Permission.VIEW)
        record_type = RecordType(record_type)
        if not record_type.is_hierarchical:
            raise ValidationError(f"{record_type.value} is not hierarchical", field="record_type")
        return build_tree(self.repos.get(record_type).list())

    def list_requests(
        self,
        principal: Principal,
        status: Optional[RequestStatus] = None,
        entity_type: Optional[Union[RecordType, str]] = None,
        entity_id: Optional[str] = None,
    ) -> List[ApprovalRequest]:
        if isinstance(entity_type, RecordType):
            entity_type = entity_type.value
        return self.workflow.list_requests(principal, status, entity_type, entity_id)

    def get_request(self, request_id: str, principal: Principal) -> ApprovalRequest:
        return self.workflow.get_request(request_id, principal)

    def pending_for_user(self, principal: Principal, user_id: Optional[str] = None) -> List[ApprovalRequest]:
        return self.workflow.pending_for_user(principal, user_id)

    def audit_logs(self, principal: Principal, **filters: Any) -> List[AuditLog]:
        return self.audit.list_logs(principal, **filters)

    def entity_history(self, record_type: RecordType, id: str, principal: Principal) -> List[AuditLog]:
        return self.audit.entity_history(principal, record_type, id)

    def dashboard(self, principal: Principal) -> DashboardStats:
        return self.dashboard_service.get_stats(principal)

    # ================================================================== #
    # Commands
    # ================================================================== #

    @command
    def create(
        self,
        record_type: RecordType,
        draft: Mapping[str, Any],
        principal: Principal,
    ) -> BaseEntity:
        """
        Store a new record as Pending (or Draft when staged explicitly).

        Raises:
            PermissionDenied: without `create`
            ValidationError: on invalid or protected fields
            ReferentialIntegrityError: on a missing reference
        """
        require_permission(principal, Permission.CREATE)
        record_type = RecordType(record_type)
        schema = schema_for(record_type)
        repo = self.repos.get(record_type)

        data = self._writable_fields(schema, draft)
        data.setdefault("approval_status", ApprovalStatus.PENDING)

        with self._structure_lock:
            record = to_record(schema, {
                **data,
                "id": repo.new_id(),
                "created_by": principal.user_id,
                "created_date": self.clock(),
            })
            if record.approval_status not in (ApprovalStatus.PENDING, ApprovalStatus.DRAFT):
                raise ValidationError(
                    "New records start as Pending or Draft", field="approval_status"
                )
            self._check_integrity(record_type, record)
            return repo.create(record, AuditContext(principal.user_id))

    @command
    def update(
        self,
        record_type: RecordType,
        id: str,
        partial: Mapping[str, Any],
        principal: Principal,
    ) -> BaseEntity:
        """
        Shallow-merge `partial` into a stored record.

        `approval_status` and the identity/creation fields cannot be set
        here.

        Raises:
            PermissionDenied: without `edit`
            NotFoundError: if the record does not exist
            ValidationError: on invalid or protected fields
            ReferentialIntegrityError: on a missing reference
            CycleDetectedError: if the new parent would close a loop
        """
        require_permission(principal, Permission.EDIT)
        record_type = RecordType(record_type)
        schema = schema_for(record_type)
        repo = self.repos.get(record_type)

        data = self._writable_fields(schema, partial)
        if "approval_status" in data:
            raise ValidationError(
                "approval_status changes only through the approval workflow",
                field="approval_status",
            )

        with self._structure_lock:
            existing = repo.get_by_id(id)
            changes = {**data, "modified_by": principal.user_id, "modified_date": self.clock()}
            candidate = to_record(schema, {**existing.model_dump(), **changes})
            self._check_integrity(record_type, candidate)
            return repo.update(id, changes, AuditContext(principal.user_id))

    @command
    def delete(self, record_type: RecordType, id: str, principal: Principal) -> None:
        """
        Delete a record, applying the hierarchy delete policy to children.

        Raises:
            PermissionDenied: without `delete`
            NotFoundError: if the record does not exist
            AlreadyPendingError: while an approval request is open for it
            ReferentialIntegrityError: if other records still reference it,
                or it has children under the `reject` policy
        """
        require_permission(principal, Permission.DELETE)
        record_type = RecordType(record_type)
        repo = self.repos.get(record_type)
        context = AuditContext(principal.user_id)

        with self._structure_lock:
            repo.get_by_id(id)

            doomed = [id]
            orphans: List[str] = []
            if record_type.is_hierarchical:
                records = repo.list()
                children = children_of(id, records)
                policy = self.settings.HIERARCHY_DELETE_POLICY
                if children and policy == "reject":
                    raise ReferentialIntegrityError(
                        f"{record_type.value} '{id}' has {len(children)} children",
                        field="parent_id",
                        details={"children": [c.id for c in children], "policy": policy},
                    )
                if policy == "cascade":
                    doomed.extend(d.id for d in collect_descendants(id, records))
                elif policy == "orphan":
                    orphans = [c.id for c in children]

            for doomed_id in doomed:
                self._check_not_pending(record_type, doomed_id)
            self._check_unreferenced(record_type, set(doomed))

            detached = {"parent_id": None, "modified_by": principal.user_id, "modified_date": self.clock()}
            # One write for the whole subtree; deletions are audited deepest first
            repo.apply_batch(
                updates={child_id: detached for child_id in orphans},
                deletes=list(reversed(doomed)),
                audit_context=context,
            )

        if len(doomed) > 1:
            logger.info(f"Cascade delete of {record_type.value} '{id}' removed {len(doomed)} records")

    @command
    def submit_for_approval(
        self,
        record_type: RecordType,
        id: Optional[str],
        principal: Principal,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> ApprovalRequest:
        """
        Stage a change to record `id` (or a new record) for approval.

        For an existing record `payload` is merged over it; for a new one
        it is the full draft and `id` may be None to get a fresh id.

        Raises:
            PermissionDenied: without `create` (new record) or `edit`
            AlreadyPendingError: if the record already has an open request
            ValidationError: on invalid candidate data, or no approver
            ReferentialIntegrityError: on a missing reference
            CycleDetectedError: if the staged parent would close a loop
        """
        record_type = RecordType(record_type)
        schema = schema_for(record_type)
        repo = self.repos.get(record_type)
        existing = repo.find_by_id(id) if id is not None else None
        require_permission(principal, Permission.EDIT if existing is not None else Permission.CREATE)

        data = self._writable_fields(schema, payload or {})
        data.pop("approval_status", None)
        now = self.clock()
        if existing is not None:
            candidate = {
                **existing.model_dump(),
                **data,
                "modified_by": principal.user_id,
                "modified_date": now,
            }
        else:
            candidate = {
                **data,
                "id": id or repo.new_id(),
                "created_by": principal.user_id,
                "created_date": now,
            }
        candidate["approval_status"] = ApprovalStatus.PENDING

        record = to_record(schema, candidate)
        return self.workflow.submit(record_type, record.id, principal, to_payload(record))

    @command
    def approve(
        self,
        request_id: str,
        principal: Principal,
        comments: Optional[str] = None,
    ) -> ApprovalRequest:
        return self.workflow.approve(request_id, principal, comments)

    @command
    def reject(self, request_id: str, principal: Principal, comments: str) -> ApprovalRequest:
        return self.workflow.reject(request_id, principal, comments)

    def close(self) -> None:
        self.repos.provider.close()

    # ================================================================== #
    # Integrity
    # ================================================================== #

    @staticmethod
    def _writable_fields(schema: type, data: Mapping[str, Any]) -> Dict[str, Any]:
        normalized = normalize_input(schema, data)
        protected = sorted(PROTECTED_FIELDS.intersection(normalized))
        if protected:
            raise ValidationError(
                f"Fields {protected} are managed by the service", field=protected[0]
            )
        return normalized

    def _check_staged(self, record_type: RecordType, entity_id: str, payload: Dict[str, Any]) -> None:
        # Called by the workflow with the structure lock held
        self._check_integrity(record_type, to_record(schema_for(record_type), payload))

    def _check_integrity(self, record_type: RecordType, record: BaseEntity) -> None:
        if record_type.is_hierarchical:
            self._check_parent(record_type, record)

        for holder, field, target in SCALAR_REFERENCES:
            if holder is record_type:
                self._require_exists(target, [getattr(record, field)], field)
        for holder, field, target in LIST_REFERENCES:
            if holder is record_type:
                self._require_exists(target, getattr(record, field), field)

    def _check_parent(self, record_type: RecordType, record: BaseEntity) -> None:
        parent_id = record.parent_id
        if parent_id is None:
            return
        records = self.repos.get(record_type).list()
        if parent_id != record.id and not any(r.id == parent_id for r in records):
            raise ReferentialIntegrityError(
                f"Parent {record_type.value} '{parent_id}' does not exist",
                field="parent_id",
                details={"parent_id": parent_id},
            )
        if not validate_parent(record.id, parent_id, records):
            raise CycleDetectedError(
                f"Setting parent of '{record.id}' to '{parent_id}' would create a cycle",
                details={"record_id": record.id, "parent_id": parent_id},
            )

    def _require_exists(self, target: RecordType, ids: Iterable[str], field: str) -> None:
        repo = self.repos.get(target)
        missing = [i for i in ids if not repo.exists(i)]
        if missing:
            raise ReferentialIntegrityError(
                f"Unknown {target.value} reference(s) in '{field}': {missing}",
                field=field,
                details={"missing": missing, "target": target.value},
            )

    def _check_not_pending(self, record_type: RecordType, id: str) -> None:
        if not self.settings.BLOCK_DELETE_WHILE_PENDING:
            return
        open_request = self.repos.approval_requests.find_pending_for_entity(record_type.value, id)
        if open_request is not None:
            raise AlreadyPendingError(record_type.value, id, open_request.id)

    def _check_unreferenced(self, record_type: RecordType, ids: set) -> None:
        """Refuse to delete records other records still point at."""
        referrers: List[Dict[str, str]] = []

        for holder, field, target in SCALAR_REFERENCES + LIST_REFERENCES:
            if target is not record_type:
                continue
            for record in self.repos.get(holder).list():
                if holder is record_type and record.id in ids:
                    continue
                value = getattr(record, field)
                refs = {value} if isinstance(value, str) else set(value)
                if refs & ids:
                    referrers.append({"type": holder.value, "id": record.id, "field": field})

        if record_type is RecordType.ATTRIBUTE:
            for rule in self.repos.get(RecordType.APPROVAL_RULE).list():
                if any(c.attribute_id in ids for c in rule.conditions):
                    referrers.append({
                        "type": RecordType.APPROVAL_RULE.value,
                        "id": rule.id,
                        "field": "conditions",
                    })

        if referrers:
            raise ReferentialIntegrityError(
                f"{record_type.value} still referenced by {len(referrers)} record(s)",
                details={"referrers": referrers},
            )
