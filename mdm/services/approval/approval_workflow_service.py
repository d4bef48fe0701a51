"""
Approval workflow: the ApprovalRequest state machine.

Pending -> Approved | Rejected. Terminal states never change. Decisions
hold a per-request lock across read-modify-write, so of two concurrent
decisions on one request exactly one succeeds.

A decision writes the governed record first and the request second. If
the request write fails the record is put back, so a request is never
Approved or Rejected without its record change.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from mdm.config.settings import Settings
from mdm.core.locks import KeyedLocks
from mdm.core.logging import get_logger
from mdm.repositories.base import BaseRepository
from mdm.repositories.base.repository_factory import RepositoryFactory
from mdm.schemas import schema_for
from mdm.schemas.approval import ApprovalRequest
from mdm.schemas.common.base import BaseEntity
from mdm.schemas.common.enums import (
    ApprovalStatus,
    AuditAction,
    Permission,
    RecordType,
    RequestStatus,
    UserRole,
)
from mdm.services.common.errors import (
    AlreadyPendingError,
    AlreadyResolvedError,
    ValidationError,
)
from mdm.services.common.mapping import to_payload, to_record
from mdm.services.common.permissions import PermissionDenied, Principal, require_permission
from mdm.services.rules.rule_engine import RuleEngine

logger = get_logger(__name__)

# Validates a candidate payload against current state; runs under the structure lock
IntegrityCheck = Callable[[RecordType, str, Dict[str, Any]], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalWorkflowService:
    """
    Submits, approves and rejects approval requests.

    Args:
        repos: Repository set of this governance instance
        rule_engine: Resolves approvers at submission
        settings: Assignment and self-approval policy
        integrity_check: Optional hook run against the candidate record at
            submission and again right before an approval commits it
        structure_lock: Lock shared with every other writer whose checks
            depend on references; held from the integrity check through
            the writes it guards
    """

    def __init__(
        self,
        repos: RepositoryFactory,
        rule_engine: RuleEngine,
        settings: Settings,
        integrity_check: Optional[IntegrityCheck] = None,
        structure_lock: Optional[threading.RLock] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repos = repos
        self.requests = repos.approval_requests
        self.audit_log = repos.audit_log
        self.rule_engine = rule_engine
        self.settings = settings
        self.integrity_check = integrity_check
        self.structure_lock = structure_lock if structure_lock is not None else threading.RLock()
        self.clock = clock
        self._request_locks = KeyedLocks()
        self._record_locks = KeyedLocks()

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    def submit(
        self,
        record_type: RecordType,
        entity_id: str,
        principal: Principal,
        data: Dict[str, Any],
    ) -> ApprovalRequest:
        """
        Stage `data` for `entity_id` as a new Pending request.

        `data` is the full candidate record payload. When the record does
        not exist yet the request stages its creation.

        Raises:
            PermissionDenied: without `create` (new record) or `edit`
            AlreadyPendingError: if the record already has an open request
            ReferentialIntegrityError: if the integrity check refuses `data`
            ValidationError: if no approver can be resolved
        """
        record_type = RecordType(record_type)
        repo = self.repos.get(record_type)
        action = Permission.EDIT if repo.exists(entity_id) else Permission.CREATE
        require_permission(principal, action)

        with self._record_locks.hold((record_type, entity_id)), self.structure_lock:
            open_request = self.requests.find_pending_for_entity(record_type.value, entity_id)
            if open_request is not None:
                raise AlreadyPendingError(record_type.value, entity_id, open_request.id)
            if self.integrity_check is not None:
                self.integrity_check(record_type, entity_id, data)

            evaluation = self.rule_engine.evaluate(
                record_type.value,
                data,
                rules=self.repos.get(RecordType.APPROVAL_RULE).list(),
                attributes=self.repos.get(RecordType.ATTRIBUTE).list(),
                users=self.repos.get(RecordType.USER).list(),
            )

            request = self.requests.create(
                ApprovalRequest(
                    id=self.requests.new_id(),
                    entity_type=record_type.value,
                    entity_id=entity_id,
                    requested_by=principal.user_id,
                    assigned_to=evaluation.approvers,
                    status=RequestStatus.PENDING,
                    data=dict(data),
                    created_date=self.clock(),
                    matched_rule_ids=evaluation.matched_rule_ids,
                ),
                audit=False,
            )

            if repo.exists(entity_id):
                try:
                    repo.update(entity_id, {"approval_status": ApprovalStatus.PENDING}, audit=False)
                except Exception:
                    self.requests.delete(request.id, audit=False)
                    raise

            self.audit_log.record(
                action=AuditAction.SUBMIT_FOR_APPROVAL,
                entity_type=record_type.value,
                entity_id=entity_id,
                user_id=principal.user_id,
                changes={
                    "request_id": request.id,
                    "assigned_to": request.assigned_to,
                    "matched_rule_ids": request.matched_rule_ids,
                },
            )

        logger.info(
            f"Submitted {record_type.value} {entity_id} for approval as request {request.id}",
            extra={"request_id": request.id, "assigned_to": request.assigned_to},
        )
        return request

    # ------------------------------------------------------------------ #
    # Decisions
    # ------------------------------------------------------------------ #

    def approve(
        self,
        request_id: str,
        principal: Principal,
        comments: Optional[str] = None,
    ) -> ApprovalRequest:
        """
        Approve a Pending request and commit its data.

        The record is written with `approval_status = Approved`, created
        under the request's entity id when it does not exist yet.

        Raises:
            PermissionDenied: without `approve`, or when not an assignee
            NotFoundError: for an unknown request
            AlreadyResolvedError: if the request is no longer Pending
            ValidationError: if the staged data no longer validates
            ReferentialIntegrityError: if a referenced record has gone
            PersistenceError: if a write fails; nothing stays applied
        """
        require_permission(principal, Permission.APPROVE)

        with self._request_locks.hold(request_id):
            request = self._pending_request(request_id)
            self._check_decider(request, principal, Permission.APPROVE)

            record_type = RecordType(request.entity_type)
            repo = self.repos.get(record_type)
            now = self.clock()

            with self.structure_lock:
                existing = repo.find_by_id(request.entity_id)
                candidate = {
                    **(existing.model_dump() if existing is not None else {}),
                    **request.data,
                    "id": request.entity_id,
                    "approval_status": ApprovalStatus.APPROVED,
                }
                if existing is not None:
                    candidate["modified_by"] = principal.user_id
                    candidate["modified_date"] = now
                record = to_record(schema_for(record_type), candidate)
                if self.integrity_check is not None:
                    self.integrity_check(record_type, request.entity_id, to_payload(record))

                if existing is not None:
                    repo.update(request.entity_id, record.model_dump(), audit=False)
                else:
                    repo.create(record, audit=False)
                try:
                    decided = self.requests.update(
                        request.id,
                        {
                            "status": RequestStatus.APPROVED,
                            "comments": comments,
                            "decided_by": principal.user_id,
                            "decided_date": now,
                        },
                        audit=False,
                    )
                except Exception:
                    self._restore(repo, request.entity_id, existing)
                    raise

            self.audit_log.record(
                action=AuditAction.APPROVE,
                entity_type=record_type.value,
                entity_id=request.entity_id,
                user_id=principal.user_id,
                changes={"request_id": request.id, "comments": comments},
            )

        logger.info(
            f"Request {request_id} approved by {principal.user_id}",
            extra={"request_id": request_id, "entity_id": decided.entity_id},
        )
        return decided

    def reject(self, request_id: str, principal: Principal, comments: str) -> ApprovalRequest:
        """
        Reject a Pending request. Comments are mandatory.

        Raises:
            PermissionDenied: without `reject`, or when not an assignee
            NotFoundError: for an unknown request
            AlreadyResolvedError: if the request is no longer Pending
            ValidationError: on blank comments; the request stays Pending
        """
        require_permission(principal, Permission.REJECT)

        with self._request_locks.hold(request_id):
            request = self._pending_request(request_id)
            self._check_decider(request, principal, Permission.REJECT)
            if comments is None or not comments.strip():
                raise ValidationError("Rejection comments are required", field="comments")

            record_type = RecordType(request.entity_type)
            repo = self.repos.get(record_type)

            with self.structure_lock:
                existing = repo.find_by_id(request.entity_id)
                if existing is not None:
                    repo.update(request.entity_id, {"approval_status": ApprovalStatus.REJECTED}, audit=False)
                try:
                    decided = self.requests.update(
                        request.id,
                        {
                            "status": RequestStatus.REJECTED,
                            "comments": comments.strip(),
                            "decided_by": principal.user_id,
                            "decided_date": self.clock(),
                        },
                        audit=False,
                    )
                except Exception:
                    if existing is not None:
                        self._restore(repo, request.entity_id, existing)
                    raise

            self.audit_log.record(
                action=AuditAction.REJECT,
                entity_type=record_type.value,
                entity_id=request.entity_id,
                user_id=principal.user_id,
                changes={"request_id": request.id, "comments": decided.comments},
            )

        logger.info(
            f"Request {request_id} rejected by {principal.user_id}",
            extra={"request_id": request_id, "entity_id": decided.entity_id},
        )
        return decided

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_request(self, request_id: str, principal: Principal) -> ApprovalRequest:
        require_permission(principal, Permission.VIEW)
        return self.requests.get_by_id(request_id)

    def list_requests(
        self,
        principal: Principal,
        status: Optional[RequestStatus] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> List[ApprovalRequest]:
        """Requests filtered by status and/or target record, oldest first."""
        require_permission(principal, Permission.VIEW)
        return [
            r for r in self.requests.find_by_status(status)
            if (entity_type is None or r.entity_type == entity_type)
            and (entity_id is None or r.entity_id == entity_id)
        ]

    def pending_for_user(self, principal: Principal, user_id: Optional[str] = None) -> List[ApprovalRequest]:
        """Pending requests awaiting `user_id` (default: the caller)."""
        require_permission(principal, Permission.VIEW)
        return self.requests.find_assigned_to(user_id or principal.user_id)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _pending_request(self, request_id: str) -> ApprovalRequest:
        request = self.requests.get_by_id(request_id)
        if request.status.is_terminal:
            raise AlreadyResolvedError(request_id, request.status.value)
        return request

    def _check_decider(
        self,
        request: ApprovalRequest,
        principal: Principal,
        action: Permission,
    ) -> None:
        if not self.settings.ALLOW_SELF_APPROVAL and principal.user_id == request.requested_by:
            logger.warning(f"User {principal.user_id} attempted to decide own request {request.id}")
            raise PermissionDenied(
                f"User {principal.user_id} cannot {action.value} their own request",
                user_id=principal.user_id,
                role=principal.role,
                required_permission=action.value,
            )

        if (
            self.settings.ENFORCE_APPROVER_ASSIGNMENT
            and principal.user_id not in request.assigned_to
            and not principal.has_role(UserRole.ADMIN)
        ):
            logger.warning(f"User {principal.user_id} is not assigned to request {request.id}")
            raise PermissionDenied(
                f"User {principal.user_id} is not an assigned approver of request {request.id}",
                user_id=principal.user_id,
                role=principal.role,
                required_permission=action.value,
            )

    @staticmethod
    def _restore(repo: BaseRepository, entity_id: str, previous: Optional[BaseEntity]) -> None:
        """Put a record back as it was before a failed decision."""
        if previous is None:
            repo.delete(entity_id, audit=False)
        else:
            repo.update(entity_id, previous.model_dump(), audit=False)
        logger.warning(f"Rolled back {repo.collection} {entity_id} after a failed request write")
