from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.escolastica.core.config import settings
from app.escolastica.core.context import Actor
from app.escolastica.core.error_catalog import AppError, ErrorCatalog
from app.escolastica.core.logging import log_json
from app.escolastica.core.metrics import metrics
from app.escolastica.db.models import (
    StudentTransfer,
    TRANSFER_CANCELLED,
    TRANSFER_INCOMING,
    TRANSFER_OUTGOING,
    TRANSFER_PENDING,
    TRANSFER_REJECTED,
)
from app.escolastica.db.session import unit_of_work
from app.escolastica.repos.branches import BranchRepository
from app.escolastica.repos.memberships import MembershipRepository
from app.escolastica.repos.students import StudentRepository
from app.escolastica.repos.transfers import TransferQueryFilters, TransferRepository
from app.escolastica.services.authorization import AuthorizationGate
from app.escolastica.services.expiration import (
    ExpirationSweeper,
    compute_expires_at,
    expire_if_overdue,
    is_expired,
)
from app.escolastica.services.memberships import AcceptanceResult, MembershipCoordinator

logger = logging.getLogger(__name__)


class TransferService:
    """Entry point for the student transfer workflow.

    Every business rule (permission, status, expiry, uniqueness) is checked
    before the first write; the writes of one operation share one unit of work.
    """

    def __init__(self, db):
        self.db = db
        self.transfers = TransferRepository(db)
        self.memberships = MembershipRepository(db)
        self.branches = BranchRepository(db)
        self.students = StudentRepository(db)
        self.gate = AuthorizationGate(db)

    def create(
        self,
        *,
        student_id,
        target_branch_id,
        transfer_type: str,
        actor: Actor,
        reason: str | None = None,
        notes: str | None = None,
    ) -> StudentTransfer:
        now = datetime.utcnow()
        if transfer_type not in {TRANSFER_OUTGOING, TRANSFER_INCOMING}:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"field": "transferType", "message": "transferType must be outgoing or incoming"},
            )
        if transfer_type == TRANSFER_INCOMING:
            self.gate.require_transfer_manager(actor, target_branch_id, action="create")
        if self.branches.get_by_id(target_branch_id) is None:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"field": "targetBranchId", "message": "target branch not found"},
            )

        # transfer row before membership row, the order accept takes them in
        existing = self.transfers.get_pending_for_student(student_id, for_update=True)
        membership = self.memberships.get_active_membership(student_id, for_update=True)
        if membership is None:
            raise AppError(ErrorCatalog.NO_ACTIVE_MEMBERSHIP)
        source_branch_id = membership.branch_id
        if str(source_branch_id) == str(target_branch_id):
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"field": "targetBranchId", "message": "target branch must differ from the source branch"},
            )
        if transfer_type == TRANSFER_OUTGOING:
            self.gate.require_transfer_manager(actor, source_branch_id, action="create")

        if existing is not None:
            if not is_expired(existing, now):
                raise AppError(ErrorCatalog.DUPLICATE_TRANSFER, details={"transfer_id": str(existing.id)})
            expire_if_overdue(self.db, existing, now)

        transfer = StudentTransfer(
            student_id=student_id,
            source_branch_id=source_branch_id,
            target_branch_id=target_branch_id,
            transfer_type=transfer_type,
            status=TRANSFER_PENDING,
            reason=reason,
            notes=notes,
            created_by=actor.id,
            created_at=now,
            expires_at=compute_expires_at(now),
            removed_from_groups=[],
        )
        try:
            with unit_of_work(self.db):
                self.transfers.add(transfer)
        except IntegrityError as exc:
            # Lost a race against a concurrent create for the same student.
            raise AppError(ErrorCatalog.DUPLICATE_TRANSFER) from exc

        metrics.record_transfer_transition(TRANSFER_PENDING)
        log_json(
            logger,
            {
                "event": "transfer.created",
                "transfer_id": str(transfer.id),
                "student_id": str(student_id),
                "source_branch_id": str(source_branch_id),
                "target_branch_id": str(target_branch_id),
                "transfer_type": transfer_type,
                "user_id": actor.id,
            },
        )
        return transfer

    def accept(self, transfer_id, actor: Actor) -> AcceptanceResult:
        now = datetime.utcnow()
        transfer = self._load_pending(transfer_id, verb="accepted")
        self.gate.require_transfer_manager(actor, transfer.source_branch_id, action="accept")
        self._ensure_not_expired(transfer, now)

        with unit_of_work(self.db):
            result = MembershipCoordinator(self.db).apply_acceptance(transfer, actor, now=now)

        metrics.record_transfer_transition(transfer.status)
        log_json(
            logger,
            {
                "event": "transfer.accepted",
                "transfer_id": str(transfer.id),
                "student_id": str(transfer.student_id),
                "removed_from_groups": [group.id for group in result.removed_groups],
                "user_id": actor.id,
            },
        )
        return result

    def reject(self, transfer_id, actor: Actor, rejection_reason: str | None = None) -> StudentTransfer:
        now = datetime.utcnow()
        transfer = self._load_pending(transfer_id, verb="rejected")
        self.gate.require_transfer_manager(actor, transfer.source_branch_id, action="reject")
        self._ensure_not_expired(transfer, now)

        self._close(
            transfer,
            {
                "status": TRANSFER_REJECTED,
                "processed_by": actor.id,
                "processed_at": now,
                "rejection_reason": rejection_reason,
                "updated_at": now,
            },
            verb="rejected",
        )
        log_json(
            logger,
            {"event": "transfer.rejected", "transfer_id": str(transfer.id), "user_id": actor.id},
        )
        return transfer

    def cancel(self, transfer_id, actor: Actor) -> StudentTransfer:
        now = datetime.utcnow()
        transfer = self._load_pending(transfer_id, verb="cancelled")
        if str(transfer.created_by) != actor.id:
            self.gate.require_transfer_manager(actor, self._requesting_branch_id(transfer), action="cancel")
        self._ensure_not_expired(transfer, now)

        self._close(
            transfer,
            {
                "status": TRANSFER_CANCELLED,
                "processed_by": actor.id,
                "processed_at": now,
                "updated_at": now,
            },
            verb="cancelled",
        )
        log_json(
            logger,
            {"event": "transfer.cancelled", "transfer_id": str(transfer.id), "user_id": actor.id},
        )
        return transfer

    def list_transfers(self, branch_id, *, direction: str = "all", status: str = "all"):
        return self.transfers.list_rows(TransferQueryFilters(branch_id=branch_id, direction=direction, status=status))

    def get_transfer_row(self, transfer_id):
        rows = self.transfers.list_rows(TransferQueryFilters(transfer_id=transfer_id))
        if not rows:
            raise AppError(ErrorCatalog.TRANSFER_NOT_FOUND)
        return rows[0]

    def search_students(self, query: str, *, exclude_branch_id=None):
        if not query or len(query.strip()) < settings.STUDENT_SEARCH_MIN_LENGTH:
            return []
        return self.students.search_active(
            query,
            exclude_branch_id=exclude_branch_id,
            limit=settings.STUDENT_SEARCH_LIMIT,
        )

    def expire_overdue(self) -> int:
        return ExpirationSweeper(self.db).sweep()

    @staticmethod
    def _requesting_branch_id(transfer: StudentTransfer):
        if transfer.transfer_type == TRANSFER_INCOMING:
            return transfer.target_branch_id
        return transfer.source_branch_id

    def _load_pending(self, transfer_id, *, verb: str) -> StudentTransfer:
        transfer = self.transfers.get_transfer(transfer_id, for_update=True)
        if transfer is None:
            raise AppError(ErrorCatalog.TRANSFER_NOT_FOUND)
        if transfer.status != TRANSFER_PENDING:
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={"message": f"only pending transfers can be {verb}", "status": transfer.status},
            )
        return transfer

    def _ensure_not_expired(self, transfer: StudentTransfer, now: datetime) -> None:
        if expire_if_overdue(self.db, transfer, now):
            raise AppError(
                ErrorCatalog.TRANSFER_EXPIRED,
                details={"transfer_id": str(transfer.id), "expires_at": transfer.expires_at},
            )

    def _close(self, transfer: StudentTransfer, values: dict, *, verb: str) -> None:
        with unit_of_work(self.db):
            if not self.transfers.transition(transfer.id, values):
                raise AppError(
                    ErrorCatalog.INVALID_TRANSITION,
                    details={"message": f"only pending transfers can be {verb}"},
                )
        metrics.record_transfer_transition(values["status"])
