from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.escolastica.core.context import Actor
from app.escolastica.core.error_catalog import AppError, ErrorCatalog
from app.escolastica.db.models import (
    ClassGroup,
    GroupEnrollment,
    MEMBERSHIP_ACTIVE,
    MEMBERSHIP_INACTIVE,
    StudentBranch,
    StudentTransfer,
    TRANSFER_ACCEPTED,
)
from app.escolastica.repos.branches import BranchRepository
from app.escolastica.repos.memberships import MembershipRepository
from app.escolastica.repos.transfers import TransferRepository
from app.escolastica.services.audit import AuditLog


@dataclass(frozen=True)
class RemovedGroup:
    id: str
    name: str


@dataclass
class AcceptancePlan:
    source_membership: StudentBranch
    target_membership: StudentBranch | None
    enrollments: list[tuple[GroupEnrollment, ClassGroup]]
    source_branch_name: str | None
    target_branch_name: str | None


@dataclass
class AcceptanceResult:
    transfer: StudentTransfer
    removed_groups: list[RemovedGroup] = field(default_factory=list)


class MembershipCoordinator:
    """Moves a student's active membership from the source to the target branch.

    Runs inside the caller's unit of work: nothing is committed here, and any
    exception leaves the session to be rolled back as a whole. Reads and row
    locks happen first; the source membership is always withdrawn before the
    target one is admitted so that at most one Alta row exists at every flush.
    """

    def __init__(self, db):
        self.db = db
        self.memberships = MembershipRepository(db)
        self.transfers = TransferRepository(db)
        self.branches = BranchRepository(db)
        self.audit = AuditLog(db)

    def plan(self, transfer: StudentTransfer) -> AcceptancePlan:
        source_membership = self.memberships.get_membership(
            transfer.student_id, transfer.source_branch_id, for_update=True
        )
        if source_membership is None or source_membership.status != MEMBERSHIP_ACTIVE:
            raise AppError(
                ErrorCatalog.NO_ACTIVE_MEMBERSHIP,
                details={"message": "student is no longer active in the source branch"},
            )
        target_membership = self.memberships.get_membership(
            transfer.student_id, transfer.target_branch_id, for_update=True
        )
        source_branch = self.branches.get_by_id(transfer.source_branch_id)
        target_branch = self.branches.get_by_id(transfer.target_branch_id)
        return AcceptancePlan(
            source_membership=source_membership,
            target_membership=target_membership,
            enrollments=self.memberships.list_active_enrollments(transfer.student_id, transfer.source_branch_id),
            source_branch_name=source_branch.name if source_branch else None,
            target_branch_name=target_branch.name if target_branch else None,
        )

    def apply_acceptance(self, transfer: StudentTransfer, actor: Actor, *, now: datetime | None = None) -> AcceptanceResult:
        now = now or datetime.utcnow()
        plan = self.plan(transfer)

        self.memberships.set_status(plan.source_membership, MEMBERSHIP_INACTIVE)
        self.audit.record_transfer_out(
            student_id=transfer.student_id,
            branch_id=transfer.source_branch_id,
            target_branch_name=plan.target_branch_name,
            user_id=actor.id,
            at=now,
        )

        removed_groups: list[RemovedGroup] = []
        seen: set[str] = set()
        for _enrollment, group in plan.enrollments:
            group_id = str(group.id)
            if group_id in seen:
                continue
            seen.add(group_id)
            removed_groups.append(RemovedGroup(id=group_id, name=group.name))
        self.memberships.withdraw_enrollments([enrollment.id for enrollment, _group in plan.enrollments])

        # Admission date restarts on every (re)admission.
        if plan.target_membership is not None:
            self.memberships.set_status(plan.target_membership, MEMBERSHIP_ACTIVE, admission_date=now.date())
        else:
            self.memberships.add(transfer.student_id, transfer.target_branch_id, MEMBERSHIP_ACTIVE, now.date())
        self.audit.record_transfer_in(
            student_id=transfer.student_id,
            branch_id=transfer.target_branch_id,
            source_branch_name=plan.source_branch_name,
            user_id=actor.id,
            at=now,
        )

        changed = self.transfers.transition(
            transfer.id,
            {
                "status": TRANSFER_ACCEPTED,
                "processed_by": actor.id,
                "processed_at": now,
                "removed_from_groups": [group.id for group in removed_groups],
                "updated_at": now,
            },
        )
        if not changed:
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={"message": "only pending transfers can be accepted"},
            )
        return AcceptanceResult(transfer=transfer, removed_groups=removed_groups)
