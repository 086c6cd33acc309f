from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_, select, update
from sqlalchemy.orm import aliased

from app.escolastica.db.models import Branch, Student, StudentTransfer, TRANSFER_PENDING, User


@dataclass(frozen=True)
class TransferQueryFilters:
    branch_id: str | None = None
    direction: str = "all"
    status: str = "all"
    transfer_id: str | None = None


class TransferRepository:
    def __init__(self, db):
        self.db = db

    def get_transfer(self, transfer_id, *, for_update: bool = False) -> StudentTransfer | None:
        stmt = select(StudentTransfer).where(StudentTransfer.id == transfer_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def get_pending_for_student(self, student_id, *, for_update: bool = False) -> StudentTransfer | None:
        stmt = select(StudentTransfer).where(
            StudentTransfer.student_id == student_id,
            StudentTransfer.status == TRANSFER_PENDING,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def add(self, transfer: StudentTransfer) -> StudentTransfer:
        self.db.add(transfer)
        self.db.flush()
        return transfer

    def transition(self, transfer_id, values: dict, *, expected_status: str = TRANSFER_PENDING) -> int:
        """Compare-and-set status change; returns 0 when the row was no longer in `expected_status`."""
        result = self.db.execute(
            update(StudentTransfer)
            .where(StudentTransfer.id == transfer_id, StudentTransfer.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def bulk_transition(self, criteria: tuple, values: dict) -> int:
        result = self.db.execute(
            update(StudentTransfer)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def list_rows(self, filters: TransferQueryFilters):
        source_branch = aliased(Branch, name="source_branch")
        target_branch = aliased(Branch, name="target_branch")
        creator = aliased(User, name="creator")
        processor = aliased(User, name="processor")
        stmt = (
            select(
                StudentTransfer,
                Student,
                source_branch.name.label("source_branch_name"),
                target_branch.name.label("target_branch_name"),
                creator.full_name.label("created_by_name"),
                processor.full_name.label("processed_by_name"),
            )
            .join(Student, StudentTransfer.student_id == Student.id)
            .join(source_branch, StudentTransfer.source_branch_id == source_branch.id)
            .join(target_branch, StudentTransfer.target_branch_id == target_branch.id)
            .outerjoin(creator, StudentTransfer.created_by == creator.id)
            .outerjoin(processor, StudentTransfer.processed_by == processor.id)
        )
        if filters.transfer_id is not None:
            stmt = stmt.where(StudentTransfer.id == filters.transfer_id)
        if filters.branch_id is not None:
            if filters.direction == "incoming":
                stmt = stmt.where(StudentTransfer.target_branch_id == filters.branch_id)
            elif filters.direction == "outgoing":
                stmt = stmt.where(StudentTransfer.source_branch_id == filters.branch_id)
            else:
                stmt = stmt.where(
                    or_(
                        StudentTransfer.source_branch_id == filters.branch_id,
                        StudentTransfer.target_branch_id == filters.branch_id,
                    )
                )
        if filters.status != "all":
            stmt = stmt.where(StudentTransfer.status == filters.status)
        return self.db.execute(stmt.order_by(StudentTransfer.created_at.desc())).all()
