from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select, update

from app.escolastica.db.models import (
    ClassGroup,
    ENROLLMENT_ACTIVE,
    ENROLLMENT_WITHDRAWN,
    GROUP_ACTIVE,
    GroupEnrollment,
    MEMBERSHIP_ACTIVE,
    StudentBranch,
)


class MembershipRepository:
    def __init__(self, db):
        self.db = db

    def get_active_membership(self, student_id, *, for_update: bool = False) -> StudentBranch | None:
        stmt = select(StudentBranch).where(
            StudentBranch.student_id == student_id,
            StudentBranch.status == MEMBERSHIP_ACTIVE,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt.limit(1)).scalars().first()

    def get_membership(self, student_id, branch_id, *, for_update: bool = False) -> StudentBranch | None:
        stmt = select(StudentBranch).where(
            StudentBranch.student_id == student_id,
            StudentBranch.branch_id == branch_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def set_status(self, membership: StudentBranch, status: str, *, admission_date: date | None = None) -> None:
        membership.status = status
        if admission_date is not None:
            membership.admission_date = admission_date
        membership.updated_at = datetime.utcnow()
        self.db.flush()

    def add(self, student_id, branch_id, status: str, admission_date: date) -> StudentBranch:
        membership = StudentBranch(
            student_id=student_id,
            branch_id=branch_id,
            status=status,
            admission_date=admission_date,
        )
        self.db.add(membership)
        self.db.flush()
        return membership

    def list_active_enrollments(self, student_id, branch_id) -> list[tuple[GroupEnrollment, ClassGroup]]:
        stmt = (
            select(GroupEnrollment, ClassGroup)
            .join(ClassGroup, GroupEnrollment.group_id == ClassGroup.id)
            .where(
                GroupEnrollment.student_id == student_id,
                GroupEnrollment.status == ENROLLMENT_ACTIVE,
                ClassGroup.branch_id == branch_id,
                ClassGroup.status == GROUP_ACTIVE,
            )
            .order_by(ClassGroup.name)
            .with_for_update(of=GroupEnrollment)
        )
        return [(row[0], row[1]) for row in self.db.execute(stmt).all()]

    def withdraw_enrollments(self, enrollment_ids: list) -> int:
        if not enrollment_ids:
            return 0
        result = self.db.execute(
            update(GroupEnrollment)
            .where(
                GroupEnrollment.id.in_(enrollment_ids),
                GroupEnrollment.status == ENROLLMENT_ACTIVE,
            )
            .values(status=ENROLLMENT_WITHDRAWN, updated_at=datetime.utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0
