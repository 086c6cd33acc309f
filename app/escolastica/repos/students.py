from __future__ import annotations

from sqlalchemy import func, or_, select

from app.escolastica.db.models import Branch, MEMBERSHIP_ACTIVE, Student, StudentBranch


class StudentRepository:
    def __init__(self, db):
        self.db = db

    def search_active(self, term: str, *, exclude_branch_id=None, limit: int = 10):
        pattern = f"%{term.strip().lower()}%"
        stmt = (
            select(
                Student.id.label("student_id"),
                Student.document_type,
                Student.document_number,
                Student.first_name,
                Student.paternal_last_name,
                Student.maternal_last_name,
                StudentBranch.branch_id,
                Branch.name.label("branch_name"),
                Branch.code.label("branch_code"),
                StudentBranch.status,
            )
            .join(StudentBranch, StudentBranch.student_id == Student.id)
            .join(Branch, StudentBranch.branch_id == Branch.id)
            .where(
                or_(
                    func.lower(Student.document_number).like(pattern),
                    func.lower(Student.first_name).like(pattern),
                    func.lower(Student.paternal_last_name).like(pattern),
                    func.lower(Student.maternal_last_name).like(pattern),
                ),
                StudentBranch.status == MEMBERSHIP_ACTIVE,
            )
        )
        if exclude_branch_id is not None:
            stmt = stmt.where(StudentBranch.branch_id != exclude_branch_id)
        stmt = stmt.order_by(Student.paternal_last_name, Student.first_name).limit(limit)
        return self.db.execute(stmt).all()
