from sqlalchemy import select

from app.escolastica.db.models import StudentTransaction


class StudentTransactionRepository:
    def __init__(self, db):
        self.db = db

    def append(self, entry: StudentTransaction) -> StudentTransaction:
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_for_student(self, student_id, branch_id=None) -> list[StudentTransaction]:
        stmt = select(StudentTransaction).where(StudentTransaction.student_id == student_id)
        if branch_id is not None:
            stmt = stmt.where(StudentTransaction.branch_id == branch_id)
        return self.db.execute(stmt.order_by(StudentTransaction.transaction_date.asc())).scalars().all()
