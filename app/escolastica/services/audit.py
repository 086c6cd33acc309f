from dataclasses import dataclass
from datetime import datetime

from app.escolastica.db.models import MEMBERSHIP_ACTIVE, MEMBERSHIP_INACTIVE, StudentTransaction
from app.escolastica.repos.audit import StudentTransactionRepository

TRANSFER_OUT_DESCRIPTION = "Transfer to another branch"
TRANSFER_IN_DESCRIPTION = "Transfer from another branch"


@dataclass
class AuditEntryPayload:
    student_id: str
    branch_id: str
    transaction_type: str
    description: str
    observation: str | None
    user_id: str | None
    timestamp: datetime | None = None


class AuditLog:
    """Append-only Alta/Baja history per student and branch.

    Entries are flushed into the caller's session and commit or roll back with it;
    write failures propagate.
    """

    def __init__(self, db):
        self.repo = StudentTransactionRepository(db)

    def append(self, payload: AuditEntryPayload) -> StudentTransaction:
        if payload.transaction_type not in {MEMBERSHIP_ACTIVE, MEMBERSHIP_INACTIVE}:
            raise ValueError(f"unsupported transaction type: {payload.transaction_type}")
        entry = StudentTransaction(
            student_id=payload.student_id,
            branch_id=payload.branch_id,
            transaction_type=payload.transaction_type,
            description=payload.description,
            observation=payload.observation,
            user_id=payload.user_id,
            transaction_date=payload.timestamp or datetime.utcnow(),
        )
        return self.repo.append(entry)

    def record_transfer_out(self, *, student_id, branch_id, target_branch_name: str | None, user_id, at=None):
        return self.append(
            AuditEntryPayload(
                student_id=student_id,
                branch_id=branch_id,
                transaction_type=MEMBERSHIP_INACTIVE,
                description=TRANSFER_OUT_DESCRIPTION,
                observation=f"Transfer accepted to: {target_branch_name or 'target branch'}",
                user_id=user_id,
                timestamp=at,
            )
        )

    def record_transfer_in(self, *, student_id, branch_id, source_branch_name: str | None, user_id, at=None):
        return self.append(
            AuditEntryPayload(
                student_id=student_id,
                branch_id=branch_id,
                transaction_type=MEMBERSHIP_ACTIVE,
                description=TRANSFER_IN_DESCRIPTION,
                observation=f"Coming from: {source_branch_name or 'source branch'}",
                user_id=user_id,
                timestamp=at,
            )
        )
