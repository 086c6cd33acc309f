from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select

from app.escolastica.core.metrics import metrics
from app.escolastica.db.models import (
    MEMBERSHIP_ACTIVE,
    StudentBranch,
    StudentTransfer,
    TRANSFER_ACCEPTED,
    TRANSFER_EXPIRED,
    TRANSFER_PENDING,
    TERMINAL_TRANSFER_STATUSES,
)


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    branch_id: str | None
    message: str
    entity: str
    entity_id: str | None
    details: dict


def resolve_branches(branch: str) -> list[str | None]:
    """`all` scans the whole store in one pass; anything else is a branch id."""
    if branch.lower() == "all":
        return [None]
    return [branch]


def _transfer_scope(stmt, branch_id: str | None):
    if branch_id is None:
        return stmt
    return stmt.where(
        or_(
            StudentTransfer.source_branch_id == branch_id,
            StudentTransfer.target_branch_id == branch_id,
        )
    )


def _record(check_id: str, findings: list[IntegrityFinding]) -> list[IntegrityFinding]:
    if findings:
        metrics.increment_invariant_violation(check_id, len(findings))
    return findings


def check_multiple_active_memberships(db, branch_id: str | None = None) -> list[IntegrityFinding]:
    stmt = (
        select(StudentBranch.student_id, func.count(StudentBranch.id).label("active_count"))
        .where(StudentBranch.status == MEMBERSHIP_ACTIVE)
        .group_by(StudentBranch.student_id)
        .having(func.count(StudentBranch.id) > 1)
    )
    if branch_id is not None:
        in_branch = select(StudentBranch.student_id).where(
            StudentBranch.branch_id == branch_id,
            StudentBranch.status == MEMBERSHIP_ACTIVE,
        )
        stmt = stmt.where(StudentBranch.student_id.in_(in_branch))
    findings = [
        IntegrityFinding(
            check_id="multiple_active_memberships",
            severity=SEVERITY_CRITICAL,
            branch_id=branch_id,
            message="Student is Alta in more than one branch.",
            entity="student_branches",
            entity_id=None,
            details={"student_id": str(row.student_id), "active_count": int(row.active_count)},
        )
        for row in db.execute(stmt).all()
    ]
    return _record("multiple_active_memberships", findings)


def check_multiple_pending_transfers(db, branch_id: str | None = None) -> list[IntegrityFinding]:
    stmt = (
        select(StudentTransfer.student_id, func.count(StudentTransfer.id).label("pending_count"))
        .where(StudentTransfer.status == TRANSFER_PENDING)
        .group_by(StudentTransfer.student_id)
        .having(func.count(StudentTransfer.id) > 1)
    )
    findings = [
        IntegrityFinding(
            check_id="multiple_pending_transfers",
            severity=SEVERITY_CRITICAL,
            branch_id=branch_id,
            message="Student has more than one pending transfer.",
            entity="student_transfers",
            entity_id=None,
            details={"student_id": str(row.student_id), "pending_count": int(row.pending_count)},
        )
        for row in db.execute(_transfer_scope(stmt, branch_id)).all()
    ]
    return _record("multiple_pending_transfers", findings)


def _terminal_fields_problem(row) -> str | None:
    processed = row.processed_by is not None and row.processed_at is not None
    unprocessed = row.processed_by is None and row.processed_at is None
    removed = bool(row.removed_from_groups)
    if str(row.source_branch_id) == str(row.target_branch_id):
        return "source and target branch are equal"
    if row.status == TRANSFER_PENDING:
        return None if unprocessed and not removed else "pending transfer carries processing data"
    if row.status not in TERMINAL_TRANSFER_STATUSES:
        return "unknown status"
    if row.status == TRANSFER_EXPIRED:
        return None if unprocessed and not removed else "expired transfer carries processing data"
    if not processed:
        return "processed transfer lacks processed_by/processed_at"
    if removed and row.status != TRANSFER_ACCEPTED:
        return "only accepted transfers may list removed groups"
    return None


def check_transfer_terminal_fields(db, branch_id: str | None = None) -> list[IntegrityFinding]:
    stmt = select(
        StudentTransfer.id,
        StudentTransfer.status,
        StudentTransfer.source_branch_id,
        StudentTransfer.target_branch_id,
        StudentTransfer.processed_by,
        StudentTransfer.processed_at,
        StudentTransfer.removed_from_groups,
    )
    findings = []
    for row in db.execute(_transfer_scope(stmt, branch_id)).all():
        problem = _terminal_fields_problem(row)
        if problem is None:
            continue
        findings.append(
            IntegrityFinding(
                check_id="transfer_terminal_fields",
                severity=SEVERITY_CRITICAL,
                branch_id=branch_id,
                message="Transfer status and processing fields inconsistent.",
                entity="student_transfers",
                entity_id=str(row.id),
                details={
                    "status": row.status,
                    "problem": problem,
                    "processed_at": _format_datetime(row.processed_at),
                },
            )
        )
    return _record("transfer_terminal_fields", findings)


def check_overdue_pending_transfers(db, branch_id: str | None = None, *, now: datetime | None = None) -> list[IntegrityFinding]:
    now = now or datetime.utcnow()
    stmt = select(StudentTransfer.id, StudentTransfer.student_id, StudentTransfer.expires_at).where(
        StudentTransfer.status == TRANSFER_PENDING,
        StudentTransfer.expires_at < now,
    )
    findings = [
        IntegrityFinding(
            check_id="overdue_pending_transfers",
            severity=SEVERITY_WARN,
            branch_id=branch_id,
            message="Pending transfer is past its deadline and awaits the expiry sweep.",
            entity="student_transfers",
            entity_id=str(row.id),
            details={"student_id": str(row.student_id), "expires_at": _format_datetime(row.expires_at)},
        )
        for row in db.execute(_transfer_scope(stmt, branch_id)).all()
    ]
    return _record("overdue_pending_transfers", findings)


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def run_integrity_checks(db, branch_id: str | None = None) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    findings.extend(check_multiple_active_memberships(db, branch_id))
    findings.extend(check_multiple_pending_transfers(db, branch_id))
    findings.extend(check_transfer_terminal_fields(db, branch_id))
    findings.extend(check_overdue_pending_transfers(db, branch_id))
    return findings
