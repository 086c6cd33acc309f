import uuid
from datetime import date, datetime, timedelta

from sqlalchemy import text

from app.escolastica.db.models import StudentBranch
from app.ops.integrity_checks import (
    SEVERITY_CRITICAL,
    SEVERITY_WARN,
    check_multiple_active_memberships,
    check_multiple_pending_transfers,
    check_overdue_pending_transfers,
    check_transfer_terminal_fields,
    run_integrity_checks,
)
from tests.transfer_helpers import build_transfer, create_pending_transfer, transfer_world


def test_clean_store_has_no_findings(db_session):
    world = transfer_world(db_session)
    create_pending_transfer(
        db_session,
        student=world["student"],
        source=world["north"],
        target=world["south"],
        created_by=world["north_coordinator"],
    )

    assert run_integrity_checks(db_session) == []
    assert run_integrity_checks(db_session, str(world["north"].id)) == []


def test_multiple_active_memberships_detected(db_session):
    world = transfer_world(db_session)
    db_session.execute(text("DROP INDEX uq_student_branches_one_active"))
    db_session.commit()
    db_session.add(
        StudentBranch(
            id=uuid.uuid4(),
            student_id=world["student"].id,
            branch_id=world["south"].id,
            status="Alta",
            admission_date=date(2024, 5, 1),
        )
    )
    db_session.commit()

    findings = check_multiple_active_memberships(db_session)

    assert len(findings) == 1
    assert findings[0].severity == SEVERITY_CRITICAL
    assert findings[0].details == {"student_id": str(world["student"].id), "active_count": 2}
    assert len(check_multiple_active_memberships(db_session, str(world["south"].id))) == 1


def test_multiple_pending_transfers_detected(db_session):
    world = transfer_world(db_session)
    db_session.execute(text("DROP INDEX uq_student_transfers_one_pending"))
    db_session.commit()
    db_session.add_all([build_transfer(world), build_transfer(world)])
    db_session.commit()

    findings = check_multiple_pending_transfers(db_session)

    assert len(findings) == 1
    assert findings[0].details["pending_count"] == 2


def test_terminal_field_inconsistencies_detected(db_session):
    world = transfer_world(db_session)
    now = datetime.utcnow()
    db_session.add_all(
        [
            build_transfer(world, status="accepted"),
            build_transfer(world, status="archived"),
            build_transfer(world, status="expired", processed_by=world["north_coordinator"].id, processed_at=now),
            build_transfer(
                world,
                status="rejected",
                processed_by=world["north_coordinator"].id,
                processed_at=now,
                removed_from_groups=[str(uuid.uuid4())],
            ),
            build_transfer(
                world,
                status="accepted",
                processed_by=world["north_coordinator"].id,
                processed_at=now,
                removed_from_groups=[str(uuid.uuid4())],
            ),
        ]
    )
    db_session.commit()

    findings = check_transfer_terminal_fields(db_session)

    problems = sorted(finding.details["problem"] for finding in findings)
    assert problems == [
        "expired transfer carries processing data",
        "only accepted transfers may list removed groups",
        "processed transfer lacks processed_by/processed_at",
        "unknown status",
    ]


def test_overdue_pending_is_a_warning(db_session):
    world = transfer_world(db_session)
    stale = create_pending_transfer(
        db_session,
        student=world["student"],
        source=world["north"],
        target=world["south"],
        created_by=world["north_coordinator"],
        created_at=datetime.utcnow() - timedelta(days=9),
    )

    findings = check_overdue_pending_transfers(db_session)

    assert [finding.entity_id for finding in findings] == [str(stale.id)]
    assert findings[0].severity == SEVERITY_WARN
    assert check_overdue_pending_transfers(db_session, now=stale.expires_at) == []
