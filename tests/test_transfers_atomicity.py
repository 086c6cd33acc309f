import uuid
from datetime import date

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.escolastica.core.context import actor_from_user
from app.escolastica.core.error_catalog import AppError, ErrorCatalog
from app.escolastica.db.models import (
    GroupEnrollment,
    StudentBranch,
    StudentTransaction,
    StudentTransfer,
)
from app.escolastica.db import session as session_module
from app.escolastica.db.session import unit_of_work
from app.escolastica.repos.memberships import MembershipRepository
from app.escolastica.repos.transfers import TransferRepository
from app.escolastica.services.audit import AuditEntryPayload, AuditLog
from app.escolastica.services.memberships import MembershipCoordinator
from app.escolastica.services.transfers import TransferService
from tests.transfer_helpers import (
    add_membership,
    create_pending_transfer,
    enroll,
    memberships_by_branch,
    transfer_world,
)


def _assert_untouched(db_session, world, transfer_id):
    db_session.expire_all()
    assert db_session.get(StudentTransfer, transfer_id).status == "pending"
    memberships = memberships_by_branch(db_session, world["student"])
    assert memberships[str(world["north"].id)].status == "Alta"
    assert str(world["south"].id) not in memberships
    statuses = {
        row.status
        for row in db_session.execute(
            select(GroupEnrollment).where(GroupEnrollment.student_id == world["student"].id)
        ).scalars()
    }
    assert statuses == {"active"}
    assert db_session.execute(select(StudentTransaction)).scalars().all() == []


def test_accept_rolls_back_when_a_late_step_fails(db_session, monkeypatch):
    world = transfer_world(db_session)
    enroll(db_session, world["student"], world["north"], group_name="Math A")
    transfer = create_pending_transfer(
        db_session,
        student=world["student"],
        source=world["north"],
        target=world["south"],
        created_by=world["north_coordinator"],
    )

    def _boom(self, **_kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(AuditLog, "record_transfer_in", _boom)
    service = TransferService(db_session)

    with pytest.raises(RuntimeError):
        service.accept(transfer.id, actor_from_user(world["north_coordinator"]))

    _assert_untouched(db_session, world, transfer.id)


def test_lost_race_surfaces_invalid_transition_and_rolls_back(db_session):
    world = transfer_world(db_session)
    enroll(db_session, world["student"], world["north"], group_name="Math A")
    transfer = create_pending_transfer(
        db_session,
        student=world["student"],
        source=world["north"],
        target=world["south"],
        created_by=world["north_coordinator"],
    )
    loaded = TransferRepository(db_session).get_transfer(transfer.id)

    other = session_module.SessionLocal()
    try:
        other.execute(
            update(StudentTransfer).where(StudentTransfer.id == transfer.id).values(status="cancelled")
        )
        other.commit()
    finally:
        other.close()

    with pytest.raises(AppError) as excinfo:
        with unit_of_work(db_session):
            MembershipCoordinator(db_session).apply_acceptance(loaded, actor_from_user(world["north_coordinator"]))

    assert excinfo.value.error == ErrorCatalog.INVALID_TRANSITION
    db_session.expire_all()
    assert db_session.get(StudentTransfer, transfer.id).status == "cancelled"
    memberships = memberships_by_branch(db_session, world["student"])
    assert memberships[str(world["north"].id)].status == "Alta"
    assert db_session.execute(select(StudentTransaction)).scalars().all() == []


def _record_row_locks(monkeypatch) -> list[str]:
    taken = []

    def _wrap(cls, name, label):
        original = getattr(cls, name)

        def _locked(self, *args, **kwargs):
            if kwargs.get("for_update"):
                taken.append(label)
            return original(self, *args, **kwargs)

        monkeypatch.setattr(cls, name, _locked)

    _wrap(TransferRepository, "get_transfer", "transfer")
    _wrap(TransferRepository, "get_pending_for_student", "transfer")
    _wrap(MembershipRepository, "get_active_membership", "membership")
    _wrap(MembershipRepository, "get_membership", "membership")
    return taken


def test_create_and_accept_lock_transfer_before_membership(db_session, monkeypatch):
    world = transfer_world(db_session)
    taken = _record_row_locks(monkeypatch)
    service = TransferService(db_session)

    created = service.create(
        student_id=world["student"].id,
        target_branch_id=world["south"].id,
        transfer_type="incoming",
        actor=actor_from_user(world["south_coordinator"]),
    )

    assert taken == ["transfer", "membership"]

    taken.clear()
    service.accept(created.id, actor_from_user(world["north_coordinator"]))

    assert taken[0] == "transfer"
    assert set(taken[1:]) == {"membership"}


def test_concurrent_create_maps_unique_violation_to_duplicate(db_session, monkeypatch):
    world = transfer_world(db_session)
    create_pending_transfer(
        db_session,
        student=world["student"],
        source=world["north"],
        target=world["south"],
        created_by=world["north_coordinator"],
    )
    monkeypatch.setattr(TransferRepository, "get_pending_for_student", lambda self, *args, **kwargs: None)
    service = TransferService(db_session)

    with pytest.raises(AppError) as excinfo:
        service.create(
            student_id=world["student"].id,
            target_branch_id=world["south"].id,
            transfer_type="outgoing",
            actor=actor_from_user(world["north_coordinator"]),
        )

    assert excinfo.value.error == ErrorCatalog.DUPLICATE_TRANSFER
    count = len(db_session.execute(select(StudentTransfer)).scalars().all())
    assert count == 1


def test_store_refuses_second_active_membership(db_session):
    world = transfer_world(db_session)

    with pytest.raises(IntegrityError):
        add_membership(db_session, world["student"], world["south"], status="Alta", admission_date=date(2024, 1, 1))
    db_session.rollback()

    active = db_session.execute(
        select(StudentBranch).where(StudentBranch.student_id == world["student"].id, StudentBranch.status == "Alta")
    ).scalars().all()
    assert len(active) == 1


def test_audit_entries_are_append_only(db_session):
    world = transfer_world(db_session)
    entry = StudentTransaction(
        id=uuid.uuid4(),
        student_id=world["student"].id,
        branch_id=world["north"].id,
        transaction_type="Alta",
        description="Initial admission",
        user_id=world["north_coordinator"].id,
    )
    db_session.add(entry)
    db_session.commit()

    entry.observation = "edited"
    with pytest.raises(ValueError):
        db_session.commit()
    db_session.rollback()

    db_session.delete(entry)
    with pytest.raises(ValueError):
        db_session.commit()
    db_session.rollback()

    with pytest.raises(ValueError):
        AuditLog(db_session).append(
            AuditEntryPayload(
                student_id=world["student"].id,
                branch_id=world["north"].id,
                transaction_type="Suspendido",
                description="x",
                observation=None,
                user_id=None,
            )
        )
