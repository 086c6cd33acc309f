from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.escolastica.core.config import settings
from app.escolastica.core.logging import log_json
from app.escolastica.core.metrics import metrics
from app.escolastica.db.models import StudentTransfer, TRANSFER_EXPIRED, TRANSFER_PENDING
from app.escolastica.db.session import unit_of_work
from app.escolastica.repos.transfers import TransferRepository

logger = logging.getLogger(__name__)


def compute_expires_at(created_at: datetime) -> datetime:
    return created_at + timedelta(days=settings.TRANSFER_EXPIRY_DAYS)


def is_expired(transfer: StudentTransfer, now: datetime | None = None) -> bool:
    """A pending transfer is expired once `now` is strictly past its deadline."""
    now = now or datetime.utcnow()
    return transfer.status == TRANSFER_PENDING and now > transfer.expires_at


def overdue_criteria(now: datetime) -> tuple:
    return (
        StudentTransfer.status == TRANSFER_PENDING,
        StudentTransfer.expires_at < now,
    )


def _expired_values(now: datetime) -> dict:
    # processed_by/processed_at stay empty: nobody processed an expired request.
    return {"status": TRANSFER_EXPIRED, "updated_at": now}


def expire_if_overdue(db, transfer: StudentTransfer, now: datetime | None = None) -> bool:
    """Lazily move one overdue pending transfer to `expired` and commit it."""
    now = now or datetime.utcnow()
    if not is_expired(transfer, now):
        return False
    with unit_of_work(db):
        changed = TransferRepository(db).transition(transfer.id, _expired_values(now))
    if changed:
        metrics.record_transfer_transition(TRANSFER_EXPIRED)
        log_json(
            logger,
            {"event": "transfer.expired", "transfer_id": str(transfer.id), "student_id": str(transfer.student_id)},
        )
    return True


class ExpirationSweeper:
    def __init__(self, db):
        self.db = db
        self.repo = TransferRepository(db)

    def sweep(self, now: datetime | None = None) -> int:
        now = now or datetime.utcnow()
        with unit_of_work(self.db):
            count = self.repo.bulk_transition(overdue_criteria(now), _expired_values(now))
        metrics.record_transfer_transition(TRANSFER_EXPIRED, count)
        log_json(logger, {"event": "transfer.sweep", "expired": count, "at": now})
        return count
