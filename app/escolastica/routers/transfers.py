from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query

from app.escolastica.core.context import Actor
from app.escolastica.core.deps import get_current_actor
from app.escolastica.db.session import get_db
from app.escolastica.schemas.errors import ERROR_RESPONSES
from app.escolastica.schemas.transfers import (
    RemovedGroupResponse,
    StudentCandidate,
    StudentSearchResponse,
    TransferAcceptResponse,
    TransferCreateRequest,
    TransferDirection,
    TransferEnvelope,
    TransferExpireResponse,
    TransferListResponse,
    TransferRejectRequest,
    TransferResponse,
    TransferStatusFilter,
)
from app.escolastica.services.transfers import TransferService


router = APIRouter(responses=ERROR_RESPONSES)


def _optional_str(value) -> str | None:
    return str(value) if value is not None else None


def _transfer_response(row) -> TransferResponse:
    transfer, student, source_branch_name, target_branch_name, created_by_name, processed_by_name = row
    return TransferResponse(
        id=str(transfer.id),
        student_id=str(transfer.student_id),
        student_dni=student.document_number,
        student_name=student.full_name,
        source_branch_id=str(transfer.source_branch_id),
        source_branch_name=source_branch_name,
        target_branch_id=str(transfer.target_branch_id),
        target_branch_name=target_branch_name,
        status=transfer.status,
        transfer_type=transfer.transfer_type,
        reason=transfer.reason,
        notes=transfer.notes,
        rejection_reason=transfer.rejection_reason,
        expires_at=transfer.expires_at,
        created_at=transfer.created_at,
        created_by=str(transfer.created_by),
        created_by_name=created_by_name,
        processed_by=_optional_str(transfer.processed_by),
        processed_by_name=processed_by_name,
        processed_at=transfer.processed_at,
        removed_from_groups=[str(group_id) for group_id in (transfer.removed_from_groups or [])],
    )


def _candidate_response(row) -> StudentCandidate:
    return StudentCandidate(
        student_id=str(row.student_id),
        document_type=row.document_type,
        dni=row.document_number,
        first_name=row.first_name,
        paternal_last_name=row.paternal_last_name,
        maternal_last_name=row.maternal_last_name,
        branch_id=str(row.branch_id),
        branch_name=row.branch_name,
        branch_code=row.branch_code,
        status=row.status,
    )


@router.get("/transfers", response_model=TransferListResponse)
def list_transfers(
    branch_id: UUID = Query(..., alias="branchId"),
    direction: TransferDirection = Query("all", alias="type"),
    status: TransferStatusFilter = Query("all"),
    _actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    service = TransferService(db)
    rows = service.list_transfers(branch_id, direction=direction, status=status)
    return TransferListResponse(data=[_transfer_response(row) for row in rows])


@router.get("/transfers/search-student", response_model=StudentSearchResponse)
def search_student(
    dni: str = Query(...),
    exclude_branch_id: UUID | None = Query(None, alias="excludeBranchId"),
    _actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    service = TransferService(db)
    rows = service.search_students(dni, exclude_branch_id=exclude_branch_id)
    return StudentSearchResponse(data=[_candidate_response(row) for row in rows])


@router.post("/transfers", response_model=TransferEnvelope, status_code=201)
def create_transfer(
    payload: TransferCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    service = TransferService(db)
    transfer = service.create(
        student_id=payload.student_id,
        target_branch_id=payload.target_branch_id,
        transfer_type=payload.transfer_type,
        reason=payload.reason,
        notes=payload.notes,
        actor=actor,
    )
    return TransferEnvelope(data=_transfer_response(service.get_transfer_row(transfer.id)))


@router.post("/transfers/expire", response_model=TransferExpireResponse)
def expire_transfers(
    _actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    return TransferExpireResponse(expired=TransferService(db).expire_overdue())


@router.get("/transfers/{transfer_id}", response_model=TransferEnvelope)
def get_transfer(
    transfer_id: UUID,
    _actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    service = TransferService(db)
    return TransferEnvelope(data=_transfer_response(service.get_transfer_row(transfer_id)))


@router.put("/transfers/{transfer_id}/accept", response_model=TransferAcceptResponse)
def accept_transfer(
    transfer_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    service = TransferService(db)
    result = service.accept(transfer_id, actor)
    return TransferAcceptResponse(
        data=_transfer_response(service.get_transfer_row(transfer_id)),
        removed_groups=[RemovedGroupResponse(id=group.id, name=group.name) for group in result.removed_groups],
    )


@router.put("/transfers/{transfer_id}/reject", response_model=TransferEnvelope)
def reject_transfer(
    transfer_id: UUID,
    payload: TransferRejectRequest | None = Body(None),
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    service = TransferService(db)
    service.reject(transfer_id, actor, rejection_reason=payload.reason if payload else None)
    return TransferEnvelope(data=_transfer_response(service.get_transfer_row(transfer_id)))


@router.put("/transfers/{transfer_id}/cancel", response_model=TransferEnvelope)
def cancel_transfer(
    transfer_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db=Depends(get_db),
):
    service = TransferService(db)
    service.cancel(transfer_id, actor)
    return TransferEnvelope(data=_transfer_response(service.get_transfer_row(transfer_id)))
