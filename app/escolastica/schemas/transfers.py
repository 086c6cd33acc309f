from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


TransferType = Literal["outgoing", "incoming"]
TransferDirection = Literal["incoming", "outgoing", "all"]
TransferStatusFilter = Literal["pending", "accepted", "rejected", "cancelled", "expired", "all"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class TransferCreateRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "studentId": "6f7a3a9e-2f0c-4a43-9c6e-1f3d3f4b2a10",
                "targetBranchId": "0c1e1a58-8d8f-45a9-9f0b-5b6a4a1e2d33",
                "transferType": "outgoing",
                "reason": "Family moved",
                "notes": None,
            }
        },
    )

    student_id: UUID
    target_branch_id: UUID
    transfer_type: TransferType
    reason: str | None = None
    notes: str | None = None


class TransferRejectRequest(CamelModel):
    reason: str | None = None


class TransferResponse(CamelModel):
    id: str
    student_id: str
    student_dni: str | None = None
    student_name: str | None = None
    source_branch_id: str
    source_branch_name: str | None = None
    target_branch_id: str
    target_branch_name: str | None = None
    status: str
    transfer_type: str
    reason: str | None = None
    notes: str | None = None
    rejection_reason: str | None = None
    expires_at: datetime
    created_at: datetime
    created_by: str
    created_by_name: str | None = None
    processed_by: str | None = None
    processed_by_name: str | None = None
    processed_at: datetime | None = None
    removed_from_groups: list[str] = []


class TransferEnvelope(CamelModel):
    data: TransferResponse


class TransferListResponse(CamelModel):
    data: list[TransferResponse]


class RemovedGroupResponse(CamelModel):
    id: str
    name: str


class TransferAcceptResponse(CamelModel):
    data: TransferResponse
    removed_groups: list[RemovedGroupResponse]


class StudentCandidate(CamelModel):
    student_id: str
    document_type: str
    dni: str
    first_name: str
    paternal_last_name: str
    maternal_last_name: str | None = None
    branch_id: str
    branch_name: str
    branch_code: str
    status: str


class StudentSearchResponse(CamelModel):
    data: list[StudentCandidate]


class TransferExpireResponse(CamelModel):
    expired: int
