import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, JSON, String, Text, UniqueConstraint, event, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator, CHAR


MEMBERSHIP_ACTIVE = "Alta"
MEMBERSHIP_INACTIVE = "Baja"

ENROLLMENT_ACTIVE = "active"
ENROLLMENT_WITHDRAWN = "withdrawn"

GROUP_ACTIVE = "active"

TRANSFER_PENDING = "pending"
TRANSFER_ACCEPTED = "accepted"
TRANSFER_REJECTED = "rejected"
TRANSFER_CANCELLED = "cancelled"
TRANSFER_EXPIRED = "expired"
TRANSFER_STATUSES = (
    TRANSFER_PENDING,
    TRANSFER_ACCEPTED,
    TRANSFER_REJECTED,
    TRANSFER_CANCELLED,
    TRANSFER_EXPIRED,
)
TERMINAL_TRANSFER_STATUSES = frozenset(TRANSFER_STATUSES) - {TRANSFER_PENDING}

TRANSFER_OUTGOING = "outgoing"
TRANSFER_INCOMING = "incoming"

USER_TYPE_ADMIN = "admin"


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        if dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(150), nullable=False, unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    user_type: Mapped[str] = mapped_column(String(50), default="staff", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    branch_roles = relationship("UserBranchRole", back_populates="user")


class Branch(Base):
    __tablename__ = "branches"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    can_manage_transfers: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class UserBranchRole(Base):
    __tablename__ = "user_branch_roles"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), index=True, nullable=False)
    branch_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("branches.id"), index=True, nullable=False)
    role_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("roles.id"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="branch_roles")
    role = relationship("Role")

    __table_args__ = (UniqueConstraint("user_id", "branch_id", name="uq_user_branch_roles_user_branch"),)


class Student(Base):
    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(150), nullable=False)
    paternal_last_name: Mapped[str] = mapped_column(String(150), nullable=False)
    maternal_last_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("document_type", "document_number", name="uq_students_document"),
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.paternal_last_name, self.maternal_last_name]
        return " ".join(part for part in parts if part)


class StudentBranch(Base):
    """A student's membership (Alta/Baja) in one branch."""

    __tablename__ = "student_branches"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("students.id"), index=True, nullable=False)
    branch_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("branches.id"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(10), default=MEMBERSHIP_ACTIVE, nullable=False)
    admission_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (UniqueConstraint("student_id", "branch_id", name="uq_student_branches_student_branch"),)


class ClassGroup(Base):
    __tablename__ = "class_groups"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    branch_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("branches.id"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=GROUP_ACTIVE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class GroupEnrollment(Base):
    __tablename__ = "group_enrollments"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("class_groups.id"), index=True, nullable=False)
    student_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("students.id"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ENROLLMENT_ACTIVE, nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class StudentTransaction(Base):
    """Append-only Alta/Baja log entry for a student in one branch."""

    __tablename__ = "student_transactions"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("students.id"), index=True, nullable=False)
    branch_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("branches.id"), index=True, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    observation: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("users.id"), nullable=True)
    transaction_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class StudentTransfer(Base):
    __tablename__ = "student_transfers"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("students.id"), index=True, nullable=False)
    source_branch_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("branches.id"), index=True, nullable=False
    )
    target_branch_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("branches.id"), index=True, nullable=False
    )
    transfer_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TRANSFER_PENDING, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    processed_by: Mapped[uuid.UUID | None] = mapped_column(GUID(), ForeignKey("users.id"), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    removed_from_groups: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("source_branch_id <> target_branch_id", name="ck_student_transfers_distinct_branches"),
    )


Index(
    "uq_student_transfers_one_pending",
    StudentTransfer.student_id,
    unique=True,
    postgresql_where=text("status = 'pending'"),
    sqlite_where=text("status = 'pending'"),
)
Index(
    "uq_student_branches_one_active",
    StudentBranch.student_id,
    unique=True,
    postgresql_where=text("status = 'Alta'"),
    sqlite_where=text("status = 'Alta'"),
)
Index("ix_student_transfers_status_expires_at", StudentTransfer.status, StudentTransfer.expires_at)


@event.listens_for(StudentTransaction, "before_update")
def _refuse_transaction_update(mapper, connection, target):
    raise ValueError("student transactions are append-only")


@event.listens_for(StudentTransaction, "before_delete")
def _refuse_transaction_delete(mapper, connection, target):
    raise ValueError("student transactions are append-only")
