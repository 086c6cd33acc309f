"""memberships, class groups, audit log and student transfers

Revision ID: 0002_memberships_transfers
Revises: 0001_initial
Create Date: 2025-03-10 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_memberships_transfers"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "student_branches",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("student_id", GUID(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("branch_id", GUID(), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("status", sa.String(length=10), nullable=False, server_default="Alta"),
        sa.Column("admission_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("student_id", "branch_id", name="uq_student_branches_student_branch"),
    )
    op.create_index("ix_student_branches_student_id", "student_branches", ["student_id"])
    op.create_index("ix_student_branches_branch_id", "student_branches", ["branch_id"])
    op.create_index(
        "uq_student_branches_one_active",
        "student_branches",
        ["student_id"],
        unique=True,
        postgresql_where=sa.text("status = 'Alta'"),
        sqlite_where=sa.text("status = 'Alta'"),
    )

    op.create_table(
        "class_groups",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("branch_id", GUID(), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_class_groups_branch_id", "class_groups", ["branch_id"])

    op.create_table(
        "group_enrollments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("group_id", GUID(), sa.ForeignKey("class_groups.id"), nullable=False),
        sa.Column("student_id", GUID(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("enrolled_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_group_enrollments_group_id", "group_enrollments", ["group_id"])
    op.create_index("ix_group_enrollments_student_id", "group_enrollments", ["student_id"])

    op.create_table(
        "student_transactions",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("student_id", GUID(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("branch_id", GUID(), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("transaction_type", sa.String(length=10), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("observation", sa.Text(), nullable=True),
        sa.Column("user_id", GUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_student_transactions_student_id", "student_transactions", ["student_id"])
    op.create_index("ix_student_transactions_branch_id", "student_transactions", ["branch_id"])

    op.create_table(
        "student_transfers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("student_id", GUID(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("source_branch_id", GUID(), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("target_branch_id", GUID(), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("transfer_type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_by", GUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("processed_by", GUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("removed_from_groups", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "source_branch_id <> target_branch_id",
            name="ck_student_transfers_distinct_branches",
        ),
    )
    op.create_index("ix_student_transfers_student_id", "student_transfers", ["student_id"])
    op.create_index("ix_student_transfers_source_branch_id", "student_transfers", ["source_branch_id"])
    op.create_index("ix_student_transfers_target_branch_id", "student_transfers", ["target_branch_id"])
    op.create_index(
        "ix_student_transfers_status_expires_at",
        "student_transfers",
        ["status", "expires_at"],
    )
    op.create_index(
        "uq_student_transfers_one_pending",
        "student_transfers",
        ["student_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_index("uq_student_transfers_one_pending", table_name="student_transfers")
    op.drop_index("ix_student_transfers_status_expires_at", table_name="student_transfers")
    op.drop_index("ix_student_transfers_target_branch_id", table_name="student_transfers")
    op.drop_index("ix_student_transfers_source_branch_id", table_name="student_transfers")
    op.drop_index("ix_student_transfers_student_id", table_name="student_transfers")
    op.drop_table("student_transfers")
    op.drop_index("ix_student_transactions_branch_id", table_name="student_transactions")
    op.drop_index("ix_student_transactions_student_id", table_name="student_transactions")
    op.drop_table("student_transactions")
    op.drop_index("ix_group_enrollments_student_id", table_name="group_enrollments")
    op.drop_index("ix_group_enrollments_group_id", table_name="group_enrollments")
    op.drop_table("group_enrollments")
    op.drop_index("ix_class_groups_branch_id", table_name="class_groups")
    op.drop_table("class_groups")
    op.drop_index("uq_student_branches_one_active", table_name="student_branches")
    op.drop_index("ix_student_branches_branch_id", table_name="student_branches")
    op.drop_index("ix_student_branches_student_id", table_name="student_branches")
    op.drop_table("student_branches")
