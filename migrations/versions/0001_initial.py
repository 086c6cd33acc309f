"""initial: users, branches, roles, students

Revision ID: 0001_initial
Revises:
Create Date: 2025-03-03 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
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
        "users",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("user_type", sa.String(length=50), nullable=False, server_default="staff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "branches",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("code", name="uq_branches_code"),
    )

    op.create_table(
        "roles",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("can_manage_transfers", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "user_branch_roles",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("user_id", GUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("branch_id", GUID(), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("role_id", GUID(), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "branch_id", name="uq_user_branch_roles_user_branch"),
    )
    op.create_index("ix_user_branch_roles_user_id", "user_branch_roles", ["user_id"])
    op.create_index("ix_user_branch_roles_branch_id", "user_branch_roles", ["branch_id"])

    op.create_table(
        "students",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("document_type", sa.String(length=20), nullable=False),
        sa.Column("document_number", sa.String(length=50), nullable=False),
        sa.Column("first_name", sa.String(length=150), nullable=False),
        sa.Column("paternal_last_name", sa.String(length=150), nullable=False),
        sa.Column("maternal_last_name", sa.String(length=150), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("document_type", "document_number", name="uq_students_document"),
    )
    op.create_index("ix_students_document_number", "students", ["document_number"])


def downgrade() -> None:
    op.drop_index("ix_students_document_number", table_name="students")
    op.drop_table("students")
    op.drop_index("ix_user_branch_roles_branch_id", table_name="user_branch_roles")
    op.drop_index("ix_user_branch_roles_user_id", table_name="user_branch_roles")
    op.drop_table("user_branch_roles")
    op.drop_table("roles")
    op.drop_table("branches")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
