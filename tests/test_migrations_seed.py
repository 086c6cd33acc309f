import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, func, inspect, select
from sqlalchemy.orm import sessionmaker

from app.escolastica.db.models import Role, User
from app.escolastica.db.seed import run_seed


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def test_migrations_apply(tmp_path: Path):
    db_path = tmp_path / "migrations.db"
    database_url = f"sqlite+pysqlite:///{db_path}"
    _run_migrations(database_url)

    engine = create_engine(database_url, future=True)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    assert {
        "users",
        "branches",
        "roles",
        "user_branch_roles",
        "students",
        "student_branches",
        "class_groups",
        "group_enrollments",
        "student_transactions",
        "student_transfers",
    } <= tables

    transfer_indexes = {index["name"]: index for index in inspector.get_indexes("student_transfers")}
    assert transfer_indexes["uq_student_transfers_one_pending"]["unique"]
    membership_indexes = {index["name"]: index for index in inspector.get_indexes("student_branches")}
    assert membership_indexes["uq_student_branches_one_active"]["unique"]
    engine.dispose()


def test_seed_is_idempotent(tmp_path: Path):
    db_path = tmp_path / "seed.db"
    database_url = f"sqlite+pysqlite:///{db_path}"
    _run_migrations(database_url)

    engine = create_engine(database_url, future=True)
    SessionLocal = sessionmaker(bind=engine, future=True)

    with SessionLocal() as db:
        run_seed(db)
        roles_count = db.scalar(select(func.count()).select_from(Role))
        users_count = db.scalar(select(func.count()).select_from(User))

        run_seed(db)
        assert db.scalar(select(func.count()).select_from(Role)) == roles_count == 2
        assert db.scalar(select(func.count()).select_from(User)) == users_count == 1

        coordinator = db.execute(select(Role).where(Role.name == "Coordinator")).scalars().one()
        assistant = db.execute(select(Role).where(Role.name == "Assistant")).scalars().one()
        assert coordinator.can_manage_transfers is True
        assert assistant.can_manage_transfers is False
        admin = db.execute(select(User)).scalars().one()
        assert admin.user_type == "admin"
    engine.dispose()
