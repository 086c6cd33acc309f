import importlib
import os
import uuid
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url


def _create_postgres_test_database(base_url: str):
    url = make_url(base_url)
    db_name = f"test_{uuid.uuid4().hex}"
    admin_url = url.set(database="postgres")

    engine = create_engine(admin_url, isolation_level="AUTOCOMMIT", future=True)
    with engine.connect() as conn:
        conn.execute(text(f'CREATE DATABASE "{db_name}"'))
    engine.dispose()

    def cleanup() -> None:
        drop_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT", future=True)
        with drop_engine.connect() as conn:
            conn.execute(
                text("SELECT pg_terminate_backend(pid) FROM pg_stat_activity WHERE datname = :db_name"),
                {"db_name": db_name},
            )
            conn.execute(text(f'DROP DATABASE IF EXISTS "{db_name}"'))
        drop_engine.dispose()

    return url.set(database=db_name).render_as_string(hide_password=False), cleanup


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    os.environ["SECRET_KEY"] = "test-secret"

    import app.escolastica.core.config as config
    import app.escolastica.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


@pytest.fixture()
def client(tmp_path: Path):
    database_url = os.getenv("DATABASE_URL", "")
    cleanup = None

    if database_url.startswith("postgres"):
        database_url, cleanup = _create_postgres_test_database(database_url)
    else:
        db_path = tmp_path / "test.db"
        database_url = f"sqlite+pysqlite:///{db_path}"

    _run_migrations(database_url)
    app, session = _setup_app(database_url)

    with TestClient(app) as client:
        yield client

    session.engine.dispose()
    if cleanup:
        cleanup()


@pytest.fixture()
def db_session(client):
    from app.escolastica.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
