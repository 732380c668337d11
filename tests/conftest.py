import importlib
import os
from contextlib import nullcontext
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config

from tests.db_utils import scratch_postgres_database


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url

    import app.inventory.core.config as config
    import app.inventory.db.session as session
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
    if database_url.startswith("postgres"):
        database = scratch_postgres_database(database_url)
    else:
        database = nullcontext(f"sqlite+pysqlite:///{tmp_path / 'test.db'}")

    with database as url:
        _run_migrations(url)
        app, session = _setup_app(url)
        with TestClient(app) as client:
            yield client
        session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.inventory.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
