import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Ensure the API project root is on sys.path when running from repo root
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

# Settings are read at import time; point them at a throwaway database
_TEST_DB_DIR = tempfile.mkdtemp(prefix="backlog-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_DIR}/test.db")
os.environ.setdefault("STEAM_API_KEY", "test-key")

from backlog_tracker.db import Base, SessionLocal, create_schema, enable_sqlite_foreign_keys  # noqa: E402
from backlog_tracker.main import create_app  # noqa: E402
from backlog_tracker.schemas import Platform  # noqa: E402

from fakes import FakeSource  # noqa: E402


@pytest.fixture()
def steam_source() -> FakeSource:
    return FakeSource(Platform.STEAM, supports_achievements=True)


@pytest.fixture()
def epic_source() -> FakeSource:
    return FakeSource(Platform.EPIC_GAMES)


@pytest.fixture()
def app(steam_source: FakeSource, epic_source: FakeSource):
    engine = SessionLocal.kw["bind"]  # type: ignore[index]
    Base.metadata.drop_all(bind=engine)
    create_schema(engine)

    fastapi_app = create_app()
    fastapi_app.state.sources = {
        Platform.STEAM: steam_source,
        Platform.EPIC_GAMES: epic_source,
    }
    return fastapi_app


@pytest.fixture()
def client(app) -> TestClient:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db_session() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    create_schema(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()
