from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Stable directory for log files to keep tests hermetic.
_TEST_FS_ROOT = Path(tempfile.gettempdir()) / "kitreg-test-artifacts"
(_TEST_FS_ROOT / "logs").mkdir(parents=True, exist_ok=True)

ADMIN_PASSWORD = "admin-secret"

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("ADMIN_PASSWORD", ADMIN_PASSWORD)
os.environ.setdefault("LOG_DIR", str((_TEST_FS_ROOT / "logs").resolve()))
os.environ.setdefault("S3_ENDPOINT", "http://s3.test")
os.environ.setdefault("S3_BUCKET", "kitreg-test")

from db import Base, get_db  # noqa: E402  pylint: disable=wrong-import-position
import models  # noqa: E402,F401  pylint: disable=wrong-import-position


@pytest.fixture()
def db_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """A dedicated SQLite database file per test."""

    db_path = tmp_path / "test.sqlite3"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(db_engine: Engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_engine: Engine) -> Generator[TestClient, None, None]:
    """API client whose requests run against the per-test database."""

    from app import app

    TestingSession = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)

    def _override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def admin_client(client: TestClient) -> TestClient:
    response = client.post("/api/admin", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    client.headers["Authorization"] = f"Bearer {response.json()['access_token']}"
    return client


__all__ = ["ADMIN_PASSWORD", "admin_client", "client", "db_engine", "db_session"]
