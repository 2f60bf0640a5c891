from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from koperasi.core.config import settings
from koperasi.db.base import build_engine, get_db
from koperasi.main import app
from koperasi.models import Base
from koperasi.models.member import Member
from koperasi.services import member as member_service


@pytest.fixture(autouse=True)
def _audit_logs_in_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "LOGS_DIR", str(tmp_path / "logs"))


@pytest.fixture
def engine(tmp_path: Path):
    eng = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def member(db: Session) -> Member:
    return member_service.register_member(db, member_number="AGT-0001", name="Siti Rahma", nik="3171010101800001")
