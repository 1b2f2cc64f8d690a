import os
from datetime import date

import pytest

# Set a known signing key before the app is imported
os.environ["JWT_SECRET"] = "test-secret"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from document_service.app import auth, config, crud, models, schemas
from document_service.app.database import get_db
from document_service.app.lifecycle import get_today
from document_service.app.main import app
from document_service.app.storage import StoredFile, UploadHandler, get_upload_handler

TODAY = date(2025, 6, 1)


@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite database per test"""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def client(session_factory, upload_dir):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_upload_handler] = lambda: UploadHandler(str(upload_dir), config.MAX_UPLOAD_SIZE)
    app.dependency_overrides[get_today] = lambda: TODAY
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, name, email, role="user"):
    return crud.create_user(
        db, name=name, email=email, password_hash=auth.hash_password("secret123"), role=role
    )


@pytest.fixture
def alice(db):
    return make_user(db, "Alice", "alice@example.com")


@pytest.fixture
def bob(db):
    return make_user(db, "Bob", "bob@example.com")


@pytest.fixture
def admin(db):
    return make_user(db, "Admin", "admin@example.com", role="admin")


@pytest.fixture
def headers_for():
    def build(user):
        return {"Authorization": f"Bearer {auth.create_access_token(user.id)}"}
    return build


@pytest.fixture
def make_document(db):
    """Insert a document straight through the store, bypassing HTTP"""
    def build(owner, title="Doc", document_type="Contract", issue_date="2025-01-01",
              expiry_date="2026-01-01", stored: StoredFile = None, **extra):
        data = schemas.DocumentCreate(
            title=title,
            document_type=document_type,
            issue_date=issue_date,
            expiry_date=expiry_date,
            **extra
        )
        return crud.create_document(db, owner.id, data, stored)
    return build
