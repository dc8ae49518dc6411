from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient

from accounts import create_user
from database import Base, SessionLocal, engine
from dependencies import create_access_token
from main import app
from models import Role
from schemas import UserRegister

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(email: str, role: Role = Role.STUDENT, name: str = "Test User", password: str = PASSWORD):
        return create_user(db, UserRegister(email=email, password=password, name=name, role=role))
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("coach@example.com", Role.ADMIN, name="Head Coach")


@pytest.fixture
def student(make_user):
    return make_user("ana@example.com", name="Ana Souza")


@pytest.fixture
def headers_for():
    def _headers(user) -> dict:
        token = create_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture
def student_headers(student, headers_for):
    return headers_for(student)
