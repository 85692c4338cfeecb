"""Pytest configuration and shared fixtures."""

import os
import tempfile

# Settings are read at import time; point them at throwaway resources first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="allevapp-tests-")
for _name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "SMTP_USERNAME", "SMTP_PASSWORD",
              "MICROSOFT_TENANT_ID", "MICROSOFT_CLIENT_ID", "MICROSOFT_CLIENT_SECRET", "MICROSOFT_SENDER_EMAIL"):
    os.environ[_name] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from allevapp.database import get_db
from allevapp.models import Base, Farm, Supplier
from allevapp.services.auth import create_user
from allevapp.utils.rate_limiter import limiter
from allevapp.utils.security import create_access_token

PASSWORD = "secret123"


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    limiter.enabled = False
    yield
    app.dependency_overrides = {}


@pytest.fixture
def client(db) -> TestClient:
    """Test client bound to the test database."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def auth_headers(user) -> dict:
    token = create_access_token({"sub": user.username, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    return create_user(db, full_name="Anna Admin", username="admin", password=PASSWORD,
                       role="admin", email="admin@allevapp.it")


@pytest.fixture
def manager(db):
    return create_user(db, full_name="Marco Manager", username="manager", password=PASSWORD,
                       role="manager", email="manager@allevapp.it")


@pytest.fixture
def technician(db):
    return create_user(db, full_name="Tino Tecnico", username="tecnico", password=PASSWORD,
                       role="technician", email="tecnico@allevapp.it")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture
def technician_headers(technician):
    return auth_headers(technician)


@pytest.fixture
def farm(db):
    farm = Farm(name="Cascina Nord", address="Via Roma 1, Manerbio", company="Zoogamma Spa")
    db.add(farm)
    db.commit()
    db.refresh(farm)
    return farm


@pytest.fixture
def other_farm(db):
    farm = Farm(name="Cascina Sud", address="Via Po 2, Cremona", company="So. Agr. Zooagri Srl")
    db.add(farm)
    db.commit()
    db.refresh(farm)
    return farm


@pytest.fixture
def supplier(db):
    supplier = Supplier(name="Agri Service", email="info@agriservice.it", phone="030 111222")
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier
