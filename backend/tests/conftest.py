"""Pytest configuration and shared fixtures."""

import os
from datetime import date
from decimal import Decimal

# Settings are read at import time, so the environment is prepared first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from estatedesk.core.config import settings
from estatedesk.core.database import Base, get_db, init_db, make_engine
from estatedesk.main import app
from estatedesk.models import Role
from estatedesk.schemas import CustomerCreate, PropertyCreate
from estatedesk.services.customer_service import CustomerService
from estatedesk.services.property_service import PropertyService
from estatedesk.services.user_service import seed_super_admin

test_engine = make_engine("sqlite://", poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Stored files go to a per-test directory."""
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture(scope="function")
def db():
    """Session on a fresh in-memory schema with the super admin seeded."""
    init_db(bind=test_engine)
    session = TestingSessionLocal()
    seed_super_admin(session)

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db

    yield session

    session.close()
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def other_session(db):
    """A second session on the same database, standing in for a concurrent request."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def admin_headers(client):
    response = client.post(
        "/api/v1/login",
        json={"email": settings.SUPER_ADMIN_EMAIL, "password": settings.SUPER_ADMIN_PASSWORD},
    )
    assert response.status_code == 200, response.text
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def role(db):
    role = Role(role_name="Accountant", status=True)
    db.add(role)
    db.commit()
    return role


@pytest.fixture
def vendor(db):
    customer = CustomerService(db).create(
        CustomerCreate(name="Suresh Patel", phone="9000000001", type="SELLER")
    )
    db.commit()
    return customer


@pytest.fixture
def buyer(db):
    customer = CustomerService(db).create(
        CustomerCreate(name="Anita Sharma", phone="9000000002", type="BUYER")
    )
    db.commit()
    return customer


@pytest.fixture
def make_property(db, vendor):
    """Create and commit a purchased property: total = rate x quantity + gst + other expenses."""

    def _make(rate="1000000", gst="5", paid="0", **extra):
        values = dict(
            date=date.today(),
            title="Plot 14, Green Valley",
            category="LAND",
            seller_id=vendor.id,
            invoice_no="PUR-001",
            quantity=Decimal("1"),
            rate=Decimal(rate),
            gst_percentage=Decimal(gst),
            paid_amount=Decimal(paid),
        )
        values.update(extra)
        prop = PropertyService(db).create(PropertyCreate(**values))
        db.commit()
        db.refresh(prop)
        return prop

    return _make
