import os
from typing import Generator

# Configure before the app module reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-for-the-storefront-suite-0123"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront import crud, models
from storefront.db import Base
from storefront.errors import CollaboratorError
from storefront.main import app, get_db
from storefront.payments import get_payment_gateway

API = "/api/v1"


class FakeGateway:
    """Stands in for Braintree; records every charge it is asked to make."""

    def __init__(self):
        self.decline = False
        self.charges = []

    def client_token(self):
        return "fake-client-token"

    def charge(self, amount, nonce):
        self.charges.append((amount, nonce))
        if self.decline:
            raise CollaboratorError("Do Not Honor", message="Payment failed")
        return {
            "success": True,
            "transaction_id": f"txn-{len(self.charges)}",
            "status": "submitted_for_settlement",
            "amount": str(amount),
        }


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def gateway():
    return FakeGateway()


@pytest.fixture(scope="function")
def client(db_session, gateway):
    # Override dependencies to use the same session and the fake gateway
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def user_payload(email, name="Jane Doe", password="secret1"):
    return {
        "name": name,
        "email": email,
        "password": password,
        "phone": "555-0100",
        "address": "1 Main St",
        "answer": "blue",
    }


@pytest.fixture
def sign_up(client, db_session):
    """Register a user (optionally promoted to a role) and return auth headers."""

    def _sign_up(email, role=models.Role.user, password="secret1"):
        r = client.post(f"{API}/auth/register", json=user_payload(email, password=password))
        assert r.status_code == 201, r.text
        if role != models.Role.user:
            crud.update_user_role(db_session, email, role)
        r = client.post(f"{API}/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return {"authorization": r.json()["data"]["token"]}

    return _sign_up


@pytest.fixture
def admin_headers(sign_up):
    return sign_up("admin@example.com", role=models.Role.admin)


@pytest.fixture
def user_headers(sign_up):
    return sign_up("shopper@example.com")
