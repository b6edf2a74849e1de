# backend/tests/conftest.py
"""
Pytest configuration for the coaching API.

Every test gets a fresh in-memory sqlite database and a fake Stripe: the
SDK calls the services make are patched so nothing leaves the process.
"""

import os
import sys

# CRITICAL: Set test configuration BEFORE any app imports!
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_coaching"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_coaching"
os.environ["STRIPE_PLATFORM_FEE_PERCENTAGE"] = "15"

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from itertools import count
from types import SimpleNamespace
from typing import Any, Dict, Optional
from unittest.mock import patch

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import stripe

from app.api.dependencies.database import get_db as get_request_db
from app.auth import create_access_token
from app.core.enums import RoleName
from app.database import Base, get_db
import app.models  # noqa: F401  registers every table on Base.metadata
from app.main import fastapi_app as app
from app.models.user import User


class FakeStripe:
    """In-memory stand-in for the PaymentIntent and Price endpoints."""

    def __init__(self) -> None:
        self.intents: Dict[str, SimpleNamespace] = {}
        self.prices: Dict[str, SimpleNamespace] = {}
        self.idempotency_keys: list[str] = []
        self._ids = count(1)

    def create_intent(self, **params: Any) -> SimpleNamespace:
        self.idempotency_keys.append(params.pop("idempotency_key", ""))
        intent_id = f"pi_test_{next(self._ids)}"
        intent = SimpleNamespace(
            id=intent_id,
            status="requires_payment_method",
            amount=params["amount"],
            currency=params["currency"],
            capture_method=params.get("capture_method"),
            metadata=params.get("metadata", {}),
            client_secret=f"{intent_id}_secret_test",
            last_payment_error=None,
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id: str, **_: Any) -> SimpleNamespace:
        if intent_id not in self.intents:
            raise stripe.InvalidRequestError(f"No such payment_intent: '{intent_id}'", "id")
        return self.intents[intent_id]

    def capture_intent(self, intent_id: str, idempotency_key: Optional[str] = None) -> SimpleNamespace:
        intent = self.retrieve_intent(intent_id)
        intent.status = "succeeded"
        return intent

    def cancel_intent(self, intent_id: str, idempotency_key: Optional[str] = None) -> SimpleNamespace:
        intent = self.retrieve_intent(intent_id)
        intent.status = "canceled"
        return intent

    def create_price(self, **params: Any) -> SimpleNamespace:
        price = SimpleNamespace(id=f"price_test_{next(self._ids)}", active=True, **params)
        self.prices[price.id] = price
        return price

    def modify_price(self, price_id: str, **params: Any) -> SimpleNamespace:
        price = self.prices[price_id]
        for key, value in params.items():
            setattr(price, key, value)
        return price

    def client_confirms(self, intent_id: str) -> SimpleNamespace:
        """What happens when the client completes Stripe Elements."""
        intent = self.intents[intent_id]
        intent.status = "requires_capture"
        return intent


@pytest.fixture(autouse=True)
def stripe_mock():
    """Patch the Stripe SDK for every test."""
    fake = FakeStripe()
    patches = [
        patch.object(stripe.PaymentIntent, "create", side_effect=fake.create_intent),
        patch.object(stripe.PaymentIntent, "retrieve", side_effect=fake.retrieve_intent),
        patch.object(stripe.PaymentIntent, "capture", side_effect=fake.capture_intent),
        patch.object(stripe.PaymentIntent, "cancel", side_effect=fake.cancel_intent),
        patch.object(stripe.Price, "create", side_effect=fake.create_price),
        patch.object(stripe.Price, "modify", side_effect=fake.modify_price),
    ]
    for p in patches:
        p.start()
    yield fake
    for p in patches:
        p.stop()


@pytest.fixture(scope="function")
def db():
    """Create a new in-memory database and session for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def client(db: Session):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_request_db] = override_get_db

    # Don't use context manager - create directly
    test_client = TestClient(app)

    yield test_client

    # Cleanup
    app.dependency_overrides.clear()
    test_client.close()


def _make_user(db: Session, email: str, role: RoleName, first_name: str, **kwargs: Any) -> User:
    user = User(
        email=email,
        first_name=first_name,
        last_name="Tester",
        role=role.value,
        **kwargs,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def test_client_user(db: Session) -> User:
    return _make_user(db, "client@example.com", RoleName.CLIENT, "Casey")


@pytest.fixture
def test_other_client(db: Session) -> User:
    return _make_user(db, "client2@example.com", RoleName.CLIENT, "Robin")


@pytest.fixture
def test_coach(db: Session) -> User:
    return _make_user(db, "coach@example.com", RoleName.COACH, "Morgan")


@pytest.fixture
def test_other_coach(db: Session) -> User:
    return _make_user(db, "coach2@example.com", RoleName.COACH, "Jordan")


@pytest.fixture
def test_admin(db: Session) -> User:
    return _make_user(db, "admin@example.com", RoleName.ADMIN, "Alex")


def _headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers_client(test_client_user: User) -> dict:
    return _headers_for(test_client_user)


@pytest.fixture
def auth_headers_other_client(test_other_client: User) -> dict:
    return _headers_for(test_other_client)


@pytest.fixture
def auth_headers_coach(test_coach: User) -> dict:
    return _headers_for(test_coach)


@pytest.fixture
def auth_headers_other_coach(test_other_coach: User) -> dict:
    return _headers_for(test_other_coach)


@pytest.fixture
def auth_headers_admin(test_admin: User) -> dict:
    return _headers_for(test_admin)
