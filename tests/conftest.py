"""Shared test fixtures for all tests."""
import os
import tempfile
from dataclasses import replace
from pathlib import Path

# Settings are read at import time, so the environment has to be in place first
_TEST_DIR = Path(tempfile.mkdtemp(prefix="vestitus-tests-"))
_DB_FILE = _TEST_DIR / "test.db"
os.environ.update({
    "DATABASE_URL": f"sqlite+aiosqlite:///{_DB_FILE}",
    "ENVIRONMENT": "test",
    "JWT_SECRET_KEY": "test-secret-key",
    "BCRYPT_ROUNDS": "4",
    "RATE_LIMIT_ENABLED": "false",
    "EMAIL_ENABLED": "false",
    "LOG_DIR": str(_TEST_DIR / "logs"),
    "GOOGLE_CLIENT_ID": "test-google-client-id",
    "APPLE_BUNDLE_ID": "com.vestitus.test",
})

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from app.core.database import Base
from app.email_service import EmailService, get_email_service
from app.error_handlers import UnauthorizedError
from app.main import app
from app.models import User, Product
from app.services.oauth import OAuthVerifiers, VerifiedIdentity, get_oauth_verifiers


class RecordingEmailService(EmailService):
    """Keeps sent emails in memory; can be told to blow up like a dead SMTP server."""

    def __init__(self):
        super().__init__(enabled=False)
        self.sent = []
        self.fail = False

    def send_email(self, to_emails, subject, html_body, text_body=None):
        if self.fail:
            raise ConnectionRefusedError("SMTP server unavailable")
        self.sent.append({"to": list(to_emails), "subject": subject, "text": text_body})
        return True

    def subjects_for(self, email):
        return [m["subject"] for m in self.sent if email in m["to"]]


class FakeVerifier:
    """Stands in for a provider: tokens must be registered up front."""

    def __init__(self, provider):
        self.provider = provider
        self.identities = {}

    def register(self, token, provider_id, email=None, full_name=None, profile_picture=None):
        self.identities[token] = VerifiedIdentity(
            provider=self.provider,
            provider_id=provider_id,
            email=email,
            full_name=full_name,
            profile_picture=profile_picture,
        )

    async def verify(self, token, hints=None):
        identity = self.identities.get(token)
        if identity is None:
            raise UnauthorizedError(f"Failed to verify {self.provider.capitalize()} token")
        # Same rule as the real verifier: a hint only fills a missing email
        if not identity.email and hints is not None and hints.email:
            identity = replace(identity, email=hints.email, email_verified=False)
        return identity


@pytest.fixture(scope="session")
def sync_engine():
    """Synchronous engine on the same SQLite file the app uses."""
    engine = create_engine(f"sqlite:///{_DB_FILE}", connect_args={"check_same_thread": False})
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(sync_engine):
    """Create fresh tables for each test and hand out a session for seeding/inspection."""
    Base.metadata.create_all(bind=sync_engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture
def email_outbox():
    return RecordingEmailService()


@pytest.fixture
def google_verifier():
    return FakeVerifier("google")


@pytest.fixture
def apple_verifier():
    return FakeVerifier("apple")


@pytest.fixture(scope="function")
def client(test_db, email_outbox, google_verifier, apple_verifier):
    """Create a test client with the email and OAuth collaborators replaced."""
    verifiers = OAuthVerifiers(google=google_verifier, apple=apple_verifier)
    app.dependency_overrides[get_email_service] = lambda: email_outbox
    app.dependency_overrides[get_oauth_verifiers] = lambda: verifiers

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_products(test_db):
    """Create sample products for favourites."""
    products = [
        Product(name="Elegant Summer Dress", category="Dresses", price=Decimal("89.99"), discount_percent=15),
        Product(name="Linen Shirt", category="Shirts", price=Decimal("45.00")),
        Product(name="Wool Coat", category="Outerwear", price=Decimal("210.50")),
    ]
    test_db.add_all(products)
    test_db.commit()
    for p in products:
        test_db.refresh(p)
    return products


# Helpers

API = "/api/v1"


def register_user(client, email="jane@x.com", password="secret1", full_name="Jane"):
    return client.post(f"{API}/auth/register", json={
        "full_name": full_name,
        "email": email,
        "password": password,
    })


def login_user(client, email="jane@x.com", password="secret1"):
    return client.post(f"{API}/auth/login", json={"email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def load_user(test_db, email):
    """Read the user as currently stored, bypassing the session's cached copy."""
    test_db.expire_all()
    return test_db.execute(select(User).where(User.email == email)).scalar_one_or_none()


@pytest.fixture
def registered_user(client):
    response = register_user(client)
    assert response.status_code == 201
    return response.json()["user"]


@pytest.fixture
def auth_headers(client, registered_user):
    response = login_user(client)
    assert response.status_code == 200
    return bearer(response.json()["access_token"])
