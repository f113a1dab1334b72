import asyncio
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ["RECIPIENT_STORE"] = "sql"
os.environ["API_SECRET"] = ""

import app.main as main  # noqa: E402  (import after env vars are set)
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models.device_token import DeviceToken  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.credentials import DeliveryCredential  # noqa: E402
from app.services.dispatch_engine import DispatchEngine  # noqa: E402
from app.services.exceptions import (  # noqa: E402
    CredentialAcquisitionFailed,
    DeliveryAttemptFailed,
    StoreUnavailable,
)
from app.services.push_service import get_dispatch_engine  # noqa: E402
from app.services.recipient_store import RecipientRecord  # noqa: E402


class InMemoryRecipientStore:
    """Dict-backed store mimicking Firestore documents keyed by owner id."""

    def __init__(self, documents=None, max_lookup_ids: int = 10, unavailable: bool = False):
        self.documents = dict(documents or {})
        self.max_lookup_ids = max_lookup_ids
        self.unavailable = unavailable
        self.lookups = []
        self.page_cursors = []

    def lookup_by_ids(self, owner_ids):
        self._check()
        assert len(owner_ids) <= self.max_lookup_ids
        self.lookups.append(list(owner_ids))
        return [self._record(owner_id) for owner_id in owner_ids if owner_id in self.documents]

    def query_by_field(self, field, value):
        self._check()
        return [
            self._record(owner_id)
            for owner_id, document in sorted(self.documents.items())
            if document.get(field) == value
        ]

    def page_all(self, page_size, cursor=None):
        self._check()
        self.page_cursors.append(cursor)
        owner_ids = sorted(self.documents)
        if cursor is not None:
            owner_ids = [owner_id for owner_id in owner_ids if owner_id > cursor]
        page = owner_ids[:page_size]
        return [self._record(owner_id) for owner_id in page], (page[-1] if page else None)

    def _check(self):
        if self.unavailable:
            raise StoreUnavailable("Recipient store is unavailable")

    def _record(self, owner_id):
        document = self.documents[owner_id]
        return RecipientRecord(owner_id=owner_id, role=document.get("role"), tokens=document.get("fcmTokens"))


class FakeCredentialProvider:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = 0

    def acquire_delivery_credential(self) -> DeliveryCredential:
        self.calls += 1
        if self.error:
            raise self.error
        return DeliveryCredential(access_token="ya29.test-token", project_id="demo-project")


class FakeGateway:
    """Records every send and how many sends were in flight at once."""

    def __init__(self, rejected=(), broken=()):
        self.rejected = set(rejected)
        self.broken = set(broken)
        self.calls = []
        self.payloads = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, token, payload, credential):
        self.calls.append(token)
        self.payloads.append(payload)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if token in self.rejected:
                raise DeliveryAttemptFailed(token, "Requested entity was not found.", 404, "UNREGISTERED")
            if token in self.broken:
                raise RuntimeError("connection pool exploded")
            return f"projects/{credential.project_id}/messages/{token}"
        finally:
            self.in_flight -= 1


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    session.query(DeviceToken).delete()
    session.query(User).delete()
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seed_recipient(db_session):
    def _seed(owner_id: str, role: str | None = None, tokens=()):
        db_session.add(User(id=owner_id, email=f"{owner_id}@example.com", role=role))
        for token in tokens:
            db_session.add(DeviceToken(user_id=owner_id, token=token, platform="android"))
        db_session.commit()

    return _seed


@pytest.fixture()
def make_store():
    return InMemoryRecipientStore


@pytest.fixture()
def make_gateway():
    return FakeGateway


@pytest.fixture()
def fake_gateway():
    return FakeGateway()


@pytest.fixture()
def credential_provider():
    return FakeCredentialProvider()


@pytest.fixture()
def failing_credential_provider():
    return FakeCredentialProvider(error=CredentialAcquisitionFailed("Missing Firebase service account env vars"))


@pytest.fixture()
def client(db_session):
    """Provide a TestClient backed by the SQLite test database."""
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture()
def override_engine(fake_gateway, credential_provider):
    main.app.dependency_overrides[get_dispatch_engine] = lambda: DispatchEngine(credential_provider, fake_gateway)
    yield
    main.app.dependency_overrides.pop(get_dispatch_engine, None)
