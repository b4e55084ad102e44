import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "testing"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["ADMIN_USER"] = "owner@example.com"
os.environ["ADMIN_PASSWORD"] = "barber-secret"
os.environ["CRON_TOKEN"] = "test-cron-token"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
# scenario dates fall on Mondays; keep every weekday open unless a test closes one
os.environ["BOOKING_CLOSED_WEEKDAYS"] = ""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from barbershop.main import app
from barbershop.api.deps import get_dispatcher, get_inbound_enqueuer, get_notifier
from barbershop.core.clock import booking_timezone
from barbershop.core.config import settings
from barbershop.core.db import Base, get_db
from barbershop.core.errors import DispatchFailed
from barbershop.services.ledger import BookingLedger
from barbershop.services.notifications import NotificationDispatcher

# Test database
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


def local(year, month, day, hour=0, minute=0):
    """Aware datetime in the booking timezone"""
    return datetime(year, month, day, hour, minute, tzinfo=booking_timezone())


def utc_naive(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class FakeGateway:
    """Records outgoing SMS instead of calling the gateway"""

    def __init__(self):
        self.messages = []
        self.failing = set()

    def send(self, phone, text):
        if phone in self.failing:
            raise DispatchFailed("gateway down")
        self.messages.append((phone, text))


class NotificationRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, phone, kind, payload):
        self.calls.append((phone, kind, payload))

    def kinds(self):
        return [kind for _, kind, _ in self.calls]

    def last(self, kind):
        for call in reversed(self.calls):
            if call[1] == kind:
                return call
        return None


@pytest.fixture(scope="function")
def test_db():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifications():
    return NotificationRecorder()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher(gateway):
    return NotificationDispatcher(gateway=gateway)


@pytest.fixture
def ledger(test_db, notifications):
    return BookingLedger(test_db, notify=notifications)


@pytest.fixture
def test_account(monkeypatch):
    monkeypatch.setattr(settings, "TEST_PHONE_NUMBERS", "0501234567")
    monkeypatch.setattr(settings, "TEST_VERIFICATION_CODE", "123456")
    return "0501234567"


@pytest.fixture(scope="function")
def client(test_db, notifications, dispatcher):
    """Create test client with test database"""
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    def run_inbound_now(from_phone, body):
        dispatcher.handle_inbound_reply(
            BookingLedger(test_db, notify=notifications), from_phone, body
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifications
    app.dependency_overrides[get_inbound_enqueuer] = lambda: run_inbound_now
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
