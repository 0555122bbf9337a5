from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Configure the application before importing it; the module-level engine is never used in tests.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_NOTIFICATION_EMAIL"] = "admin@example.com"
os.environ["ENV"] = "test"
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("SMTP_HOST", None)

from laptop_checkout.auth import create_access_token, get_password_hash, token_claims  # noqa: E402
from laptop_checkout.database import Base  # noqa: E402
from laptop_checkout.models import Laptop, User  # noqa: E402
from laptop_checkout.use_cases.checkout_lifecycle import CheckoutLifecycleHooks  # noqa: E402
from laptop_checkout.use_cases.notification_admin import NotificationQueueHooks  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class Clock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Recorder:
    """Stands in for job submission; keeps submitted ids in order."""

    def __init__(self) -> None:
        self.calls: list = []

    def __call__(self, item) -> None:
        self.calls.append(item)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def enqueued() -> Recorder:
    return Recorder()


@pytest.fixture()
def hooks(clock, enqueued) -> CheckoutLifecycleHooks:
    return CheckoutLifecycleHooks(
        enqueue_notification=enqueued,
        now_utc=clock,
        admin_email="admin@example.com",
    )


@pytest.fixture()
def queue_hooks() -> NotificationQueueHooks:
    return NotificationQueueHooks(enqueue_email=Recorder(), enqueue_overdue=Recorder())


# Hashing is slow; share one hash across all factory-made users.
_PASSWORD_HASH = get_password_hash("password123")


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(*, role: str = "interviewer", name: str | None = None, email: str | None = None) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=email or f"user{n}@example.com",
            password_hash=_PASSWORD_HASH,
            name=name or f"User {n}",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def make_laptop(db_session):
    counter = {"n": 0}

    def _make(*, unique_id: str | None = None, status: str = "available") -> Laptop:
        counter["n"] += 1
        n = counter["n"]
        laptop = Laptop(
            unique_id=unique_id or f"LAP-{n:04d}",
            serial_number=f"SN-{n:04d}",
            make="Dell",
            model="Latitude 5440",
            status=status,
        )
        db_session.add(laptop)
        db_session.commit()
        return laptop

    return _make


def _bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(token_claims(user))}"}


@pytest.fixture()
def auth_headers():
    return _bearer


class _FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    def incr(self, key: str) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    def expire(self, key: str, ttl: int) -> None:
        self.ttls[key] = ttl

    def ttl(self, key: str) -> int:
        return self.ttls.get(key, -1)


@pytest.fixture()
def fake_redis(monkeypatch):
    from laptop_checkout.routers import auth as auth_router

    fake = _FakeRedis()
    monkeypatch.setattr(auth_router, "_get_redis", lambda: fake)
    return fake


@pytest.fixture()
def api_enqueued() -> Recorder:
    return Recorder()


@pytest.fixture()
def client(session_factory, api_enqueued, queue_hooks, fake_redis):
    from fastapi.testclient import TestClient

    from laptop_checkout.database import get_db
    from laptop_checkout.main import app
    from laptop_checkout.routers.checkouts import get_lifecycle_hooks
    from laptop_checkout.routers.notifications import get_notification_queue_hooks
    from laptop_checkout.services.checkout_rules import now_utc

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_lifecycle_hooks] = lambda: CheckoutLifecycleHooks(
        enqueue_notification=api_enqueued,
        now_utc=now_utc,
        admin_email="admin@example.com",
    )
    app.dependency_overrides[get_notification_queue_hooks] = lambda: queue_hooks
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
