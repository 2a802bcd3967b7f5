"""
conftest.py — Shared Test Fixtures for CourierDesk

Provides an in-memory SQLite database, a FastAPI TestClient with DB and
notifier overrides, bearer-token helpers, and factory fixtures for users
and delivery requests.

Business Rules:
- All tests run against an isolated in-memory DB (fresh schema per test)
- Auth uses real HS256 tokens signed with the test SECRET_KEY
- Notifications are captured by a RecordingNotifier, never sent
- Concurrency tests get their own file-backed SQLite store (file_store)

Called by: all test files via pytest autodiscovery
Depends on: courierdesk.models (Base), courierdesk.database (get_db), courierdesk.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing courierdesk modules
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_API_KEY"] = ""
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from courierdesk.database import get_db
from courierdesk.dependencies import create_access_token
from courierdesk.lifecycle import CLAIM_HELD_STATUSES
from courierdesk.models import Base, DeliveryRequest, User
from courierdesk.permissions import Actor
from courierdesk.services.notifier import RecordingNotifier, get_notifier

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


LOCATION_A = {"address": "12 Harbour Road", "city": "Lisbon", "country": "Portugal", "zip_code": "1100"}
LOCATION_B = {"address": "48 Rua Augusta", "city": "Porto", "country": "Portugal", "zip_code": "4000"}


def request_attrs(**overrides) -> dict:
    """Valid create-request attributes (national package, 2 kg)."""
    attrs = {
        "product_name": "Espresso machine",
        "product_description": "Boxed, unopened",
        "type": "package",
        "source": "national_store",
        "weight": 2,
        "quantity": 1,
        "shipping_type": "national",
        "pickup_location": dict(LOCATION_A),
        "delivery_location": dict(LOCATION_B),
        "preferred_contact_method": "email",
    }
    attrs.update(overrides)
    return attrs


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _make_user(db: Session, email: str, name: str, role: str, **kw) -> User:
    user = User(email=email, name=name, role=role, **kw)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def customer(db_session: Session) -> User:
    return _make_user(db_session, "carla@example.com", "Carla Customer", "customer")


@pytest.fixture()
def other_customer(db_session: Session) -> User:
    return _make_user(db_session, "oscar@example.com", "Oscar Other", "customer")


@pytest.fixture()
def agent(db_session: Session) -> User:
    return _make_user(db_session, "anna@example.com", "Anna Agent", "agent")


@pytest.fixture()
def agent_b(db_session: Session) -> User:
    return _make_user(db_session, "bruno@example.com", "Bruno Agent", "agent")


@pytest.fixture()
def admin(db_session: Session) -> User:
    return _make_user(db_session, "root@example.com", "Ada Admin", "admin")


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def make_request(db_session: Session, customer: User):
    """Factory: insert a request directly in any status (claim set when the status needs one)."""

    def _make(status: str = "pending", agent_id: str | None = None, owner: User | None = None, **kw):
        claimed = agent_id if status in CLAIM_HELD_STATUSES else None
        req = DeliveryRequest(
            customer_id=(owner or customer).id,
            status=status,
            claimed_by_agent_id=claimed,
            handled_by_agent_id=agent_id,
            **request_attrs(**kw),
        )
        db_session.add(req)
        db_session.commit()
        db_session.refresh(req)
        return req

    return _make


@pytest.fixture()
def pending_request(make_request) -> DeliveryRequest:
    return make_request()


def actor_of(user: User) -> Actor:
    return Actor.from_user(user)


def auth(user: User) -> dict:
    """Authorization header carrying a fresh token for the user."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def client(db_session: Session, notifier: RecordingNotifier) -> TestClient:
    """TestClient sharing the test session and capturing notifications."""
    from courierdesk.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ── File-backed store for concurrency tests ──────────────────────────


@pytest.fixture()
def file_store(tmp_path):
    """sessionmaker over a file-backed SQLite database shared by threads."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'courierdesk.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)
    try:
        yield factory
    finally:
        file_engine.dispose()
