"""
conftest.py — Shared test fixtures for the triage service

Provides an in-memory SQLite database, FastAPI TestClients with auth
overrides, and factory fixtures for users and reports.

Business Rules:
- All tests run against an isolated in-memory DB
- Auth is overridden so tests don't need a login session
- Each test function gets a fresh DB (tables created and dropped per test)

Called by: all test files via pytest autodiscovery
Depends on: triage.models (Base), triage.database (get_db), triage.dependencies
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing triage modules
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from triage.models import Base, BugReport, ReportMessage, User

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default; turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


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


def _make_user(db: Session, email: str, name: str, role: str = "user") -> User:
    user = User(
        email=email,
        name=name,
        role=role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """A regular participant who files reports."""
    return _make_user(db_session, "reporter@example.com", "Rita Reporter")


@pytest.fixture()
def other_user(db_session: Session) -> User:
    return _make_user(db_session, "other@example.com", "Oscar Other")


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    """A staff member."""
    return _make_user(db_session, "admin@example.com", "Ada Admin", role="admin")


@pytest.fixture()
def second_admin(db_session: Session) -> User:
    return _make_user(db_session, "support@example.com", "Sam Support", role="admin")


def _client_for(db_session: Session, user: User):
    from triage.database import get_db
    from triage.dependencies import require_admin, require_user
    from triage.main import app

    def _override_db():
        yield db_session

    def _override_user():
        return user

    def _override_admin():
        if not user.is_admin:
            raise HTTPException(403, "Admin access required")
        return user

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[require_user] = _override_user
    app.dependency_overrides[require_admin] = _override_admin
    return app


@pytest.fixture()
def client(db_session: Session, test_user: User) -> TestClient:
    """TestClient authenticated as the regular reporter."""
    app = _client_for(db_session, test_user)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_client(db_session: Session, admin_user: User) -> TestClient:
    """TestClient authenticated as staff."""
    app = _client_for(db_session, admin_user)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def sample_report(db_session: Session, test_user: User) -> BugReport:
    """An open report owned by test_user with its `submitted` system message."""
    now = datetime.now(timezone.utc)
    report = BugReport(
        user_id=test_user.id,
        report_type="bug",
        title="Login button missing",
        description="Cannot see login CTA on mobile",
        severity="high",
        category="ui",
        page_url="https://app.example.com/login",
        user_agent="Mozilla/5.0 (iPhone)",
        reporter_name=test_user.name,
        reporter_email=test_user.email,
        status="open",
        created_at=now,
        updated_at=now,
    )
    db_session.add(report)
    db_session.flush()
    db_session.add(ReportMessage(
        report_id=report.id,
        author_name="System",
        is_system=True,
        is_admin=False,
        system_type="submitted",
        body="Bug report submitted.",
        created_at=now,
    ))
    db_session.commit()
    db_session.refresh(report)
    return report
