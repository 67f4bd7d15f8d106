"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-hr-approvals-tests")
os.environ.setdefault("APP_ENV", "local")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hr_approvals.main import app  # noqa: E402
from hr_approvals.db.base import Base  # noqa: E402
from hr_approvals.core.deps import get_db, get_notifier, get_real_clock  # noqa: E402
from hr_approvals.core.security import create_access_token, hash_password  # noqa: E402
from hr_approvals.models import Employee, Role, RoleModel  # noqa: E402
from hr_approvals.services.collaborators import Collaborators  # noqa: E402
from hr_approvals.services.notification_service import Notifier  # noqa: E402
from hr_approvals.services.permission_service import RoleAuthorizer  # noqa: E402
from hr_approvals.services.time_provider import FixedTimeProvider  # noqa: E402


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Monday morning, well inside any window the tests create
BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    """Keeps every notice in memory"""

    def __init__(self):
        self.notices = []

    def notify(self, notice):
        self.notices.append(notice)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedTimeProvider(BASE_TIME)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ctx(db, clock, notifier):
    return Collaborators(clock=clock, authorizer=RoleAuthorizer(db), notifier=notifier)


@pytest.fixture
def test_roles(db):
    """Roles with the default authority ranks"""
    roles = [
        RoleModel(name="ADMIN", role_rank=1, is_active=True),
        RoleModel(name="MD", role_rank=2, is_active=True),
        RoleModel(name="VP", role_rank=3, is_active=True),
        RoleModel(name="MANAGER", role_rank=4, is_active=True),
        RoleModel(name="HR", role_rank=5, is_active=True),
        RoleModel(name="EMPLOYEE", role_rank=6, is_active=True),
    ]
    db.add_all(roles)
    db.commit()
    return roles


@pytest.fixture
def make_employee(db, test_roles):
    """Factory creating committed employees"""
    counter = {"n": 0}

    def _make(name=None, role=Role.EMPLOYEE, active=True, password="testpass123"):
        counter["n"] += 1
        employee = Employee(
            emp_code=f"EMP{counter['n']:03d}",
            name=name or f"Employee {counter['n']}",
            role=role.value if isinstance(role, Role) else role,
            password_hash=hash_password(password),
            active=active,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee

    return _make


@pytest.fixture
def admin(make_employee):
    return make_employee("Admin", Role.ADMIN)


@pytest.fixture
def hr_user(make_employee):
    return make_employee("HR Officer", Role.HR)


@pytest.fixture
def client(db, clock, notifier):
    """Test client fixture with database, clock and notifier overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_real_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(employee: Employee) -> dict:
    """Bearer header for an employee"""
    token = create_access_token({"sub": str(employee.id), "emp_code": employee.emp_code, "role": employee.role})
    return {"Authorization": f"Bearer {token}"}
