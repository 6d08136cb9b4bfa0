import os
import tempfile

# CRITICAL: Set environment variables BEFORE any vconn imports
# These must be set before vconn.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="vconn-tests-"), "test_vconn.db")
os.environ["SECRET_KEY"] = "test-secret-key-1234567890"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"  # Ensure /api prefix is used in tests

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from vconn import models  # noqa: E402
from vconn.api import deps  # noqa: E402
from vconn.database import Base, SessionLocal, engine  # noqa: E402
from vconn.main import app  # noqa: E402
from vconn.services import contract_registry  # noqa: E402


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """Fresh schema per test; dependency overrides restored afterwards."""

    original_overrides = dict(app.dependency_overrides)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


_seq = {"n": 0}


def make_user(
    db,
    role: models.UserRole,
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
    address: Optional[str] = None,
    free_attempts_used: int = 0,
    cancellations_used: int = 0,
) -> models.User:
    _seq["n"] += 1
    user = models.User(
        name=name or f"{role.value.title()} {_seq['n']}",
        email=email or f"{role.value}{_seq['n']}@test.com",
        hashed_password="not-a-real-hash",
        phone="555-0100",
        role=role,
        business_name=f"{role.value.title()} Co {_seq['n']}",
        address=address,
        active=True,
        free_attempts_used=free_attempts_used,
        cancellations_used=cancellations_used,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_contract(
    db,
    wholesaler: models.User,
    *,
    product_name: str = "Tomatoes",
    daily_quantity: int = 10,
    price_per_unit: float = 5.0,
    duration_days: int = 30,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.Contract:
    return contract_registry.create(
        db,
        wholesaler_id=wholesaler.id,
        fields={
            "product_name": product_name,
            "daily_quantity": daily_quantity,
            "price_per_unit": price_per_unit,
            "duration_days": duration_days,
            "description": description,
        },
        now=now,
    )


def days_ago(n: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=n)


def stub_user(user: models.User):
    """A detached stand-in for the authenticated user, as routes see it."""

    class StubUser:
        def __init__(self):
            self.id = user.id
            self.email = user.email
            self.name = user.name
            self.active = True
            self.role = user.role

    return StubUser()


def login_as(user: models.User) -> None:
    app.dependency_overrides[deps.get_current_user] = lambda: stub_user(user)


@pytest.fixture
def wholesaler(db_session):
    return make_user(db_session, models.UserRole.wholesaler, address="12 Market Street, Pune")


@pytest.fixture
def vendor(db_session):
    return make_user(db_session, models.UserRole.vendor)
