import os
import sys
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time; keep the app-wide engine off the working tree and hashing cheap.
_GLOBAL_DB_DIR = tempfile.mkdtemp(prefix="strata-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_GLOBAL_DB_DIR}/app.db")
os.environ.setdefault("PASSWORD_HASH_MEMORY_COST", "1024")
os.environ.setdefault("PASSWORD_HASH_TIME_COST", "1")

from fastapi.testclient import TestClient  # noqa: E402

from strata.api.dependencies import get_db  # noqa: E402
from strata.auth.passwords import get_password_hash  # noqa: E402
from strata.config import Base  # noqa: E402
from strata.constants import Role  # noqa: E402
import strata.main as app_main  # noqa: E402
# Import the full models module so all tables register with Base metadata.
from strata.models import models as _all_models  # noqa: E402,F401
from strata.models.models import Unit, User  # noqa: E402

DEFAULT_PASSWORD = "Passw0rd1"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_session(tmp_path) -> Generator[Session, None, None]:
    """Provide a fresh SQLite database for each test."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def create_user(db_session: Session) -> Callable[..., User]:
    counter = {"value": 0}

    def _create(
        username: Optional[str] = None,
        role: Role = Role.OWNER,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        counter["value"] += 1
        username = username or f"{role.value}{counter['value']}"
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            hashed_password=get_password_hash(password),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _create


@pytest.fixture
def create_unit(db_session: Session) -> Callable[..., Unit]:
    counter = {"value": 100}

    def _create(entitlements: int = 1, owner: Optional[User] = None, unit_number: Optional[str] = None) -> Unit:
        counter["value"] += 1
        unit = Unit(
            unit_number=unit_number or str(counter["value"]),
            floor_number=counter["value"] // 100,
            unit_entitlements=entitlements,
            owner_id=owner.id if owner else None,
        )
        db_session.add(unit)
        db_session.commit()
        return unit

    return _create


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app_main.app.dependency_overrides[get_db] = lambda: db_session
    try:
        yield TestClient(app_main.app)
    finally:
        app_main.app.dependency_overrides.clear()


def fetch_csrf(client: TestClient) -> str:
    response = client.get("/auth/csrf")
    assert response.status_code == 200
    return response.json()["csrf_token"]


@pytest.fixture
def csrf_headers(client: TestClient) -> Callable[..., dict]:
    def _headers(http: Optional[TestClient] = None) -> dict:
        return {"X-CSRF-Token": fetch_csrf(http or client)}

    return _headers


@pytest.fixture
def make_client(client: TestClient) -> Callable[[], TestClient]:
    """Extra clients, each with its own cookie jar, for tests that need several users."""
    return lambda: TestClient(app_main.app)


@pytest.fixture
def login(client: TestClient) -> Callable[..., dict]:
    """Log the given user in through the real flow; returns headers carrying the CSRF token."""

    def _login(user: User, password: str = DEFAULT_PASSWORD, http: Optional[TestClient] = None) -> dict:
        http = http or client
        token = fetch_csrf(http)
        headers = {"X-CSRF-Token": token}
        response = http.post("/auth/login", json={"email": user.email, "password": password}, headers=headers)
        assert response.status_code == 200, response.text
        return headers

    return _login
