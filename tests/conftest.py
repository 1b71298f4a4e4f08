import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from typing import Callable, Dict, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import finstack.infra.models  # noqa: F401  # Ensure models are registered with metadata
from finstack.app import create_app
from finstack.auth.passwords import PasswordHasher
from finstack.config import Settings
from finstack.infra.database import Base, get_db

SECRET = "unit-secret-key-0123456789abcdef0123456789"
START = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = START) -> None:
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> Settings:
    # Cheap argon2 parameters keep the suite fast.
    return Settings(
        secret_key=SECRET,
        database_url="sqlite://",
        hash_time_cost=1,
        hash_memory_cost=1024,
        hash_parallelism=1,
    )


@pytest.fixture()
def hasher(settings) -> PasswordHasher:
    return PasswordHasher(
        time_cost=settings.hash_time_cost,
        memory_cost=settings.hash_memory_cost,
        parallelism=settings.hash_parallelism,
    )


@pytest.fixture(scope="session")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    TestingSessionLocal = sessionmaker(
        bind=connection, autoflush=False, autocommit=False, expire_on_commit=False, future=True
    )
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


def _client_for(app, db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture()
def app(settings, clock):
    return create_app(settings, clock=clock)


@pytest.fixture()
def client(app, db_session):
    with _client_for(app, db_session) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(client) -> Callable[..., Tuple[str, Dict[str, str]]]:
    """Register + log in; returns (user_id, auth headers)."""

    def _make(email: str, password: str = "secret123") -> Tuple[str, Dict[str, str]]:
        created = client.post("/users", json={"email": email, "password": password})
        assert created.status_code == 201, created.text
        login = client.post("/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        return created.json()["id"], {"Authorization": f"Bearer {login.json()['token']}"}

    return _make
