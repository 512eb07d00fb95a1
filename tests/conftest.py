# Imports for testing tools
import itertools
import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Import your application code
from tourbook import crud, models, schemas
from tourbook.auth import read_limiter, write_limiter
from tourbook.config import settings
from tourbook.database import Base, enable_sqlite_foreign_keys, get_db, get_redis_client


# --- Test Database Setup ---
@pytest.fixture(scope="function")
def test_engine():
    """A fresh in-memory database per test; StaticPool keeps it on one connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine):
    """Provides a database session for each test."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)()
    yield session
    session.close()


# --- Mocking External Services ---
@pytest.fixture
def redis_client():
    """Stands in for the sync Redis client used by the suspicious-activity tracker."""
    client = MagicMock()
    client.incr.return_value = 1
    return client


@pytest.fixture
def mock_limiter_backend(mocker):
    """Keeps the app lifespan from talking to a real Redis."""
    mocker.patch("tourbook.main.FastAPILimiter.init", new_callable=AsyncMock)
    fake_redis = MagicMock()
    fake_redis.aclose = AsyncMock()
    mocker.patch("tourbook.main.redis.from_url", return_value=fake_redis)
    return fake_redis


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session, redis_client, mock_limiter_backend):
    from tourbook.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    app.dependency_overrides[write_limiter] = lambda: None
    app.dependency_overrides[read_limiter] = lambda: None

    with TestClient(app) as c:
        yield c

    # Clean up overrides
    app.dependency_overrides.clear()


# --- Auth helpers ---
def create_test_token(user_id: int, role: models.UserRole) -> str:
    payload = {"sub": str(user_id), "role": role.value}
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return f"Bearer {token}"


@pytest.fixture
def auth_headers():
    """Builds an Authorization header for a stored user."""

    def _headers(user: models.User) -> dict:
        return {"Authorization": create_test_token(user.id, user.role)}

    return _headers


@pytest.fixture
def as_actor():
    def _actor(user: models.User) -> schemas.Actor:
        return schemas.Actor(id=user.id, role=user.role)

    return _actor


# --- Factories ---
@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make_user(role=models.UserRole.USER, name=None, active=True):
        n = next(counter)
        user = models.User(
            name=name or f"{role.value.replace('_', ' ').title()} {n}",
            email=f"{role.value}{n}@example.com",
            phone=f"+1555{n:07d}",
            hashed_password="not-a-real-hash",
            role=role,
            active=active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user(models.UserRole.USER, name="Alice Traveller")


@pytest.fixture
def other_user(make_user):
    return make_user(models.UserRole.USER, name="Bob Traveller")


@pytest.fixture
def guide(make_user):
    return make_user(models.UserRole.TOUR_GUIDE, name="Gina Guide")


@pytest.fixture
def other_guide(make_user):
    return make_user(models.UserRole.TOUR_GUIDE, name="Gus Guide")


@pytest.fixture
def admin(make_user):
    return make_user(models.UserRole.ADMIN, name="Ada Admin")


@pytest.fixture
def make_request(db_session):
    def _make_request(owner, status=models.RequestStatus.PENDING, guide=None, destination="Bali"):
        db_request = models.TravelRequest(
            user_id=owner.id,
            destination=destination,
            message=None,
            status=status,
            tour_guide_id=guide.id if guide else None,
        )
        db_session.add(db_request)
        db_session.commit()
        db_session.refresh(db_request)
        return db_request

    return _make_request


@pytest.fixture
def make_package(db_session):
    def _make_package(
            title="Bali Island Escape",
            seats_total=5,
            price=Decimal("100.00"),
            destination="Bali",
            active=True,
            featured=False,
    ):
        package = models.Package(
            title=title,
            slug=crud.generate_slug(title),
            destination=destination,
            price=price,
            duration_days=4,
            duration_nights=3,
            departure_days=["monday"],
            seats_total=seats_total,
            seats_available=seats_total,
            itinerary=[],
            includes=[],
            excludes=[],
            highlights=[],
            featured=featured,
            active=active,
        )
        db_session.add(package)
        db_session.commit()
        db_session.refresh(package)
        return package

    return _make_package
