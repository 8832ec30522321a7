"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of bookswap.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bookswap.config import BookSwapConfig  # noqa: E402
from bookswap.database.models import Base, SubscriptionStatus, User  # noqa: E402
from bookswap.services.notification_service import NotificationDispatcher  # noqa: E402


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all BookSwap tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in the async routes).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> BookSwapConfig:
    return BookSwapConfig(
        app_name="BooksSwap",
        app_url="https://booksswap.test",
        frontend_url="http://localhost:5000",
        email_from="hello@booksswap.test",
    )


@pytest.fixture
def notifier():
    """A mock dispatcher; assert on ``notify`` calls."""
    return MagicMock(spec=NotificationDispatcher)


def make_user(
    engine: Engine,
    *,
    name: str = "Ann",
    email: str | None = None,
    postcode: str = "SW1A1AA",
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    swaps: int = 0,
) -> str:
    """Insert a user directly and return its id."""
    with Session(engine) as session:
        user = User(
            name=name,
            email=email or f"{name.lower()}@example.com",
            postcode=postcode,
            subscription_status=status.value,
            swaps=swaps,
        )
        session.add(user)
        session.commit()
        return user.id


def make_token(sub: str) -> str:
    """Create a user JWT.  Usable from any test module."""
    import jwt

    from bookswap.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": sub}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
