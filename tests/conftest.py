"""
Shared test fixtures.

Every test that touches the database gets its own SQLite file under
tmp_path, created through the same engine/session factory the app uses.
"""

import os

import pytest

# Required settings so AppSettings() can be instantiated anywhere in tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "t" * 64)

from config import DatabaseSettings  # noqa: E402
from helpers import TEST_PASSWORD, FakeEmailProvider, sqlite_url  # noqa: E402
from infrastructure.attempts.memory import InMemoryAttemptCounter  # noqa: E402
from infrastructure.database import (  # noqa: E402
    create_engine,
    create_session_factory,
    create_tables,
)
from repositories.user_repository import UserRepository  # noqa: E402
from shared.crypto import hash_password  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(DatabaseSettings(database_url=sqlite_url(tmp_path)))
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session


@pytest.fixture
def email_provider():
    return FakeEmailProvider()


@pytest.fixture
def attempt_counter():
    return InMemoryAttemptCounter()


@pytest.fixture
async def user(session):
    """An unverified user whose password is TEST_PASSWORD."""
    return await UserRepository(session).create(
        email="alice@example.com",
        username="alice",
        password_hash=hash_password(TEST_PASSWORD),
    )
