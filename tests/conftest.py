"""Shared pytest fixtures.

Services run against mongomock wrapped in a thin async facade that mirrors
the parts of the pymongo async API the services use. Every call yields to
the event loop before touching the store so that coroutines started with
asyncio.gather interleave between database operations, while each single
operation stays atomic like it is on a real server.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import mongomock
import pytest
from bson.binary import UUID_SUBTYPE, Binary

from schoolportal.app import App
from schoolportal.config import Config
from schoolportal.core.core import Core
from schoolportal.core.modules.user.models import User, UserRole

ADMIN_PASSWORD = "admin-password"
DEFAULT_PASSWORD = "password123"

CLOCK_MODULES = [
    "schoolportal.core.modules.badge.service",
    "schoolportal.core.modules.qr.service",
    "schoolportal.core.modules.session.service",
]


def to_bson(value: Any) -> Any:
    """Encode UUIDs the way uuidRepresentation="standard" does."""
    if isinstance(value, UUID):
        return Binary.from_uuid(value)
    if isinstance(value, dict):
        return {k: to_bson(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_bson(v) for v in value]
    return value


def from_bson(value: Any) -> Any:
    if isinstance(value, Binary) and value.subtype == UUID_SUBTYPE:
        return value.as_uuid()
    if isinstance(value, dict):
        return {k: from_bson(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_bson(v) for v in value]
    return value


class AsyncMockCursor:
    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    def __aiter__(self) -> "AsyncMockCursor":
        return self

    async def __anext__(self) -> dict[str, Any]:
        await asyncio.sleep(0)
        try:
            return from_bson(next(self._cursor))
        except StopIteration:
            raise StopAsyncIteration from None


class AsyncMockCollection:
    def __init__(self, collection: mongomock.Collection) -> None:
        self._collection = collection

    async def create_index(self, keys: Any, **kwargs: Any) -> str:
        await asyncio.sleep(0)
        return self._collection.create_index(keys, **kwargs)

    async def insert_one(self, document: dict[str, Any]) -> Any:
        await asyncio.sleep(0)
        return self._collection.insert_one(to_bson(document))

    async def find_one(self, filter: dict[str, Any] | None = None) -> dict[str, Any] | None:  # noqa: A002
        await asyncio.sleep(0)
        return from_bson(self._collection.find_one(to_bson(filter or {})))

    def find(self, filter: dict[str, Any] | None = None) -> AsyncMockCursor:  # noqa: A002
        return AsyncMockCursor(self._collection.find(to_bson(filter or {})))

    async def find_one_and_update(self, filter: dict[str, Any], update: dict[str, Any], **kwargs: Any) -> Any:  # noqa: A002
        await asyncio.sleep(0)
        return from_bson(self._collection.find_one_and_update(to_bson(filter), to_bson(update), **kwargs))

    async def update_one(self, filter: dict[str, Any], update: dict[str, Any]) -> Any:  # noqa: A002
        await asyncio.sleep(0)
        return self._collection.update_one(to_bson(filter), to_bson(update))

    async def delete_one(self, filter: dict[str, Any]) -> Any:  # noqa: A002
        await asyncio.sleep(0)
        return self._collection.delete_one(to_bson(filter))

    async def delete_many(self, filter: dict[str, Any]) -> Any:  # noqa: A002
        await asyncio.sleep(0)
        return self._collection.delete_many(to_bson(filter))

    async def count_documents(self, filter: dict[str, Any]) -> int:  # noqa: A002
        await asyncio.sleep(0)
        return self._collection.count_documents(to_bson(filter))


class AsyncMockDatabase:
    def __init__(self, database: mongomock.Database) -> None:
        self._database = database

    def get_collection(self, name: str) -> AsyncMockCollection:
        return AsyncMockCollection(self._database.get_collection(name))


class AsyncMockClient:
    def __init__(self) -> None:
        self._client = mongomock.MongoClient(tz_aware=True)

    def get_database(self, name: str) -> AsyncMockDatabase:
        return AsyncMockDatabase(self._client.get_database(name))

    async def aclose(self) -> None:
        self._client.close()


class FrozenClock:
    """Replacement for utils.now that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock(monkeypatch):
    """Freeze the time seen by the services."""
    # mongomock reaps TTL indexes by the wall clock; sessions (TTL = idle timeout) would vanish under a clock behind it.
    # QR expiry against real time is covered by TestExpiryOnWallClock.
    start = datetime.now(UTC).replace(minute=0, second=0, microsecond=0) + timedelta(days=1)
    frozen = FrozenClock(start)
    for module in CLOCK_MODULES:
        monkeypatch.setattr(f"{module}.now", frozen)
    return frozen


@pytest.fixture
def config():
    return Config(database_url="mongodb://localhost/schoolportal_test", admin_password=ADMIN_PASSWORD)


@pytest.fixture
def mongo_client():
    return AsyncMockClient()


@pytest.fixture
async def core(config, mongo_client, clock) -> AsyncIterator[Core]:
    """Core with all services started."""
    core = Core(config, mongo_client)
    async with core.lifespan():
        yield core


@pytest.fixture
async def app(config, mongo_client, clock) -> AsyncIterator[App]:
    """App facade with all services started."""
    app = App(config, mongo_client)
    async with app.lifespan():
        yield app


@pytest.fixture
def make_user(core) -> Callable[..., Awaitable[User]]:
    """Factory creating accounts directly through the user service."""

    async def _make_user(username: str, role: UserRole = UserRole.STUDENT, password: str = DEFAULT_PASSWORD) -> User:
        return await core.services.user.create_user(username, f"{username}@school.test", password, role)

    return _make_user


@pytest.fixture
async def teacher_token(app) -> str:
    """Session token of the configured admin teacher."""
    session = await app.login("admin", ADMIN_PASSWORD)
    return session.token
