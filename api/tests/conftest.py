"""Shared fixtures: a throwaway SQLite database per test, a page cache double,
user factory, and an HTTP client wired to the app with a shared-secret
identity provider.
"""

import itertools
import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from overflow.database import build_engine, build_session_factory, get_db
from overflow.dependencies import get_page_cache
from overflow.main import create_app
from overflow.models import Base, User
from overflow.services.identity import IdentityProvider
from overflow.services.page_cache import route_key

TEST_JWT_SECRET = "overflow-test-secret-0123456789abcdef"


class RecordingCache:
    """In-memory page cache that remembers which routes were revalidated."""

    def __init__(self) -> None:
        self.pages: dict[tuple[str, str], str] = {}
        self.revalidated: list[str] = []

    async def get(self, path: str, query: str = ""):
        return self.pages.get((route_key(path), query))

    async def set(self, path: str, query: str, html: str) -> None:
        self.pages[(route_key(path), query)] = html

    async def revalidate_path(self, path: str) -> None:
        self.revalidated.append(path)
        key = route_key(path)
        self.pages = {k: v for k, v in self.pages.items() if k[0] != key}


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'overflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache():
    return RecordingCache()


@pytest.fixture
def make_user(db):
    counter = itertools.count()

    async def _make(**overrides) -> User:
        n = next(counter)
        fields = {
            "clerk_id": f"user_{n}",
            "name": f"User {n}",
            "username": f"user{n}",
            "email": f"user{n}@example.com",
        }
        fields.update(overrides)
        user = User(**fields)
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def reputation_of(db):
    """Read a user's reputation straight from the table (counter updates bypass the ORM).

    Accepts a User or its id; pass the id once a failed action has rolled the
    session back, since rollback expires every loaded instance.
    """

    async def _read(user) -> int:
        user_id = user if isinstance(user, uuid.UUID) else user.id
        return await db.scalar(select(User.reputation).where(User.id == user_id))

    return _read


@pytest.fixture
def auth_headers():
    def _headers(clerk_id: str) -> dict[str, str]:
        token = jwt.encode(
            {"sub": clerk_id, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            TEST_JWT_SECRET,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(session_factory, cache):
    app = create_app(identity_provider=IdentityProvider(shared_secret=TEST_JWT_SECRET))

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_page_cache] = lambda: cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
