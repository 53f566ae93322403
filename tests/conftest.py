"""Shared fixtures: in-memory database, fake cache and mailer, API client.

Invariants:
    - Every test gets a fresh in-memory SQLite database and an empty cache
    - The app is built with these handles, so no Postgres, Mongo or SMTP is needed
    - Users are seeded directly; sessions go through the real SessionStore
"""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from society.auth.models import User
from society.auth.password import hash_password
from society.auth.sessions import SessionStore
from society.config import Settings
from society.db.session import create_all, create_sessionmaker
from society.main import create_app
from society.resources import Resources
from society.uploads.storage import LocalObjectStore

from tests.fakes import FakeCache, FakeMailer

API = "/api/v1"
PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        SECRET_KEY="test-secret",
        MEDIA_ROOT=str(tmp_path / "media"),
        MEDIA_PUBLIC_URL="/media",
        APP_URL="http://app.test",
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_sessionmaker(engine)


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def resources(settings, engine, session_factory, cache, mailer):
    return Resources(
        settings=settings,
        engine=engine,
        sessionmaker=session_factory,
        cache=cache,
        storage=LocalObjectStore(settings.MEDIA_ROOT, settings.MEDIA_PUBLIC_URL),
        mailer=mailer,
    )


@pytest.fixture
def app(settings, resources):
    return create_app(settings, resources)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def make_user(session_factory):
    """Insert a user with PASSWORD and return it (detached, attributes loaded)."""

    async def _make(username, **fields):
        fields.setdefault("email", f"{username}@example.com")
        fields.setdefault("display_name", username.capitalize())
        async with session_factory() as db:
            user = User(username=username, password_hash=PASSWORD_HASH, **fields)
            db.add(user)
            await db.commit()
            return user

    return _make


@pytest.fixture
def sign_in(session_factory, cache, settings):
    """Open a session for ``user`` and return bearer headers for it."""

    async def _sign_in(user):
        async with session_factory() as db:
            session_id = await SessionStore(db, cache, settings).create(user.id)
            await db.commit()
        return {"Authorization": f"Bearer {session_id}"}

    return _sign_in


@pytest.fixture
async def alice(make_user):
    return await make_user("alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("bob")


@pytest.fixture
async def alice_headers(sign_in, alice):
    return await sign_in(alice)


@pytest.fixture
async def bob_headers(sign_in, bob):
    return await sign_in(bob)
