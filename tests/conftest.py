"""Test fixtures: a fresh SQLite database per test.

Each test gets its own database file under tmp_path, tables created from
the ORM metadata. The app's get_db is overridden to hand every request a
new session from the test factory, exactly like production does.

Auth is NOT mocked: fixtures create real users through UserService and log
in over HTTP, so every request goes through the bearer-token path.
"""

import os

# Must be set before foxboard.config is imported
os.environ.setdefault("FOXB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from foxboard.db.engine import get_db, init_models
from foxboard.main import app
from foxboard.services.user_service import UserService

ADMIN_PASSWORD = "admin-password"
USER_PASSWORD = "user-password"


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/foxboard.db", echo=False)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """Session for direct service/database access inside a test."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client against the app, backed by the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Users and tokens ───────────────────────────────────


async def create_user(session_factory, username, password=USER_PASSWORD, is_admin=False):
    async with session_factory() as db:
        return await UserService(db).create_user(None, username, password, is_admin=is_admin)


async def login(client, username, password=USER_PASSWORD) -> str:
    r = await client.post("/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def admin(session_factory):
    return await create_user(session_factory, "admin", ADMIN_PASSWORD, is_admin=True)


@pytest_asyncio.fixture()
async def admin_headers(client, admin):
    return bearer(await login(client, "admin", ADMIN_PASSWORD))


@pytest_asyncio.fixture()
async def alice(session_factory):
    return await create_user(session_factory, "alice")


@pytest_asyncio.fixture()
async def alice_headers(client, alice):
    return bearer(await login(client, "alice"))


@pytest_asyncio.fixture()
async def bob(session_factory):
    return await create_user(session_factory, "bob")


@pytest_asyncio.fixture()
async def bob_headers(client, bob):
    return bearer(await login(client, "bob"))
