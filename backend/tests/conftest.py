"""
Shared pytest fixtures for registry backend tests.

Provides:
  - async SQLite in-memory database (per-test isolation)
  - users of each role and clients logged in as them
  - a webhook dispatcher wired to an in-process mock transport
"""
from __future__ import annotations

import os

# Required settings must exist before any app module reads them.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production-at-all")
os.environ.setdefault("ADMIN_PASSWORD", "TestOwner@2024!")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("LOG_JSON", "false")

from collections.abc import AsyncGenerator  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402

from app.api.v1.records import get_dispatcher  # noqa: E402
from app.config.settings import get_settings  # noqa: E402
from app.core.security import hash_password  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.models.user import RoleEnum, User  # noqa: E402
from app.db.session import engine_kwargs, get_db, make_session_factory  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.notify.dispatcher import WebhookDispatcher  # noqa: E402

PASSWORD = "Senha@Forte2024"

RECORD_PAYLOAD = {
    "individual_name": "João da Silva",
    "fixed_id": "12345",
    "date_time": "2024-03-10T15:30:00Z",
    "location": "Setor Comercial Sul",
    "reason": "Roubo",
    "articles": "157",
    "responsible_officers": "Sgt. Souza, Cb. Lima",
    "notify": False,
}


async def make_user(db: AsyncSession, username: str, role: RoleEnum, password: str = PASSWORD) -> User:
    user = User(username=username, password_hash=hash_password(password), role=role)
    db.add(user)
    await db.commit()
    return user


async def login_headers(client: AsyncClient, username: str, password: str = PASSWORD) -> dict[str, str]:
    resp = await client.post(
        "/api/v1/auth/login", json={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def db_engine():
    """Create an async in-memory SQLite engine per test function."""
    url = "sqlite+aiosqlite://"
    engine = create_async_engine(url, **engine_kwargs(url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ─── Webhook ──────────────────────────────────────────────────────────────────

@pytest.fixture
def webhook_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def dispatcher(webhook_requests) -> WebhookDispatcher:
    """Dispatcher whose outbound calls are recorded instead of sent."""

    def handler(request: httpx.Request) -> httpx.Response:
        webhook_requests.append(request)
        return httpx.Response(204)

    async def no_sleep(_seconds: float) -> None:
        return None

    return WebhookDispatcher(
        settings=get_settings(),
        transport=httpx.MockTransport(handler),
        sleep=no_sleep,
    )


# ─── App & HTTP client ────────────────────────────────────────────────────────

@pytest.fixture
def app(session_factory, dispatcher):
    """FastAPI test app bound to the per-test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app_ = create_app(settings=get_settings())
    app_.dependency_overrides[get_db] = override_get_db
    app_.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return app_


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


@pytest_asyncio.fixture
async def owner(db_session) -> User:
    return await make_user(db_session, "owner", RoleEnum.ADMIN)


@pytest_asyncio.fixture
async def owner_headers(client, owner) -> dict[str, str]:
    return await login_headers(client, "owner")


@pytest_asyncio.fixture
async def comando_headers(client, db_session) -> dict[str, str]:
    await make_user(db_session, "comandante", RoleEnum.COMANDO)
    return await login_headers(client, "comandante")


@pytest_asyncio.fixture
async def oficial_headers(client, db_session) -> dict[str, str]:
    await make_user(db_session, "oficial", RoleEnum.OFICIAL)
    return await login_headers(client, "oficial")


@pytest_asyncio.fixture
async def user_headers(client, db_session) -> dict[str, str]:
    await make_user(db_session, "soldado", RoleEnum.USER)
    return await login_headers(client, "soldado")
