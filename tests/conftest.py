import os
from contextlib import contextmanager
from typing import AsyncGenerator, Optional

import pytest_asyncio
from dotenv import load_dotenv

# Optional overrides for local runs (e.g. a Postgres DATABASE_URL)
env_test_path = os.path.join(os.path.dirname(__file__), "..", ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYMENT_SIMULATE_OUTCOME", "success")

from httpx import ASGITransport, AsyncClient  # noqa: E402
from libs.auth.dependencies import get_current_user, get_optional_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

# Import models so metadata includes every store table
from services.store_service import models as _store_models  # noqa: E402,F401

get_settings.cache_clear()
settings = get_settings()


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_member_user(
    user_id: str = "member-user-1",
    email: Optional[str] = "member@example.com",
    role: str = "member",
) -> AuthUser:
    return AuthUser(user_id=user_id, email=email, role=role)


def make_admin_user(
    user_id: str = "admin-user-1", email: Optional[str] = "admin@example.com"
) -> AuthUser:
    return AuthUser(user_id=user_id, email=email, role=settings.ADMIN_ROLE)


@contextmanager
def override_auth(app, user: AuthUser):
    """Authenticate every request made inside the block as ``user``."""
    keys = (get_current_user, get_optional_user)
    previous = {key: app.dependency_overrides.get(key) for key in keys}
    for key in keys:
        app.dependency_overrides[key] = lambda: user
    try:
        yield user
    finally:
        for key, value in previous.items():
            if value is None:
                app.dependency_overrides.pop(key, None)
            else:
                app.dependency_overrides[key] = value


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


def _enable_sqlite_savepoints(engine) -> None:
    # pysqlite's own transaction handling breaks SAVEPOINT; take it over
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture
async def test_engine():
    """
    Create a test engine. SQLite runs in memory on a single shared
    connection; any other DATABASE_URL is used as is.
    """
    if settings.is_sqlite:
        engine = create_async_engine(
            settings.DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_async_engine(settings.DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session that rolls back after the test.
    join_transaction_mode="create_savepoint" lets code under test commit and
    roll back freely while the outer transaction is discarded at the end.
    """
    connection = await test_engine.connect()
    transaction = await connection.begin()

    session_factory = async_sessionmaker(
        bind=connection,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    session = session_factory()

    try:
        yield session
    finally:
        await session.close()
        await transaction.rollback()
        await connection.close()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def store_client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient for the store app with the DB dependency pointed at
    the test session. Requests are anonymous unless wrapped in override_auth.
    """
    from libs.db.session import get_async_db
    from services.store_service.app.main import app

    app.dependency_overrides[get_async_db] = lambda: db_session

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
