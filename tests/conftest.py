import os

# Settings are read at import time, so the environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest_elevatehub.db")
os.environ.setdefault("IDP_JWT_SECRET", "test-identity-secret")
os.environ["DB_AUTO_CREATE"] = "false"
os.environ.pop("IDP_AUDIENCE", None)
os.environ.pop("IDP_ISSUER", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

import elevatehub.models.registry  # noqa: F401
from elevatehub.core.config import settings
from elevatehub.core.database import Base, get_db, get_session_factory
from elevatehub.main import app


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "elevatehub.db"
    # Schema is created synchronously so no event loop is involved
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def engine(db_path):
    # NullPool: every session opens its own connection on the running loop
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    target = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(target))
    return target


def use_sessions(session_factory):
    """Point both database dependencies of the app at `session_factory`."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory


@pytest.fixture
def client(session_factory, upload_dir):
    use_sessions(session_factory)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def single_connection_client(db_path, upload_dir):
    """App client whose engine has exactly one pooled connection and a short wait."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=2,
    )
    use_sessions(async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False))
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(engine.dispose)
    app.dependency_overrides.clear()
