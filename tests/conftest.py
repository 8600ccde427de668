import asyncio
import os
import tempfile
import time

import jwt
import pytest
from fastapi.testclient import TestClient

_tmp = tempfile.mkdtemp(prefix="chapter-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_tmp}/app.db")
os.environ.setdefault("JWT_SECRET", "pytest-secret-key-for-signing-test-tokens")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("JWT_VERIFY_SIGNATURE", "1")

from app.core import config
from app.core.database.engine import init_db, make_engine, make_sessionmaker
from app.core.store import SqlDocumentStore, get_store
from app.features.permissions.dependencies import get_permission_matrix
from app.main import app
from tests.fakes.fake_store import FakeDocumentStore


@pytest.fixture(autouse=True)
def reset_matrix():
    """The live matrix is process wide; start every test from policy defaults."""
    get_permission_matrix().reset()
    yield
    get_permission_matrix().reset()


@pytest.fixture
def fake_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
async def sql_store():
    """SqlDocumentStore on a private in-memory database."""
    engine = make_engine("sqlite+aiosqlite:///:memory:")
    await init_db(bind=engine)
    yield SqlDocumentStore(make_sessionmaker(engine))
    await engine.dispose()


@pytest.fixture
def api_store(tmp_path):
    """SqlDocumentStore on a file database, usable from the TestClient's loop."""
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path}/api.db")
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(init_db(bind=engine))
    finally:
        loop.close()
    return SqlDocumentStore(make_sessionmaker(engine))


@pytest.fixture
def client(api_store):
    app.dependency_overrides[get_store] = lambda: api_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_token():
    def _make(sub="M001", roles=("official_member",), expires_in=3600):
        payload = {"sub": sub, "roles": list(roles), "exp": int(time.time()) + expires_in}
        return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(sub="M001", roles=("official_member",)):
        return {"Authorization": f"Bearer {make_token(sub, roles)}"}

    return _headers
