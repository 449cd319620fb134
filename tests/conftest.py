import os
import sys
import pathlib
import tempfile
import warnings

import pytest
import pytest_asyncio

# Configure the app before it is imported: a throwaway SQLite file and a
# deterministic test-only secret.
_TMP_DIR = tempfile.mkdtemp(prefix='todo_api_tests_')
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ.setdefault('SECRET_KEY', 'test-secret-key-for-unit-tests')

try:
    from sqlalchemy.exc import SAWarning
    warnings.filterwarnings('ignore', category=SAWarning)
except ImportError:
    pass

import logging as _logging
for _name in ('sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool', 'sqlmodel'):
    _logging.getLogger(_name).setLevel(_logging.ERROR)

# ensure project root is on PYTHONPATH for test runs
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from httpx import AsyncClient, ASGITransport

from todo_api.main import app
from todo_api.db import drop_db, init_db


async def register_user(ac: AsyncClient, email: str, password: str = 'password123', name: str = 'Test User'):
    return await ac.post('/api/auth/register', json={'name': name, 'email': email, 'password': password})


def make_client(token: str | None = None) -> AsyncClient:
    transport = ASGITransport(app=app)
    ac = AsyncClient(transport=transport, base_url='http://test')
    if token:
        ac.headers.update({'Authorization': f'Bearer {token}'})
    return ac


@pytest_asyncio.fixture
async def ensure_db():
    # fresh tables for every test
    await drop_db()
    await init_db()
    yield


@pytest_asyncio.fixture
async def anon_client(ensure_db):
    async with make_client() as ac:
        yield ac


@pytest_asyncio.fixture
async def client(ensure_db):
    """Client authenticated as a freshly registered user."""
    async with make_client() as ac:
        resp = await register_user(ac, 'owner@x.com')
        assert resp.status_code == 201
        ac.headers.update({'Authorization': f"Bearer {resp.json()['token']}"})
        yield ac


@pytest_asyncio.fixture
async def other_client(ensure_db):
    """Client for a second user, used to check ownership isolation."""
    async with make_client() as ac:
        resp = await register_user(ac, 'intruder@x.com')
        assert resp.status_code == 201
        ac.headers.update({'Authorization': f"Bearer {resp.json()['token']}"})
        yield ac


def pytest_sessionfinish(session, exitstatus):
    """Dispose the async engine's pool at the end of the session."""
    try:
        from todo_api import db as app_db
        app_db.engine.sync_engine.dispose()
    except Exception:
        pass
