import asyncio
import os
import tempfile
import uuid
from pathlib import Path

# Configure the app for tests before anything imports session_auth.config
_TMP_DIR = Path(tempfile.mkdtemp(prefix="session_auth_tests_"))
DB_PATH = _TMP_DIR / "test.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_ENV"] = "development"
os.environ["SESSION_VERIFY_RECORD"] = "false"
os.environ["RECAPTCHA_SECRET_KEY"] = ""
os.environ["RECAPTCHA_SITE_KEY"] = ""
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from session_auth.main import app
from session_auth.models.session import SessionRecord
from session_auth.models.user import User
from session_auth.utils.database import AsyncSessionLocal, Base, engine

SIGNUP = {
    "email": "a@x.com",
    "password": "secret1",
    "secretQuestion": "pet?",
    "secretAnswer": "rex",
}


@pytest.fixture()
def database():
    """Fresh, empty SQLite database file with all tables created."""
    if DB_PATH.exists():
        DB_PATH.unlink()

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield DB_PATH


@pytest.fixture()
def with_db(database):
    """Run ``fn(db)`` against its own AsyncSession and return the result."""
    def _run(fn):
        async def _go():
            async with AsyncSessionLocal() as db:
                return await fn(db)
        return asyncio.run(_go())
    return _run


@pytest.fixture()
def client(database):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def signed_up(client):
    r = client.post("/api/signup", json=SIGNUP)
    assert r.status_code == 201, r.text
    return r.json()["userId"]


@pytest.fixture()
def count_sessions(with_db):
    def _count(user_id=None) -> int:
        async def _q(db):
            stmt = select(func.count()).select_from(SessionRecord)
            if user_id is not None:
                stmt = stmt.where(SessionRecord.user_id == uuid.UUID(str(user_id)))
            return (await db.execute(stmt)).scalar_one()
        return with_db(_q)
    return _count


@pytest.fixture()
def fetch_user(with_db):
    def _fetch(email: str):
        async def _q(db):
            return (await db.execute(select(User).filter_by(email=email))).scalars().first()
        return with_db(_q)
    return _fetch
