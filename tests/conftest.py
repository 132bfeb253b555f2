"""Test fixtures for API, database and the issuance service."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

TESTS_ROOT = Path(__file__).parent
TEST_DB_PATH = Path("test_certissuer.db")
TEST_CERTIFICATES_DIR = TESTS_ROOT / ".certificates"

# Configure the environment *before* importing certissuer modules so the app
# never opens the default database or writes into the default upload dir.
os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("CERTIFICATES_DIR", str(TEST_CERTIFICATES_DIR))
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SIGNING_SECRET", "test-signing-secret")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import update  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from certissuer.database import Base, SessionLocal, engine  # noqa: E402
from certissuer.database_async import (  # noqa: E402
    get_async_session,
    get_session_factory,
)
from certissuer.db_events import attach_sqlite_listeners  # noqa: E402
from certissuer.main import app  # noqa: E402
from certissuer.models import (  # noqa: E402,F401 - ensure metadata is populated
    certificate,
    customer,
    template,
)
from certissuer.models.customer import Customer  # noqa: E402
from certissuer.security.rate_limit import limiter  # noqa: E402

# Disable rate limiting in tests to prevent cross-test 429 flakes
limiter.enabled = False

ASYNC_TEST_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"


def make_session_factory():
    """Fresh connections per session so no connection outlives its event loop."""
    async_engine = create_async_engine(ASYNC_TEST_URL, poolclass=NullPool)
    attach_sqlite_listeners(async_engine.sync_engine)
    return async_engine, async_sessionmaker(
        bind=async_engine, expire_on_commit=False
    )


@pytest.fixture(scope="session")
def database():
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()
    shutil.rmtree(TEST_CERTIFICATES_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_tables(database):
    yield
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture(scope="session")
def client(database):
    async_engine, factory = make_session_factory()

    async def override_get_async_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_session_factory] = lambda: factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_async_session, None)
    app.dependency_overrides.pop(get_session_factory, None)


@pytest_asyncio.fixture
async def session_factory(database):
    async_engine, factory = make_session_factory()
    yield factory
    await async_engine.dispose()


# ── API helpers ─────────────────────────────────────────────────


TEMPLATE_CONTENT = {
    "title": "Certificate of Completion",
    "fields": [
        {"key": "name", "label": "Name", "type": "text"},
        {"key": "course", "label": "Course", "type": "text"},
    ],
    "layout": {"orientation": "landscape", "fontSize": 14},
}


@pytest.fixture
def register(client):
    """Register a customer and return the response body."""

    def _register(company: str = "Acme", email: str = "ops@acme.com") -> dict:
        resp = client.post(
            "/api/auth/register",
            json={"companyName": company, "email": email, "password": "s3cret!"},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


@pytest.fixture
def account(register):
    return register()


@pytest.fixture
def create_template(client):
    def _create(account: dict, **overrides) -> dict:
        body = {"name": "Completion", "content": TEMPLATE_CONTENT, **overrides}
        resp = client.post(
            "/api/templates",
            json=body,
            headers={"Authorization": f"Bearer {account['token']}"},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["template"]

    return _create


@pytest.fixture
def promote():
    """Grant superuser rights directly in the database."""

    def _promote(email: str) -> None:
        with SessionLocal() as session:
            session.execute(
                update(Customer)
                .where(Customer.email == email)
                .values(is_superuser=True)
            )
            session.commit()

    return _promote
