import os
import tempfile

# Point the app at a throwaway database before anything imports the settings
_db_dir = tempfile.mkdtemp(prefix="tutordesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ.pop("SENTRY_DSN", None)

import httpx
import pytest

from tutordesk import models  # noqa: F401
from tutordesk.db import Base, SessionLocal, engine
from tutordesk.gateway import PersistenceGateway
from tutordesk.main import app
from tutordesk.seed import seed_database
from tutordesk.session import Session
from tutordesk.storage import KeyValueStorage
from tutordesk.store import DataStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_database(db)
    finally:
        db.close()
    yield


def register(client, name, email, password="secret", role="student"):
    response = client.post("/api/register", json={
        "name": name,
        "email": email,
        "password": password,
        "role": role,
    })
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


class Toasts(list):
    """Collects (kind, message) pairs from the gateway and store hooks."""

    def __call__(self, message, kind):
        self.append((kind, message))


def build_store(transport, session=None):
    session = session or Session(KeyValueStorage())
    toasts = Toasts()
    gateway = PersistenceGateway(
        "http://testserver",
        token_provider=lambda: session.token,
        error_handler=toasts,
        transport=transport,
    )
    store = DataStore(gateway, session, notifier=toasts)
    return store, toasts


@pytest.fixture
async def live_store():
    """A store talking to the real app in-process."""
    store, toasts = build_store(httpx.ASGITransport(app=app))
    yield store, toasts
    await store.gateway.aclose()
