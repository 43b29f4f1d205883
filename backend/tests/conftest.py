import os
import tempfile
import uuid

import pytest
from httpx import AsyncClient, ASGITransport

# base SQLite jetable : doit être posé avant l'import de l'app
_DB_DIR = tempfile.mkdtemp(prefix="autoentrepreneur-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["DB_RETRY_BACKOFF"] = "0"

from autoentrepreneur import models  # noqa: E402,F401
from autoentrepreneur.db import Base, database, engine  # noqa: E402
from autoentrepreneur.main import app  # noqa: E402

PASSWORD = "motdepasse-123"


# Force AnyIO to use asyncio only (pas de trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session", autouse=True)
def schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
async def db():
    await database.connect()
    try:
        yield database
    finally:
        await database.disconnect()


@pytest.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def register(ac: AsyncClient) -> dict:
    """Crée un utilisateur neuf et renvoie les en-têtes d'auth."""
    email = f"user.{uuid.uuid4().hex[:8]}@example.com"
    r = await ac.post("/api/auth/register", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
async def auth(client):
    return await register(client)


async def make_client(ac: AsyncClient, headers: dict, **extra) -> dict:
    payload = {"kind": "company", "company_name": f"ACME {uuid.uuid4().hex[:6]}", "email": "contact@acme.example.com"}
    payload.update(extra)
    r = await ac.post("/api/clients/", json=payload, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def lines(*rows):
    """(quantité, prix unitaire en centimes) -> lignes de document."""
    return [
        {"description": f"Prestation {i + 1}", "quantity": qty, "unit_price_cents": price, "vat_rate": 20}
        for i, (qty, price) in enumerate(rows)
    ]
