import os
import tempfile

# settings are read at import time, so the environment comes first
_TMP = tempfile.mkdtemp(prefix="gigpanda-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_TMP, 'app.db')}")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))

from types import SimpleNamespace

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from gigpanda.db.database import build_engine, build_sessionmaker, create_tables, get_db
from gigpanda.main import app
from gigpanda.schemas.user import SignupRequest
from gigpanda.services import jobs, proposals, users
from gigpanda.services.pubsub import InMemoryBroker, set_broker

DUE_DATE = "2030-01-01T00:00:00Z"

JOB_PAYLOAD = {
    "title": "Build a landing page",
    "description": "A responsive landing page for a coffee shop.",
    "category": "web-development",
    "skillsRequired": ["React", "CSS"],
    "budget": {"min": 100, "max": 500, "currency": "USD"},
    "budgetType": "fixed",
    "timeline": "2-weeks",
    "experienceLevel": "intermediate",
    "location": "remote",
}

PROPOSAL_PAYLOAD = {
    "coverLetter": "I have built dozens of landing pages.",
    "bidAmount": {"amount": 300, "currency": "USD"},
    "estimatedDuration": "less-than-1-month",
}

def contract_payload(amounts=(100, 200)):
    return {
        "title": "Landing page contract",
        "scope": "Design and build the landing page",
        "terms": "Payment per milestone",
        "totalAmount": sum(amounts),
        "milestones": [
            {
                "title": f"Milestone {i + 1}",
                "description": f"Deliverable {i + 1}",
                "amount": amount,
                "dueDate": DUE_DATE,
            }
            for i, amount in enumerate(amounts)
        ],
    }

@pytest.fixture(autouse=True)
def broker():
    b = InMemoryBroker()
    set_broker(b)
    return b

@pytest.fixture
def db_urls(tmp_path):
    path = tmp_path / "test.db"
    create_tables(f"sqlite:///{path}")
    return f"sqlite+aiosqlite:///{path}"

@pytest_asyncio.fixture
async def session(db_urls):
    engine = build_engine(db_urls)
    async with build_sessionmaker(engine)() as s:
        yield s
    await engine.dispose()

async def make_user(session, email, role, name=None):
    return await users.signup(session, SignupRequest(
        email=email,
        name=name or email.split("@")[0].title(),
        password="secret123",
        role=role,
    ))

@pytest_asyncio.fixture
async def people(session):
    return SimpleNamespace(
        client=await make_user(session, "client@example.com", "client", "Cleo Client"),
        freelancer=await make_user(session, "freelancer@example.com", "freelancer", "Fred Lancer"),
        outsider=await make_user(session, "outsider@example.com", "freelancer", "Olive Outsider"),
    )

@pytest_asyncio.fixture
async def job(session, people):
    return await jobs.create_job(session, people.client, JOB_PAYLOAD)

@pytest_asyncio.fixture
async def proposal(session, people, job):
    return await proposals.apply_to_job(session, people.freelancer, job.id, PROPOSAL_PAYLOAD)

@pytest.fixture
def client(db_urls):
    engine = build_engine(db_urls)
    maker = build_sessionmaker(engine)

    async def override_get_db():
        async with maker() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

def signup(client, email, role, name="Test User"):
    """Registers a user through the API and returns (auth headers, user json)."""
    resp = client.post("/api/auth/signup", json={
        "email": email,
        "name": name,
        "password": "secret123",
        "role": role,
    })
    assert resp.status_code == 201, resp.text
    token = resp.cookies.get("token")
    assert token
    return {"Authorization": f"Bearer {token}"}, resp.json()["user"]
