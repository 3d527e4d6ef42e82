import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_EMAIL", "root@skillswap.io")

import httpx
import mongomock
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from skillswap.db import get_session
from skillswap.db.mongodb import get_notifications_collection
from skillswap.main import build_api
from skillswap.models.user import User


@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test-sqlalchemy.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(async_engine):
    return sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def notifications():
    return mongomock.MongoClient().db.notifications


@pytest_asyncio.fixture
async def client(session_maker, notifications):
    app = build_api()

    async def override_get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_notifications_collection] = lambda: notifications

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest_asyncio.fixture
async def make_user(async_session):
    async def _make_user(name, skills_offered=(), skills_wanted=(), **fields):
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            hashed_password=fields.pop("hashed_password", "hashedpassword"),
            skills_offered=list(skills_offered),
            skills_wanted=list(skills_wanted),
            **fields,
        )
        async_session.add(user)
        await async_session.commit()
        return user
    return _make_user


async def signup(client, name, email, password="secret123", **fields):
    response = await client.post(
        "/api/auth/signup",
        json={"name": name, "email": email, "password": password, **fields},
    )
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


def swap_json(recipient_id, skill_offered="JS", skill_wanted="Python", **fields):
    return {
        "recipient_id": recipient_id,
        "skill_offered": skill_offered,
        "skill_wanted": skill_wanted,
        "learning_mode": "Online",
        "duration": {"estimated_hours": 5},
        **fields,
    }


async def complete_swap_via_api(client, requester, recipient, **fields):
    """Drive a new swap request from ``requester`` to ``recipient`` through to completed."""
    (_, requester_headers), (recipient_user, recipient_headers) = requester, recipient
    response = await client.post("/api/swaps", json=swap_json(recipient_user["id"], **fields), headers=requester_headers)
    assert response.status_code == 201, response.text
    swap_id = response.json()["data"]["swap"]["id"]

    response = await client.put(f"/api/swaps/{swap_id}/accept", headers=recipient_headers)
    assert response.status_code == 200, response.text
    response = await client.put(f"/api/swaps/{swap_id}/complete", headers=requester_headers)
    assert response.status_code == 200, response.text
    return swap_id


@pytest_asyncio.fixture
async def members(client):
    """An admin plus two members who can swap JS for Python; each is (user, headers)."""
    admin = await signup(client, "Admin", "admin@example.com")
    alice = await signup(
        client, "Alice", "alice@example.com",
        skills_offered=["JS"], skills_wanted=["Python"], location="Berlin",
    )
    bob = await signup(
        client, "Bob", "bob@example.com",
        skills_offered=["Python"], skills_wanted=["JS"], location="Paris",
    )
    return admin, alice, bob


async def post_review(client, swap_id, headers, overall, comment="great"):
    response = await client.post(
        f"/api/swaps/{swap_id}/review",
        json={"rating": {"overall": overall}, "comment": comment, "would_recommend": True},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["review"]
