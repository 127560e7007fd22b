"""
Shared fixtures: an isolated aiosqlite database per test and an httpx
client wired straight into the ASGI app.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="marketplace-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["CREATE_SCHEMA_ON_STARTUP"] = "false"
os.environ["SESSION_STORAGE_PATH"] = os.path.join(_TMP_DIR, "session.json")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from database.helpers import parse_uuid  # noqa: E402
from database.models import Base, Order, OrderStatus, User, UserRole  # noqa: E402
from database.session import async_session_factory, engine  # noqa: E402
from main import app  # noqa: E402


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class MarketplaceApi:
    """Test helper driving the app through its public routes."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def register(self, username=None, email=None, password="Secret1"):
        n = self._next()
        username = username or f"user{n}"
        email = email or f"{username}@example.com"
        resp = await self.client.post(
            "/api/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["user"]

    async def login(self, email, password="Secret1") -> str:
        resp = await self.client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    async def user_token(self, role: UserRole = UserRole.USER, **kwargs):
        """Register a user, optionally promote it, and return ``(user, token)``."""
        user = await self.register(**kwargs)
        if role != UserRole.USER:
            await set_role(user["id"], role)
        return user, await self.login(user["email"])

    async def create_game(self, token, slug=None, **fields):
        slug = slug or f"game-{self._next()}"
        payload = {"name": slug.title(), "slug": slug, "platformTypes": ["PC"], **fields}
        resp = await self.client.post("/api/games/admin", json=payload, headers=bearer(token))
        assert resp.status_code == 201, resp.text
        return resp.json()["game"]

    async def create_category(self, token, game_id, slug=None, **fields):
        slug = slug or f"cat-{self._next()}"
        payload = {"name": slug.title(), "slug": slug, **fields}
        resp = await self.client.post(
            f"/api/games/admin/{game_id}/categories", json=payload, headers=bearer(token)
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["category"]

    async def create_listing(self, token, game_id, category_id, **fields):
        payload = {
            "gameId": game_id,
            "categoryId": category_id,
            "title": f"Listing {self._next()}",
            "price": 10.0,
            "description": "Fast delivery",
            **fields,
        }
        resp = await self.client.post("/api/listings", json=payload, headers=bearer(token))
        assert resp.status_code == 201, resp.text
        return resp.json()["listing"]


async def set_role(user_id: str, role: UserRole) -> None:
    async with async_session_factory() as session:
        user = await session.get(User, parse_uuid(user_id))
        user.role = role
        await session.commit()


async def delete_user(user_id: str) -> None:
    async with async_session_factory() as session:
        user = await session.get(User, parse_uuid(user_id))
        await session.delete(user)
        await session.commit()


async def add_order(listing_id: str, buyer_id: str, status: OrderStatus) -> str:
    async with async_session_factory() as session:
        order = Order(
            listing_id=parse_uuid(listing_id),
            buyer_id=parse_uuid(buyer_id),
            status=status,
            amount=10,
        )
        session.add(order)
        await session.commit()
        return str(order.id)


@pytest_asyncio.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_session_factory
    await engine.dispose()


@pytest.fixture
def asgi_transport():
    return httpx.ASGITransport(app=app, raise_app_exceptions=False)


@pytest_asyncio.fixture
async def client(db, asgi_transport):
    async with httpx.AsyncClient(transport=asgi_transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def api(client):
    return MarketplaceApi(client)


@pytest_asyncio.fixture
async def admin(api):
    """``(user, token)`` for an ADMIN account."""
    return await api.user_token(UserRole.ADMIN, username="admin")


@pytest_asyncio.fixture
async def catalog(api, admin):
    """One active game with one active category and a seller account."""
    _, admin_token = admin
    game = await api.create_game(admin_token, slug="valorant", name="Valorant")
    category = await api.create_category(admin_token, game["id"], slug="accounts", name="Accounts")
    seller, seller_token = await api.user_token(username="seller")
    return {
        "game": game,
        "category": category,
        "seller": seller,
        "seller_token": seller_token,
        "admin_token": admin_token,
    }
