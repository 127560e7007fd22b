"""
Tests for the API client, persisted storage, session state and route guard.
"""

import json

import httpx
import pytest

from client.api_client import ApiClient, AuthApi, ListingsApi
from client.guard import GuardOutcome, RouteGuard
from client.query_cache import QueryCache
from client.session import SessionState
from client.storage import TOKEN_KEY, USER_KEY, SessionStorage


def _failing_transport() -> httpx.MockTransport:
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def storage(tmp_path):
    return SessionStorage(tmp_path / "session.json")


@pytest.fixture
def app_client(client, asgi_transport):
    # ``client`` makes sure the schema exists for this test.
    return ApiClient("http://test", transport=asgi_transport)


@pytest.fixture
def session_state(app_client, storage):
    return SessionState(AuthApi(app_client), storage, QueryCache())


class TestApiClient:
    @pytest.mark.asyncio
    async def test_success_and_error_shapes(self, api, app_client):
        await api.register(username="alice", email="alice@x.com")
        auth = AuthApi(app_client)

        ok = await auth.login("alice@x.com", "Secret1")
        assert ok.success is True
        assert ok.status == 200
        assert ok.data["user"]["username"] == "alice"

        bad = await auth.login("alice@x.com", "nope-nope")
        assert bad.success is False
        assert bad.status == 401
        assert bad.error == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, api, app_client):
        _, token = await api.user_token(username="alice")
        resp = await AuthApi(app_client).me(token)
        assert resp.success and resp.data["user"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_network_error_becomes_failed_response(self):
        client = ApiClient("http://unreachable", transport=_failing_transport())
        resp = await client.get("/api/games")
        assert resp.success is False
        assert resp.status is None
        assert "connection refused" in resp.error

    @pytest.mark.asyncio
    async def test_error_without_json_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad Gateway"))
        resp = await ApiClient("http://proxy", transport=transport).get("/api/games")
        assert resp.success is False
        assert resp.error == "HTTP 502: Bad Gateway"

    @pytest.mark.asyncio
    async def test_listing_params_skip_empty_values(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, json={"success": True, "listings": []})

        client = ApiClient("http://api", transport=httpx.MockTransport(handler))
        await ListingsApi(client).get_category_listings(
            "valorant", "accounts", page=2, sort="price_asc", delivery_type=None, search=""
        )
        assert seen["url"].path == "/api/games/valorant/accounts/listings"
        assert dict(seen["url"].params) == {"page": "2", "sort": "price_asc"}


class TestSessionStorage:
    def test_save_and_clear(self, storage):
        assert storage.get_token() is None
        storage.save("tok", {"id": "1"})
        assert json.loads(storage.path.read_text()) == {TOKEN_KEY: "tok", USER_KEY: {"id": "1"}}
        assert storage.get_user() == {"id": "1"}

        storage.clear()
        assert storage.get_token() is None
        assert storage.get_user() is None
        storage.clear()

    def test_corrupt_file_reads_as_empty(self, storage):
        storage.path.write_text("{not json")
        assert storage.get_token() is None


class TestSessionState:
    @pytest.mark.asyncio
    async def test_login_persists_and_invalidates_auth_queries(self, api, session_state):
        await api.register(username="alice", email="alice@x.com")
        session_state.cache.set(("auth", "me", "old"), "stale")
        session_state.cache.set(("games",), ["kept"])

        resp = await session_state.login("alice@x.com", "Secret1")

        assert resp.success
        assert session_state.is_authenticated
        assert session_state.user["username"] == "alice"
        assert session_state.storage.get_token() == session_state.token
        assert session_state.cache.get(("auth", "me", "old")) is None
        assert session_state.cache.get(("games",)) == ["kept"]

    @pytest.mark.asyncio
    async def test_failed_login_leaves_state_untouched(self, api, session_state):
        await api.register(username="alice", email="alice@x.com")
        resp = await session_state.login("alice@x.com", "wrong-pass")
        assert not resp.success
        assert session_state.user is None and session_state.token is None
        assert session_state.storage.get_token() is None

    @pytest.mark.asyncio
    async def test_register_does_not_sign_in(self, session_state, db):
        resp = await session_state.register("carol", "carol@x.com", "Secret1")
        assert resp.success
        assert not session_state.is_authenticated

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, api, session_state):
        await api.register(username="alice", email="alice@x.com")
        await session_state.login("alice@x.com", "Secret1")
        session_state.cache.set(("games",), [])

        session_state.logout()

        assert session_state.user is None and session_state.token is None
        assert session_state.storage.get_token() is None
        assert len(session_state.cache) == 0

    @pytest.mark.asyncio
    async def test_bootstrap_hydrates_from_valid_token(self, api, app_client, storage):
        user, token = await api.user_token(username="alice")
        storage.save(token, {"id": user["id"], "username": "stale-copy"})

        state = SessionState(AuthApi(app_client), storage, QueryCache())
        await state.bootstrap()

        assert state.initialized and not state.is_verifying
        assert state.token == token
        assert state.user["username"] == "alice"
        assert storage.get_user()["username"] == "alice"

    @pytest.mark.asyncio
    async def test_bootstrap_clears_rejected_token(self, app_client, storage, db):
        storage.save("expired.or.forged", {"id": "x"})
        state = SessionState(AuthApi(app_client), storage, QueryCache())
        await state.bootstrap()
        assert state.user is None and state.token is None
        assert storage.get_token() is None and storage.get_user() is None
        assert state.cache.get(("auth", "me", "expired.or.forged")) is None

    @pytest.mark.asyncio
    async def test_bootstrap_clears_on_network_error(self, storage):
        storage.save("tok", {"id": "x"})
        offline = ApiClient("http://unreachable", transport=_failing_transport())
        state = SessionState(AuthApi(offline), storage, QueryCache())
        await state.bootstrap()
        assert state.token is None
        assert storage.get_token() is None

    @pytest.mark.asyncio
    async def test_bootstrap_drops_user_without_token(self, storage):
        storage.path.write_text(json.dumps({USER_KEY: {"id": "x"}}))
        state = SessionState(AuthApi(ApiClient("http://unused")), storage, QueryCache())
        await state.bootstrap()
        assert storage.get_user() is None
        assert state.initialized


class TestRouteGuard:
    def _state(self, user=None, token=None, initialized=True, verifying=False):
        state = SessionState(AuthApi(ApiClient("http://unused")), SessionStorage("/dev/null"), QueryCache())
        state.user, state.token = user, token
        state.initialized, state.is_verifying = initialized, verifying
        return state

    def test_loading_until_initialized(self):
        guard = RouteGuard()
        assert guard.check(self._state(initialized=False)).outcome == GuardOutcome.LOADING
        assert guard.check(self._state(verifying=True)).outcome == GuardOutcome.LOADING

    def test_unauthenticated_redirects_to_login(self):
        decision = RouteGuard().check(self._state())
        assert decision.outcome == GuardOutcome.REDIRECT
        assert decision.redirect_to == "/login"

    def test_wrong_role_redirects_to_dashboard(self):
        state = self._state(user={"role": "USER"}, token="t")
        decision = RouteGuard().check(state, ["ADMIN", "MODERATOR"])
        assert decision.outcome == GuardOutcome.REDIRECT
        assert decision.redirect_to == "/dashboard"

    def test_allowed(self):
        state = self._state(user={"role": "MODERATOR"}, token="t")
        guard = RouteGuard()
        assert guard.check(state).outcome == GuardOutcome.ALLOW
        assert guard.check(state, ["ADMIN", "MODERATOR"]).outcome == GuardOutcome.ALLOW
        assert guard.check(state, "MODERATOR").outcome == GuardOutcome.ALLOW
