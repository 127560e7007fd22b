"""
Tests for game and category routes, including the admin role gate.
"""

import pytest

from conftest import bearer
from database.models import UserRole


class TestRoleGate:
    @pytest.mark.asyncio
    async def test_no_token_is_401_before_403(self, client):
        resp = await client.post("/api/games/admin", json={})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Access token required"

    @pytest.mark.asyncio
    async def test_plain_user_forbidden(self, api, client):
        _, token = await api.user_token()
        resp = await client.post(
            "/api/games/admin",
            json={"name": "X", "slug": "x", "platformTypes": ["PC"]},
            headers=bearer(token),
        )
        assert resp.status_code == 403
        assert resp.json() == {"success": False, "error": "Admin access required"}

    @pytest.mark.asyncio
    async def test_support_role_forbidden(self, api, client):
        _, token = await api.user_token(UserRole.SUPPORT)
        resp = await client.delete(
            "/api/games/admin/00000000-0000-0000-0000-000000000000", headers=bearer(token)
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_moderator_allowed(self, api):
        _, token = await api.user_token(UserRole.MODERATOR)
        game = await api.create_game(token, slug="dota-2")
        assert game["slug"] == "dota-2"


class TestGames:
    @pytest.mark.asyncio
    async def test_list_games_ordered_with_counts(self, api, client, admin):
        _, token = admin
        second = await api.create_game(token, slug="b-game", orderIndex=2)
        first = await api.create_game(token, slug="a-game", orderIndex=1)
        await api.create_category(token, first["id"], slug="items")
        hidden = await api.create_game(token, slug="old-game")
        await client.put(
            f"/api/games/admin/{hidden['id']}", json={"active": False}, headers=bearer(token)
        )

        resp = await client.get("/api/games")
        assert resp.status_code == 200
        games = resp.json()["games"]
        assert [g["slug"] for g in games] == ["a-game", "b-game"]
        assert games[0]["categoriesCount"] == 1
        assert games[0]["listingsCount"] == 0
        assert games[1]["id"] == second["id"]

    @pytest.mark.asyncio
    async def test_get_game_with_categories(self, api, client, catalog):
        await api.create_listing(
            catalog["seller_token"], catalog["game"]["id"], catalog["category"]["id"]
        )
        resp = await client.get("/api/games/valorant")
        assert resp.status_code == 200
        game = resp.json()["game"]
        assert game["name"] == "Valorant"
        assert game["listingsCount"] == 1
        assert game["categories"][0]["slug"] == "accounts"
        assert game["categories"][0]["listingsCount"] == 1
        assert game["categories"][0]["commissionRate"] == 10

    @pytest.mark.asyncio
    async def test_unknown_game_404(self, client, db):
        resp = await client.get("/api/games/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Game not found"

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflict(self, api, client, admin):
        _, token = admin
        await api.create_game(token, slug="valorant")
        resp = await client.post(
            "/api/games/admin",
            json={"name": "Other", "slug": "valorant", "platformTypes": ["PC"]},
            headers=bearer(token),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "Game slug already exists"

    @pytest.mark.asyncio
    async def test_create_validation(self, client, admin):
        _, token = admin
        resp = await client.post(
            "/api/games/admin",
            json={"name": "Bad", "slug": "Bad Slug", "platformTypes": ["PC"]},
            headers=bearer(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == (
            "Game slug can only contain lowercase letters, numbers, and hyphens"
        )

        resp = await client.post(
            "/api/games/admin",
            json={"name": "Bad", "slug": "bad", "platformTypes": []},
            headers=bearer(token),
        )
        assert resp.json()["error"] == "At least one platform type is required"

    @pytest.mark.asyncio
    async def test_update_game(self, api, client, admin):
        _, token = admin
        game = await api.create_game(token, slug="cs")
        resp = await client.put(
            f"/api/games/admin/{game['id']}",
            json={"name": "Counter-Strike", "orderIndex": 5},
            headers=bearer(token),
        )
        assert resp.status_code == 200
        updated = resp.json()["game"]
        assert updated["name"] == "Counter-Strike"
        assert updated["orderIndex"] == 5
        assert updated["slug"] == "cs"

    @pytest.mark.asyncio
    async def test_update_missing_game_404(self, client, admin):
        _, token = admin
        resp = await client.put(
            "/api/games/admin/not-a-uuid", json={"name": "X"}, headers=bearer(token)
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_game_without_listings(self, api, client, admin):
        _, token = admin
        game = await api.create_game(token, slug="empty")
        await api.create_category(token, game["id"], slug="items")

        resp = await client.delete(f"/api/games/admin/{game['id']}", headers=bearer(token))
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Game deleted successfully",
            "deleted": True,
        }
        assert (await client.get("/api/games/empty")).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_game_with_listings_deactivates(self, api, client, catalog):
        await api.create_listing(
            catalog["seller_token"], catalog["game"]["id"], catalog["category"]["id"]
        )
        resp = await client.delete(
            f"/api/games/admin/{catalog['game']['id']}", headers=bearer(catalog["admin_token"])
        )
        assert resp.json()["deactivated"] is True
        assert resp.json()["message"] == "Game deactivated (had active listings)"
        assert (await client.get("/api/games/valorant")).status_code == 404


class TestCategories:
    @pytest.mark.asyncio
    async def test_list_categories(self, client, catalog):
        resp = await client.get("/api/games/valorant/categories")
        assert resp.status_code == 200
        body = resp.json()
        assert body["game"]["slug"] == "valorant"
        assert [c["slug"] for c in body["categories"]] == ["accounts"]
        assert body["categories"][0]["active"] is True

    @pytest.mark.asyncio
    async def test_category_slug_unique_per_game(self, api, client, catalog):
        token = catalog["admin_token"]
        resp = await client.post(
            f"/api/games/admin/{catalog['game']['id']}/categories",
            json={"name": "Again", "slug": "accounts"},
            headers=bearer(token),
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "Category slug already exists for this game"

        other = await api.create_game(token, slug="fortnite")
        same_slug = await api.create_category(token, other["id"], slug="accounts")
        assert same_slug["gameId"] == other["id"]

    @pytest.mark.asyncio
    async def test_category_defaults(self, catalog):
        assert catalog["category"]["commissionRate"] == 10
        assert catalog["category"]["active"] is True

    @pytest.mark.asyncio
    async def test_commission_out_of_range(self, client, catalog):
        resp = await client.post(
            f"/api/games/admin/{catalog['game']['id']}/categories",
            json={"name": "Coins", "slug": "coins", "commissionRate": 150},
            headers=bearer(catalog["admin_token"]),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Commission rate must be between 0 and 100"

    @pytest.mark.asyncio
    async def test_update_category(self, client, catalog):
        resp = await client.put(
            f"/api/categories/admin/{catalog['category']['id']}",
            json={"commissionRate": 7.5, "name": "Smurf accounts"},
            headers=bearer(catalog["admin_token"]),
        )
        assert resp.status_code == 200
        category = resp.json()["category"]
        assert category["commissionRate"] == 7.5
        assert category["name"] == "Smurf accounts"
        assert category["game"]["slug"] == "valorant"

    @pytest.mark.asyncio
    async def test_delete_category_hard_and_soft(self, api, client, catalog):
        token = catalog["admin_token"]
        spare = await api.create_category(token, catalog["game"]["id"], slug="coins")
        resp = await client.delete(f"/api/categories/admin/{spare['id']}", headers=bearer(token))
        assert resp.json()["deleted"] is True
        assert resp.json()["category"]["slug"] == "coins"

        await api.create_listing(
            catalog["seller_token"], catalog["game"]["id"], catalog["category"]["id"]
        )
        resp = await client.delete(
            f"/api/categories/admin/{catalog['category']['id']}", headers=bearer(token)
        )
        body = resp.json()
        assert body["deactivated"] is True
        assert body["message"] == "Category deactivated (had active listings)"
        assert body["category"]["active"] is False

        resp = await client.get("/api/games/valorant/categories")
        assert resp.json()["categories"] == []

    @pytest.mark.asyncio
    async def test_missing_category_404(self, client, admin):
        _, token = admin
        resp = await client.delete(
            "/api/categories/admin/00000000-0000-0000-0000-000000000000", headers=bearer(token)
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "Category not found"
