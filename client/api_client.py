"""
HTTP client for the marketplace API, plus thin per-resource wrappers.

Every call returns an ``ApiResponse``; HTTP failures and network errors
are folded into ``success=False`` with a readable ``error`` instead of
raising, so session code can branch on the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from config.settings import config

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    status: Optional[int] = None


class ApiError(Exception):
    """Raised by callers that want a failed ``ApiResponse`` as an exception."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @classmethod
    def from_response(cls, response: ApiResponse) -> "ApiError":
        return cls(response.error or "Request failed", response.status)


class ApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or config.api_base_url).rstrip("/")
        self._transport = transport
        self._timeout = timeout

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        body: Any = None,
        token: str | None = None,
        params: Dict[str, Any] | None = None,
    ) -> ApiResponse:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                resp = await client.request(
                    method,
                    endpoint,
                    headers=headers,
                    params=params or None,
                    json=body if body is not None and method != "GET" else None,
                )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, endpoint, exc)
            return ApiResponse(success=False, error=str(exc) or "Network error")

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            return ApiResponse(
                success=False,
                data=data if isinstance(data, dict) else {},
                error=message or f"HTTP {resp.status_code}: {resp.reason_phrase}",
                status=resp.status_code,
            )
        return ApiResponse(success=True, data=data, status=resp.status_code)

    async def get(self, endpoint: str, token: str | None = None, params: Dict[str, Any] | None = None) -> ApiResponse:
        return await self.request("GET", endpoint, token=token, params=params)

    async def post(self, endpoint: str, body: Any = None, token: str | None = None) -> ApiResponse:
        return await self.request("POST", endpoint, body=body, token=token)

    async def put(self, endpoint: str, body: Any = None, token: str | None = None) -> ApiResponse:
        return await self.request("PUT", endpoint, body=body, token=token)

    async def delete(self, endpoint: str, token: str | None = None) -> ApiResponse:
        return await self.request("DELETE", endpoint, token=token)


# ── Resource wrappers ───────────────────────────────────────────────────


class AuthApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def login(self, email: str, password: str) -> ApiResponse:
        return await self.client.post("/api/auth/login", {"email": email, "password": password})

    async def register(self, username: str, email: str, password: str) -> ApiResponse:
        return await self.client.post(
            "/api/auth/register",
            {"username": username, "email": email, "password": password},
        )

    async def me(self, token: str) -> ApiResponse:
        return await self.client.get("/api/auth/me", token=token)


class GamesApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list_games(self) -> ApiResponse:
        return await self.client.get("/api/games")

    async def get_game(self, slug: str) -> ApiResponse:
        return await self.client.get(f"/api/games/{slug}")

    async def create_game(self, payload: Dict[str, Any], token: str) -> ApiResponse:
        return await self.client.post("/api/games/admin", payload, token=token)

    async def update_game(self, game_id: str, payload: Dict[str, Any], token: str) -> ApiResponse:
        return await self.client.put(f"/api/games/admin/{game_id}", payload, token=token)

    async def delete_game(self, game_id: str, token: str) -> ApiResponse:
        return await self.client.delete(f"/api/games/admin/{game_id}", token=token)


class CategoriesApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list_categories(self, game_slug: str) -> ApiResponse:
        return await self.client.get(f"/api/games/{game_slug}/categories")

    async def create_category(self, game_id: str, payload: Dict[str, Any], token: str) -> ApiResponse:
        return await self.client.post(f"/api/games/admin/{game_id}/categories", payload, token=token)

    async def update_category(self, category_id: str, payload: Dict[str, Any], token: str) -> ApiResponse:
        return await self.client.put(f"/api/categories/admin/{category_id}", payload, token=token)

    async def delete_category(self, category_id: str, token: str) -> ApiResponse:
        return await self.client.delete(f"/api/categories/admin/{category_id}", token=token)


class ListingsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def get_category_listings(
        self,
        game_slug: str,
        category_slug: str,
        *,
        page: int | None = None,
        limit: int | None = None,
        sort: str | None = None,
        delivery_type: str | None = None,
        stock_type: str | None = None,
        search: str | None = None,
    ) -> ApiResponse:
        params = {
            "page": page,
            "limit": limit,
            "sort": sort,
            "deliveryType": delivery_type,
            "stockType": stock_type,
            "search": search,
        }
        return await self.client.get(
            f"/api/games/{game_slug}/{category_slug}/listings",
            params={k: v for k, v in params.items() if v},
        )

    async def get_listing(self, listing_id: str) -> ApiResponse:
        return await self.client.get(f"/api/listings/{listing_id}")

    async def create_listing(self, payload: Dict[str, Any], token: str) -> ApiResponse:
        return await self.client.post("/api/listings", payload, token=token)

    async def update_listing(self, listing_id: str, payload: Dict[str, Any], token: str) -> ApiResponse:
        return await self.client.put(f"/api/listings/{listing_id}", payload, token=token)

    async def delete_listing(self, listing_id: str, token: str) -> ApiResponse:
        return await self.client.delete(f"/api/listings/{listing_id}", token=token)
