"""
Listing browser: page, sort, filter and debounced search state for one
category, backed by the query cache.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from client.api_client import ApiError, ListingsApi
from client.debounce import Debouncer
from client.query_cache import QueryCache
from config.settings import config

logger = logging.getLogger(__name__)


class ListingBrowser:
    def __init__(
        self,
        listings_api: ListingsApi,
        cache: QueryCache,
        game_slug: str,
        category_slug: str,
        *,
        limit: int | None = None,
        debounce_delay: float | None = None,
    ):
        self.listings_api = listings_api
        self.cache = cache
        self.game_slug = game_slug
        self.category_slug = category_slug
        self.limit = limit or config.default_page_size

        self.page = 1
        self.sort = "newest"
        self.delivery_type: Optional[str] = None
        self.stock_type: Optional[str] = None
        self.search_input = ""
        self.search: Optional[str] = None
        self._debouncer: Debouncer[str] = Debouncer(self._apply_search, debounce_delay)

    @property
    def is_typing(self) -> bool:
        return self._debouncer.pending

    def type_search(self, text: str) -> None:
        """Record keystrokes; the query term follows once typing pauses."""
        self.search_input = text
        self._debouncer(text)

    def _apply_search(self, text: str) -> None:
        self.search = text.strip() or None
        self.page = 1

    async def settle(self) -> None:
        await self._debouncer.wait()

    def set_page(self, page: int) -> None:
        self.page = max(1, page)

    def set_sort(self, sort: str) -> None:
        self.sort = sort
        self.page = 1

    def set_delivery_type(self, value: Optional[str]) -> None:
        self.delivery_type = value or None
        self.page = 1

    def set_stock_type(self, value: Optional[str]) -> None:
        self.stock_type = value or None
        self.page = 1

    def query_key(self) -> tuple:
        return (
            "categoryListings",
            self.game_slug,
            self.category_slug,
            self.page,
            self.limit,
            self.sort,
            self.delivery_type,
            self.stock_type,
            self.search,
        )

    async def _fetch(self) -> Dict[str, Any]:
        resp = await self.listings_api.get_category_listings(
            self.game_slug,
            self.category_slug,
            page=self.page,
            limit=self.limit,
            sort=self.sort,
            delivery_type=self.delivery_type,
            stock_type=self.stock_type,
            search=self.search,
        )
        if not resp.success:
            raise ApiError.from_response(resp)
        return resp.data

    async def load(self) -> Dict[str, Any]:
        """Current page payload (listings, pagination, game, category)."""
        return await self.cache.fetch(
            self.query_key(),
            self._fetch,
            stale_time=config.listings_stale_seconds,
        )
