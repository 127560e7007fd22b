"""
Catalog query core — filters, sorting, pagination and the derived counts
shared by the games, categories and listings routes.

The listing browser runs its count and page queries concurrently, each on
its own session, against one filter expression so ``total`` and the page
can never be built from different predicates.
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ColumnElement

from api.errors import NotFoundError
from database.helpers import parse_uuid
from database.models import (
    OPEN_ORDER_STATUSES,
    Category,
    Game,
    Listing,
    Order,
    OrderStatus,
    User,
)
from utils.schemas import ListingSort, ListingsQuery

logger = logging.getLogger(__name__)

_SORT_ORDER = {
    ListingSort.PRICE_ASC: (Listing.price.asc(), Listing.id.asc()),
    ListingSort.PRICE_DESC: (Listing.price.desc(), Listing.id.asc()),
    ListingSort.NEWEST: (Listing.created_at.desc(), Listing.id.asc()),
    ListingSort.OLDEST: (Listing.created_at.asc(), Listing.id.asc()),
}


def enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def to_decimal(value: Optional[float]) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def to_number(value: Optional[Decimal]) -> Optional[float]:
    """Fixed-point columns leave the API as plain JSON numbers."""
    return None if value is None else float(value)


# ── Pagination ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass
class ListingPage:
    listings: List[Listing]
    completed_orders: Dict[uuid.UUID, int]
    pagination: Pagination


# ── Lookups ─────────────────────────────────────────────────────────────


async def get_active_game_by_slug(session: AsyncSession, slug: str) -> Game:
    result = await session.execute(
        select(Game).where(Game.slug == slug, Game.active.is_(True))
    )
    game = result.scalar_one_or_none()
    if game is None:
        raise NotFoundError("Game not found")
    return game


async def get_active_category(session: AsyncSession, game_id: uuid.UUID, slug: str) -> Category:
    result = await session.execute(
        select(Category).where(
            Category.game_id == game_id,
            Category.slug == slug,
            Category.active.is_(True),
        )
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError("Category not found")
    return category


async def get_by_id(session: AsyncSession, model, entity_id: str, label: str):
    """Fetch a row by primary key regardless of its active flag, or 404."""
    uid = parse_uuid(entity_id)
    row = await session.get(model, uid) if uid is not None else None
    if row is None:
        raise NotFoundError(f"{label} not found")
    return row


# ── Listing filters ─────────────────────────────────────────────────────


def build_listing_filter(
    game_id: uuid.UUID,
    category_id: uuid.UUID,
    query: ListingsQuery,
) -> ColumnElement[bool]:
    """Visible listings of one category, narrowed by the optional filters."""
    clauses = [
        Listing.game_id == game_id,
        Listing.category_id == category_id,
        Listing.active.is_(True),
        Listing.hidden.is_(False),
    ]
    if query.delivery_type is not None:
        clauses.append(Listing.delivery_type == query.delivery_type)
    if query.stock_type is not None:
        clauses.append(Listing.stock_type == query.stock_type)
    if query.search:
        pattern = f"%{_escape_like(query.search)}%"
        clauses.append(
            or_(
                Listing.title.ilike(pattern, escape="\\"),
                Listing.description.ilike(pattern, escape="\\"),
            )
        )
    return and_(*clauses)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ── Counts ──────────────────────────────────────────────────────────────


async def count_completed_orders(
    session: AsyncSession,
    listing_ids: Sequence[uuid.UUID],
) -> Dict[uuid.UUID, int]:
    """``{listing_id: number of COMPLETED orders}`` for the given listings."""
    if not listing_ids:
        return {}
    result = await session.execute(
        select(Order.listing_id, func.count(Order.id))
        .where(Order.listing_id.in_(listing_ids), Order.status == OrderStatus.COMPLETED)
        .group_by(Order.listing_id)
    )
    counts = {listing_id: 0 for listing_id in listing_ids}
    counts.update({listing_id: count for listing_id, count in result.all()})
    return counts


async def count_open_orders(session: AsyncSession, listing_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count(Order.id)).where(
            Order.listing_id == listing_id,
            Order.status.in_(OPEN_ORDER_STATUSES),
        )
    )
    return result.scalar_one()


async def count_active_listings(session: AsyncSession, *criteria: ColumnElement[bool]) -> int:
    result = await session.execute(
        select(func.count(Listing.id)).where(Listing.active.is_(True), *criteria)
    )
    return result.scalar_one()


async def active_listing_counts(
    session: AsyncSession,
    group_column,
    ids: Iterable[uuid.UUID],
) -> Dict[uuid.UUID, int]:
    """Active listing count per game or per category, keyed by *group_column*."""
    ids = list(ids)
    if not ids:
        return {}
    result = await session.execute(
        select(group_column, func.count(Listing.id))
        .where(Listing.active.is_(True), group_column.in_(ids))
        .group_by(group_column)
    )
    counts = {i: 0 for i in ids}
    counts.update(dict(result.all()))
    return counts


async def active_category_counts(
    session: AsyncSession,
    game_ids: Iterable[uuid.UUID],
) -> Dict[uuid.UUID, int]:
    game_ids = list(game_ids)
    if not game_ids:
        return {}
    result = await session.execute(
        select(Category.game_id, func.count(Category.id))
        .where(Category.active.is_(True), Category.game_id.in_(game_ids))
        .group_by(Category.game_id)
    )
    counts = {i: 0 for i in game_ids}
    counts.update(dict(result.all()))
    return counts


# ── Listing browser ─────────────────────────────────────────────────────


async def fetch_listing_page(
    session_factory: async_sessionmaker[AsyncSession],
    game_id: uuid.UUID,
    category_id: uuid.UUID,
    query: ListingsQuery,
) -> ListingPage:
    """
    Run the count and page queries concurrently over one filter.

    Exactly two queries are in flight; each gets its own session because a
    single ``AsyncSession`` cannot serve concurrent statements.
    """
    where = build_listing_filter(game_id, category_id, query)

    async def _count() -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count(Listing.id)).where(where))
            return result.scalar_one()

    async def _page() -> tuple[List[Listing], Dict[uuid.UUID, int]]:
        async with session_factory() as session:
            result = await session.execute(
                select(Listing)
                .where(where)
                .options(selectinload(Listing.seller))
                .order_by(*_SORT_ORDER[query.sort])
                .offset(query.skip)
                .limit(query.limit)
            )
            listings = list(result.scalars().all())
            completed = await count_completed_orders(session, [l.id for l in listings])
            return listings, completed

    total, (listings, completed) = await asyncio.gather(_count(), _page())
    return ListingPage(
        listings=listings,
        completed_orders=completed,
        pagination=Pagination(page=query.page, limit=query.limit, total=total),
    )


async def get_visible_listing(session: AsyncSession, listing_id: str) -> Listing:
    """A listing that is active and not hidden, with its relations loaded."""
    uid = parse_uuid(listing_id)
    listing = None
    if uid is not None:
        result = await session.execute(
            select(Listing)
            .where(Listing.id == uid, Listing.active.is_(True), Listing.hidden.is_(False))
            .options(
                selectinload(Listing.seller),
                selectinload(Listing.game),
                selectinload(Listing.category),
            )
        )
        listing = result.scalar_one_or_none()
    if listing is None:
        raise NotFoundError("Listing not found")
    return listing


# ── Delete policy ───────────────────────────────────────────────────────


async def delete_or_deactivate_listing(session: AsyncSession, listing: Listing) -> bool:
    """
    Hard-delete *listing* unless open orders still reference it.

    Returns ``True`` when the row was deactivated instead of removed.
    """
    if await count_open_orders(session, listing.id) > 0:
        listing.active = False
        await session.flush()
        return True
    await _hard_delete_listings(session, Listing.id == listing.id)
    return False


async def delete_or_deactivate_category(session: AsyncSession, category: Category) -> bool:
    if await count_active_listings(session, Listing.category_id == category.id) > 0:
        category.active = False
        await session.flush()
        return True
    await _hard_delete_listings(session, Listing.category_id == category.id)
    await session.execute(delete(Category).where(Category.id == category.id))
    return False


async def delete_or_deactivate_game(session: AsyncSession, game: Game) -> bool:
    if await count_active_listings(session, Listing.game_id == game.id) > 0:
        game.active = False
        await session.flush()
        return True
    await _hard_delete_listings(session, Listing.game_id == game.id)
    await session.execute(delete(Category).where(Category.game_id == game.id))
    await session.execute(delete(Game).where(Game.id == game.id))
    return False


async def _hard_delete_listings(session: AsyncSession, criterion: ColumnElement[bool]) -> None:
    """Remove listings; their orders keep their history with a null listing."""
    listing_ids = select(Listing.id).where(criterion)
    await session.execute(
        update(Order).where(Order.listing_id.in_(listing_ids)).values(listing_id=None)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        delete(Listing).where(criterion).execution_options(synchronize_session="fetch")
    )


# ── Serializers ─────────────────────────────────────────────────────────


def game_summary(game: Game) -> Dict[str, Any]:
    return {"id": str(game.id), "name": game.name, "slug": game.slug}


def category_summary(category: Category) -> Dict[str, Any]:
    return {"id": str(category.id), "name": category.name, "slug": category.slug}


def seller_summary(seller: User) -> Dict[str, Any]:
    return {
        "id": str(seller.id),
        "username": seller.username,
        "memberSince": seller.created_at,
    }


def listing_fields(listing: Listing) -> Dict[str, Any]:
    return {
        "id": str(listing.id),
        "title": listing.title,
        "price": to_number(listing.price),
        "description": listing.description,
        "deliveryType": enum_value(listing.delivery_type),
        "stockType": enum_value(listing.stock_type),
        "quantity": listing.quantity,
        "images": list(listing.images or []),
        "customFields": listing.custom_fields,
        "createdAt": listing.created_at,
    }
