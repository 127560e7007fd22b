"""
Listing routes — browse a category, view, create, update, delete.

Route prefix: /api
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.errors import ForbiddenError, NotFoundError, ValidationError, first_validation_message
from auth.dependencies import db_session, get_current_user
from auth.models import AuthenticatedUser
from catalog.queries import (
    category_summary,
    count_active_listings,
    count_completed_orders,
    delete_or_deactivate_listing,
    fetch_listing_page,
    game_summary,
    get_active_category,
    get_active_game_by_slug,
    get_by_id,
    get_visible_listing,
    listing_fields,
    seller_summary,
    to_decimal,
    to_number,
)
from database.helpers import parse_uuid
from database.models import Category, Game, Listing
from database.session import get_session_factory
from utils.schemas import ListingCreate, ListingsQuery, ListingUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["listings"])


def parse_listings_query(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    delivery_type: Optional[str] = Query(None, alias="deliveryType"),
    stock_type: Optional[str] = Query(None, alias="stockType"),
    search: Optional[str] = Query(None),
) -> ListingsQuery:
    """Validate the browse query string, reporting the first bad parameter."""
    raw = {
        "page": page,
        "limit": limit,
        "sort": sort,
        "delivery_type": delivery_type,
        "stock_type": stock_type,
        "search": search,
    }
    try:
        return ListingsQuery(**{k: v for k, v in raw.items() if v is not None})
    except PydanticValidationError as exc:
        raise ValidationError(first_validation_message(exc)) from exc


def _managed_listing(listing: Listing, game: Game, category: Category) -> Dict[str, Any]:
    return {
        **listing_fields(listing),
        "active": listing.active,
        "hidden": listing.hidden,
        "game": game_summary(game),
        "category": category_summary(category),
    }


async def _owned_listing(
    session: AsyncSession,
    listing_id: str,
    user: AuthenticatedUser,
    action: str,
) -> Listing:
    """Existence is checked before ownership: 404 wins over 403."""
    listing = await get_by_id(session, Listing, listing_id, "Listing")
    if listing.seller_id != user.id:
        raise ForbiddenError(f"You can only {action} your own listings")
    return listing


@router.get("/games/{game_slug}/{category_slug}/listings")
async def list_category_listings(
    game_slug: str,
    category_slug: str,
    query: ListingsQuery = Depends(parse_listings_query),
    session: AsyncSession = Depends(db_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> Dict[str, Any]:
    """Paginated, filtered listings of one category."""
    game = await get_active_game_by_slug(session, game_slug)
    category = await get_active_category(session, game.id, category_slug)

    page = await fetch_listing_page(session_factory, game.id, category.id, query)

    return {
        "success": True,
        "game": game_summary(game),
        "category": category_summary(category),
        "listings": [
            {
                **listing_fields(listing),
                "seller": seller_summary(listing.seller),
                "completedOrders": page.completed_orders.get(listing.id, 0),
            }
            for listing in page.listings
        ],
        "pagination": page.pagination.to_dict(),
    }


@router.get("/listings/{listing_id}")
async def get_listing(
    listing_id: str,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    listing = await get_visible_listing(session, listing_id)
    completed = await count_completed_orders(session, [listing.id])
    seller_listings = await count_active_listings(session, Listing.seller_id == listing.seller_id)

    return {
        "success": True,
        "listing": {
            **listing_fields(listing),
            "boostedAt": listing.boosted_at,
            "game": game_summary(listing.game),
            "category": {
                **category_summary(listing.category),
                "commissionRate": to_number(listing.category.commission_rate),
            },
            "seller": {
                **seller_summary(listing.seller),
                "totalListings": seller_listings,
            },
            "completedOrders": completed.get(listing.id, 0),
        },
    }


@router.post("/listings", status_code=status.HTTP_201_CREATED)
async def create_listing(
    req: ListingCreate,
    session: AsyncSession = Depends(db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
    game_id = parse_uuid(req.game_id)
    game = await session.get(Game, game_id) if game_id else None
    if game is None or not game.active:
        raise NotFoundError("Game not found")

    # The category must belong to the game named in the same request.
    category = None
    category_id = parse_uuid(req.category_id)
    if category_id is not None:
        result = await session.execute(
            select(Category).where(
                Category.id == category_id,
                Category.game_id == game.id,
                Category.active.is_(True),
            )
        )
        category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError("Category not found")

    listing = Listing(
        seller_id=user.id,
        game_id=game.id,
        category_id=category.id,
        title=req.title,
        price=to_decimal(req.price),
        description=req.description,
        delivery_type=req.delivery_type,
        stock_type=req.stock_type,
        quantity=req.quantity,
        images=req.images,
        custom_fields=req.custom_fields,
        active=True,
        hidden=False,
    )
    session.add(listing)
    await session.flush()
    await session.refresh(listing)

    logger.info("Listing %s created by %s in %s/%s", listing.id, user.id, game.slug, category.slug)
    return {"success": True, "listing": _managed_listing(listing, game, category)}


@router.put("/listings/{listing_id}")
async def update_listing(
    listing_id: str,
    req: ListingUpdate,
    session: AsyncSession = Depends(db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
    listing = await _owned_listing(session, listing_id, user, "update")

    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    if "price" in changes:
        changes["price"] = to_decimal(changes["price"])
    for field, value in changes.items():
        setattr(listing, field, value)
    await session.flush()
    await session.refresh(listing)

    game = await session.get(Game, listing.game_id)
    category = await session.get(Category, listing.category_id)
    logger.info("Listing %s updated by %s: %s", listing.id, user.id, sorted(changes))
    return {"success": True, "listing": _managed_listing(listing, game, category)}


@router.delete("/listings/{listing_id}")
async def delete_listing(
    listing_id: str,
    session: AsyncSession = Depends(db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
    """Deactivate a listing with open orders, otherwise delete it."""
    listing = await _owned_listing(session, listing_id, user, "delete")

    if await delete_or_deactivate_listing(session, listing):
        logger.info("Listing %s deactivated by %s (open orders)", listing_id, user.id)
        return {
            "success": True,
            "message": "Listing deactivated (had pending orders)",
            "deactivated": True,
        }

    logger.info("Listing %s deleted by %s", listing_id, user.id)
    return {"success": True, "message": "Listing deleted successfully", "deleted": True}
