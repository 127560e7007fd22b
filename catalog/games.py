"""
Game and per-game category routes, public and admin.

Route prefix: /api/games
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.errors import ConflictError
from auth.dependencies import db_session, require_admin
from auth.models import AuthenticatedUser
from catalog.queries import (
    active_category_counts,
    active_listing_counts,
    count_active_listings,
    delete_or_deactivate_game,
    get_active_game_by_slug,
    get_by_id,
    game_summary,
    to_decimal,
    to_number,
)
from database.models import Category, Game, Listing
from utils.schemas import CategoryCreate, GameCreate, GameUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["games"])


def _game_fields(game: Game) -> Dict[str, Any]:
    return {
        "id": str(game.id),
        "name": game.name,
        "slug": game.slug,
        "imageUrl": game.image_url,
        "platformTypes": list(game.platform_types or []),
        "orderIndex": game.order_index,
        "createdAt": game.created_at,
    }


def category_fields(category: Category) -> Dict[str, Any]:
    return {
        "id": str(category.id),
        "name": category.name,
        "slug": category.slug,
        "commissionRate": to_number(category.commission_rate),
        "fieldsConfig": category.fields_config,
    }


async def _slug_taken(session: AsyncSession, slug: str) -> bool:
    result = await session.execute(select(Game.id).where(Game.slug == slug))
    return result.first() is not None


# ── Public ─────────────────────────────────────────────────────────────


@router.get("")
async def list_games(session: AsyncSession = Depends(db_session)) -> Dict[str, Any]:
    """All active games in display order."""
    result = await session.execute(
        select(Game)
        .where(Game.active.is_(True))
        .order_by(Game.order_index.asc(), Game.name.asc())
    )
    games = list(result.scalars().all())
    ids = [g.id for g in games]
    category_counts = await active_category_counts(session, ids)
    listing_counts = await active_listing_counts(session, Listing.game_id, ids)

    return {
        "success": True,
        "games": [
            {
                **_game_fields(game),
                "categoriesCount": category_counts.get(game.id, 0),
                "listingsCount": listing_counts.get(game.id, 0),
            }
            for game in games
        ],
    }


@router.get("/{slug}")
async def get_game(slug: str, session: AsyncSession = Depends(db_session)) -> Dict[str, Any]:
    """Single active game with its active categories."""
    game = await get_active_game_by_slug(session, slug)
    result = await session.execute(
        select(Category)
        .where(Category.game_id == game.id, Category.active.is_(True))
        .order_by(Category.name.asc())
    )
    categories = list(result.scalars().all())
    per_category = await active_listing_counts(
        session, Listing.category_id, [c.id for c in categories]
    )

    return {
        "success": True,
        "game": {
            **_game_fields(game),
            "listingsCount": await count_active_listings(session, Listing.game_id == game.id),
            "categories": [
                {**category_fields(c), "listingsCount": per_category.get(c.id, 0)}
                for c in categories
            ],
        },
    }


@router.get("/{game_slug}/categories")
async def list_game_categories(
    game_slug: str,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Active categories of an active game."""
    game = await get_active_game_by_slug(session, game_slug)
    result = await session.execute(
        select(Category)
        .where(Category.game_id == game.id, Category.active.is_(True))
        .order_by(Category.name.asc())
    )
    categories = list(result.scalars().all())
    per_category = await active_listing_counts(
        session, Listing.category_id, [c.id for c in categories]
    )

    return {
        "success": True,
        "game": game_summary(game),
        "categories": [
            {
                **category_fields(c),
                "active": c.active,
                "listingsCount": per_category.get(c.id, 0),
            }
            for c in categories
        ],
    }


# ── Admin ──────────────────────────────────────────────────────────────


@router.post("/admin", status_code=status.HTTP_201_CREATED)
async def create_game(
    req: GameCreate,
    session: AsyncSession = Depends(db_session),
    admin: AuthenticatedUser = Depends(require_admin),
) -> Dict[str, Any]:
    if await _slug_taken(session, req.slug):
        raise ConflictError("Game slug already exists")

    game = Game(
        name=req.name,
        slug=req.slug,
        image_url=req.image_url,
        platform_types=req.platform_types,
        order_index=req.order_index,
        active=True,
    )
    session.add(game)
    await session.flush()
    await session.refresh(game)

    logger.info("Game %s created by %s", game.slug, admin.id)
    return {"success": True, "game": {**_game_fields(game), "active": game.active}}


@router.put("/admin/{game_id}")
async def update_game(
    game_id: str,
    req: GameUpdate,
    session: AsyncSession = Depends(db_session),
    admin: AuthenticatedUser = Depends(require_admin),
) -> Dict[str, Any]:
    game = await get_by_id(session, Game, game_id, "Game")
    changes = req.model_dump(exclude_unset=True, exclude_none=True)

    new_slug = changes.get("slug")
    if new_slug and new_slug != game.slug and await _slug_taken(session, new_slug):
        raise ConflictError("Game slug already exists")

    for field, value in changes.items():
        setattr(game, field, value)
    await session.flush()
    await session.refresh(game)

    logger.info("Game %s updated by %s: %s", game.id, admin.id, sorted(changes))
    return {"success": True, "game": {**_game_fields(game), "active": game.active}}


@router.delete("/admin/{game_id}")
async def delete_game(
    game_id: str,
    session: AsyncSession = Depends(db_session),
    admin: AuthenticatedUser = Depends(require_admin),
) -> Dict[str, Any]:
    """Deactivate a game that still has active listings, otherwise delete it."""
    game = await get_by_id(session, Game, game_id, "Game")

    if await delete_or_deactivate_game(session, game):
        logger.info("Game %s deactivated by %s", game_id, admin.id)
        return {
            "success": True,
            "message": "Game deactivated (had active listings)",
            "deactivated": True,
        }

    logger.info("Game %s deleted by %s", game_id, admin.id)
    return {"success": True, "message": "Game deleted successfully", "deleted": True}


@router.post("/admin/{game_id}/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    game_id: str,
    req: CategoryCreate,
    session: AsyncSession = Depends(db_session),
    admin: AuthenticatedUser = Depends(require_admin),
) -> Dict[str, Any]:
    game = await get_by_id(session, Game, game_id, "Game")

    result = await session.execute(
        select(Category.id).where(Category.game_id == game.id, Category.slug == req.slug)
    )
    if result.first() is not None:
        raise ConflictError("Category slug already exists for this game")

    category = Category(
        game_id=game.id,
        name=req.name,
        slug=req.slug,
        commission_rate=to_decimal(req.commission_rate),
        fields_config=req.fields_config,
        active=True,
    )
    session.add(category)
    await session.flush()
    await session.refresh(category)

    logger.info("Category %s/%s created by %s", game.slug, category.slug, admin.id)
    return {
        "success": True,
        "category": {
            **category_fields(category),
            "gameId": str(category.game_id),
            "active": category.active,
        },
    }
