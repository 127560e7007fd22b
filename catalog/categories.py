"""
Category admin routes — update and delete/deactivate.

Route prefix: /api/categories
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.errors import ConflictError
from auth.dependencies import db_session, require_admin
from auth.models import AuthenticatedUser
from catalog.games import category_fields
from catalog.queries import (
    delete_or_deactivate_category,
    game_summary,
    get_by_id,
    to_decimal,
)
from database.models import Category, Game
from utils.schemas import CategoryUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["categories"])


@router.put("/admin/{category_id}")
async def update_category(
    category_id: str,
    req: CategoryUpdate,
    session: AsyncSession = Depends(db_session),
    admin: AuthenticatedUser = Depends(require_admin),
) -> Dict[str, Any]:
    category = await get_by_id(session, Category, category_id, "Category")
    changes = req.model_dump(exclude_unset=True, exclude_none=True)

    new_slug = changes.get("slug")
    if new_slug and new_slug != category.slug:
        result = await session.execute(
            select(Category.id).where(
                Category.game_id == category.game_id,
                Category.slug == new_slug,
            )
        )
        if result.first() is not None:
            raise ConflictError("Category slug already exists for this game")

    if "commission_rate" in changes:
        changes["commission_rate"] = to_decimal(changes["commission_rate"])
    for field, value in changes.items():
        setattr(category, field, value)
    await session.flush()
    await session.refresh(category)
    game = await session.get(Game, category.game_id)

    logger.info("Category %s updated by %s: %s", category.id, admin.id, sorted(changes))
    return {
        "success": True,
        "category": {
            **category_fields(category),
            "gameId": str(category.game_id),
            "active": category.active,
            "game": game_summary(game),
        },
    }


@router.delete("/admin/{category_id}")
async def delete_category(
    category_id: str,
    session: AsyncSession = Depends(db_session),
    admin: AuthenticatedUser = Depends(require_admin),
) -> Dict[str, Any]:
    """Deactivate a category that still has active listings, otherwise delete it."""
    category = await get_by_id(session, Category, category_id, "Category")
    game = await session.get(Game, category.game_id)
    echo = {
        "id": str(category.id),
        "gameId": str(category.game_id),
        "name": category.name,
        "slug": category.slug,
        "game": game_summary(game),
    }

    if await delete_or_deactivate_category(session, category):
        logger.info("Category %s deactivated by %s", category_id, admin.id)
        return {
            "success": True,
            "message": "Category deactivated (had active listings)",
            "deactivated": True,
            "category": {**echo, "active": False},
        }

    logger.info("Category %s deleted by %s", category_id, admin.id)
    return {
        "success": True,
        "message": "Category deleted successfully",
        "deleted": True,
        "category": echo,
    }
