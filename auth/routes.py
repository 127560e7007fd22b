"""
Auth API routes — register, login, me.

Route prefix: /api/auth
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.errors import ConflictError, InvalidCredentialsError
from auth.dependencies import db_session, get_current_user
from auth.jwt import create_token
from auth.models import AuthenticatedUser, User, public_user
from auth.password import hash_password, verify_password
from database.helpers import find_user_by_email_or_username, get_user_by_email
from database.models import UserRole
from utils.schemas import LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    req: RegisterRequest,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Register a new user."""
    existing = await find_user_by_email_or_username(session, req.email, req.username)
    if existing is not None:
        field = "Email" if existing.email == req.email else "Username"
        raise ConflictError(f"{field} already exists")

    user = User(
        username=req.username,
        email=req.email,
        password_hash=hash_password(req.password),
        role=UserRole.USER,
        verified=False,
        balance=0,
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)

    logger.info("Registered user %s (%s)", user.username, user.id)
    return {"success": True, "user": public_user(user)}


@router.post("/login")
async def login(
    req: LoginRequest,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Login with email + password."""
    user = await get_user_by_email(session, req.email)

    # Same error for unknown email and wrong password.
    if user is None or not verify_password(req.password, user.password_hash):
        raise InvalidCredentialsError()

    role = UserRole(user.role)
    token = create_token(str(user.id), user.email, role.value)
    logger.info("Login: %s (%s)", user.username, user.id)

    return {"success": True, "token": token, "user": public_user(user)}


@router.get("/me")
async def me(user: AuthenticatedUser = Depends(get_current_user)) -> Dict[str, Any]:
    """Return the user behind the presented Bearer token."""
    return {"success": True, "user": user.to_dict()}
