"""
Identity types handed to route handlers by the auth dependencies, and the
public projection of a ``User`` row.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from database.models import User, UserRole

__all__ = ["AuthenticatedUser", "User", "public_user"]


@dataclass(frozen=True)
class AuthenticatedUser:
    """A request's verified identity, re-read from the store."""

    id: uuid.UUID
    email: str
    role: UserRole
    username: str
    verified: bool
    balance: float
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_user(cls, user: User) -> "AuthenticatedUser":
        return cls(
            id=user.id,
            email=user.email,
            role=UserRole(user.role),
            username=user.username,
            verified=bool(user.verified),
            balance=float(user.balance or 0),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "verified": self.verified,
            "balance": self.balance,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def public_user(user: User) -> Dict[str, Any]:
    """User fields safe to return to clients (never the password hash)."""
    return {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "role": UserRole(user.role).value,
        "verified": bool(user.verified),
        "balance": float(user.balance or 0),
        "createdAt": user.created_at,
    }
