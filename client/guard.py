"""
Route guard: decide whether a protected view may render.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from client.session import SessionState


class GuardOutcome(str, Enum):
    LOADING = "loading"
    ALLOW = "allow"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    redirect_to: Optional[str] = None


class RouteGuard:
    def __init__(self, login_path: str = "/login", fallback_path: str = "/dashboard"):
        self.login_path = login_path
        self.fallback_path = fallback_path

    def check(
        self,
        session: SessionState,
        required_roles: str | Iterable[str] | None = None,
    ) -> GuardDecision:
        if not session.initialized or session.is_verifying:
            return GuardDecision(GuardOutcome.LOADING)
        if not session.is_authenticated:
            return GuardDecision(GuardOutcome.REDIRECT, self.login_path)
        if required_roles and not session.has_role(required_roles):
            return GuardDecision(GuardOutcome.REDIRECT, self.fallback_path)
        return GuardDecision(GuardOutcome.ALLOW)
