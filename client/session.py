"""
Client session state: the signed-in user, their token, and the glue that
keeps memory, persisted storage and the query cache consistent.

Invariant: ``token`` and ``user`` are either both set or both ``None``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from client.api_client import ApiError, ApiResponse, AuthApi
from client.query_cache import QueryCache
from client.storage import SessionStorage

logger = logging.getLogger(__name__)

AUTH_KEY = ("auth",)


class SessionState:
    def __init__(self, auth_api: AuthApi, storage: SessionStorage, cache: QueryCache):
        self.auth_api = auth_api
        self.storage = storage
        self.cache = cache
        self.user: Optional[Dict[str, Any]] = None
        self.token: Optional[str] = None
        self.is_verifying = False
        self.initialized = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.token is not None

    def has_role(self, roles: str | Iterable[str]) -> bool:
        if not self.user:
            return False
        allowed = {roles} if isinstance(roles, str) else set(roles)
        return self.user.get("role") in allowed

    def set_auth(self, user: Dict[str, Any], token: str) -> None:
        self.user = user
        self.token = token
        self.storage.save(token, user)

    def clear_auth(self) -> None:
        self.user = None
        self.token = None
        self.storage.clear()

    async def bootstrap(self) -> None:
        """
        Rehydrate from storage on startup.

        A stored token is verified against ``/api/auth/me`` before it is
        trusted; anything other than a successful answer wipes the session.
        """
        stored_token = self.storage.get_token()

        if stored_token and self.user is None:
            self.is_verifying = True

            async def _verify() -> dict:
                resp = await self.auth_api.me(stored_token)
                if not resp.success or not resp.data.get("user"):
                    raise ApiError.from_response(resp)
                return resp.data["user"]

            try:
                user = await self.cache.fetch(AUTH_KEY + ("me", stored_token), _verify)
                self.set_auth(user, stored_token)
            except ApiError as exc:
                logger.info("Stored token rejected (%s); clearing session", exc)
                self.clear_auth()
            except Exception as exc:
                logger.warning("Session verification failed: %s", exc)
                self.clear_auth()
            finally:
                self.is_verifying = False
        elif not stored_token and (self.user is not None or self.storage.get_user()):
            self.clear_auth()

        self.initialized = True

    async def login(self, email: str, password: str) -> ApiResponse:
        resp = await self.auth_api.login(email, password)
        if resp.success:
            self.set_auth(resp.data["user"], resp.data["token"])
            self.cache.invalidate(AUTH_KEY)
            logger.info("Signed in as %s", resp.data["user"].get("username"))
        return resp

    async def register(self, username: str, email: str, password: str) -> ApiResponse:
        """Create an account; the caller still has to log in."""
        return await self.auth_api.register(username, email, password)

    def logout(self) -> None:
        self.clear_auth()
        self.cache.clear()
        logger.info("Signed out")
