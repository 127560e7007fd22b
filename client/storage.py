"""
Persisted client-side session storage.

A small JSON file holding the bearer token and the last verified user so a
restarted client can rehydrate its session.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
from typing import Any, Dict, Optional

from config.settings import config

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"


def default_storage_path() -> pathlib.Path:
    if config.session_storage_path:
        return pathlib.Path(config.session_storage_path)
    return pathlib.Path.home() / ".marketplace" / "session.json"


class SessionStorage:
    def __init__(self, path: str | os.PathLike | None = None):
        self.path = pathlib.Path(path) if path is not None else default_storage_path()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh, default=str)
        os.replace(tmp, self.path)

    def get_token(self) -> Optional[str]:
        return self._read().get(TOKEN_KEY)

    def get_user(self) -> Optional[Dict[str, Any]]:
        return self._read().get(USER_KEY)

    def save(self, token: str, user: Dict[str, Any]) -> None:
        """Persist token and user together; one is never stored without the other."""
        self._write({TOKEN_KEY: token, USER_KEY: user})

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
