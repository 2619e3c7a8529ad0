"""Explicit authentication session passed to every service that needs it."""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

logger = logging.getLogger(__name__)


class AuthSession:
    """Holds the bearer token and user for one browser/CLI session.

    Lifecycle: ``init`` on start, ``refresh`` after login or token validation,
    ``clear`` on logout or when the backend answers 401.
    """

    def __init__(self, token: Optional[str] = None, user: Optional[dict[str, Any]] = None) -> None:
        self.token = token or None
        self.user = user

    @classmethod
    def init(cls, token: Optional[str] = None) -> "AuthSession":
        """Start a session from an explicit token or ``HOMESTAY_API_TOKEN``."""

        return cls(token=token or os.getenv("HOMESTAY_API_TOKEN") or None)

    @classmethod
    def from_authorization(cls, header: Optional[str]) -> "AuthSession":
        if header and header.lower().startswith("bearer "):
            return cls(token=header[7:].strip())
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def refresh(self, token: str, user: Optional[dict[str, Any]] = None) -> None:
        self.token = token
        if user is not None:
            # Backends disagree on where the id lives.
            if "id" not in user:
                user = {**user, "id": user.get("user_id") or user.get("userId")}
            self.user = user

    def clear(self) -> None:
        if self.token:
            logger.info("[AUTH] Clearing session token")
        self.token = None
        self.user = None

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}
