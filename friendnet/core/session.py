from __future__ import annotations

import logging
from dataclasses import dataclass

from friendnet.core.errors import NotAuthenticatedError


logger = logging.getLogger(__name__)


@dataclass
class AuthSession:
    """Bearer credentials for the current user.

    One instance is created per client and handed to every controller that
    makes authenticated calls. ``login`` populates it, ``logout`` clears it.
    """

    token: str | None = None
    user_id: str | None = None
    username: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def login(self, token: str, user_id: str, username: str | None = None) -> None:
        if not token:
            raise ValueError("token must not be empty")
        self.token = token
        self.user_id = user_id
        self.username = username
        logger.info("session opened user_id=%s", user_id)

    def logout(self) -> None:
        if self.user_id is not None:
            logger.info("session closed user_id=%s", self.user_id)
        self.token = None
        self.user_id = None
        self.username = None

    def auth_headers(self) -> dict[str, str]:
        if not self.token:
            raise NotAuthenticatedError()
        return {"Authorization": f"Bearer {self.token}"}
