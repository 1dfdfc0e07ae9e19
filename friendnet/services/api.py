from __future__ import annotations

import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from friendnet.core.config import Settings, settings as default_settings
from friendnet.core.errors import ApiError, api_error_from_http
from friendnet.core.session import AuthSession
from friendnet.schemas.auth import AuthResponse, Credentials
from friendnet.schemas.friends import (
    FriendRecommendation,
    FriendRequest,
    FriendRequestDecision,
    FriendRequestRespond,
)
from friendnet.schemas.users import User

logger = logging.getLogger(__name__)

T = TypeVar("T")

_USERS = TypeAdapter(list[User])
_FRIEND_REQUESTS = TypeAdapter(list[FriendRequest])
_RECOMMENDATIONS = TypeAdapter(list[FriendRecommendation])


def _segment(user_id: str) -> str:
    return quote(str(user_id), safe="")


class FriendsApi:
    """Async wrapper around the friend-network REST endpoints.

    Every method either returns parsed models or raises ``ApiError``; callers
    never see raw ``httpx`` exceptions. Authenticated calls take the
    ``AuthSession`` explicitly and fail with ``NotAuthenticatedError`` before
    touching the network when it holds no token.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.http_timeout_seconds,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        session: AuthSession | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if session is not None:
            headers.update(session.auth_headers())

        try:
            async with self._client() as client:
                r = await client.request(method, path, params=params, json=json, headers=headers)
                r.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed", method, path, exc_info=exc)
            raise api_error_from_http(exc) from exc

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as exc:
            raise ApiError(f"Invalid JSON from {method} {path}") from exc

    @staticmethod
    def _parse(adapter: TypeAdapter[T], data: Any, what: str) -> T:
        try:
            return adapter.validate_python(data if data is not None else [])
        except ValidationError as exc:
            raise ApiError(f"Unexpected {what} payload") from exc

    @staticmethod
    def _parse_model(model: type[BaseModel], data: Any, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ApiError(f"Unexpected {what} payload") from exc

    # ── Auth ──────────────────────────────────────────────────────────

    async def login(self, credentials: Credentials) -> AuthResponse:
        data = await self._request("POST", "/api/auth/login", json=credentials.model_dump())
        return self._parse_model(AuthResponse, data, "login")

    async def register(self, credentials: Credentials) -> AuthResponse:
        data = await self._request("POST", "/api/auth/register", json=credentials.model_dump())
        return self._parse_model(AuthResponse, data, "register")

    # ── Users ─────────────────────────────────────────────────────────

    async def search_users(self, session: AuthSession, q: str) -> list[User]:
        data = await self._request("GET", "/api/users/search", session=session, params={"q": q})
        return self._parse(_USERS, data, "search")

    async def list_friends(self, session: AuthSession) -> list[User]:
        data = await self._request("GET", "/api/users/friends", session=session)
        return self._parse(_USERS, data, "friends")

    # ── Friend requests ───────────────────────────────────────────────

    async def list_friend_requests(self, session: AuthSession) -> list[FriendRequest]:
        data = await self._request("GET", "/api/friends/requests", session=session)
        return self._parse(_FRIEND_REQUESTS, data, "friend requests")

    async def list_recommendations(self, session: AuthSession) -> list[FriendRecommendation]:
        data = await self._request("GET", "/api/friends/recommendations", session=session)
        return self._parse(_RECOMMENDATIONS, data, "recommendations")

    async def send_friend_request(self, session: AuthSession, user_id: str) -> None:
        await self._request("POST", f"/api/friends/request/{_segment(user_id)}", session=session, json={})

    async def respond_to_request(
        self,
        session: AuthSession,
        user_id: str,
        decision: FriendRequestDecision,
    ) -> None:
        payload = FriendRequestRespond(status=decision)
        await self._request(
            "PUT",
            f"/api/friends/request/{_segment(user_id)}",
            session=session,
            json=payload.model_dump(),
        )

    async def remove_friend(self, session: AuthSession, user_id: str) -> None:
        await self._request("DELETE", f"/api/friends/{_segment(user_id)}", session=session)
