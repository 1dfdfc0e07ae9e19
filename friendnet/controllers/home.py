from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Literal

from friendnet.core.errors import ApiError
from friendnet.core.session import AuthSession
from friendnet.schemas.friends import FriendRecommendation, FriendRequest, FriendRequestDecision
from friendnet.schemas.users import User
from friendnet.services.api import FriendsApi
from friendnet.services.notifications import Notifier

logger = logging.getLogger(__name__)

Navigate = Callable[[str], None]
Section = Literal["search", "friends", "requests", "recommendations"]

LOGIN_ROUTE = "/login"


@dataclass(frozen=True)
class LoadingFlags:
    search: bool = False
    friends: bool = False
    requests: bool = False
    recommendations: bool = False


class FriendHomeController:
    """State behind the friends home page.

    Holds four remote collections (search results, friends, incoming
    requests, recommendations), each with its own loading flag so a slow or
    failing section never blocks the others. Every remote failure is logged
    and, while mounted, turned into an error notification; nothing is
    re-raised, and the collections keep their last good value.

    Mutations trigger a fixed re-fetch cascade:

    - send request: recommendations
    - accept request: requests, friends, recommendations
    - reject request: requests
    - remove friend: friends, recommendations
    """

    def __init__(
        self,
        api: FriendsApi,
        session: AuthSession,
        *,
        notifier: Notifier | None = None,
        navigate: Navigate | None = None,
    ) -> None:
        self.api = api
        self.session = session
        self.notifier = notifier or Notifier()
        self._navigate = navigate

        self.search_query = ""
        self.users: list[User] = []
        self.friends: list[User] = []
        self.friend_requests: list[FriendRequest] = []
        self.recommendations: list[FriendRecommendation] = []

        self._in_flight: Counter[str] = Counter()
        self._search_generation = 0
        # Ids with a send in flight never show in search results; what was
        # filtered out of the latest results is held for rollback.
        self._pending_sends: set[str] = set()
        self._held: dict[str, list[tuple[int, User]]] = {}
        self._active = True

    # ── Lifecycle ─────────────────────────────────────────────────────

    @property
    def username(self) -> str:
        return self.session.username or ""

    @property
    def loading(self) -> LoadingFlags:
        return LoadingFlags(
            search=self._in_flight["search"] > 0,
            friends=self._in_flight["friends"] > 0,
            requests=self._in_flight["requests"] > 0,
            recommendations=self._in_flight["recommendations"] > 0,
        )

    async def mount(self) -> None:
        self._active = True
        await asyncio.gather(
            self.fetch_friends(),
            self.fetch_recommendations(),
            self.fetch_friend_requests(),
        )

    def unmount(self) -> None:
        # Responses that land after this are dropped.
        self._active = False

    def logout(self) -> None:
        self.session.logout()
        self.unmount()
        if self._navigate is not None:
            self._navigate(LOGIN_ROUTE)

    # ── Fetches ───────────────────────────────────────────────────────

    @contextmanager
    def _loading(self, section: Section) -> Iterator[None]:
        self._in_flight[section] += 1
        try:
            yield
        finally:
            self._in_flight[section] -= 1

    def _report(self, message: str, exc: ApiError) -> None:
        if not self._active:
            logger.debug("dropped after unmount: %s status=%s", message, exc.status_code)
            return
        logger.warning("%s status=%s", message, exc.status_code, exc_info=exc)
        self.notifier.error(message)

    async def fetch_friend_requests(self) -> None:
        with self._loading("requests"):
            try:
                requests = await self.api.list_friend_requests(self.session)
            except ApiError as exc:
                self._report("Failed to load friend requests", exc)
                return
            if self._active:
                self.friend_requests = requests

    async def fetch_friends(self) -> None:
        with self._loading("friends"):
            try:
                friends = await self.api.list_friends(self.session)
            except ApiError as exc:
                self._report("Failed to load friends", exc)
                return
            if self._active:
                self.friends = friends

    async def fetch_recommendations(self) -> None:
        with self._loading("recommendations"):
            try:
                recommendations = await self.api.list_recommendations(self.session)
            except ApiError as exc:
                self._report("Failed to load recommendations", exc)
                return
            if self._active:
                self.recommendations = recommendations

    async def search(self, query: str | None = None) -> None:
        if query is not None:
            self.search_query = query
        q = self.search_query.strip()
        if not q:
            return

        self._search_generation += 1
        generation = self._search_generation
        with self._loading("search"):
            try:
                users = await self.api.search_users(self.session, q)
            except ApiError as exc:
                self._report("Failed to search users", exc)
                return
            # An overlapping newer search owns the results.
            if self._active and generation == self._search_generation:
                self._assign_search_results(users)

    # ── Mutations ─────────────────────────────────────────────────────

    def _assign_search_results(self, users: list[User], *, hold: str | None = None) -> None:
        held_ids = self._pending_sends if hold is None else {hold}
        held: dict[str, list[tuple[int, User]]] = {uid: [] for uid in held_ids}
        kept: list[User] = []
        for index, user in enumerate(users):
            if user.id in self._pending_sends:
                if user.id in held:
                    held[user.id].append((index, user))
                continue
            kept.append(user)
        self._held.update(held)
        self.users = kept

    async def send_friend_request(self, user_id: str) -> bool:
        self._pending_sends.add(user_id)
        self._assign_search_results(self.users, hold=user_id)

        try:
            await self.api.send_friend_request(self.session, user_id)
        except ApiError as exc:
            self._pending_sends.discard(user_id)
            held = self._held.pop(user_id, [])
            if self._active:
                self._restore_search_results(held)
            self._report(exc.user_message("Failed to send friend request"), exc)
            return False

        self._pending_sends.discard(user_id)
        self._held.pop(user_id, None)
        self.notifier.success("Friend request sent successfully")
        await self.fetch_recommendations()
        return True

    def _restore_search_results(self, held: list[tuple[int, User]]) -> None:
        users = list(self.users)
        present = {u.id for u in users}
        for index, user in held:
            if user.id in present:
                continue
            users.insert(min(index, len(users)), user)
            present.add(user.id)
        self.users = users

    async def respond_to_request(self, user_id: str, decision: FriendRequestDecision) -> bool:
        if decision not in ("accepted", "rejected"):
            raise ValueError(f"decision must be 'accepted' or 'rejected', got {decision!r}")

        try:
            await self.api.respond_to_request(self.session, user_id, decision)
        except ApiError as exc:
            self._report("Failed to handle friend request", exc)
            if exc.status_code is not None:
                await self.fetch_friend_requests()
            return False

        if decision == "accepted":
            self.notifier.success("Friend request accepted")
            await asyncio.gather(
                self.fetch_friend_requests(),
                self.fetch_friends(),
                self.fetch_recommendations(),
            )
        else:
            self.notifier.success("Friend request rejected")
            await self.fetch_friend_requests()
        return True

    async def accept_request(self, user_id: str) -> bool:
        return await self.respond_to_request(user_id, "accepted")

    async def reject_request(self, user_id: str) -> bool:
        return await self.respond_to_request(user_id, "rejected")

    async def remove_friend(self, user_id: str) -> bool:
        try:
            await self.api.remove_friend(self.session, user_id)
        except ApiError as exc:
            self._report("Failed to remove friend", exc)
            if exc.status_code is not None:
                await self.fetch_friends()
            return False

        self.notifier.success("Friend removed successfully")
        await asyncio.gather(self.fetch_friends(), self.fetch_recommendations())
        return True
