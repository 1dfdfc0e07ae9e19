import os
import asyncio
from collections import Counter

import httpx
import pytest
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# IMPORTANT:
# Set env vars BEFORE importing friendnet.core.config (pydantic settings load at import time)
os.environ["ENV"] = "test"
os.environ["API_BASE_URL"] = "http://test"

from friendnet.core.config import Settings  # noqa: E402
from friendnet.core.session import AuthSession  # noqa: E402
from friendnet.services.api import FriendsApi  # noqa: E402
from friendnet.services.notifications import Notifier  # noqa: E402


# ── In-memory stand-in for the remote friends API ────────────────────


class FakeApiError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message


class _Credentials(BaseModel):
    username: str
    password: str


class _Decision(BaseModel):
    status: str


class FakeFriendsBackend:
    """Friend graph kept in dicts, plus a log of every request it served."""

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.friendships: set[frozenset[str]] = set()
        self.requests: list[dict] = []
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], tuple[int, dict]] = {}
        self._next_id = 100

    # helpers used by tests

    def add_user(self, username: str, password: str = "secret", *, user_id: str | None = None) -> str:
        if user_id is None:
            self._next_id += 1
            user_id = str(self._next_id)
        self.users[user_id] = {"_id": user_id, "username": username, "password": password}
        return user_id

    @staticmethod
    def token_for(user_id: str) -> str:
        return f"token-{user_id}"

    def befriend(self, a: str, b: str) -> None:
        self.friendships.add(frozenset((a, b)))

    def add_request(self, from_id: str, to_id: str) -> dict:
        request = {"_id": f"req-{len(self.requests) + 1}", "from": from_id, "to": to_id, "status": "pending"}
        self.requests.append(request)
        return request

    def fail(self, method: str, path: str, status: int = 500, message: str | None = None) -> None:
        body = {"message": message} if message else {}
        self.failures[(method, path)] = (status, body)

    def hits(self, method: str, path: str) -> int:
        return Counter(self.calls)[(method, path)]

    def reset_calls(self) -> None:
        self.calls.clear()

    # graph queries

    def public(self, user_id: str) -> dict:
        user = self.users[user_id]
        return {"_id": user["_id"], "username": user["username"]}

    def friends_of(self, user_id: str) -> set[str]:
        out = set()
        for pair in self.friendships:
            if user_id in pair:
                out |= pair - {user_id}
        return out

    def pending_between(self, a: str, b: str) -> dict | None:
        for request in self.requests:
            if request["status"] != "pending":
                continue
            if {request["from"], request["to"]} == {a, b}:
                return request
        return None

    def recommendations_for(self, user_id: str) -> list[dict]:
        mine = self.friends_of(user_id)
        counts: Counter[str] = Counter()
        for friend_id in mine:
            for candidate in self.friends_of(friend_id):
                if candidate == user_id or candidate in mine:
                    continue
                if self.pending_between(user_id, candidate):
                    continue
                counts[candidate] += 1
        ordered = sorted(counts.items(), key=lambda kv: (-kv[1], self.users[kv[0]]["username"]))
        return [{"user": self.public(uid), "mutualFriends": n} for uid, n in ordered]


def build_fake_app(backend: FakeFriendsBackend) -> FastAPI:
    app = FastAPI()

    @app.exception_handler(FakeApiError)
    async def _api_error(request: Request, exc: FakeApiError):
        return JSONResponse({"message": exc.message}, status_code=exc.status_code)

    @app.middleware("http")
    async def _record(request: Request, call_next):
        key = (request.method, request.url.path)
        backend.calls.append(key)
        failure = backend.failures.get(key)
        if failure is not None:
            status, body = failure
            return JSONResponse(body, status_code=status)
        return await call_next(request)

    def current_user(authorization: str | None = Header(default=None)) -> str:
        if not authorization or not authorization.startswith("Bearer token-"):
            raise FakeApiError(401, "Unauthorized")
        user_id = authorization[len("Bearer token-"):]
        if user_id not in backend.users:
            raise FakeApiError(401, "Unauthorized")
        return user_id

    def _issue(user_id: str) -> dict:
        return {"token": backend.token_for(user_id), "userId": user_id}

    @app.post("/api/auth/login")
    async def login(payload: _Credentials):
        for user in backend.users.values():
            if user["username"] == payload.username and user["password"] == payload.password:
                return _issue(user["_id"])
        raise FakeApiError(401, "Invalid credentials")

    @app.post("/api/auth/register", status_code=201)
    async def register(payload: _Credentials):
        if any(u["username"] == payload.username for u in backend.users.values()):
            raise FakeApiError(400, "Username already exists")
        return _issue(backend.add_user(payload.username, payload.password))

    @app.get("/api/users/search")
    async def search(q: str = "", me: str = Depends(current_user)):
        needle = q.lower()
        return [
            backend.public(uid)
            for uid, user in backend.users.items()
            if uid != me and needle in user["username"].lower()
        ]

    @app.get("/api/users/friends")
    async def friends(me: str = Depends(current_user)):
        return sorted((backend.public(uid) for uid in backend.friends_of(me)), key=lambda u: u["username"])

    @app.get("/api/friends/requests")
    async def requests(me: str = Depends(current_user)):
        return [
            {"_id": r["_id"], "from": backend.public(r["from"]), "status": r["status"]}
            for r in backend.requests
            if r["to"] == me and r["status"] == "pending"
        ]

    @app.get("/api/friends/recommendations")
    async def recommendations(me: str = Depends(current_user)):
        return backend.recommendations_for(me)

    @app.post("/api/friends/request/{user_id}")
    async def send_request(user_id: str, me: str = Depends(current_user)):
        if user_id not in backend.users:
            raise FakeApiError(404, "User not found")
        if user_id == me:
            raise FakeApiError(400, "Cannot send friend request to yourself")
        if user_id in backend.friends_of(me):
            raise FakeApiError(400, "Already friends")
        if backend.pending_between(me, user_id):
            raise FakeApiError(400, "Friend request already sent")
        backend.add_request(me, user_id)
        return {"message": "Friend request sent"}

    @app.put("/api/friends/request/{user_id}")
    async def respond(user_id: str, payload: _Decision, me: str = Depends(current_user)):
        if payload.status not in {"accepted", "rejected"}:
            raise FakeApiError(400, "Invalid status")
        for request in backend.requests:
            if request["from"] == user_id and request["to"] == me and request["status"] == "pending":
                request["status"] = payload.status
                if payload.status == "accepted":
                    backend.befriend(me, user_id)
                return {"message": f"Friend request {payload.status}"}
        raise FakeApiError(404, "Friend request not found")

    @app.delete("/api/friends/{user_id}")
    async def remove(user_id: str, me: str = Depends(current_user)):
        if user_id not in backend.friends_of(me):
            raise FakeApiError(404, "Friend not found")
        backend.friendships.discard(frozenset((me, user_id)))
        return {"message": "Friend removed"}

    return app


class GatedTransport(httpx.AsyncBaseTransport):
    """Holds requests for one path (and optionally one ``q``) until ``release`` is set."""

    def __init__(self, inner: httpx.AsyncBaseTransport, path: str, *, query: str | None = None):
        self.inner = inner
        self.path = path
        self.query = query
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    def _matches(self, request: httpx.Request) -> bool:
        if request.url.path != self.path:
            return False
        return self.query is None or request.url.params.get("q") == self.query

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self._matches(request):
            self.entered.set()
            await self.release.wait()
        return await self.inner.handle_async_request(request)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def backend():
    return FakeFriendsBackend()


@pytest.fixture
def transport(backend):
    return httpx.ASGITransport(app=build_fake_app(backend))


@pytest.fixture
def test_settings():
    return Settings(ENV="test", API_BASE_URL="http://test", HTTP_TIMEOUT_SECONDS=5)


@pytest.fixture
def api(test_settings, transport):
    return FriendsApi(settings=test_settings, transport=transport)


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def navigations():
    return []


@pytest.fixture
def session_for(backend):
    def _session(user_id: str) -> AuthSession:
        session = AuthSession()
        session.login(backend.token_for(user_id), user_id, backend.users[user_id]["username"])
        return session

    return _session


@pytest.fixture
def gated():
    return GatedTransport
