#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TextIO

import httpx

from friendnet.controllers.auth import LoginForm, RegisterForm
from friendnet.controllers.home import FriendHomeController
from friendnet.core.config import Settings, settings as default_settings
from friendnet.core.session import AuthSession
from friendnet.schemas.friends import FriendRecommendation, FriendRequest
from friendnet.schemas.users import User
from friendnet.services.api import FriendsApi
from friendnet.services.notifications import Notification, Notifier

logger = logging.getLogger("friendnet.cli")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="friendnet",
        description="Search users, manage friend requests and browse recommendations.",
    )
    parser.add_argument("--username", default=None, help="Account username (defaults to FRIENDNET_USERNAME).")
    parser.add_argument("--password", default=None, help="Account password (defaults to FRIENDNET_PASSWORD).")
    parser.add_argument("--token", default=None, help="Use an existing bearer token instead of logging in.")
    parser.add_argument("--user-id", default=None, help="User id that goes with --token.")
    parser.add_argument("--verbose", action="store_true", help="Log request-level activity.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("register", help="Create an account and log in.")
    sub.add_parser("home", help="Show friends, pending requests and recommendations.")
    search = sub.add_parser("search", help="Search users by name.")
    search.add_argument("query")
    sub.add_parser("friends", help="List friends.")
    sub.add_parser("requests", help="List incoming friend requests.")
    sub.add_parser("recommendations", help="List recommended friends.")
    for name, help_text in (
        ("send", "Send a friend request."),
        ("accept", "Accept a friend request from a user."),
        ("reject", "Reject a friend request from a user."),
        ("remove", "Remove a friend."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("user_id")

    args = parser.parse_args(argv)
    if args.token and args.command == "register":
        parser.error("--token cannot be combined with register.")
    return args


def _format_user(user: User) -> str:
    return f"{user.id}\t{user.username}"


def _format_request(request: FriendRequest) -> str:
    return f"{request.from_user.id}\t{request.from_user.username}\t{request.status}"


def _format_recommendation(rec: FriendRecommendation) -> str:
    return f"{rec.user.id}\t{rec.user.username}\t{rec.mutual_friends} mutual friends"


def _print_section(out: TextIO, title: str, rows: list[str], empty: str) -> None:
    print(f"{title}:", file=out)
    if not rows:
        print(f"  {empty}", file=out)
        return
    for row in rows:
        print(f"  {row}", file=out)


async def _authenticate(
    args: argparse.Namespace,
    *,
    api: FriendsApi,
    session: AuthSession,
    notifier: Notifier,
    settings: Settings,
) -> bool:
    username = args.username or settings.username or ""
    password = args.password or settings.password or ""

    if args.command == "register":
        return await RegisterForm(api, session, notifier=notifier).submit(username, password)
    if args.token:
        session.login(args.token, args.user_id or "", args.username)
        return True
    return await LoginForm(api, session, notifier=notifier).submit(username, password)


async def run(
    args: argparse.Namespace,
    *,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    settings = settings or default_settings
    out = out or sys.stdout
    err = err or sys.stderr

    def _echo(notification: Notification) -> None:
        print(f"[{notification.level}] {notification.message}", file=err)

    notifier = Notifier(on_notify=_echo)
    session = AuthSession()
    api = FriendsApi(settings=settings, transport=transport)

    if not await _authenticate(args, api=api, session=session, notifier=notifier, settings=settings):
        return 1

    home = FriendHomeController(api, session, notifier=notifier)
    command = args.command

    if command in {"register", "home"}:
        await home.mount()
        _print_section(out, "Friends", [_format_user(u) for u in home.friends], "No friends yet")
        _print_section(
            out, "Friend requests", [_format_request(r) for r in home.friend_requests], "No pending requests"
        )
        _print_section(
            out,
            "Recommended friends",
            [_format_recommendation(r) for r in home.recommendations],
            "No recommendations available",
        )
    elif command == "search":
        await home.search(args.query)
        _print_section(out, "Search results", [_format_user(u) for u in home.users], "No users found")
    elif command == "friends":
        await home.fetch_friends()
        _print_section(out, "Friends", [_format_user(u) for u in home.friends], "No friends yet")
    elif command == "requests":
        await home.fetch_friend_requests()
        _print_section(
            out, "Friend requests", [_format_request(r) for r in home.friend_requests], "No pending requests"
        )
    elif command == "recommendations":
        await home.fetch_recommendations()
        _print_section(
            out,
            "Recommended friends",
            [_format_recommendation(r) for r in home.recommendations],
            "No recommendations available",
        )
    elif command == "send":
        await home.send_friend_request(args.user_id)
    elif command == "accept":
        await home.accept_request(args.user_id)
    elif command == "reject":
        await home.reject_request(args.user_id)
    elif command == "remove":
        await home.remove_friend(args.user_id)
    else:  # pragma: no cover - argparse restricts choices
        raise ValueError(f"unknown command {command!r}")

    home.unmount()
    return 1 if notifier.errors else 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else default_settings.log_level_value(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("command=%s", args.command)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
