"""Integration test fixtures and utilities."""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest


class FakeUserApi:
    """In-memory stand-in for a remote user service.

    ``get_user`` yields to the event loop before answering, like a network
    call would. ``presence`` returns a new async generator per room that
    yields whatever is pushed with ``publish``.
    """

    def __init__(self, users: dict[int, dict[str, Any]]) -> None:
        self.users = users
        self.requests: list[int] = []
        self.failing: set[int] = set()
        self.rooms: dict[str, asyncio.Queue[str]] = {}
        self.closed_feeds: list[str] = []

    async def get_user(self, user_id: int) -> dict[str, Any]:
        """Return the user record for user_id."""
        self.requests.append(user_id)
        await asyncio.sleep(0)
        if user_id in self.failing:
            raise ConnectionError(f"user service unavailable for {user_id}")
        if user_id not in self.users:
            raise LookupError(f"no user {user_id}")
        return self.users[user_id]

    def presence(self, room: str) -> AsyncIterator[str]:
        """Return a feed of user names joining room."""
        queue: asyncio.Queue[str] = asyncio.Queue()
        self.rooms[room] = queue

        async def feed() -> AsyncIterator[str]:
            try:
                while True:
                    yield await queue.get()
            finally:
                self.closed_feeds.append(room)

        return feed()

    def publish(self, room: str, name: str) -> None:
        """Push a presence event to the current feed of room."""
        self.rooms[room].put_nowait(name)


@pytest.fixture
def api() -> FakeUserApi:
    """A fake user API with two users."""
    return FakeUserApi(
        {
            1: {"id": 1, "name": "Ada", "email": "ada@example.com"},
            2: {"id": 2, "name": "Grace", "email": "grace@example.com"},
        }
    )
