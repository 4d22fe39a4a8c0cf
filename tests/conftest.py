"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from typing import Any

import pytest

from tether.config import reset_config
from tether.signal import Signal
from tether.stream import StreamController


class ControlledFetcher:
    """Fetcher whose calls complete only when the test says so.

    Call ``n`` (zero-based) awaits ``futures[n]``; tests complete it with
    ``succeed(n, value)`` or ``fail(n, error)``.
    """

    def __init__(self) -> None:
        self.futures: list[asyncio.Future[Any]] = []
        self.call_count = 0

    def _future(self, index: int) -> asyncio.Future[Any]:
        while len(self.futures) <= index:
            self.futures.append(asyncio.get_running_loop().create_future())
        return self.futures[index]

    async def __call__(self) -> Any:
        index = self.call_count
        self.call_count += 1
        return await self._future(index)

    def succeed(self, index: int, value: Any) -> None:
        self._future(index).set_result(value)

    def fail(self, index: int, error: BaseException) -> None:
        self._future(index).set_exception(error)


class ControllerFactory:
    """Stream factory handing out a fresh StreamController per call."""

    def __init__(self) -> None:
        self.controllers: list[StreamController[Any]] = []

    def __call__(self) -> StreamController[Any]:
        controller: StreamController[Any] = StreamController()
        self.controllers.append(controller)
        return controller

    @property
    def current(self) -> StreamController[Any]:
        return self.controllers[-1]


async def _drain(steps: int = 5) -> None:
    for _ in range(steps):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def fresh_config() -> Iterator[None]:
    """Reset the global config around each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fetcher() -> ControlledFetcher:
    """A fetcher completed by hand."""
    return ControlledFetcher()


@pytest.fixture
def controllers() -> ControllerFactory:
    """A stream factory returning a new controller per call."""
    return ControllerFactory()


@pytest.fixture
def source() -> Signal[int]:
    """An upstream source signal."""
    return Signal(1, name="source")


@pytest.fixture
def drain() -> Callable[..., Awaitable[None]]:
    """Coroutine function letting scheduled tasks run a few loop iterations."""
    return _drain
