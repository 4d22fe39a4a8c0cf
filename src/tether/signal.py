"""Reactive value cell.

Resources only rely on the small :class:`ReactiveValue` protocol below: read
the current and previous value, observe changes as ``(previous, current)``
pairs, and tie callbacks to the cell's disposal. :class:`Signal` is the
implementation shipped with Tether; any object satisfying the protocol can be
passed as a resource ``source``.

Example:
    ```python
    user_id = Signal(1, name="user_id")
    stop = user_id.observe(lambda prev, curr: print(prev, "->", curr))
    user_id.value = 2  # prints "1 -> 2"
    stop()
    ```
"""

import asyncio
from collections.abc import Callable
from itertools import count
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from tether.exceptions import SignalDisposedError
from tether.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

Observation = Callable[[], None]
"""Removes the observer it was returned for when called."""


@runtime_checkable
class ReactiveValue(Protocol[T_co]):
    """What a resource needs from an upstream source."""

    @property
    def value(self) -> T_co: ...

    @property
    def previous_value(self) -> T_co | None: ...

    def observe(self, callback: Callable[[Any, Any], None]) -> Observation: ...

    def on_dispose(self, callback: Callable[[], None]) -> Observation: ...


class Signal(Generic[T]):
    """A value cell that notifies observers synchronously on change.

    Observers are called in registration order with ``(previous, current)``
    whenever a written value differs (``!=``) from the current one.
    """

    def __init__(self, value: T, name: str | None = None) -> None:
        """Initialize the signal.

        Args:
            value: Initial value
            name: Optional name used in logs and repr
        """
        self.name = name
        self._value = value
        self._previous_value: T | None = None
        self._has_previous = False
        self._observers: dict[int, Callable[[T, T], None]] = {}
        self._ids = count()
        self._dispose_callbacks: dict[int, Callable[[], None]] = {}
        self._disposed = False

    @property
    def value(self) -> T:
        """The current value."""
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        self.set(new_value)

    @property
    def previous_value(self) -> T | None:
        """The value before the last change, None until the first change."""
        return self._previous_value

    @property
    def has_previous_value(self) -> bool:
        """Whether the signal has changed at least once."""
        return self._has_previous

    @property
    def disposed(self) -> bool:
        """Whether dispose() has been called."""
        return self._disposed

    def set(self, new_value: T) -> T:
        """Write a new value and notify observers if it changed.

        Args:
            new_value: Value to store

        Returns:
            The stored value

        Raises:
            SignalDisposedError: If the signal has been disposed
        """
        if self._disposed:
            raise SignalDisposedError(f"Cannot write to disposed signal {self!r}")
        if new_value == self._value:
            return self._value

        previous = self._value
        self._previous_value = previous
        self._has_previous = True
        self._value = new_value

        for callback in list(self._observers.values()):
            callback(previous, new_value)
        return new_value

    def update(self, fn: Callable[[T], T]) -> T:
        """Write ``fn(current)`` as the new value."""
        return self.set(fn(self._value))

    def observe(self, callback: Callable[[T, T], None]) -> Observation:
        """Register an observer.

        Args:
            callback: Called with (previous, current) after every change

        Returns:
            Callable that removes this observer
        """
        key = next(self._ids)
        self._observers[key] = callback

        def unobserve() -> None:
            self._observers.pop(key, None)

        return unobserve

    def on_dispose(self, callback: Callable[[], None]) -> Observation:
        """Run callback once when the signal is disposed.

        A callback registered after disposal runs immediately.

        Returns:
            Callable that unregisters the callback
        """
        if self._disposed:
            callback()
            return lambda: None

        key = next(self._ids)
        self._dispose_callbacks[key] = callback

        def release() -> None:
            self._dispose_callbacks.pop(key, None)

        return release

    async def first_where(self, predicate: Callable[[T], bool]) -> T:
        """Wait for the first current-or-future value matching predicate.

        Args:
            predicate: Test applied to each value

        Returns:
            The first matching value

        Raises:
            SignalDisposedError: If the signal is disposed before a match
        """
        if predicate(self._value):
            return self._value

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

        def check(_: T, current: T) -> None:
            if not future.done() and predicate(current):
                future.set_result(current)

        def cancel() -> None:
            if not future.done():
                future.set_exception(
                    SignalDisposedError(f"{self!r} was disposed before a matching value")
                )

        unobserve = self.observe(check)
        release = self.on_dispose(cancel)
        try:
            return await future
        finally:
            unobserve()
            release()

    def dispose(self) -> None:
        """Run dispose callbacks and drop all observers. Safe to call twice."""
        if self._disposed:
            return
        self._disposed = True
        callbacks, self._dispose_callbacks = self._dispose_callbacks, {}
        for callback in callbacks.values():
            callback()
        self._observers.clear()
        logger.debug(f"Disposed {self!r}")

    def __repr__(self) -> str:
        label = f"{self.name}, " if self.name else ""
        return f"Signal({label}value={self._value!r})"
