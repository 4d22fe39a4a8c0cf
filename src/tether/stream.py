"""Broadcast streams for stream-driven resources.

An async iterator has a single consumer, and cancelling the task that consumes
it finalizes the underlying generator. Resources cancel and re-create their
subscription on every ``resubscribe()``, so they never consume a stream
directly: a single-consumer async iterable is first wrapped in an
:class:`IterableBroadcast`, which owns the only consumer and fans events out to
any number of listeners. Cancelling a :class:`StreamSubscription` detaches its
listener and leaves the source running.

:class:`StreamController` is a broadcast stream fed by hand, useful for
push-style sources (websocket handlers, callbacks) and in tests.
"""

import asyncio
from collections.abc import AsyncIterable, Callable
from types import TracebackType
from typing import Any, Generic, TypeVar

from tether.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DataCallback = Callable[[T], None]
ErrorCallback = Callable[[BaseException, TracebackType | None], None]
DoneCallback = Callable[[], None]


class StreamSubscription(Generic[T]):
    """A listener attached to a broadcast stream."""

    def __init__(
        self,
        stream: "BroadcastStream[T]",
        on_data: DataCallback[T],
        on_error: ErrorCallback | None,
        on_done: DoneCallback | None,
    ) -> None:
        self._stream = stream
        self._on_data = on_data
        self._on_error = on_error
        self._on_done = on_done
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        """Whether the subscription no longer receives events."""
        return self._cancelled

    def cancel(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        self._stream._detach(self)


class BroadcastStream(Generic[T]):
    """A stream that any number of listeners can subscribe to.

    Events are delivered synchronously, in subscription order, to the
    listeners attached when the event is emitted.
    """

    is_broadcast = True

    def __init__(self) -> None:
        self._subscriptions: list[StreamSubscription[T]] = []
        self._closed = False

    @property
    def is_closed(self) -> bool:
        """Whether the stream has emitted its done event."""
        return self._closed

    @property
    def has_listener(self) -> bool:
        """Whether at least one subscription is attached."""
        return bool(self._subscriptions)

    def listen(
        self,
        on_data: DataCallback[T],
        on_error: ErrorCallback | None = None,
        on_done: DoneCallback | None = None,
    ) -> StreamSubscription[T]:
        """Attach a listener.

        Listening to a closed stream calls on_done right away and returns an
        already-cancelled subscription.

        Args:
            on_data: Called with each data event
            on_error: Called with (error, stack_trace) for each error event
            on_done: Called once when the stream closes

        Returns:
            The new subscription
        """
        subscription = StreamSubscription(self, on_data, on_error, on_done)
        if self._closed:
            subscription._cancelled = True
            if on_done is not None:
                on_done()
            return subscription

        self._subscriptions.append(subscription)
        self._on_listen()
        return subscription

    def _on_listen(self) -> None:
        """Hook run after a listener attaches."""

    def _detach(self, subscription: StreamSubscription[T]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _emit_data(self, value: T) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.is_cancelled:
                subscription._on_data(value)

    def _emit_error(self, error: BaseException, stack_trace: TracebackType | None) -> None:
        for subscription in list(self._subscriptions):
            if subscription.is_cancelled:
                continue
            if subscription._on_error is not None:
                subscription._on_error(error, stack_trace)
            else:
                logger.warning(f"Unhandled stream error: {error}")

    def _emit_done(self) -> None:
        if self._closed:
            return
        self._closed = True
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            if subscription.is_cancelled:
                continue
            subscription._cancelled = True
            if subscription._on_done is not None:
                subscription._on_done()


class StreamController(BroadcastStream[T]):
    """A broadcast stream whose events are added by hand.

    Example:
        ```python
        controller = StreamController[int]()
        resource = Resource(stream=lambda: controller)
        controller.add(1)
        ```
    """

    def add(self, value: T) -> None:
        """Emit a data event.

        Raises:
            RuntimeError: If the controller is closed
        """
        if self._closed:
            raise RuntimeError("Cannot add events to a closed StreamController")
        self._emit_data(value)

    def add_error(self, error: BaseException) -> None:
        """Emit an error event. The stream stays open.

        Raises:
            RuntimeError: If the controller is closed
        """
        if self._closed:
            raise RuntimeError("Cannot add events to a closed StreamController")
        self._emit_error(error, error.__traceback__)

    def close(self) -> None:
        """Emit the done event."""
        self._emit_done()


class IterableBroadcast(BroadcastStream[T]):
    """Broadcast wrapper around a single-consumer async iterable.

    The source is consumed by a pump task started on the first listen. An
    exception raised by the source is delivered as an error event and ends
    the stream, as async iterators cannot continue after raising.
    """

    def __init__(self, source: AsyncIterable[T]) -> None:
        super().__init__()
        self.source = source
        self._task: asyncio.Task[None] | None = None

    def _on_listen(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self) -> None:
        iterator = aiter(self.source)
        while True:
            try:
                item = await anext(iterator)
            except StopAsyncIteration:
                break
            except Exception as e:
                self._emit_error(e, e.__traceback__)
                break
            self._emit_data(item)
        self._emit_done()

    def close(self) -> None:
        """Stop consuming the source and close the stream."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._emit_done()


def as_broadcast(stream: "AsyncIterable[T] | BroadcastStream[T]") -> BroadcastStream[T]:
    """Return stream itself if it is broadcast, otherwise a broadcast wrapper.

    Args:
        stream: A broadcast stream or any async iterable

    Returns:
        A stream that supports several successive listeners
    """
    if is_broadcast(stream):
        return stream  # type: ignore[return-value]
    return IterableBroadcast(stream)  # type: ignore[arg-type]


def is_broadcast(stream: Any) -> bool:
    """Whether stream can be listened to more than once."""
    return bool(getattr(stream, "is_broadcast", False))
