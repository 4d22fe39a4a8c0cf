"""Resources: async values exposed as reactive state.

A :class:`Resource` wraps an async data source, either a ``fetcher`` returning
an awaitable or a ``stream`` factory returning an async iterable, and exposes
its progress as a :class:`~tether.state.ResourceState` held in a
:class:`~tether.signal.Signal`. Consumers observe the state instead of awaiting
the work themselves.

Lifecycle:
    1. A resource starts ``ResourceUnresolved`` and does nothing until it is
       resolved: on the first read of ``state``, by an explicit ``resolve()``,
       or in the constructor when ``options.lazy`` is False.
    2. ``resolve()`` writes ``ResourceLoading`` and starts the fetch or the
       stream subscription. Results are written as ``ResourceReady`` and
       failures as ``ResourceError``; they never raise out of the resource.
    3. When a ``source`` is given, every change of its value calls
       ``refetch()`` (fetcher) or ``resubscribe()`` (stream). During a refresh
       the last Ready/Error stays visible with ``is_refreshing=True``.
    4. ``dispose()`` tears everything down; late completions are dropped.

Overlapping refetches are not cancelled. Each one writes its own result when
it completes, so the state reflects whichever fetch finished last.

Example:
    ```python
    user_id = Signal(1)

    async def fetch_user() -> dict:
        return await client.get_user(user_id.value)

    user = Resource(fetcher=fetch_user, source=user_id)
    name = user.select(lambda data: data["name"])
    print(await name.until_ready())
    user_id.value = 2  # refetches; name follows
    ```
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Awaitable, Callable
from types import TracebackType
from typing import Any, Generic, TypeVar, Union, cast

from pydantic import BaseModel, ConfigDict, Field

from tether.config import get_config
from tether.exceptions import (
    AlreadyResolvedError,
    MissingEventLoopError,
    MissingFetcherError,
    MissingStreamError,
)
from tether.signal import Observation, ReactiveValue, Signal
from tether.state.resource_state import (
    ResourceError,
    ResourceLoading,
    ResourceReady,
    ResourceState,
    ResourceUnresolved,
)
from tether.stream import (
    BroadcastStream,
    IterableBroadcast,
    StreamSubscription,
    as_broadcast,
    is_broadcast,
)
from tether.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
S = TypeVar("S")

Fetcher = Callable[[], Awaitable[T]]
StreamFactory = Callable[[], Union[AsyncIterable[T], BroadcastStream[T]]]


class ResourceOptions(BaseModel):
    """Options for a resource."""

    model_config = ConfigDict(frozen=True)

    name: str | None = Field(None, description="Name used in logs and repr")
    lazy: bool = Field(
        default_factory=lambda: get_config().resource_lazy,
        description="Resolve on first read instead of at construction",
    )


class BaseResource(ABC, Generic[T]):
    """State cell plumbing shared by resources and selectors."""

    def __init__(self, name: str | None = None) -> None:
        self._name = name
        self._cell: Signal[ResourceState[T]] = Signal(ResourceUnresolved(), name=name)

    @property
    def name(self) -> str | None:
        """The resource name, if any."""
        return self._name

    @property
    def state(self) -> ResourceState[T]:
        """The current state. Resolves the resource on first access."""
        self._resolve_if_needed()
        return self._cell.value

    @property
    def previous_state(self) -> ResourceState[T] | None:
        """The state before the last transition. Resolves on first access."""
        self._resolve_if_needed()
        return self._cell.previous_value

    @property
    def disposed(self) -> bool:
        """Whether dispose() has been called."""
        return self._cell.disposed

    @property
    @abstractmethod
    def resolved(self) -> bool:
        """Whether resolution has started."""

    @abstractmethod
    def resolve(self) -> "asyncio.Task[None] | None":
        """Start the first fetch or subscription."""

    @abstractmethod
    def refetch(self) -> "asyncio.Task[None] | None":
        """Run the fetcher again."""

    @abstractmethod
    def resubscribe(self) -> None:
        """Subscribe to the stream again."""

    def observe(
        self, callback: Callable[[ResourceState[T], ResourceState[T]], None]
    ) -> Observation:
        """Observe state transitions as (previous, current) pairs.

        Observing does not resolve the resource.

        Returns:
            Callable that removes the observer
        """
        return self._cell.observe(callback)

    def on_dispose(self, callback: Callable[[], None]) -> Observation:
        """Run callback when the resource is disposed.

        Returns:
            Callable that unregisters the callback
        """
        return self._cell.on_dispose(callback)

    def select(self, selector: Callable[[T], S]) -> "ResourceSelector[T, S]":
        """Derive a resource whose ready value is ``selector(value)``.

        Loading and error states pass through unchanged.

        Args:
            selector: Pure function applied to every ready value

        Returns:
            The derived resource, disposed together with this one
        """
        self._resolve_if_needed()
        return ResourceSelector(self, selector)

    async def until_ready(self) -> T:
        """Wait until the resource is ready and return its value."""
        self._resolve_if_needed()
        state = await self._cell.first_where(lambda s: s.is_ready)
        return cast(ResourceReady[T], state).value

    def update(self, fn: Callable[[ResourceState[T]], ResourceState[T]]) -> ResourceState[T]:
        """Write ``fn(state)`` as the new state."""
        new_state = fn(self.state)
        self._set_state(new_state)
        return new_state

    def dispose(self) -> None:
        """Dispose the state cell, notifying on_dispose callbacks."""
        self._cell.dispose()

    def _resolve_if_needed(self) -> None:
        if not self.resolved and not self.disposed:
            self.resolve()

    def _set_state(self, state: ResourceState[T]) -> None:
        if self._cell.disposed:
            logger.debug(f"{self._label} is disposed, dropping {state!r}")
            return
        if get_config().log_transitions:
            logger.debug(f"{self._label}: {self._cell.value!r} -> {state!r}")
        self._cell.value = state

    @property
    def _label(self) -> str:
        if self._name:
            return f"{type(self).__name__} '{self._name}'"
        return f"{type(self).__name__}@{id(self):x}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self._name!r}, state={self._cell.value!r}, "
            f"previous_state={self._cell.previous_value!r})"
        )


class Resource(BaseResource[T]):
    """An async value driven by a fetcher or a stream, and optionally a source."""

    def __init__(
        self,
        fetcher: Fetcher[T] | None = None,
        stream: StreamFactory[T] | None = None,
        source: ReactiveValue[Any] | None = None,
        options: ResourceOptions | None = None,
    ) -> None:
        """Initialize the resource.

        Args:
            fetcher: Zero-argument callable returning an awaitable
            stream: Zero-argument callable returning an async iterable or a
                broadcast stream, called on every (re)subscription
            source: Reactive value whose changes trigger a refresh
            options: Name and laziness; defaults to ResourceOptions()

        Raises:
            ValueError: Unless exactly one of fetcher and stream is given
        """
        if (fetcher is None) == (stream is None):
            raise ValueError("Provide either a fetcher or a stream")

        self.options = options if options is not None else ResourceOptions()
        super().__init__(name=self.options.name)

        self.fetcher = fetcher
        self.stream = stream
        self.source = source

        self._resolved = False
        self._subscription: StreamSubscription[T] | None = None
        self._stream_origin: Any = None
        self._broadcast: IterableBroadcast[T] | None = None
        self._source_observation: Observation | None = None
        self._source_release: Observation | None = None
        self._pending: set[asyncio.Task[None]] = set()

        if not self.options.lazy:
            self.resolve()

    @property
    def resolved(self) -> bool:
        """Whether resolve() has been called."""
        return self._resolved

    def resolve(self) -> "asyncio.Task[None] | None":
        """Start the first fetch or subscription and observe the source.

        Must be called at most once. Reading ``state`` calls it implicitly.

        Returns:
            The fetch task for fetcher resources, None for stream resources

        Raises:
            AlreadyResolvedError: If the resource was already resolved
            MissingEventLoopError: If async work is needed and no event loop
                is running; the resource stays unresolved
        """
        if self._resolved:
            raise AlreadyResolvedError(self._name)

        task = None
        if self.fetcher is not None:
            loop = self._require_loop()
            self._start_loading()
            task = self._schedule_fetch(loop)
        else:
            stream = self._open_stream()
            self._start_loading()
            self._listen(stream)

        if self.source is not None:
            self._source_observation = self.source.observe(self._on_source_change)
            self._source_release = self.source.on_dispose(self._source_observation)

        return task

    def refetch(self) -> "asyncio.Task[None] | None":
        """Run the fetcher again, keeping the last value visible meanwhile.

        Ready/Error become refreshing right away; the new result replaces them
        when the fetch completes. An unresolved resource is resolved instead.

        Returns:
            The fetch task, or None if the resource is disposed

        Raises:
            MissingFetcherError: If the resource has no fetcher
            MissingEventLoopError: If no event loop is running
        """
        if self.fetcher is None:
            raise MissingFetcherError(self._name)
        if self.disposed:
            logger.debug(f"Ignoring refetch on disposed {self._label}")
            return None
        if not self._resolved:
            return self.resolve()

        loop = self._require_loop()
        logger.debug(f"Refetching {self._label}")
        self._mark_refreshing()
        return self._schedule_fetch(loop)

    def resubscribe(self) -> None:
        """Cancel the stream subscription and subscribe again.

        Ready/Error become refreshing until the next event arrives. An
        unresolved resource is resolved instead.

        Raises:
            MissingStreamError: If the resource has no stream
            MissingEventLoopError: If the stream needs a pump task and no event
                loop is running
        """
        if self.stream is None:
            raise MissingStreamError(self._name)
        if self.disposed:
            logger.debug(f"Ignoring resubscribe on disposed {self._label}")
            return
        if not self._resolved:
            self.resolve()
            return

        stream = self._open_stream()
        logger.debug(f"Resubscribing {self._label}")
        self._cancel_subscription()
        self._mark_refreshing()
        self._listen(stream)

    def dispose(self) -> None:
        """Cancel the subscription, release the source, dispose the state."""
        if self.disposed:
            return
        logger.debug(f"Disposing {self._label}")
        self._cancel_subscription()
        if self._broadcast is not None:
            self._broadcast.close()
            self._broadcast = None
        self._stream_origin = None
        if self._source_observation is not None:
            self._source_observation()
            self._source_observation = None
        if self._source_release is not None:
            self._source_release()
            self._source_release = None
        super().dispose()

    def _on_source_change(self, previous: Any, current: Any) -> None:
        logger.debug(f"Source of {self._label} changed: {previous!r} -> {current!r}")
        if self.fetcher is not None:
            self.refetch()
        else:
            self.resubscribe()

    def _mark_refreshing(self) -> None:
        self._set_state(
            self._cell.value.match(
                ready=lambda r: r.copy_with(is_refreshing=True),
                error=lambda e: e.copy_with(is_refreshing=True),
                loading=lambda _: ResourceLoading(),
            )
        )

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            raise MissingEventLoopError(self._name) from None

    def _start_loading(self) -> None:
        self._resolved = True
        logger.debug(f"Resolving {self._label}")
        self._set_state(ResourceLoading())

    def _schedule_fetch(self, loop: asyncio.AbstractEventLoop) -> "asyncio.Task[None]":
        task = loop.create_task(self._run_fetcher())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run_fetcher(self) -> None:
        fetcher = cast(Fetcher[T], self.fetcher)
        try:
            result = await fetcher()
        except Exception as e:
            logger.warning(f"{self._label} fetch failed: {e}")
            self._set_state(ResourceError(e, stack_trace=e.__traceback__))
        else:
            self._set_state(ResourceReady(result))

    def _listen(self, stream: BroadcastStream[T]) -> None:
        self._subscription = stream.listen(self._on_data, on_error=self._on_error)

    def _open_stream(self) -> BroadcastStream[T]:
        origin = cast(StreamFactory[T], self.stream)()
        if origin is self._stream_origin and self._broadcast is not None:
            return self._broadcast

        # wrapping a plain async iterable starts a pump task
        if not is_broadcast(origin):
            self._require_loop()

        # a new stream replaces the wrapper we created for the previous one
        if self._broadcast is not None:
            self._broadcast.close()
            self._broadcast = None
        self._stream_origin = origin

        stream = as_broadcast(origin)
        if isinstance(stream, IterableBroadcast):
            self._broadcast = stream
        return stream

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_data(self, data: T) -> None:
        self._set_state(ResourceReady(data))

    def _on_error(self, error: BaseException, stack_trace: TracebackType | None) -> None:
        logger.warning(f"{self._label} stream error: {error}")
        self._set_state(ResourceError(error, stack_trace=stack_trace))


class ResourceSelector(BaseResource[S], Generic[T, S]):
    """A resource mirroring a parent resource through a selector function.

    The selector owns no fetcher or stream: ``refetch()`` and
    ``resubscribe()`` go to the parent, and every parent transition is mapped
    into this resource's state.
    """

    def __init__(self, resource: BaseResource[T], selector: Callable[[T], S]) -> None:
        """Initialize the selector.

        Args:
            resource: Parent resource
            selector: Pure function applied to the parent's ready value
        """
        super().__init__(name=f"{resource.name}.select" if resource.name else None)
        self.resource = resource
        self.selector = selector

        self._set_state(self._map_state(resource.state))
        self._parent_observation = resource.observe(self._on_parent_change)
        self._parent_release = resource.on_dispose(self.dispose)

    @property
    def resolved(self) -> bool:
        """Whether the parent has been resolved."""
        return self.resource.resolved

    def resolve(self) -> "asyncio.Task[None] | None":
        """Resolve the parent if it is unresolved, otherwise do nothing."""
        if not self.resource.resolved:
            return self.resource.resolve()
        return None

    def refetch(self) -> "asyncio.Task[None] | None":
        """Refetch the parent."""
        return self.resource.refetch()

    def resubscribe(self) -> None:
        """Resubscribe the parent."""
        self.resource.resubscribe()

    def dispose(self) -> None:
        """Stop mirroring the parent and dispose the state cell."""
        if self.disposed:
            return
        self._parent_observation()
        self._parent_release()
        super().dispose()

    def _on_parent_change(self, _: ResourceState[T], current: ResourceState[T]) -> None:
        self._set_state(self._map_state(current))

    def _map_state(self, state: ResourceState[T]) -> ResourceState[S]:
        if isinstance(state, ResourceUnresolved):
            return ResourceUnresolved()
        return state.match(
            ready=self._map_ready,
            error=lambda e: ResourceError(
                e.error, stack_trace=e.stack_trace, is_refreshing=e.is_refreshing
            ),
            loading=lambda _: ResourceLoading(),
        )

    def _map_ready(self, ready: ResourceReady[T]) -> ResourceState[S]:
        try:
            value = self.selector(ready.value)
        except Exception as e:
            logger.warning(f"{self._label} selector failed: {e}")
            return ResourceError(e, stack_trace=e.__traceback__, is_refreshing=ready.is_refreshing)
        return ResourceReady(value, is_refreshing=ready.is_refreshing)


def create_resource(
    fetcher: Fetcher[T] | None = None,
    stream: StreamFactory[T] | None = None,
    source: ReactiveValue[Any] | None = None,
    options: ResourceOptions | None = None,
) -> Resource[T]:
    """Create a resource. See :class:`Resource`."""
    return Resource(fetcher=fetcher, stream=stream, source=source, options=options)
