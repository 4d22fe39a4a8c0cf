"""Resource state variants.

A resource is always in exactly one of four states:

- ``ResourceUnresolved``: nothing has been requested yet
- ``ResourceLoading``: the first fetch or subscription is in flight
- ``ResourceReady``: the last successful value
- ``ResourceError``: the last failure

Ready and Error carry ``is_refreshing``, which is True while a background
refresh runs and the previous payload is still shown.

Example:
    ```python
    text = resource.state.on(
        ready=lambda user: user.name,
        error=lambda error, stack_trace: f"failed: {error}",
        loading=lambda: "loading...",
    )
    ```
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from types import TracebackType
from typing import Any, ClassVar, Generic, TypeVar

from tether.exceptions import UnresolvedStateError

T = TypeVar("T")
R = TypeVar("R")


class ResourceState(Generic[T]):
    """Base class of the four resource state variants."""

    is_refreshing: bool

    def match(
        self,
        *,
        ready: Callable[["ResourceReady[T]"], R],
        error: Callable[["ResourceError[T]"], R],
        loading: Callable[["ResourceLoading[T]"], R],
    ) -> R:
        """Dispatch on the state variant.

        Args:
            ready: Called with the ResourceReady instance
            error: Called with the ResourceError instance
            loading: Called with the ResourceLoading instance

        Returns:
            Result of the selected handler

        Raises:
            UnresolvedStateError: If the state is unresolved
        """
        raise NotImplementedError

    def maybe_match(
        self,
        *,
        or_else: Callable[[], R],
        ready: Callable[["ResourceReady[T]"], R] | None = None,
        error: Callable[["ResourceError[T]"], R] | None = None,
        loading: Callable[["ResourceLoading[T]"], R] | None = None,
    ) -> R:
        """Like match(), calling or_else for every variant without a handler."""
        return self.match(
            ready=ready if ready is not None else lambda _: or_else(),
            error=error if error is not None else lambda _: or_else(),
            loading=loading if loading is not None else lambda _: or_else(),
        )

    def on(
        self,
        *,
        ready: Callable[[T], R],
        error: Callable[[BaseException, TracebackType | None], R],
        loading: Callable[[], R],
    ) -> R:
        """Dispatch on the state variant, passing unpacked payloads.

        Args:
            ready: Called with the ready value
            error: Called with the error and its stack trace
            loading: Called with no arguments

        Returns:
            Result of the selected handler
        """
        return self.match(
            ready=lambda r: ready(r.value),
            error=lambda e: error(e.error, e.stack_trace),
            loading=lambda _: loading(),
        )

    def maybe_on(
        self,
        *,
        or_else: Callable[[], R],
        ready: Callable[[T], R] | None = None,
        error: Callable[[BaseException, TracebackType | None], R] | None = None,
        loading: Callable[[], R] | None = None,
    ) -> R:
        """Like on(), calling or_else for every variant without a handler."""
        return self.match(
            ready=lambda r: ready(r.value) if ready is not None else or_else(),
            error=lambda e: error(e.error, e.stack_trace) if error is not None else or_else(),
            loading=lambda _: loading() if loading is not None else or_else(),
        )

    @property
    def is_loading(self) -> bool:
        """Whether the state is loading."""
        return isinstance(self, ResourceLoading)

    @property
    def has_error(self) -> bool:
        """Whether the state is an error."""
        return isinstance(self, ResourceError)

    @property
    def is_ready(self) -> bool:
        """Whether the state is ready."""
        return isinstance(self, ResourceReady)

    @property
    def as_ready(self) -> "ResourceReady[T] | None":
        """The state as ResourceReady, or None for loading/error."""
        return self.match(ready=lambda r: r, error=lambda _: None, loading=lambda _: None)

    @property
    def as_error(self) -> "ResourceError[T] | None":
        """The state as ResourceError, or None for loading/ready."""
        return self.match(ready=lambda _: None, error=lambda e: e, loading=lambda _: None)

    @property
    def value_or_none(self) -> T | None:
        """The ready value, None while loading.

        Raises:
            BaseException: The stored error, if the state is an error
        """
        return self.match(
            ready=lambda r: r.value,
            error=lambda e: _reraise(e),
            loading=lambda _: None,
        )

    @property
    def error_or_none(self) -> BaseException | None:
        """The stored error, None for loading/ready."""
        return self.match(ready=lambda _: None, error=lambda e: e.error, loading=lambda _: None)

    def __call__(self) -> T | None:
        return self.value_or_none


def _reraise(state: "ResourceError[Any]") -> Any:
    raise state.error


@dataclass(frozen=True)
class ResourceUnresolved(ResourceState[T]):
    """No fetch or subscription has been started yet."""

    is_refreshing: ClassVar[bool] = False

    def match(self, *, ready: Any, error: Any, loading: Any) -> Any:
        raise UnresolvedStateError()


@dataclass(frozen=True)
class ResourceLoading(ResourceState[T]):
    """A fetch or subscription is in flight and no value is known yet."""

    is_refreshing: ClassVar[bool] = False

    def match(self, *, ready: Any, error: Any, loading: Any) -> Any:
        return loading(self)


@dataclass(frozen=True)
class ResourceReady(ResourceState[T]):
    """The last successful value.

    Attributes:
        value: The value currently exposed
        is_refreshing: True while a refresh runs in the background
    """

    value: T
    is_refreshing: bool = False

    def match(self, *, ready: Any, error: Any, loading: Any) -> Any:
        return ready(self)

    def copy_with(self, *, is_refreshing: bool | None = None) -> "ResourceReady[T]":
        """Return a copy with is_refreshing replaced."""
        if is_refreshing is None:
            return self
        return replace(self, is_refreshing=is_refreshing)


@dataclass(frozen=True)
class ResourceError(ResourceState[T]):
    """The last failure.

    Attributes:
        error: The exception raised by the fetcher or stream
        stack_trace: Traceback captured with the error (not compared)
        is_refreshing: True while a refresh runs in the background
    """

    error: BaseException
    stack_trace: TracebackType | None = field(default=None, compare=False)
    is_refreshing: bool = False

    def match(self, *, ready: Any, error: Any, loading: Any) -> Any:
        return error(self)

    def copy_with(self, *, is_refreshing: bool | None = None) -> "ResourceError[T]":
        """Return a copy with is_refreshing replaced."""
        if is_refreshing is None:
            return self
        return replace(self, is_refreshing=is_refreshing)
