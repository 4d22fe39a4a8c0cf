"""Exceptions raised by Tether.

Everything here signals a caller contract violation. Faults raised by a
fetcher or a stream are never raised through these types; they are stored in
a ``ResourceError`` state instead.
"""


class ResourceUsageError(RuntimeError):
    """Base class for programmer-usage errors."""

    pass


class AlreadyResolvedError(ResourceUsageError):
    """resolve() called on a resource that has already been resolved."""

    def __init__(self, name: str | None = None) -> None:
        label = f"Resource '{name}'" if name else "Resource"
        super().__init__(
            f"{label} has already been resolved, it can't be resolved more than once. "
            "Use refetch() or resubscribe() to refresh the value."
        )


class MissingFetcherError(ResourceUsageError):
    """refetch() called on a resource without a fetcher."""

    def __init__(self, name: str | None = None) -> None:
        label = f"Resource '{name}'" if name else "Resource"
        super().__init__(
            f"{label} has no fetcher to refetch; stream resources must use resubscribe()"
        )


class MissingStreamError(ResourceUsageError):
    """resubscribe() called on a resource without a stream."""

    def __init__(self, name: str | None = None) -> None:
        label = f"Resource '{name}'" if name else "Resource"
        super().__init__(
            f"{label} has no stream to resubscribe to; fetcher resources must use refetch()"
        )


class MissingEventLoopError(ResourceUsageError):
    """A resource needed to schedule async work outside a running event loop."""

    def __init__(self, name: str | None = None) -> None:
        label = f"Resource '{name}'" if name else "Resource"
        super().__init__(
            f"{label} needs a running event loop to start its fetcher or stream; "
            "resolve it from async code"
        )


class UnresolvedStateError(ResourceUsageError):
    """An unresolved state was matched."""

    def __init__(self) -> None:
        super().__init__("Cannot match an unresolved resource")


class SignalDisposedError(ResourceUsageError):
    """A value was written to a disposed signal."""

    pass
