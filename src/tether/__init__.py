"""Tether - reactive resources for async data."""

from tether.exceptions import (
    AlreadyResolvedError,
    MissingEventLoopError,
    MissingFetcherError,
    MissingStreamError,
    ResourceUsageError,
    SignalDisposedError,
    UnresolvedStateError,
)
from tether.resource import (
    BaseResource,
    Resource,
    ResourceOptions,
    ResourceSelector,
    create_resource,
)
from tether.signal import Observation, ReactiveValue, Signal
from tether.state import (
    ResourceError,
    ResourceLoading,
    ResourceReady,
    ResourceState,
    ResourceUnresolved,
)
from tether.stream import (
    BroadcastStream,
    IterableBroadcast,
    StreamController,
    StreamSubscription,
    as_broadcast,
)

__version__ = "0.1.0"

__all__ = [
    "AlreadyResolvedError",
    "BaseResource",
    "BroadcastStream",
    "IterableBroadcast",
    "MissingEventLoopError",
    "MissingFetcherError",
    "MissingStreamError",
    "Observation",
    "ReactiveValue",
    "Resource",
    "ResourceError",
    "ResourceLoading",
    "ResourceOptions",
    "ResourceReady",
    "ResourceSelector",
    "ResourceState",
    "ResourceUnresolved",
    "ResourceUsageError",
    "Signal",
    "SignalDisposedError",
    "StreamController",
    "StreamSubscription",
    "UnresolvedStateError",
    "__version__",
    "as_broadcast",
    "create_resource",
]
