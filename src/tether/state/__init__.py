"""Resource state variants."""

from tether.state.resource_state import (
    ResourceError,
    ResourceLoading,
    ResourceReady,
    ResourceState,
    ResourceUnresolved,
)

__all__ = [
    "ResourceError",
    "ResourceLoading",
    "ResourceReady",
    "ResourceState",
    "ResourceUnresolved",
]
