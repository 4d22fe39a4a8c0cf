"""Widget displaying the state of a resource."""

from typing import Any

from textual.widgets import Static

from tether.resource import BaseResource
from tether.signal import Observation
from tether.state.resource_state import ResourceState, ResourceUnresolved
from tether.utils.logging import get_logger

logger = get_logger(__name__)


def format_state(state: ResourceState[Any]) -> str:
    """Render a resource state as a single line of text.

    Args:
        state: State to render

    Returns:
        Text for the widget
    """
    if isinstance(state, ResourceUnresolved):
        return "Not loaded"

    text = state.on(
        ready=lambda value: str(value),
        error=lambda error, _: f"Error: {error}",
        loading=lambda: "⏳ Loading...",
    )
    if state.is_refreshing:
        text = f"{text} (refreshing)"
    return text


class ResourceView(Static):
    """Widget that re-renders whenever a bound resource changes state."""

    def __init__(self, resource: BaseResource[Any] | None = None, *args: Any, **kwargs: Any) -> None:
        """Initialize the resource view.

        Args:
            resource: Resource to bind right away, optional
            *args: Positional arguments for Static
            **kwargs: Keyword arguments for Static
        """
        super().__init__(*args, **kwargs)
        self.resource: BaseResource[Any] | None = None
        self.current_state: ResourceState[Any] | None = None
        self._observation: Observation | None = None
        self._dispose_release: Observation | None = None
        if resource is not None:
            self.bind(resource)

    def bind(self, resource: BaseResource[Any]) -> None:
        """Display resource, replacing any resource bound before.

        Reading the state resolves a lazy resource.

        Args:
            resource: Resource to display
        """
        self.unbind()
        self.resource = resource
        self._observation = resource.observe(self._on_state_change)
        self._dispose_release = resource.on_dispose(self.unbind)
        self.render_state(resource.state)

    def unbind(self) -> None:
        """Stop following the bound resource."""
        if self._observation is not None:
            self._observation()
            self._observation = None
        if self._dispose_release is not None:
            self._dispose_release()
            self._dispose_release = None
        self.resource = None

    def render_state(self, state: ResourceState[Any]) -> None:
        """Update the displayed text for state.

        Args:
            state: State to display
        """
        self.current_state = state
        try:
            self.update(format_state(state))
        except Exception as e:
            logger.error(f"Failed to render resource state: {e}")
            self.update(f"Error displaying resource: {e}")

    def on_unmount(self) -> None:
        """Handle unmount event."""
        self.unbind()

    def _on_state_change(self, _: ResourceState[Any], current: ResourceState[Any]) -> None:
        self.render_state(current)
