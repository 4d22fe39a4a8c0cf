"""Unit tests for resource selectors."""

from typing import Any
from unittest.mock import AsyncMock

import pytest

from tether.resource import Resource, ResourceOptions, ResourceSelector
from tether.state.resource_state import (
    ResourceError,
    ResourceLoading,
    ResourceReady,
    ResourceState,
)


@pytest.fixture
def parent(controllers: Any) -> Resource[Any]:
    """A resolved stream resource fed by the controllers fixture."""
    resource: Resource[Any] = Resource(stream=controllers, options=ResourceOptions(name="user"))
    resource.resolve()
    return resource


class TestSelectorMapping:
    """Test how parent states map into the selector."""

    def test_ready_is_mapped(self, parent: Resource[Any], controllers: Any) -> None:
        """Test Ready(v) becomes Ready(f(v))."""
        controllers.current.add({"name": "ada", "age": 36})
        name = parent.select(lambda user: user["name"])

        assert name.state == ResourceReady("ada")

    def test_follows_parent_transitions(self, parent: Resource[Any], controllers: Any) -> None:
        """Test the selector recomputes on every parent transition."""
        doubled = parent.select(lambda v: v * 2)
        states: list[ResourceState[Any]] = []
        doubled.observe(lambda prev, curr: states.append(curr))

        controllers.current.add(1)
        controllers.current.add(2)

        assert states == [ResourceReady(2), ResourceReady(4)]

    def test_loading_passes_through(self, parent: Resource[Any]) -> None:
        """Test a loading parent gives a loading selector."""
        selector = parent.select(lambda v: v)
        assert selector.state == ResourceLoading()

    def test_refreshing_flag_is_kept(self, parent: Resource[Any], controllers: Any) -> None:
        """Test is_refreshing is copied from the parent."""
        controllers.current.add(3)
        selector = parent.select(lambda v: v + 1)

        parent.resubscribe()

        assert selector.state == ResourceReady(4, is_refreshing=True)

    def test_error_passes_through_unchanged(
        self, parent: Resource[Any], controllers: Any
    ) -> None:
        """Test the parent's error, trace and flag are forwarded as-is."""
        selector = parent.select(lambda v: v)
        error = ValueError("bad")
        try:
            raise error
        except ValueError:
            pass
        controllers.current.add_error(error)
        parent.resubscribe()

        state = selector.state
        assert state == ResourceError(error, is_refreshing=True)
        assert state.as_error is not None
        assert state.as_error.error is error
        assert state.as_error.stack_trace is error.__traceback__

    def test_selector_failure_becomes_error(
        self, parent: Resource[Any], controllers: Any
    ) -> None:
        """Test an exception in the selector function is stored as Error."""
        selector = parent.select(lambda v: v["missing"])

        controllers.current.add({})

        assert selector.state.has_error
        assert isinstance(selector.state.error_or_none, KeyError)
        assert parent.state == ResourceReady({})

    def test_chained_selectors(self, parent: Resource[Any], controllers: Any) -> None:
        """Test select can be applied to a selector."""
        chained = parent.select(lambda v: v + 1).select(lambda v: v * 10)

        controllers.current.add(1)

        assert chained.state == ResourceReady(20)
        assert isinstance(chained.resource, ResourceSelector)

    def test_selector_name(self, parent: Resource[Any]) -> None:
        """Test selectors derive their name from the parent."""
        assert parent.select(lambda v: v).name == "user.select"


class TestSelectorDelegation:
    """Test control operations forwarded to the parent."""

    def test_resubscribe_delegates(self, parent: Resource[Any], controllers: Any) -> None:
        """Test resubscribe on the selector resubscribes the parent."""
        selector = parent.select(lambda v: v)

        selector.resubscribe()

        assert len(controllers.controllers) == 2

    @pytest.mark.asyncio
    async def test_refetch_delegates(self) -> None:
        """Test refetch on the selector refetches the parent."""
        fetch = AsyncMock(side_effect=[1, 2])
        parent = Resource(fetcher=fetch)
        await parent.until_ready()
        selector = parent.select(lambda v: v * 100)

        task = selector.refetch()
        assert selector.state == ResourceReady(100, is_refreshing=True)
        assert task is not None
        await task

        assert selector.state == ResourceReady(200)
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_select_resolves_parent(self) -> None:
        """Test selecting from an unresolved parent resolves it."""
        parent = Resource(fetcher=AsyncMock(return_value=2))
        selector = parent.select(lambda v: -v)

        assert parent.resolved
        assert selector.resolved
        assert selector.resolve() is None
        assert await selector.until_ready() == -2

    @pytest.mark.asyncio
    async def test_direct_construction_resolves_parent(self) -> None:
        """Test a selector built on an unresolved parent starts its fetch."""
        fetch = AsyncMock(return_value="x")
        parent = Resource(fetcher=fetch)

        selector = ResourceSelector(parent, str.upper)

        assert parent.resolved
        assert await selector.until_ready() == "X"
        fetch.assert_awaited_once()


class TestSelectorDisposal:
    """Test selector lifetime."""

    def test_parent_disposal_disposes_selector(
        self, parent: Resource[Any], controllers: Any
    ) -> None:
        """Test the selector becomes inert when the parent is disposed."""
        controllers.current.add(1)
        selector = parent.select(lambda v: v)
        chained = selector.select(lambda v: v)

        parent.dispose()

        assert selector.disposed
        assert chained.disposed
        assert selector.state == ResourceReady(1)

    def test_selector_disposal_keeps_parent(
        self, parent: Resource[Any], controllers: Any
    ) -> None:
        """Test disposing a selector leaves the parent running."""
        selector = parent.select(lambda v: v)

        selector.dispose()
        controllers.current.add(5)

        assert not parent.disposed
        assert parent.state == ResourceReady(5)
        assert selector.state == ResourceLoading()
        assert parent._cell._dispose_callbacks == {}
