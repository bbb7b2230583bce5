"""Unit tests for EventBus."""

import pytest

from gallery_sync.core.time_utils import utc_now
from gallery_sync.domain.events.sync_events import MutationFailed, QueueDrained
from gallery_sync.infrastructure.messaging.event_bus import EventBus


def _failed(notice: str = "Failed to create page.") -> MutationFailed:
    return MutationFailed(
        occurred_at=utc_now(),
        aggregate_id="user-1",
        collection_key="user-1",
        operation="create_page",
        notice=notice,
        error="create rejected",
    )


class TestEventBus:
    """Test suite for EventBus."""

    @pytest.fixture
    def event_bus(self):
        """Create a fresh event bus for each test."""
        return EventBus()

    @pytest.mark.asyncio
    async def test_subscribe_and_publish(self, event_bus):
        received = []

        async def handler(event: MutationFailed):
            received.append(event)

        event_bus.subscribe(MutationFailed, handler)
        event = _failed()

        await event_bus.publish(event)

        assert received == [event]

    @pytest.mark.asyncio
    async def test_handlers_only_see_their_event_type(self, event_bus):
        received = []

        async def handler(event: QueueDrained):
            received.append(event)

        event_bus.subscribe(QueueDrained, handler)
        await event_bus.publish(_failed())

        assert received == []

    @pytest.mark.asyncio
    async def test_publish_with_no_handlers(self, event_bus):
        # Should not raise error
        await event_bus.publish(_failed())

    @pytest.mark.asyncio
    async def test_handler_error_does_not_affect_other_handlers(self, event_bus):
        handler2_called = False

        async def handler1(event: MutationFailed):
            raise ValueError("Handler 1 error")

        async def handler2(event: MutationFailed):
            nonlocal handler2_called
            handler2_called = True

        event_bus.subscribe(MutationFailed, handler1)
        event_bus.subscribe(MutationFailed, handler2)

        await event_bus.publish(_failed())

        # Handler 2 should still be called even though handler 1 failed
        assert handler2_called is True

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        calls = 0

        async def handler(event: MutationFailed):
            nonlocal calls
            calls += 1

        event_bus.subscribe(MutationFailed, handler)
        event_bus.unsubscribe(MutationFailed, handler)
        event_bus.unsubscribe(MutationFailed, handler)
        event_bus.unsubscribe(QueueDrained, handler)

        await event_bus.publish(_failed())

        assert calls == 0


class TestSyncEvents:
    def test_mutation_failed_requires_notice(self):
        with pytest.raises(ValueError):
            _failed(notice="")

    def test_occurred_at_must_be_datetime(self):
        with pytest.raises(TypeError):
            QueueDrained(occurred_at="yesterday")  # type: ignore[arg-type]
