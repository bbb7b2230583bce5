"""Simple in-memory event bus for domain events.

Collection views publish what happened (a mutation was rolled back, a
snapshot was merged, a queue drained) and UI code subscribes to show notices
or stop spinners, without either side knowing about the other.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

from gallery_sync.domain.events.sync_events import DomainEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=DomainEvent)

# Event handler type - async function that takes an event and returns None
EventHandler = Callable[[TEvent], Awaitable[None]]


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", type(handler).__name__)


class EventBus:
    """Simple in-memory event bus for domain events.

    Example:
        ```python
        event_bus = EventBus()

        async def show_notice(event: MutationFailed):
            toast(event.notice)

        event_bus.subscribe(MutationFailed, show_notice)
        await event_bus.publish(
            MutationFailed(
                occurred_at=utc_now(),
                collection_key="user-1",
                operation="create_page",
                notice="Failed to create page.",
            )
        )
        ```
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        """Subscribe a handler to a specific event type.

        Args:
            event_type: The type of event to subscribe to (e.g., MutationFailed).
            handler: Async function to call when event is published.
        """
        self._handlers[event_type].append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__,
                "handler": _handler_name(handler),
                "total_handlers": len(self._handlers[event_type]),
            },
        )

    def unsubscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        """Unsubscribe a handler from an event type."""
        if event_type not in self._handlers:
            return
        try:
            self._handlers[event_type].remove(handler)
        except ValueError:
            logger.warning(
                "event_handler_not_found",
                extra={"event_type": event_type.__name__, "handler": _handler_name(handler)},
            )
            return
        logger.debug(
            "event_handler_unsubscribed",
            extra={"event_type": event_type.__name__, "handler": _handler_name(handler)},
        )

    async def publish(self, event: DomainEvent) -> None:
        """Publish a domain event to all subscribed handlers.

        Handlers run one after another. If a handler fails, the error is
        logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug(
                "event_published_no_handlers",
                extra={"event_type": event_type.__name__, "event_id": event.aggregate_id},
            )
            return

        logger.debug(
            "event_published",
            extra={
                "event_type": event_type.__name__,
                "event_id": event.aggregate_id,
                "handler_count": len(handlers),
            },
        )

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": _handler_name(handler),
                        "error": str(exc),
                    },
                )
