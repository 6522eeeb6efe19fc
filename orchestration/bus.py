"""Lifecycle event bus - orchestrator events fan out to async subscribers."""

from collections.abc import Awaitable, Callable
from typing import Protocol

from relay_sdk.logging import get_logger

from .events import Event

EventHandler = Callable[[Event], Awaitable[None]]

WILDCARD = "*"


class EventBusProtocol(Protocol):
    """Sink for orchestrator lifecycle events (execution.*, agent.registered, ...)."""

    async def publish(self, event: Event) -> None:
        """Publish an event.

        Args:
            event: Event to publish
        """
        ...

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event name.

        Args:
            event_name: Event name to subscribe to, or "*" for every event
            handler: Async handler function
        """
        ...


class InMemoryEventBus(EventBusProtocol):
    """Process-local bus; handlers run sequentially in subscription order, wildcard handlers last."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._logger = get_logger("orchestration.event_bus")

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event name.

        Args:
            event_name: Event name to subscribe to, or "*" for every event
            handler: Async handler function
        """
        self._handlers.setdefault(event_name, []).append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> bool:
        """Remove a handler. Returns False when it was not subscribed."""
        handlers = self._handlers.get(event_name, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribed handlers.

        Handler failures are logged and do not reach the publisher.

        Args:
            event: Event to publish
        """
        handlers = [*self._handlers.get(event.name, []), *self._handlers.get(WILDCARD, [])]
        if not handlers:
            return

        self._logger.debug(
            "publishing_event",
            event_name=event.name,
            execution_id=event.metadata.execution_id,
            handler_count=len(handlers),
        )

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                self._logger.error(
                    "handler_error",
                    event_name=event.name,
                    handler=str(handler),
                    error=str(exc),
                    exc_info=True,
                )
