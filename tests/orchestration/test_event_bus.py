"""Tests for EventBus."""

from datetime import datetime, timezone

import pytest

from orchestration.bus import InMemoryEventBus
from orchestration.events import Event, EventMetadata


def _event(name: str = "execution.started") -> Event:
    metadata = EventMetadata(
        execution_id="exec_test123",
        workflow_id="support",
        timestamp=datetime.now(timezone.utc),
    )
    return Event(name=name, payload={"workflow_id": "support"}, metadata=metadata)


@pytest.mark.asyncio
async def test_event_bus_subscribe_and_publish():
    """Test subscribing and publishing events."""
    bus = InMemoryEventBus()

    events_received: list[Event] = []

    async def handler(event: Event) -> None:
        events_received.append(event)

    bus.subscribe("execution.started", handler)
    await bus.publish(_event())

    assert len(events_received) == 1
    assert events_received[0].name == "execution.started"
    assert events_received[0].payload == {"workflow_id": "support"}
    assert events_received[0].metadata.execution_id == "exec_test123"
    assert events_received[0].metadata.workflow_id == "support"


@pytest.mark.asyncio
async def test_event_bus_multiple_handlers():
    """Test multiple handlers for the same event."""
    bus = InMemoryEventBus()

    events_1: list[Event] = []
    events_2: list[Event] = []

    async def handler1(event: Event) -> None:
        events_1.append(event)

    async def handler2(event: Event) -> None:
        events_2.append(event)

    bus.subscribe("execution.started", handler1)
    bus.subscribe("execution.started", handler2)

    await bus.publish(_event())

    assert len(events_1) == 1
    assert len(events_2) == 1


@pytest.mark.asyncio
async def test_event_bus_wildcard_receives_every_event():
    bus = InMemoryEventBus()
    names: list[str] = []

    async def handler(event: Event) -> None:
        names.append(event.name)

    bus.subscribe("*", handler)
    await bus.publish(_event("execution.started"))
    await bus.publish(_event("execution.completed"))

    assert names == ["execution.started", "execution.completed"]


@pytest.mark.asyncio
async def test_event_bus_handler_error_does_not_reach_publisher():
    bus = InMemoryEventBus()
    delivered: list[Event] = []

    async def broken(event: Event) -> None:
        raise RuntimeError("handler exploded")

    async def healthy(event: Event) -> None:
        delivered.append(event)

    bus.subscribe("execution.failed", broken)
    bus.subscribe("execution.failed", healthy)

    await bus.publish(_event("execution.failed"))

    assert len(delivered) == 1


@pytest.mark.asyncio
async def test_event_bus_unsubscribe():
    bus = InMemoryEventBus()
    received: list[Event] = []

    async def handler(event: Event) -> None:
        received.append(event)

    bus.subscribe("execution.started", handler)
    assert bus.unsubscribe("execution.started", handler) is True
    assert bus.unsubscribe("execution.started", handler) is False

    await bus.publish(_event())
    assert received == []


@pytest.mark.asyncio
async def test_event_bus_no_handlers():
    """Test publishing event with no handlers."""
    bus = InMemoryEventBus()

    # Should not raise an error
    await bus.publish(_event())
