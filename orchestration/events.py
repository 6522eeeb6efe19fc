"""Orchestration events - Event, EventMetadata."""

from dataclasses import dataclass, field
from datetime import datetime

from relay_sdk.utils.datetime import utc_now


@dataclass
class EventMetadata:
    """Metadata for an event."""

    execution_id: str | None = None
    workflow_id: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class Event:
    """Lifecycle event published by the orchestrator."""

    name: str
    payload: dict[str, object]
    metadata: EventMetadata = field(default_factory=EventMetadata)
