"""Domain events emitted by collection views.

Events represent things that have happened and are published on the
in-memory event bus so UI code can react (show a notice, stop a spinner).
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    occurred_at: datetime
    aggregate_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.occurred_at, datetime):
            raise TypeError("occurred_at must be a datetime")


@dataclass(frozen=True)
class MutationFailed(DomainEvent):
    """A queued mutation failed and its optimistic change was rolled back.

    ``notice`` is the single blocking message shown to the user.
    """

    collection_key: str = ""
    operation: str = ""
    notice: str = ""
    error: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.notice:
            raise ValueError("notice cannot be empty")


@dataclass(frozen=True)
class SnapshotReconciled(DomainEvent):
    """A server snapshot was merged into the local view."""

    collection_key: str = ""
    item_count: int = 0
    optimistic_count: int = 0

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.item_count < 0 or self.optimistic_count < 0:
            raise ValueError("counts must not be negative")


@dataclass(frozen=True)
class QueueDrained(DomainEvent):
    """A collection's mutation queue emptied and its drain hooks ran."""

    collection_key: str = ""
