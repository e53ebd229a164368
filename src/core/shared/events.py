"""
Domain Events - decoupled notification of things that happened.

Base infrastructure for domain events, used to tell other parts of the
system (notifications, reporting) about ticket mutations without the
core knowing who listens.

Characteristics:
- Named in the past tense (TicketCreated, not CreateTicket)
- Auto-generated id and timestamp
- Serializable for logging and message transport
- Traceable through aggregate_id

Flow:
    - Use cases enqueue events on the UnitOfWork
    - The UnitOfWork publishes them only after the mutation commits
    - Publishers forward them to handlers (log, Celery, test buffer)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict
import uuid


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DomainEvent:
    """
    Base class for domain events.

    A domain event represents something meaningful that happened in
    the domain and may be relevant to other parts of the system.

    Attributes:
        aggregate_id: Id of the aggregate that produced the event
        event_id: Unique event identifier
        occurred_at: When the event happened
        version: Schema version of the event payload

    Example:
        @dataclass
        class TicketCreatedEvent(DomainEvent):
            title: str = ""
    """

    aggregate_id: str = ""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=_utc_now)
    version: int = 1

    aggregate_type: ClassVar[str] = ""

    def __post_init__(self):
        if not self.aggregate_id:
            raise ValueError("aggregate_id is required")

    @property
    def event_type(self) -> str:
        """Event type (the class name)."""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the event to a dictionary.

        Used for structured logging and for sending the event through
        the Celery broker.

        Returns:
            Dictionary with the envelope fields plus the event data
        """
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "occurred_at": self.occurred_at.isoformat(),
            "version": self.version,
            "data": self._get_event_data(),
        }

    def _get_event_data(self) -> Dict[str, Any]:
        """
        Event-specific payload.

        Defaults to every field that is not part of the envelope.
        Subclasses override when a field needs conversion.
        """
        base_fields = {"event_id", "aggregate_id", "occurred_at", "version"}
        return {
            key: value
            for key, value in self.__dict__.items()
            if key not in base_fields and not key.startswith("_")
        }

    def __repr__(self) -> str:
        return (
            f"{self.event_type}("
            f"event_id={self.event_id[:8]}..., "
            f"aggregate_id={self.aggregate_id}, "
            f"occurred_at={self.occurred_at.isoformat()}"
            f")"
        )
