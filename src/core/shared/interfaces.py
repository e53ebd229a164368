"""
Interfaces (Ports) - contracts between the core and the adapters.

These are the driven ports of the hexagon: the core defines them,
adapters implement them. Dependencies always point at the core.

Ports:
- UnitOfWork: buffers domain events and publishes them after commit
- EventPublisher: forwards events to consumers (log, Celery, tests)
"""

from abc import ABC, abstractmethod
from typing import List

from .events import DomainEvent


class UnitOfWork(ABC):
    """
    Unit of Work - wraps one mutation and its domain events.

    Events enqueued inside the block are published only if the block
    exits without an exception; otherwise they are discarded.

    Pattern: Context Manager
        with uow:
            repo.mutate(ticket_id, apply_change)
            uow.publish_event(event)
        # commit on clean exit, rollback on exception

    Example:
        class InMemoryUnitOfWork(UnitOfWork):
            def commit(self):
                self._publisher.publish_batch(self._events)
    """

    def __init__(self):
        self._events: List[DomainEvent] = []

    def __enter__(self) -> "UnitOfWork":
        self._begin_transaction()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        return False

    @abstractmethod
    def _begin_transaction(self) -> None:
        """Start a new unit of work."""
        raise NotImplementedError

    @abstractmethod
    def commit(self) -> None:
        """
        Finish the unit of work and publish buffered events.

        Note:
            Events are only published after a successful commit.
        """
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        """Discard buffered events. Called automatically on exception."""
        raise NotImplementedError

    def publish_event(self, event: DomainEvent) -> None:
        """
        Enqueue an event for publication after commit.

        Args:
            event: Domain event to publish
        """
        self._events.append(event)

    def collect_events(self) -> List[DomainEvent]:
        """Pending events (for testing/debugging)."""
        return list(self._events)

    def clear_events(self) -> None:
        self._events.clear()


class EventPublisher(ABC):
    """
    Publishes domain events to consumers.

    Example:
        class CeleryEventPublisher(EventPublisher):
            def publish(self, event):
                dispatch_domain_event.delay(event.event_type, event.to_dict())
    """

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        """
        Publish a single event.

        Args:
            event: Domain event to publish
        """
        raise NotImplementedError

    def publish_batch(self, events: List[DomainEvent]) -> None:
        """
        Publish several events in order.

        Args:
            events: Events to publish
        """
        for event in events:
            self.publish(event)
