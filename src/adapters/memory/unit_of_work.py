"""
Unit of Work - in-memory implementation.

The ticket repository applies each mutation atomically on its own, so
this unit of work only has to buffer the domain events of one use case
and hand them to the event publisher after a successful commit.

Guarantees:
- Events are published only after the block exits cleanly
- An exception discards every buffered event
- Publishing failures are logged, never turned into a failed mutation
"""

from typing import List, Optional
import logging

from src.core.shared.events import DomainEvent
from src.core.shared.interfaces import EventPublisher, UnitOfWork

logger = logging.getLogger(__name__)


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of Work over the in-memory repository.

    Reusable: every `with` block starts a fresh unit.

    Example:
        with InMemoryUnitOfWork(event_publisher) as uow:
            repo.mutate(ticket_id, apply)
            uow.publish_event(MyEvent(...))
        # events published here

    Example with rollback:
        with InMemoryUnitOfWork(event_publisher) as uow:
            uow.publish_event(MyEvent(...))
            raise Exception("Error!")
        # events discarded
    """

    def __init__(self, event_publisher: Optional[EventPublisher] = None):
        super().__init__()
        self._event_publisher = event_publisher
        self._committed = False
        self._rolled_back = False
        self._published_events: List[DomainEvent] = []

    def _begin_transaction(self) -> None:
        self._committed = False
        self._rolled_back = False
        self.clear_events()
        logger.debug("Unit of work started")

    def commit(self) -> None:
        """
        Finish the unit and publish the buffered events.

        Order:
        1. Mark committed
        2. Publish events to the publisher (if configured)
        3. Clear internal state
        """
        if self._committed or self._rolled_back:
            logger.warning("Unit of work already finalized")
            return

        self._committed = True
        if self._events:
            self._publish_events()

    def rollback(self) -> None:
        """Discard buffered events. Called automatically on exception."""
        if self._committed or self._rolled_back:
            return

        if self._events:
            logger.debug(f"Rolling back, discarding {len(self._events)} events")
        self._rolled_back = True
        self.clear_events()

    def _publish_events(self) -> None:
        for event in self._events:
            logger.info(
                f"Publishing event: {event.event_type} "
                f"for aggregate {event.aggregate_id}"
            )
            self._published_events.append(event)

            if self._event_publisher:
                try:
                    self._event_publisher.publish(event)
                except Exception as e:
                    # The mutation is already applied; handlers can be replayed
                    logger.error(f"Failed to publish event {event.event_type}: {e}")

        self.clear_events()

    @property
    def published_events(self) -> List[DomainEvent]:
        """Every event published through this unit (for tests)."""
        return list(self._published_events)

    @property
    def is_committed(self) -> bool:
        return self._committed

    @property
    def is_rolled_back(self) -> bool:
        return self._rolled_back
