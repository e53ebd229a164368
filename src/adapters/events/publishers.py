"""
Event Publishers - forward ticket domain events to their consumers.

Implementations:
- LoggingEventPublisher: logs each event, runs local handlers (development)
- CeleryEventPublisher: hands events to the Celery dispatcher (production)
- InMemoryEventPublisher: keeps events for assertions (tests)
- CompositeEventPublisher: fans out to several publishers

The UnitOfWork calls these only after a mutation has been applied.
"""

from typing import Callable, Dict, List, Optional
import json
import logging

from src.core.shared.events import DomainEvent
from src.core.shared.interfaces import EventPublisher

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class _LocalHandlers:
    """Synchronous in-process handlers, keyed by event type."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def _dispatch_to_handlers(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler for {event.event_type} failed: {e}")


def _send_to_celery(event: DomainEvent) -> None:
    from src.adapters.events.handlers import dispatch_domain_event

    dispatch_domain_event.delay(event.event_type, event.to_dict())


class LoggingEventPublisher(_LocalHandlers, EventPublisher):
    """
    Publisher that logs events.

    Used in development to see events without a message broker.
    """

    def __init__(self, log_level: int = logging.INFO, dispatch_to_celery: bool = False):
        super().__init__()
        self._log_level = log_level
        self._dispatch_to_celery = dispatch_to_celery

    def publish(self, event: DomainEvent) -> None:
        logger.log(
            self._log_level,
            f"[EVENT] {event.event_type} | "
            f"aggregate={event.aggregate_id} | "
            f"data={json.dumps(event.to_dict()['data'], default=str)}"
        )

        if self._dispatch_to_celery:
            try:
                _send_to_celery(event)
            except Exception as e:
                logger.warning(f"Could not dispatch {event.event_type} to Celery: {e}")

        self._dispatch_to_handlers(event)


class CeleryEventPublisher(EventPublisher):
    """
    Publisher that sends events to Celery.

    A broker outage is logged and does not fail the mutation that
    produced the event.
    """

    def __init__(self, also_log: bool = True):
        self._also_log = also_log

    def publish(self, event: DomainEvent) -> None:
        if self._also_log:
            logger.info(
                f"[EVENT->CELERY] {event.event_type} | "
                f"aggregate={event.aggregate_id}"
            )

        try:
            _send_to_celery(event)
        except Exception as e:
            logger.error(f"Failed to publish {event.event_type} to Celery: {e}", exc_info=True)


class InMemoryEventPublisher(_LocalHandlers, EventPublisher):
    """
    Publisher that keeps events in memory.

    Example:
        publisher = InMemoryEventPublisher()
        ...
        assert publisher.get_events_by_type("TicketCreatedEvent")
    """

    def __init__(self):
        super().__init__()
        self._published_events: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self._published_events.append(event)
        self._dispatch_to_handlers(event)

    @property
    def published_events(self) -> List[DomainEvent]:
        return self._published_events.copy()

    def get_events_by_type(self, event_type: str) -> List[DomainEvent]:
        return [e for e in self._published_events if e.event_type == event_type]

    def clear(self) -> None:
        self._published_events.clear()


class CompositeEventPublisher(EventPublisher):
    """Publishes every event to each of its publishers."""

    def __init__(self, publishers: Optional[List[EventPublisher]] = None):
        self._publishers = list(publishers or [])

    def add_publisher(self, publisher: EventPublisher) -> None:
        self._publishers.append(publisher)

    def publish(self, event: DomainEvent) -> None:
        for publisher in self._publishers:
            try:
                publisher.publish(event)
            except Exception as e:
                logger.error(f"{publisher.__class__.__name__} failed on {event.event_type}: {e}")


PUBLISHER_MODES = ("sync", "celery", "memory")


def get_event_publisher(mode: str = "sync") -> EventPublisher:
    """
    Build the publisher for a mode.

    Args:
        mode: "sync" logs in process, "celery" dispatches to workers,
            "memory" keeps events for tests

    Returns:
        Configured publisher

    Raises:
        ValueError: On an unknown mode
    """
    normalized = (mode or "sync").strip().lower()
    if normalized == "celery":
        return CeleryEventPublisher()
    if normalized == "memory":
        return InMemoryEventPublisher()
    if normalized == "sync":
        return LoggingEventPublisher()
    raise ValueError(f"Unknown event publisher mode: {mode!r} (expected one of {PUBLISHER_MODES})")
