"""
Event Handlers - Celery tasks reacting to ticket domain events.

Handlers run asynchronously in Celery workers when domain events are
published, so a mutation never waits for notifications or reporting.

Kinds of handlers:
- Notification: tell the support team or the customer (log-only here)
- Metrics: count what happens to tickets
- Scheduled: daily statistics report

Pattern:
    @shared_task(bind=True, ...)
    def handle_<event>(self, event: dict) -> None:
        data = event.get("data", {})
"""

from typing import Any, Dict, Optional
import logging

from celery import shared_task

logger = logging.getLogger(__name__)

URGENT_PRIORITIES = ("high", "critical")
CUSTOMER_FACING_STATUSES = ("waiting_for_customer", "resolved")
STAFF_ROLES = ("support", "admin")


def _payload(event: Dict[str, Any]) -> Dict[str, Any]:
    return event.get("data") or {}


# =============================================================================
# Event Handlers - Tickets
# =============================================================================

@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def handle_ticket_created(self, event: Dict[str, Any]) -> None:
    """
    Handler for TicketCreatedEvent.

    Actions:
    - Alert the support team about high and critical tickets
    - Count created tickets by priority
    """
    ticket_id = event.get("aggregate_id")
    data = _payload(event)
    priority = data.get("priority", "medium")

    logger.info(
        f"[HANDLER] TicketCreated: {ticket_id} | "
        f"user={data.get('user_id')} | priority={priority}"
    )

    if priority in URGENT_PRIORITIES:
        notify_support_team.delay(
            ticket_id=ticket_id,
            message=f"New {priority} ticket: {data.get('title')}",
            priority="high" if priority == "critical" else "normal",
        )

    record_metric.delay(
        metric_name="tickets_created",
        value=1,
        tags={"priority": priority, "category": data.get("category", "")},
    )


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def handle_ticket_updated(self, event: Dict[str, Any]) -> None:
    """
    Handler for TicketUpdatedEvent.

    Alerts the support team when the priority was raised to high or
    critical.
    """
    ticket_id = event.get("aggregate_id")
    data = _payload(event)
    previous = data.get("previous_priority")
    new = data.get("new_priority")

    logger.info(
        f"[HANDLER] TicketUpdated: {ticket_id} | fields={data.get('changed_fields', [])}"
    )

    order = ["low", "medium", "high", "critical"]
    if previous in order and new in order and order.index(new) > order.index(previous):
        if new in URGENT_PRIORITIES:
            notify_support_team.delay(
                ticket_id=ticket_id,
                message=f"Ticket escalated from {previous} to {new}",
                priority="high" if new == "critical" else "normal",
            )


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def handle_status_changed(self, event: Dict[str, Any]) -> None:
    """
    Handler for TicketStatusChangedEvent.

    Actions:
    - Tell the customer when the ticket waits for them or is resolved
    - Alert the support team when a ticket is reopened
    - Count resolutions and reopens
    """
    ticket_id = event.get("aggregate_id")
    data = _payload(event)
    previous = data.get("previous_status")
    new = data.get("new_status")

    logger.info(
        f"[HANDLER] StatusChanged: {ticket_id} | {previous} -> {new} "
        f"({data.get('action')})"
    )

    if new in CUSTOMER_FACING_STATUSES and data.get("user_id"):
        notify_user.delay(
            user_id=data["user_id"],
            message=f"Ticket {ticket_id} is now {new.replace('_', ' ')}",
            channel="email",
        )

    if new == "open" and previous in ("resolved", "closed"):
        notify_support_team.delay(
            ticket_id=ticket_id,
            message=f"Ticket reopened from {previous}",
            priority="normal",
        )
        record_metric.delay(metric_name="tickets_reopened", value=1, tags={"from": previous})

    if new == "resolved" and data.get("resolution_hours") is not None:
        record_metric.delay(
            metric_name="ticket_resolution_hours",
            value=data["resolution_hours"],
            tags={},
        )


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    acks_late=True,
)
def handle_comment_added(self, event: Dict[str, Any]) -> None:
    """
    Handler for CommentAddedEvent.

    A public reply from staff notifies the customer; a customer reply
    notifies the support team. Internal notes notify nobody.
    """
    ticket_id = event.get("aggregate_id")
    data = _payload(event)
    role = data.get("author_role")

    logger.info(
        f"[HANDLER] CommentAdded: {ticket_id} | author={data.get('author_id')} ({role}) | "
        f"internal={data.get('is_internal')}"
    )

    if data.get("is_internal"):
        return

    if role in STAFF_ROLES and data.get("user_id"):
        notify_user.delay(
            user_id=data["user_id"],
            message=f"New reply on ticket {ticket_id}: {data.get('preview', '')}",
            channel="email",
        )
    elif role == "customer":
        notify_support_team.delay(
            ticket_id=ticket_id,
            message=f"Customer replied: {data.get('preview', '')}",
            priority="normal",
        )


@shared_task(bind=True, ignore_result=True)
def handle_activity_event(self, event: Dict[str, Any]) -> None:
    """Counts attachment and deletion activity."""
    event_type = event.get("event_type", "")
    logger.info(f"[HANDLER] {event_type}: {event.get('aggregate_id')}")
    record_metric.delay(metric_name="ticket_activity", value=1, tags={"event": event_type})


# =============================================================================
# Event Dispatcher (Router)
# =============================================================================

EVENT_HANDLERS = {
    "TicketCreatedEvent": handle_ticket_created,
    "TicketUpdatedEvent": handle_ticket_updated,
    "TicketStatusChangedEvent": handle_status_changed,
    "CommentAddedEvent": handle_comment_added,
    "AttachmentAddedEvent": handle_activity_event,
    "AttachmentDeletedEvent": handle_activity_event,
    "TicketDeletedEvent": handle_activity_event,
}


@shared_task(bind=True, max_retries=5, default_retry_delay=30)
def dispatch_domain_event(self, event_type: str, event: Dict[str, Any]) -> Optional[str]:
    """
    Entry point for every domain event: routes it to its handler.

    Args:
        event_type: Event class name ("TicketCreatedEvent")
        event: Serialized event (DomainEvent.to_dict())

    Returns:
        Name of the handler task, or None if no handler is registered
    """
    handler = EVENT_HANDLERS.get(event_type)

    if handler is None:
        logger.warning(f"[DISPATCHER] No handler for {event_type}")
        return None

    logger.info(f"[DISPATCHER] Routing {event_type} to {handler.name}")
    handler.delay(event)
    return handler.name


# =============================================================================
# Notification Tasks
# =============================================================================

@shared_task(bind=True, max_retries=3, default_retry_delay=120)
def notify_user(self, user_id: str, message: str, channel: str = "email") -> None:
    """
    Notify a customer.

    Args:
        user_id: Recipient
        message: Text to send
        channel: email, push or sms
    """
    logger.info(f"[NOTIFICATION] {channel.upper()} to {user_id}: {message}")


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def notify_support_team(self, ticket_id: str, message: str, priority: str = "normal") -> None:
    logger.info(f"[NOTIFICATION] Support team [{priority}]: {ticket_id} - {message}")


# =============================================================================
# Metric Tasks
# =============================================================================

@shared_task(bind=True, ignore_result=True)
def record_metric(
    self,
    metric_name: str,
    value: float,
    tags: Optional[Dict[str, str]] = None,
) -> None:
    logger.info(f"[METRIC] {metric_name}={value} | tags={tags or {}}")


# =============================================================================
# Scheduled Tasks (Beat)
# =============================================================================

@shared_task(bind=True)
def generate_daily_report(self) -> Dict[str, Any]:
    """
    Daily ticket statistics.

    Run by Celery Beat.

    Returns:
        The statistics as a dictionary
    """
    logger.info("[SCHEDULED] Generating daily report...")

    # Late import to avoid a circular import with the container
    from src.config.container import get_container

    try:
        stats = get_container().ticket_stats_service().execute()
    except Exception as e:
        logger.error(f"Daily report failed: {e}", exc_info=True)
        raise

    report = stats.to_dict()
    logger.info(
        f"[SCHEDULED] Report: total={report['total']} "
        f"open={report['by_status']['open']} "
        f"recent_activity={report['recent_activity']}"
    )
    record_metric.delay(metric_name="tickets_open", value=report["by_status"]["open"], tags={})
    return report
