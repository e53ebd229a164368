"""
Tests for the Celery event handler tasks.

Tasks are called directly (synchronously); the notification and metric
tasks they enqueue are patched.
"""

from unittest.mock import Mock, patch

import pytest

from src.adapters.events import handlers
from src.config import container as container_module
from src.config.container import create_container
from src.core.tickets.events import (
    CommentAddedEvent,
    TicketCreatedEvent,
    TicketStatusChangedEvent,
    TicketUpdatedEvent,
)


@pytest.fixture
def notify_team():
    with patch.object(handlers, "notify_support_team") as mock:
        yield mock


@pytest.fixture
def notify_user():
    with patch.object(handlers, "notify_user") as mock:
        yield mock


@pytest.fixture
def metric():
    with patch.object(handlers, "record_metric") as mock:
        yield mock


def created(priority):
    return TicketCreatedEvent(
        aggregate_id="TK-001",
        user_id="user-1",
        title="Server room flooding",
        priority=priority,
        category="emergency_support",
    ).to_dict()


def status_changed(previous, new, resolution_hours=None):
    return TicketStatusChangedEvent(
        aggregate_id="TK-001",
        previous_status=previous,
        new_status=new,
        action="Test",
        user_id="user-1",
        resolution_hours=resolution_hours,
    ).to_dict()


def comment(role, is_internal=False):
    return CommentAddedEvent(
        aggregate_id="TK-001",
        comment_id="comment-1",
        author_id="someone",
        author_role=role,
        user_id="user-1",
        is_internal=is_internal,
        preview="Any update?",
    ).to_dict()


class TestTicketCreated:

    def test_critical_ticket_alerts_team(self, notify_team, metric):
        handlers.handle_ticket_created(created("critical"))

        notify_team.delay.assert_called_once()
        assert notify_team.delay.call_args.kwargs["priority"] == "high"
        metric.delay.assert_called_once()
        assert metric.delay.call_args.kwargs["metric_name"] == "tickets_created"

    def test_medium_ticket_only_counts(self, notify_team, metric):
        handlers.handle_ticket_created(created("medium"))

        notify_team.delay.assert_not_called()
        metric.delay.assert_called_once()


class TestTicketUpdated:

    def test_escalation_alerts_team(self, notify_team):
        event = TicketUpdatedEvent(
            aggregate_id="TK-001",
            changed_fields=["priority"],
            previous_priority="medium",
            new_priority="high",
        ).to_dict()

        handlers.handle_ticket_updated(event)

        notify_team.delay.assert_called_once()

    def test_downgrade_is_silent(self, notify_team):
        event = TicketUpdatedEvent(
            aggregate_id="TK-001",
            changed_fields=["priority"],
            previous_priority="critical",
            new_priority="high",
        ).to_dict()

        handlers.handle_ticket_updated(event)

        notify_team.delay.assert_not_called()


class TestStatusChanged:

    def test_resolved_notifies_customer_and_records_hours(self, notify_user, notify_team, metric):
        handlers.handle_status_changed(status_changed("in_progress", "resolved", 5.0))

        notify_user.delay.assert_called_once()
        assert notify_user.delay.call_args.kwargs["user_id"] == "user-1"
        metric.delay.assert_called_once_with(
            metric_name="ticket_resolution_hours", value=5.0, tags={}
        )
        notify_team.delay.assert_not_called()

    def test_reopen_alerts_team(self, notify_user, notify_team, metric):
        handlers.handle_status_changed(status_changed("closed", "open"))

        notify_team.delay.assert_called_once()
        notify_user.delay.assert_not_called()
        assert metric.delay.call_args.kwargs["metric_name"] == "tickets_reopened"

    def test_in_progress_is_silent(self, notify_user, notify_team, metric):
        handlers.handle_status_changed(status_changed("open", "in_progress"))

        notify_user.delay.assert_not_called()
        notify_team.delay.assert_not_called()
        metric.delay.assert_not_called()


class TestCommentAdded:

    def test_support_reply_notifies_customer(self, notify_user, notify_team):
        handlers.handle_comment_added(comment("support"))

        notify_user.delay.assert_called_once()
        notify_team.delay.assert_not_called()

    def test_customer_reply_notifies_team(self, notify_user, notify_team):
        handlers.handle_comment_added(comment("customer"))

        notify_team.delay.assert_called_once()
        notify_user.delay.assert_not_called()

    def test_internal_note_notifies_nobody(self, notify_user, notify_team):
        handlers.handle_comment_added(comment("support", is_internal=True))

        notify_user.delay.assert_not_called()
        notify_team.delay.assert_not_called()


class TestDispatcher:

    def test_routes_to_registered_handler(self):
        handler = Mock()
        handler.name = "handle_ticket_created"
        event = created("low")

        with patch.dict(handlers.EVENT_HANDLERS, {"TicketCreatedEvent": handler}):
            result = handlers.dispatch_domain_event("TicketCreatedEvent", event)

        assert result == "handle_ticket_created"
        handler.delay.assert_called_once_with(event)

    def test_unknown_event_type(self):
        assert handlers.dispatch_domain_event("SomethingElseEvent", {}) is None

    def test_every_ticket_event_has_a_handler(self):
        assert set(handlers.EVENT_HANDLERS) == {
            "TicketCreatedEvent",
            "TicketUpdatedEvent",
            "TicketStatusChangedEvent",
            "TicketDeletedEvent",
            "CommentAddedEvent",
            "AttachmentAddedEvent",
            "AttachmentDeletedEvent",
        }


class TestDailyReport:

    def test_report_uses_stats(self, monkeypatch, metric):
        monkeypatch.setattr(
            container_module,
            "_container",
            create_container({"seed_demo_data": True, "event_publisher_mode": "memory"}),
        )

        report = handlers.generate_daily_report()

        assert report["total"] == 3
        assert report["by_status"]["open"] == 1
        metric.delay.assert_called_once_with(metric_name="tickets_open", value=1, tags={})
