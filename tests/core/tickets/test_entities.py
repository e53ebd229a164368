"""
Unit tests for the entities of the Tickets domain.

Coverage:
- TicketEntity.create(): creation validation
- Field updates and the monotonic updated_at
- Comments: body limits, append-only order
- Attachments: removal rules
- Enum display metadata and lookups
- Ticket id formatting and ordering
"""

import pytest
from datetime import datetime, timedelta, timezone

from src.core.tickets.entities import (
    Attachment,
    Comment,
    CommentAuthor,
    CommentAuthorRole,
    TicketCategory,
    TicketEntity,
    TicketPriority,
    TicketStatus,
    format_ticket_id,
    normalize_tags,
    ticket_id_sort_key,
)
from src.core.shared.exceptions import (
    BusinessRuleViolationError,
    EntityNotFoundError,
    ValidationError,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_ticket(**overrides):
    data = dict(
        ticket_id="TK-001",
        title="Printer offline",
        description="HP LaserJet shows offline on all machines",
        user_id="user-1",
        now=NOW,
    )
    data.update(overrides)
    return TicketEntity.create(**data)


class TestTicketCreation:
    """Tests for ticket creation."""

    def test_create_valid_ticket(self):
        """Should create an OPEN ticket with no comments or attachments."""
        ticket = make_ticket(
            priority=TicketPriority.HIGH,
            category=TicketCategory.HARDWARE_PROBLEMS,
        )

        assert ticket.id == "TK-001"
        assert ticket.status == TicketStatus.OPEN
        assert ticket.priority == TicketPriority.HIGH
        assert ticket.category == TicketCategory.HARDWARE_PROBLEMS
        assert ticket.comments == []
        assert ticket.attachments == []
        assert ticket.created_at == ticket.updated_at == NOW
        assert ticket.resolved_at is None
        assert ticket.assignee_id is None

    def test_create_with_defaults(self):
        """Should default to medium priority and general inquiry."""
        ticket = make_ticket()

        assert ticket.priority == TicketPriority.MEDIUM
        assert ticket.category == TicketCategory.GENERAL_INQUIRY

    def test_create_strips_title_and_description(self):
        ticket = make_ticket(title="  Printer offline  ", description="  Ten chars plus  ")

        assert ticket.title == "Printer offline"
        assert ticket.description == "Ten chars plus"

    def test_create_normalizes_tags(self):
        """Should trim, lower-case and deduplicate tags in order."""
        ticket = make_ticket(tags=[" Printer", "network", "PRINTER", ""])

        assert ticket.tags == ["printer", "network"]

    @pytest.mark.parametrize("title", ["", "   ", "abcd"])
    def test_title_too_short(self, title):
        with pytest.raises(ValidationError) as exc_info:
            make_ticket(title=title)

        assert exc_info.value.field == "title"

    def test_title_boundaries(self):
        """5 and 100 characters are accepted, 101 is not."""
        assert make_ticket(title="a" * 5).title == "a" * 5
        assert make_ticket(title="a" * 100).title == "a" * 100

        with pytest.raises(ValidationError):
            make_ticket(title="a" * 101)

    def test_description_boundaries(self):
        assert make_ticket(description="d" * 10).description == "d" * 10
        assert make_ticket(description="d" * 2000).description == "d" * 2000

        with pytest.raises(ValidationError) as exc_info:
            make_ticket(description="d" * 9)
        assert exc_info.value.field == "description"

        with pytest.raises(ValidationError):
            make_ticket(description="d" * 2001)

    def test_user_required(self):
        with pytest.raises(ValidationError) as exc_info:
            make_ticket(user_id="")

        assert exc_info.value.field == "user_id"

    @pytest.mark.parametrize("field, value", [
        ("title", 12345),
        ("title", ["Printer offline"]),
        ("description", 3.5),
        ("description", {"text": "HP LaserJet shows offline"}),
    ])
    def test_non_text_fields_rejected(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            make_ticket(**{field: value})

        assert exc_info.value.field == field

    def test_non_text_tag_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            make_ticket(tags=["printer", 7])

        assert exc_info.value.field == "tags"


class TestTicketUpdates:
    """Tests for field updates."""

    def test_change_title_refreshes_updated_at(self):
        ticket = make_ticket()
        later = NOW + timedelta(minutes=5)

        ticket.change_title("Printer still offline", later)

        assert ticket.title == "Printer still offline"
        assert ticket.updated_at == later

    def test_invalid_title_leaves_ticket_unchanged(self):
        ticket = make_ticket()

        with pytest.raises(ValidationError):
            ticket.change_title("abc", NOW + timedelta(minutes=5))

        assert ticket.title == "Printer offline"
        assert ticket.updated_at == NOW

    def test_updated_at_never_moves_backward(self):
        ticket = make_ticket()

        ticket.change_priority(TicketPriority.LOW, NOW - timedelta(hours=1))

        assert ticket.priority == TicketPriority.LOW
        assert ticket.updated_at == NOW

    def test_assign_and_unassign(self):
        ticket = make_ticket()

        ticket.assign_to("support-1", "John Smith", NOW)
        assert ticket.is_assigned
        assert ticket.assignee_name == "John Smith"

        ticket.assign_to(None, None, NOW)
        assert not ticket.is_assigned
        assert ticket.assignee_name is None

    def test_assignee_name_requires_id(self):
        ticket = make_ticket()

        with pytest.raises(ValidationError) as exc_info:
            ticket.assign_to(None, "John Smith")

        assert exc_info.value.field == "assignee_id"

    def test_add_and_remove_tag(self):
        ticket = make_ticket(tags=["email"])

        ticket.add_tag(" Outlook ")
        ticket.add_tag("email")
        assert ticket.tags == ["email", "outlook"]

        ticket.remove_tag("EMAIL")
        assert ticket.tags == ["outlook"]

    def test_estimate_must_be_positive(self):
        ticket = make_ticket()

        ticket.set_estimated_resolution_time(timedelta(hours=2))
        assert ticket.estimated_resolution_time == timedelta(hours=2)

        with pytest.raises(ValidationError):
            ticket.set_estimated_resolution_time(timedelta(0))


class TestComments:
    """Tests for comments."""

    def author(self, role=CommentAuthorRole.CUSTOMER):
        return CommentAuthor(author_id="user-1", name="Jane Doe", role=role)

    def test_create_comment(self):
        comment = Comment.create("TK-001", self.author(), "  It stopped again  ", now=NOW)

        assert comment.id.startswith("comment-")
        assert comment.body == "It stopped again"
        assert comment.author_role == CommentAuthorRole.CUSTOMER
        assert comment.is_internal is False
        assert comment.created_at == NOW

    @pytest.mark.parametrize("body", ["", "   "])
    def test_empty_body_rejected(self, body):
        with pytest.raises(ValidationError) as exc_info:
            Comment.create("TK-001", self.author(), body)

        assert exc_info.value.field == "body"

    def test_body_length_limit(self):
        assert Comment.create("TK-001", self.author(), "x" * 1000).body == "x" * 1000

        with pytest.raises(ValidationError):
            Comment.create("TK-001", self.author(), "x" * 1001)

    def test_comments_keep_append_order(self):
        ticket = make_ticket()
        first = Comment.create("TK-001", self.author(), "first", now=NOW + timedelta(minutes=1))
        second = Comment.create("TK-001", self.author(), "second", now=NOW + timedelta(minutes=2))

        ticket.append_comment(first)
        ticket.append_comment(second)

        assert [c.body for c in ticket.comments] == ["first", "second"]
        assert ticket.updated_at == NOW + timedelta(minutes=2)

    def test_comment_of_another_ticket_rejected(self):
        ticket = make_ticket()
        comment = Comment.create("TK-999", self.author(), "wrong ticket")

        with pytest.raises(BusinessRuleViolationError):
            ticket.append_comment(comment)

        assert ticket.comments == []


class TestAttachments:
    """Tests for attachment removal."""

    def attachment(self, name="log.txt"):
        return Attachment.create(name, 100, "text/plain", f"memory://{name}", now=NOW)

    def test_remove_ticket_attachment(self):
        ticket = make_ticket()
        attachment = self.attachment()
        ticket.add_attachments([attachment], NOW)

        removed = ticket.remove_attachment(attachment.id, NOW + timedelta(minutes=1))

        assert removed.id == attachment.id
        assert ticket.attachments == []
        assert ticket.updated_at == NOW + timedelta(minutes=1)

    def test_remove_unknown_attachment(self):
        ticket = make_ticket()

        with pytest.raises(EntityNotFoundError):
            ticket.remove_attachment("att-missing")

    def test_comment_attachments_cannot_be_removed(self):
        ticket = make_ticket()
        attachment = self.attachment()
        author = CommentAuthor(author_id="user-1", name="Jane Doe")
        ticket.append_comment(
            Comment.create("TK-001", author, "see log", attachments=[attachment], now=NOW)
        )

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            ticket.remove_attachment(attachment.id)

        assert exc_info.value.rule == "comment_attachments_immutable"
        assert len(ticket.comments[0].attachments) == 1


class TestEnums:
    """Tests for enum metadata and lookups."""

    def test_category_labels(self):
        assert [category.label for category in TicketCategory] == [
            "Network Issues",
            "Software Support",
            "Hardware Problems",
            "Security Concerns",
            "Emergency Support",
            "General Inquiry",
        ]

    def test_every_member_has_description(self):
        for enum_cls in (TicketStatus, TicketPriority, TicketCategory):
            for member in enum_cls:
                assert member.label
                assert member.description

    def test_priority_severity_order(self):
        ordered = sorted(TicketPriority, key=lambda p: p.severity)

        assert ordered == [
            TicketPriority.LOW,
            TicketPriority.MEDIUM,
            TicketPriority.HIGH,
            TicketPriority.CRITICAL,
        ]

    @pytest.mark.parametrize("raw", ["in_progress", "IN_PROGRESS", "In Progress", "in-progress"])
    def test_status_from_string(self, raw):
        assert TicketStatus.from_string(raw) == TicketStatus.IN_PROGRESS

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            TicketPriority.from_string("urgent")


class TestTicketIds:
    """Tests for id formatting and ordering."""

    def test_format(self):
        assert format_ticket_id(1) == "TK-001"
        assert format_ticket_id(42) == "TK-042"
        assert format_ticket_id(1000) == "TK-1000"

    def test_numeric_ordering(self):
        ids = ["TK-1000", "TK-002", "legacy-1", "TK-999"]

        assert sorted(ids, key=ticket_id_sort_key) == ["TK-002", "TK-999", "TK-1000", "legacy-1"]

    def test_normalize_tags(self):
        assert normalize_tags(["A", " b ", "a", None]) == ["a", "b"]

        with pytest.raises(ValidationError):
            normalize_tags(["ok", {"tag": "x"}])
