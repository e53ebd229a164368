"""
Domain Events of the Tickets domain.

Events raised when something significant happens to a ticket.

Events:
- TicketCreatedEvent: A new ticket was opened
- TicketUpdatedEvent: Plain fields of a ticket changed
- TicketStatusChangedEvent: The ticket followed a workflow edge
- TicketDeletedEvent: A ticket was removed
- CommentAddedEvent: A comment was appended
- AttachmentAddedEvent: A file was attached to the ticket
- AttachmentDeletedEvent: A ticket-level file was removed

Usage:
    Events are created in the use cases and published through the
    UnitOfWork after a successful commit.

    with uow:
        ticket = repo.mutate(ticket_id, apply)
        uow.publish_event(TicketStatusChangedEvent(...))
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from src.core.shared.events import DomainEvent


@dataclass
class TicketCreatedEvent(DomainEvent):
    """
    Event: a ticket was created.

    Typical handlers:
    - Alert the support team about high and critical tickets
    - Record metrics

    Attributes:
        user_id: Owning user
        title: Ticket title
        priority: Priority value
        category: Category value
        attachment_count: Files attached on creation
    """

    user_id: str = ""
    title: str = ""
    priority: str = ""
    category: str = ""
    attachment_count: int = 0

    aggregate_type: ClassVar[str] = "Ticket"


@dataclass
class TicketUpdatedEvent(DomainEvent):
    """
    Event: ticket fields changed (status changes have their own event).

    Attributes:
        changed_fields: Names of the fields that changed
        changed_by: Who made the change
        previous_priority: Set when the priority changed
        new_priority: Set when the priority changed
    """

    changed_fields: List[str] = field(default_factory=list)
    changed_by: Optional[str] = None
    previous_priority: Optional[str] = None
    new_priority: Optional[str] = None

    aggregate_type: ClassVar[str] = "Ticket"

    @property
    def is_escalation(self) -> bool:
        """True when the priority moved to a more severe level."""
        if not self.previous_priority or not self.new_priority:
            return False
        order = ["low", "medium", "high", "critical"]
        return order.index(self.new_priority) > order.index(self.previous_priority)

    def _get_event_data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "changed_fields": list(self.changed_fields),
            "changed_by": self.changed_by,
        }
        if self.new_priority:
            data["previous_priority"] = self.previous_priority
            data["new_priority"] = self.new_priority
        return data


@dataclass
class TicketStatusChangedEvent(DomainEvent):
    """
    Event: the ticket moved along the status workflow.

    Typical handlers:
    - Tell the customer the ticket awaits their answer or is resolved
    - Alert the support team when a ticket is reopened

    Attributes:
        previous_status: Status before the transition
        new_status: Status after the transition
        action: Label of the action that triggered it ("Reopen")
        user_id: Owner of the ticket, for customer notifications
        changed_by: Who triggered the transition
        resolution_hours: Hours from creation to first resolution, if any
    """

    previous_status: str = ""
    new_status: str = ""
    action: str = ""
    user_id: str = ""
    changed_by: Optional[str] = None
    resolution_hours: Optional[float] = None

    aggregate_type: ClassVar[str] = "Ticket"

    @property
    def is_reopen(self) -> bool:
        return self.new_status == "open" and self.previous_status in ("resolved", "closed")


@dataclass
class TicketDeletedEvent(DomainEvent):
    """Event: a ticket was removed from the repository."""

    deleted_by: Optional[str] = None
    discarded_attachments: int = 0

    aggregate_type: ClassVar[str] = "Ticket"


@dataclass
class CommentAddedEvent(DomainEvent):
    """
    Event: a comment was appended to a ticket.

    Attributes:
        comment_id: New comment id
        author_id: Comment author
        author_role: customer, support or admin
        user_id: Owner of the ticket
        is_internal: Hidden from the customer
        preview: First characters of the body
        attachment_count: Files on the comment
    """

    PREVIEW_LENGTH: ClassVar[int] = 80

    comment_id: str = ""
    author_id: str = ""
    author_role: str = ""
    user_id: str = ""
    is_internal: bool = False
    preview: str = ""
    attachment_count: int = 0

    aggregate_type: ClassVar[str] = "Ticket"

    @classmethod
    def make_preview(cls, body: str) -> str:
        if len(body) <= cls.PREVIEW_LENGTH:
            return body
        return body[: cls.PREVIEW_LENGTH - 3] + "..."


@dataclass
class AttachmentAddedEvent(DomainEvent):
    attachment_id: str = ""
    file_name: str = ""
    file_size: int = 0
    content_type: str = ""
    uploaded_by: Optional[str] = None

    aggregate_type: ClassVar[str] = "Ticket"


@dataclass
class AttachmentDeletedEvent(DomainEvent):
    attachment_id: str = ""
    file_name: str = ""
    deleted_by: Optional[str] = None

    aggregate_type: ClassVar[str] = "Ticket"
