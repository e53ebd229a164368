"""
Data Transfer Objects (DTOs) of the Tickets domain.

DTOs carry data between layers without leaking the entities to the
outside world.

Kinds:
- Input DTOs: commands received from the API layer
- Output DTOs: serializable views of tickets, comments and attachments
- Paginated result: one page of a ticket query
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from src.core.shared.exceptions import ValidationError

from .attachments import FileDescriptor
from .entities import (
    Attachment,
    Comment,
    CommentAuthorRole,
    TicketCategory,
    TicketEntity,
    TicketPriority,
    TicketStatus,
)

E = TypeVar("E")


def parse_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """
    Convert a raw value to a domain enum.

    Raises:
        ValidationError: Scoped to field_name, if the value is unknown
    """
    try:
        return enum_cls.from_string(value)  # type: ignore[attr-defined]
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)  # type: ignore[attr-defined]
        raise ValidationError(
            f"Invalid {field_name}: {value!r}. Allowed values: {allowed}",
            field=field_name,
        )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _hours(value: Optional[timedelta]) -> Optional[float]:
    if value is None:
        return None
    return round(value.total_seconds() / 3600, 2)


# =============================================================================
# INPUT DTOs
# =============================================================================

@dataclass(frozen=True)
class FileUploadDTO:
    """
    A file submitted by the caller.

    Attributes:
        file_name: Original file name
        size: Declared size in bytes
        content_type: Declared MIME type
        content: Raw bytes, if the caller sent them
    """

    file_name: str
    size: int
    content_type: str
    content: Optional[bytes] = None

    def __post_init__(self):
        if not self.file_name or not self.file_name.strip():
            raise ValidationError("File name is required", field="attachments")
        if self.size is None or int(self.size) < 0:
            raise ValidationError(
                f'File "{self.file_name}" has an invalid size',
                field="attachments",
            )

    @property
    def descriptor(self) -> FileDescriptor:
        return FileDescriptor(
            file_name=self.file_name,
            size=int(self.size),
            content_type=self.content_type or "",
        )


@dataclass(frozen=True)
class CreateTicketInputDTO:
    """
    Input for creating a ticket.

    Attributes:
        title: Ticket title
        description: Detailed description
        user_id: Owning user
        priority: Priority value ("medium")
        category: Category value ("hardware_problems")
        tags: Optional tags
        attachments: Files to attach on creation
    """

    title: str
    description: str
    user_id: str
    priority: str = "medium"
    category: str = "general_inquiry"
    tags: Tuple[str, ...] = field(default_factory=tuple)
    attachments: Tuple[FileUploadDTO, ...] = field(default_factory=tuple)


UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "priority",
    "category",
    "status",
    "assignee_id",
    "assignee_name",
    "tags",
    "estimated_resolution_time",
})


@dataclass(frozen=True)
class UpdateTicketInputDTO:
    """
    Partial update of a ticket.

    Attributes:
        ticket_id: Ticket to update
        changes: Field name -> new value. A "status" entry is routed
            through the status workflow.
        changed_by: Who is making the change
    """

    ticket_id: str
    changes: Mapping[str, Any]
    changed_by: Optional[str] = None

    def __post_init__(self):
        unknown = sorted(set(self.changes) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(unknown)}",
                field=unknown[0],
            )


@dataclass(frozen=True)
class TransitionTicketInputDTO:
    """
    Status change request.

    Attributes:
        ticket_id: Ticket to transition
        target_status: Requested status value ("resolved")
        changed_by: Who triggered the action
    """

    ticket_id: str
    target_status: str
    changed_by: Optional[str] = None


@dataclass(frozen=True)
class AddCommentInputDTO:
    """
    A new comment on a ticket.

    Attributes:
        ticket_id: Ticket to comment on
        author_id: Comment author
        author_name: Display name of the author
        body: Comment text (1-1000 characters)
        author_role: customer, support or admin
        is_internal: Hidden from the customer
        attachments: Files attached to the comment
    """

    ticket_id: str
    author_id: str
    author_name: str
    body: str
    author_role: str = "customer"
    is_internal: bool = False
    attachments: Tuple[FileUploadDTO, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class UploadAttachmentInputDTO:
    """A file attached directly to a ticket."""

    ticket_id: str
    file: FileUploadDTO
    uploaded_by: Optional[str] = None


@dataclass(frozen=True)
class DeleteAttachmentInputDTO:
    """Removal of a ticket-level attachment."""

    ticket_id: str
    attachment_id: str
    deleted_by: Optional[str] = None


# =============================================================================
# OUTPUT DTOs
# =============================================================================

@dataclass
class AttachmentOutputDTO:
    id: str
    file_name: str
    file_size: int
    content_type: str
    uploaded_at: datetime
    url: str

    @classmethod
    def from_entity(cls, attachment: Attachment) -> "AttachmentOutputDTO":
        return cls(
            id=attachment.id,
            file_name=attachment.file_name,
            file_size=attachment.file_size,
            content_type=attachment.content_type,
            uploaded_at=attachment.uploaded_at,
            url=attachment.url,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "content_type": self.content_type,
            "uploaded_at": self.uploaded_at.isoformat(),
            "url": self.url,
        }


@dataclass
class CommentOutputDTO:
    id: str
    ticket_id: str
    author_id: str
    author_name: str
    author_role: str
    body: str
    is_internal: bool
    created_at: datetime
    attachments: List[AttachmentOutputDTO] = field(default_factory=list)

    @classmethod
    def from_entity(cls, comment: Comment) -> "CommentOutputDTO":
        return cls(
            id=comment.id,
            ticket_id=comment.ticket_id,
            author_id=comment.author_id,
            author_name=comment.author_name,
            author_role=comment.author_role.value,
            body=comment.body,
            is_internal=comment.is_internal,
            created_at=comment.created_at,
            attachments=[AttachmentOutputDTO.from_entity(a) for a in comment.attachments],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "author_role": self.author_role,
            "body": self.body,
            "is_internal": self.is_internal,
            "created_at": self.created_at.isoformat(),
            "attachments": [a.to_dict() for a in self.attachments],
        }


@dataclass
class TicketOutputDTO:
    """
    Full serializable view of a ticket.

    Enum fields hold their values ("in_progress"); the matching display
    labels are included for the UI.
    """

    id: str
    title: str
    description: str
    status: str
    status_label: str
    priority: str
    priority_label: str
    category: str
    category_label: str
    user_id: str
    assignee_id: Optional[str]
    assignee_name: Optional[str]
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime]
    closed_at: Optional[datetime]
    estimated_resolution_time: Optional[timedelta]
    actual_resolution_time: Optional[timedelta]
    tags: List[str] = field(default_factory=list)
    comments: List[CommentOutputDTO] = field(default_factory=list)
    attachments: List[AttachmentOutputDTO] = field(default_factory=list)

    @classmethod
    def from_entity(cls, entity: TicketEntity, include_internal: bool = True) -> "TicketOutputDTO":
        """
        Convert an entity to a DTO.

        Args:
            entity: Ticket entity
            include_internal: Keep internal comments (False for customers)
        """
        comments = [
            CommentOutputDTO.from_entity(comment)
            for comment in entity.comments
            if include_internal or not comment.is_internal
        ]
        return cls(
            id=entity.id,
            title=entity.title,
            description=entity.description,
            status=entity.status.value,
            status_label=entity.status.label,
            priority=entity.priority.value,
            priority_label=entity.priority.label,
            category=entity.category.value,
            category_label=entity.category.label,
            user_id=entity.user_id,
            assignee_id=entity.assignee_id,
            assignee_name=entity.assignee_name,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            resolved_at=entity.resolved_at,
            closed_at=entity.closed_at,
            estimated_resolution_time=entity.estimated_resolution_time,
            actual_resolution_time=entity.actual_resolution_time,
            tags=list(entity.tags),
            comments=comments,
            attachments=[AttachmentOutputDTO.from_entity(a) for a in entity.attachments],
        )

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "status_label": self.status_label,
            "priority": self.priority,
            "priority_label": self.priority_label,
            "category": self.category,
            "category_label": self.category_label,
            "user_id": self.user_id,
            "assignee_id": self.assignee_id,
            "assignee_name": self.assignee_name,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "resolved_at": _iso(self.resolved_at),
            "closed_at": _iso(self.closed_at),
            "estimated_resolution_hours": _hours(self.estimated_resolution_time),
            "actual_resolution_hours": _hours(self.actual_resolution_time),
            "tags": list(self.tags),
            "comments": [c.to_dict() for c in self.comments],
            "attachments": [a.to_dict() for a in self.attachments],
        }


@dataclass
class PaginatedTicketsDTO:
    """
    One page of a ticket query.

    Attributes:
        items: Tickets on this page
        total: Size of the filtered set before pagination
        page: Page number (1-indexed)
        page_size: Items per page
    """

    items: List[TicketOutputDTO]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "has_more": self.has_more,
        }
