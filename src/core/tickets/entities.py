"""
Entities of the Tickets domain.

This module defines the domain entities that encapsulate the business
rules of customer support tickets.

Entities:
- TicketEntity: Main aggregate of the domain
- Comment: Append-only note on a ticket
- Attachment: File metadata plus an opaque storage handle
- TicketStatus / TicketPriority / TicketCategory: Closed enums with
  display metadata defined once

Business rules encapsulated:
- Field validation on creation and update
- Monotonic updated_at
- Comments are append-only and keep creation order
- Only ticket-level attachments can be removed
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import ClassVar, Iterable, List, Optional, Tuple
import re
import uuid

from src.core.shared.exceptions import (
    ValidationError,
    EntityNotFoundError,
    BusinessRuleViolationError,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _lookup(enum_cls, value, kind: str):
    """Resolve an enum member by value or by name, case-insensitively."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid {kind}: {value!r}")

    normalized = value.strip().lower().replace(" ", "_").replace("-", "_")
    for member in enum_cls:
        if member.value == normalized or member.name.lower() == normalized:
            return member

    raise ValueError(f"Invalid {kind}: {value}")


class TicketStatus(Enum):
    """
    Lifecycle states of a ticket.

    The legal moves between them live in workflow.py.
    """

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING_FOR_CUSTOMER = "waiting_for_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @property
    def label(self) -> str:
        return _STATUS_DISPLAY[self][0]

    @property
    def description(self) -> str:
        return _STATUS_DISPLAY[self][1]

    @property
    def order(self) -> int:
        """Position in the lifecycle (used when sorting by status)."""
        return list(TicketStatus).index(self)

    @classmethod
    def from_string(cls, value: str) -> "TicketStatus":
        """
        Convert a string to the enum.

        Args:
            value: Enum value ("in_progress") or name ("IN_PROGRESS")

        Returns:
            Matching TicketStatus

        Raises:
            ValueError: If the value is unknown
        """
        return _lookup(cls, value, "status")


class TicketPriority(Enum):
    """
    Priority levels, ordered by severity (low < medium < high < critical).
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        """Severity rank; sorting by priority uses this, never the string."""
        severity_map = {
            TicketPriority.LOW: 1,
            TicketPriority.MEDIUM: 2,
            TicketPriority.HIGH: 3,
            TicketPriority.CRITICAL: 4,
        }
        return severity_map[self]

    @property
    def label(self) -> str:
        return _PRIORITY_DISPLAY[self][0]

    @property
    def description(self) -> str:
        return _PRIORITY_DISPLAY[self][1]

    @classmethod
    def from_string(cls, value: str) -> "TicketPriority":
        """
        Convert a string to the enum.

        Raises:
            ValueError: If the value is unknown
        """
        return _lookup(cls, value, "priority")


class TicketCategory(Enum):
    """Closed set of ticket categories, each with a required display label."""

    NETWORK_ISSUES = "network_issues"
    SOFTWARE_SUPPORT = "software_support"
    HARDWARE_PROBLEMS = "hardware_problems"
    SECURITY_CONCERNS = "security_concerns"
    EMERGENCY_SUPPORT = "emergency_support"
    GENERAL_INQUIRY = "general_inquiry"

    @property
    def label(self) -> str:
        return _CATEGORY_DISPLAY[self][0]

    @property
    def description(self) -> str:
        return _CATEGORY_DISPLAY[self][1]

    @classmethod
    def from_string(cls, value: str) -> "TicketCategory":
        """
        Convert a string to the enum.

        Raises:
            ValueError: If the value is unknown
        """
        return _lookup(cls, value, "category")


class CommentAuthorRole(Enum):
    """Who wrote a comment."""

    CUSTOMER = "customer"
    SUPPORT = "support"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> "CommentAuthorRole":
        return _lookup(cls, value, "author role")


_STATUS_DISPLAY = {
    TicketStatus.OPEN: ("Open", "New ticket awaiting initial review"),
    TicketStatus.IN_PROGRESS: ("In Progress", "Ticket is being actively worked on"),
    TicketStatus.WAITING_FOR_CUSTOMER: (
        "Waiting for Customer",
        "Waiting for customer response or action",
    ),
    TicketStatus.RESOLVED: (
        "Resolved",
        "Issue has been resolved and is awaiting customer confirmation",
    ),
    TicketStatus.CLOSED: ("Closed", "Ticket has been completed and closed"),
}

_PRIORITY_DISPLAY = {
    TicketPriority.LOW: (
        "Low",
        "Minor issues that can be addressed during regular business hours",
    ),
    TicketPriority.MEDIUM: (
        "Medium",
        "Standard issues that should be addressed within normal timeframes",
    ),
    TicketPriority.HIGH: ("High", "Important issues that need prompt attention"),
    TicketPriority.CRITICAL: (
        "Critical",
        "Urgent issues that require immediate attention and may affect business operations",
    ),
}

_CATEGORY_DISPLAY = {
    TicketCategory.NETWORK_ISSUES: (
        "Network Issues",
        "Internet connectivity, network configuration, and infrastructure problems",
    ),
    TicketCategory.SOFTWARE_SUPPORT: (
        "Software Support",
        "Application issues, software installation, and configuration help",
    ),
    TicketCategory.HARDWARE_PROBLEMS: (
        "Hardware Problems",
        "Computer hardware, peripherals, and equipment issues",
    ),
    TicketCategory.SECURITY_CONCERNS: (
        "Security Concerns",
        "Security incidents, malware, and data protection issues",
    ),
    TicketCategory.EMERGENCY_SUPPORT: (
        "Emergency Support",
        "Critical issues requiring immediate attention",
    ),
    TicketCategory.GENERAL_INQUIRY: (
        "General Inquiry",
        "Questions, requests for information, and general support",
    ),
}


_TICKET_ID_PATTERN = re.compile(r"^TK-(\d+)$")


def format_ticket_id(number: int) -> str:
    """Format a sequence number as a ticket id (TK-001, TK-042, TK-1000)."""
    return f"TK-{number:03d}"


def ticket_id_sort_key(ticket_id: str) -> Tuple[int, int, str]:
    """
    Sort key that orders ticket ids numerically.

    TK-999 sorts before TK-1000; ids outside the TK-### format sort
    after every sequential id, lexically.
    """
    match = _TICKET_ID_PATTERN.match(ticket_id)
    if match:
        return (0, int(match.group(1)), "")
    return (1, 0, ticket_id)


@dataclass
class Attachment:
    """
    File metadata plus the opaque handle returned by the storage.

    Attributes:
        id: Opaque identifier
        file_name: Original file name
        file_size: Size in bytes
        content_type: Declared MIME type
        uploaded_at: When the file was attached
        url: Storage handle/URL
    """

    id: str
    file_name: str
    file_size: int
    content_type: str
    uploaded_at: datetime
    url: str

    @classmethod
    def create(
        cls,
        file_name: str,
        file_size: int,
        content_type: str,
        url: str,
        now: Optional[datetime] = None,
    ) -> "Attachment":
        return cls(
            id=f"att-{uuid.uuid4().hex[:12]}",
            file_name=file_name,
            file_size=file_size,
            content_type=content_type,
            uploaded_at=now or utc_now(),
            url=url,
        )

    @property
    def identity_key(self) -> Tuple[str, int]:
        """(name, size) pair used for duplicate detection."""
        return (self.file_name, self.file_size)


@dataclass(frozen=True)
class CommentAuthor:
    """Author information attached to a comment."""

    author_id: str
    name: str
    role: CommentAuthorRole = CommentAuthorRole.CUSTOMER


@dataclass
class Comment:
    """
    Append-only note on a ticket.

    Belongs to exactly one ticket (back-reference by id). Immutable once
    created: there is no edit or delete.
    """

    id: str
    ticket_id: str
    author_id: str
    author_name: str
    author_role: CommentAuthorRole
    body: str
    is_internal: bool
    created_at: datetime
    attachments: List[Attachment] = field(default_factory=list)

    BODY_MIN_LENGTH: ClassVar[int] = 1
    BODY_MAX_LENGTH: ClassVar[int] = 1000

    @classmethod
    def create(
        cls,
        ticket_id: str,
        author: CommentAuthor,
        body: str,
        is_internal: bool = False,
        attachments: Optional[Iterable[Attachment]] = None,
        now: Optional[datetime] = None,
    ) -> "Comment":
        """
        Factory method that validates the body.

        Raises:
            ValidationError: If the body is empty or longer than 1000 chars
        """
        cls.validate_body(body)
        if not author.author_id:
            raise ValidationError("Comment author is required", field="author_id")

        return cls(
            id=f"comment-{uuid.uuid4().hex[:12]}",
            ticket_id=ticket_id,
            author_id=author.author_id,
            author_name=author.name,
            author_role=author.role,
            body=body.strip(),
            is_internal=is_internal,
            created_at=now or utc_now(),
            attachments=list(attachments or []),
        )

    @classmethod
    def validate_body(cls, body: str) -> None:
        """Reject empty or over-length bodies. Never truncates."""
        if not body or not body.strip():
            raise ValidationError("Comment is required", field="body")

        if len(body.strip()) > cls.BODY_MAX_LENGTH:
            raise ValidationError(
                f"Comment must be at most {cls.BODY_MAX_LENGTH} characters",
                field="body",
            )


@dataclass
class TicketEntity:
    """
    Domain Entity: Ticket.

    Main aggregate of the support domain. Owned by the ticket repository
    and mutated only through the status workflow, the comment and
    attachment services, or the field-update methods below.

    Invariants:
    - Title has 5 to 100 characters
    - Description has 10 to 2000 characters
    - Status starts as OPEN
    - updated_at never moves backward
    - Comments are append-only and keep creation order

    Example:
        ticket = TicketEntity.create(
            ticket_id="TK-001",
            title="Printer offline",
            description="HP LaserJet shows offline on all machines",
            user_id="user-1",
            priority=TicketPriority.MEDIUM,
            category=TicketCategory.HARDWARE_PROBLEMS,
        )
    """

    id: str
    title: str
    description: str
    user_id: str
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    category: TicketCategory = TicketCategory.GENERAL_INQUIRY

    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    comments: List[Comment] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    estimated_resolution_time: Optional[timedelta] = None
    actual_resolution_time: Optional[timedelta] = None

    TITLE_MIN_LENGTH: ClassVar[int] = 5
    TITLE_MAX_LENGTH: ClassVar[int] = 100
    DESCRIPTION_MIN_LENGTH: ClassVar[int] = 10
    DESCRIPTION_MAX_LENGTH: ClassVar[int] = 2000

    @classmethod
    def create(
        cls,
        ticket_id: str,
        title: str,
        description: str,
        user_id: str,
        priority: TicketPriority = TicketPriority.MEDIUM,
        category: TicketCategory = TicketCategory.GENERAL_INQUIRY,
        tags: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> "TicketEntity":
        """
        Factory method that creates a validated ticket.

        Args:
            ticket_id: Sequential id assigned by the repository
            title: Ticket title (5-100 characters)
            description: Detailed description (10-2000 characters)
            user_id: Owning user
            priority: Priority level
            category: Category
            tags: Optional free-text tags
            now: Creation time (defaults to the current UTC time)

        Returns:
            New ticket with status OPEN, no comments and no attachments,
            and created_at == updated_at

        Raises:
            ValidationError: If any field is invalid
        """
        cls.validate_title(title)
        cls.validate_description(description)
        if not user_id:
            raise ValidationError("Owning user is required", field="user_id")

        created = now or utc_now()
        ticket = cls(
            id=ticket_id,
            title=title.strip(),
            description=description.strip(),
            user_id=user_id,
            status=TicketStatus.OPEN,
            priority=priority,
            category=category,
            created_at=created,
            updated_at=created,
        )
        ticket.tags = normalize_tags(tags or [])
        return ticket

    @classmethod
    def validate_title(cls, title: str) -> None:
        if title is not None and not isinstance(title, str):
            raise ValidationError("Title must be text", field="title")
        if not title or not title.strip():
            raise ValidationError("Title is required", field="title")

        length = len(title.strip())
        if length < cls.TITLE_MIN_LENGTH:
            raise ValidationError(
                f"Title must be at least {cls.TITLE_MIN_LENGTH} characters long",
                field="title",
            )
        if length > cls.TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be at most {cls.TITLE_MAX_LENGTH} characters",
                field="title",
            )

    @classmethod
    def validate_description(cls, description: str) -> None:
        if description is not None and not isinstance(description, str):
            raise ValidationError("Description must be text", field="description")
        if not description or not description.strip():
            raise ValidationError("Description is required", field="description")

        length = len(description.strip())
        if length < cls.DESCRIPTION_MIN_LENGTH:
            raise ValidationError(
                f"Description must be at least {cls.DESCRIPTION_MIN_LENGTH} characters long",
                field="description",
            )
        if length > cls.DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                f"Description must be at most {cls.DESCRIPTION_MAX_LENGTH} characters",
                field="description",
            )

    # ------------------------------------------------------------------
    # Field updates
    # ------------------------------------------------------------------

    def change_title(self, title: str, now: Optional[datetime] = None) -> None:
        self.validate_title(title)
        self.title = title.strip()
        self.touch(now)

    def change_description(self, description: str, now: Optional[datetime] = None) -> None:
        self.validate_description(description)
        self.description = description.strip()
        self.touch(now)

    def change_priority(self, priority: TicketPriority, now: Optional[datetime] = None) -> None:
        self.priority = priority
        self.touch(now)

    def change_category(self, category: TicketCategory, now: Optional[datetime] = None) -> None:
        self.category = category
        self.touch(now)

    def assign_to(
        self,
        assignee_id: Optional[str],
        assignee_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Assign the ticket to a support agent, or unassign it with None.

        Raises:
            ValidationError: If a name is given without an id
        """
        if not assignee_id and assignee_name:
            raise ValidationError("Assignee id is required", field="assignee_id")

        self.assignee_id = assignee_id or None
        self.assignee_name = assignee_name if assignee_id else None
        self.touch(now)

    def replace_tags(self, tags: Iterable[str], now: Optional[datetime] = None) -> None:
        self.tags = normalize_tags(tags)
        self.touch(now)

    def add_tag(self, tag: str, now: Optional[datetime] = None) -> None:
        clean = tag.strip().lower()
        if clean and clean not in self.tags:
            self.tags.append(clean)
            self.touch(now)

    def remove_tag(self, tag: str, now: Optional[datetime] = None) -> None:
        clean = tag.strip().lower()
        if clean in self.tags:
            self.tags.remove(clean)
            self.touch(now)

    def set_estimated_resolution_time(
        self,
        estimate: Optional[timedelta],
        now: Optional[datetime] = None,
    ) -> None:
        if estimate is not None and estimate <= timedelta(0):
            raise ValidationError(
                "Estimated resolution time must be positive",
                field="estimated_resolution_time",
            )
        self.estimated_resolution_time = estimate
        self.touch(now)

    # ------------------------------------------------------------------
    # Comments and attachments
    # ------------------------------------------------------------------

    def append_comment(self, comment: Comment, now: Optional[datetime] = None) -> None:
        """Append a comment; comments are never reordered or removed."""
        if comment.ticket_id != self.id:
            raise BusinessRuleViolationError(
                f"Comment {comment.id} belongs to ticket {comment.ticket_id}",
                rule="comment_ticket_mismatch",
            )
        self.comments.append(comment)
        self.touch(now or comment.created_at)

    def add_attachments(
        self,
        attachments: Iterable[Attachment],
        now: Optional[datetime] = None,
    ) -> None:
        self.attachments.extend(attachments)
        self.touch(now)

    def find_attachment(self, attachment_id: str) -> Optional[Attachment]:
        for attachment in self.attachments:
            if attachment.id == attachment_id:
                return attachment
        return None

    def find_comment_attachment(self, attachment_id: str) -> Optional[Attachment]:
        for comment in self.comments:
            for attachment in comment.attachments:
                if attachment.id == attachment_id:
                    return attachment
        return None

    def remove_attachment(self, attachment_id: str, now: Optional[datetime] = None) -> Attachment:
        """
        Remove a ticket-level attachment.

        Returns:
            The removed attachment

        Raises:
            BusinessRuleViolationError: If the attachment belongs to a comment
            EntityNotFoundError: If no attachment has that id
        """
        attachment = self.find_attachment(attachment_id)
        if attachment is None:
            if self.find_comment_attachment(attachment_id) is not None:
                raise BusinessRuleViolationError(
                    "Attachments on comments cannot be deleted",
                    rule="comment_attachments_immutable",
                )
            raise EntityNotFoundError(
                f"Attachment {attachment_id} not found on ticket {self.id}",
                entity_type="Attachment",
                entity_id=attachment_id,
            )

        self.attachments.remove(attachment)
        self.touch(now)
        return attachment

    # ------------------------------------------------------------------
    # Timestamps
    # ------------------------------------------------------------------

    def touch(self, now: Optional[datetime] = None) -> None:
        """Refresh updated_at; it never moves backward."""
        moment = now or utc_now()
        if moment > self.updated_at:
            self.updated_at = moment

    @property
    def resolution_duration(self) -> Optional[timedelta]:
        """Time from creation to the first resolution, if resolved."""
        if self.resolved_at is None:
            return None
        return self.resolved_at - self.created_at

    @property
    def is_assigned(self) -> bool:
        return self.assignee_id is not None

    def __repr__(self) -> str:
        return (
            f"TicketEntity("
            f"id={self.id}, "
            f"title='{self.title[:20]}', "
            f"status={self.status.value}, "
            f"priority={self.priority.value}"
            f")"
        )

    def __eq__(self, other: object) -> bool:
        """Entity identity comparison."""
        if not isinstance(other, TicketEntity):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Trim, lower-case and deduplicate tags, keeping first-seen order."""
    result: List[str] = []
    for tag in tags:
        if tag is not None and not isinstance(tag, str):
            raise ValidationError(f"Invalid tag: {tag!r}", field="tags")
        clean = (tag or "").strip().lower()
        if clean and clean not in result:
            result.append(clean)
    return result
