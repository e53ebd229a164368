"""
Tickets Domain - customer support ticket lifecycle.

This package holds the business logic of support tickets:
- Entities (TicketEntity, Comment, Attachment and the closed enums)
- Status workflow (transition table and side effects)
- Attachment validation
- Query engine and statistics
- Use Cases (CreateTicket, TransitionTicket, AddComment, ...)
- Domain Events and DTOs
- Ports (repository and attachment storage)

Domain characteristics:
- Status moves only along the transition table
- First resolution wins for resolved_at
- Comments are append-only
- Events feed asynchronous side effects
"""

from .entities import (
    Attachment,
    Comment,
    CommentAuthor,
    CommentAuthorRole,
    TicketCategory,
    TicketEntity,
    TicketPriority,
    TicketStatus,
)
from .workflow import StatusTransition, TRANSITIONS
from .attachments import AttachmentPolicy, AttachmentTarget, AttachmentValidator, FileDescriptor
from .queries import (
    SortDirection,
    SortField,
    TicketFilters,
    TicketQueryEngine,
    TicketSort,
)
from .stats import TicketStats, compute_stats
from .events import (
    TicketCreatedEvent,
    TicketUpdatedEvent,
    TicketStatusChangedEvent,
    TicketDeletedEvent,
    CommentAddedEvent,
    AttachmentAddedEvent,
    AttachmentDeletedEvent,
)
from .dtos import (
    AddCommentInputDTO,
    CreateTicketInputDTO,
    DeleteAttachmentInputDTO,
    FileUploadDTO,
    PaginatedTicketsDTO,
    TicketOutputDTO,
    TransitionTicketInputDTO,
    UpdateTicketInputDTO,
    UploadAttachmentInputDTO,
)
from .ports import AttachmentStorage, TicketRepository
from .use_cases import (
    AddCommentService,
    CreateTicketService,
    DeleteAttachmentService,
    DeleteTicketService,
    GetAvailableActionsService,
    GetTicketService,
    QueryTicketsService,
    TicketStatsService,
    TransitionTicketService,
    UpdateTicketService,
    UploadAttachmentService,
)

__all__ = [
    # Entities
    "Attachment",
    "Comment",
    "CommentAuthor",
    "CommentAuthorRole",
    "TicketCategory",
    "TicketEntity",
    "TicketPriority",
    "TicketStatus",
    # Workflow
    "StatusTransition",
    "TRANSITIONS",
    # Attachments
    "AttachmentPolicy",
    "AttachmentTarget",
    "AttachmentValidator",
    "FileDescriptor",
    # Queries and stats
    "SortDirection",
    "SortField",
    "TicketFilters",
    "TicketQueryEngine",
    "TicketSort",
    "TicketStats",
    "compute_stats",
    # Events
    "TicketCreatedEvent",
    "TicketUpdatedEvent",
    "TicketStatusChangedEvent",
    "TicketDeletedEvent",
    "CommentAddedEvent",
    "AttachmentAddedEvent",
    "AttachmentDeletedEvent",
    # DTOs
    "AddCommentInputDTO",
    "CreateTicketInputDTO",
    "DeleteAttachmentInputDTO",
    "FileUploadDTO",
    "PaginatedTicketsDTO",
    "TicketOutputDTO",
    "TransitionTicketInputDTO",
    "UpdateTicketInputDTO",
    "UploadAttachmentInputDTO",
    # Ports
    "AttachmentStorage",
    "TicketRepository",
    # Use Cases
    "AddCommentService",
    "CreateTicketService",
    "DeleteAttachmentService",
    "DeleteTicketService",
    "GetAvailableActionsService",
    "GetTicketService",
    "QueryTicketsService",
    "TicketStatsService",
    "TransitionTicketService",
    "UpdateTicketService",
    "UploadAttachmentService",
]
