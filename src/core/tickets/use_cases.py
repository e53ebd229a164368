"""
Use Cases (Application Services) of the Tickets domain.

The use cases orchestrate the business logic by coordinating entities,
the repository, the attachment storage and domain events.

Use cases:
- CreateTicketService: Open a ticket, optionally with attachments
- GetTicketService: One ticket by id
- UpdateTicketService: Partial field update (status via the workflow)
- TransitionTicketService: Follow a workflow edge
- GetAvailableActionsService: Actions offered for the current status
- DeleteTicketService: Remove a ticket and its blobs
- QueryTicketsService: Filter, sort and paginate
- TicketStatsService: Dashboard counters
- AddCommentService: Append a comment with optional attachments
- UploadAttachmentService: Attach a file to a ticket
- DeleteAttachmentService: Remove a ticket-level file

Responsibilities:
- Validate input (via DTOs and entities)
- Serialize each ticket mutation through the repository
- Publish domain events after commit (via the UoW)
- Return output DTOs

Services that touch the attachment storage are coroutines. Their blob
operations run outside the UoW block, so an abandoned upload never
reaches the ticket and leaves no blob behind.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence
import asyncio
import logging
import math

from src.core.shared.interfaces import UnitOfWork
from src.core.shared.exceptions import (
    EntityNotFoundError,
    InvalidTransitionError,
    ValidationError,
)

from . import workflow
from .attachments import AttachmentTarget, AttachmentValidator
from .dtos import (
    AddCommentInputDTO,
    AttachmentOutputDTO,
    CommentOutputDTO,
    CreateTicketInputDTO,
    DeleteAttachmentInputDTO,
    FileUploadDTO,
    PaginatedTicketsDTO,
    TicketOutputDTO,
    TransitionTicketInputDTO,
    UpdateTicketInputDTO,
    UploadAttachmentInputDTO,
    parse_enum,
)
from .entities import (
    Attachment,
    Comment,
    CommentAuthor,
    CommentAuthorRole,
    TicketCategory,
    TicketEntity,
    TicketPriority,
    TicketStatus,
    normalize_tags,
    utc_now,
)
from .events import (
    AttachmentAddedEvent,
    AttachmentDeletedEvent,
    CommentAddedEvent,
    TicketCreatedEvent,
    TicketDeletedEvent,
    TicketStatusChangedEvent,
    TicketUpdatedEvent,
)
from .ports import AttachmentStorage, Clock, TicketRepository
from .queries import DEFAULT_PAGE_SIZE, TicketFilters, TicketQueryEngine, TicketSort
from .stats import RECENT_ACTIVITY_WINDOW, TicketStats, compute_stats

logger = logging.getLogger(__name__)


def _ticket_not_found(ticket_id: str) -> EntityNotFoundError:
    return EntityNotFoundError(
        f"Ticket {ticket_id} not found",
        entity_type="Ticket",
        entity_id=ticket_id,
    )


def _hours(duration: Optional[timedelta]) -> Optional[float]:
    if duration is None:
        return None
    return round(duration.total_seconds() / 3600, 2)


def _stripped(value):
    return value.strip() if isinstance(value, str) else value


async def _discard_all(storage: AttachmentStorage, urls: Iterable[str]) -> None:
    for url in urls:
        try:
            await storage.discard(url)
        except Exception as e:
            logger.error(f"Failed to discard stored blob {url}: {e}")


async def _store_uploads(
    storage: AttachmentStorage,
    ticket_id: str,
    uploads: Sequence[FileUploadDTO],
) -> List[str]:
    """
    Store uploads one by one.

    If any store fails or the caller cancels, the blobs stored so far
    are discarded before the error propagates.
    """
    urls: List[str] = []
    try:
        for upload in uploads:
            urls.append(await storage.store(ticket_id, upload))
    except (Exception, asyncio.CancelledError):
        await _discard_all(storage, urls)
        raise
    return urls


def _build_attachments(
    uploads: Sequence[FileUploadDTO],
    urls: Sequence[str],
    now: datetime,
) -> List[Attachment]:
    return [
        Attachment.create(
            file_name=upload.file_name,
            file_size=int(upload.size),
            content_type=upload.content_type,
            url=url,
            now=now,
        )
        for upload, url in zip(uploads, urls)
    ]


class CreateTicketService:
    """
    Use Case: Create a new ticket.

    Flow:
    1. Validate fields and attachments
    2. Reserve the next id and store the attachment blobs
    3. Create the entity and add it to the repository
    4. Publish TicketCreatedEvent
    5. Return the output DTO

    Example:
        service = CreateTicketService(ticket_repo, uow, storage, validator)
        output = await service.execute(CreateTicketInputDTO(
            title="Printer offline",
            description="HP LaserJet shows offline on all machines",
            user_id="user-1",
            category="hardware_problems",
        ))
        print(output.id)  # TK-004
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        uow: UnitOfWork,
        storage: AttachmentStorage,
        validator: AttachmentValidator,
        clock: Clock = utc_now,
    ):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.storage = storage
        self.validator = validator
        self.clock = clock

    async def execute(self, input_dto: CreateTicketInputDTO) -> TicketOutputDTO:
        """
        Raises:
            ValidationError: If a field is invalid
            AttachmentRejectedError: If any attachment rule fails
            TransientFailureError: If the storage fails
        """
        priority = parse_enum(TicketPriority, input_dto.priority, "priority")
        category = parse_enum(TicketCategory, input_dto.category, "category")
        TicketEntity.validate_title(input_dto.title)
        TicketEntity.validate_description(input_dto.description)
        if not input_dto.user_id:
            raise ValidationError("Owning user is required", field="user_id")
        tags = normalize_tags(input_dto.tags)

        uploads = list(input_dto.attachments)
        result = self.validator.validate(
            [upload.descriptor for upload in uploads],
            target=AttachmentTarget.TICKET,
        )
        if not result.accepted:
            logger.warning(f"New ticket rejected: {', '.join(result.codes)}")
            result.raise_if_rejected()

        ticket_id = self.ticket_repo.next_id()
        urls = await _store_uploads(self.storage, ticket_id, uploads)

        try:
            with self.uow:
                now = self.clock()
                ticket = TicketEntity.create(
                    ticket_id=ticket_id,
                    title=input_dto.title,
                    description=input_dto.description,
                    user_id=input_dto.user_id,
                    priority=priority,
                    category=category,
                    tags=tags,
                    now=now,
                )
                if urls:
                    ticket.add_attachments(_build_attachments(uploads, urls, now), now)

                self.ticket_repo.add(ticket)

                self.uow.publish_event(
                    TicketCreatedEvent(
                        aggregate_id=ticket.id,
                        user_id=ticket.user_id,
                        title=ticket.title,
                        priority=ticket.priority.value,
                        category=ticket.category.value,
                        attachment_count=len(ticket.attachments),
                    )
                )
        except Exception:
            await _discard_all(self.storage, urls)
            raise

        logger.info(f"Ticket {ticket.id} created ({ticket.priority.value}, {ticket.category.value})")
        return TicketOutputDTO.from_entity(ticket)


class GetTicketService:
    """
    Use Case: Details of one ticket.
    """

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(self, ticket_id: str, include_internal: bool = True) -> TicketOutputDTO:
        """
        Args:
            ticket_id: Ticket id
            include_internal: Keep internal comments in the output

        Raises:
            EntityNotFoundError: If the ticket does not exist
        """
        ticket = self.ticket_repo.get(ticket_id)
        if ticket is None:
            raise _ticket_not_found(ticket_id)
        return TicketOutputDTO.from_entity(ticket, include_internal=include_internal)


class UpdateTicketService:
    """
    Use Case: Partial update of a ticket.

    Plain fields are changed directly on the entity. A "status" entry
    that differs from the current status is routed through the workflow,
    after the other fields, so an illegal move rejects the whole update.

    Publishes TicketUpdatedEvent for field changes and
    TicketStatusChangedEvent for a status move.
    """

    def __init__(self, ticket_repo: TicketRepository, uow: UnitOfWork, clock: Clock = utc_now):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.clock = clock

    def execute(self, input_dto: UpdateTicketInputDTO) -> TicketOutputDTO:
        """
        Raises:
            ValidationError: If a value is invalid or nothing is given
            EntityNotFoundError: If the ticket does not exist
            InvalidTransitionError: If the status move is illegal
        """
        changes = dict(input_dto.changes)
        if not changes:
            raise ValidationError("No fields to update")

        priority = (
            parse_enum(TicketPriority, changes["priority"], "priority")
            if "priority" in changes else None
        )
        category = (
            parse_enum(TicketCategory, changes["category"], "category")
            if "category" in changes else None
        )
        status = (
            parse_enum(TicketStatus, changes["status"], "status")
            if "status" in changes else None
        )
        estimate = (
            self._parse_estimate(changes["estimated_resolution_time"])
            if "estimated_resolution_time" in changes else None
        )

        def apply(ticket: TicketEntity):
            now = self.clock()
            changed: List[str] = []
            previous_priority = ticket.priority
            previous_status = ticket.status

            if "title" in changes and _stripped(changes["title"]) != ticket.title:
                ticket.change_title(changes["title"], now)
                changed.append("title")
            if "description" in changes and _stripped(changes["description"]) != ticket.description:
                ticket.change_description(changes["description"], now)
                changed.append("description")
            if priority is not None and priority != ticket.priority:
                ticket.change_priority(priority, now)
                changed.append("priority")
            if category is not None and category != ticket.category:
                ticket.change_category(category, now)
                changed.append("category")
            if "assignee_id" in changes or "assignee_name" in changes:
                assignee_id = changes.get("assignee_id", ticket.assignee_id)
                assignee_name = changes.get("assignee_name", ticket.assignee_name)
                if (assignee_id, assignee_name) != (ticket.assignee_id, ticket.assignee_name):
                    ticket.assign_to(assignee_id, assignee_name, now)
                    changed.append("assignee")
            if "tags" in changes:
                before = list(ticket.tags)
                tags = changes["tags"] or []
                if isinstance(tags, str):
                    tags = tags.split(",")
                elif not isinstance(tags, (list, tuple)):
                    raise ValidationError("tags must be a list", field="tags")
                ticket.replace_tags(tags, now)
                if ticket.tags != before:
                    changed.append("tags")
            if "estimated_resolution_time" in changes:
                if estimate != ticket.estimated_resolution_time:
                    ticket.set_estimated_resolution_time(estimate, now)
                    changed.append("estimated_resolution_time")

            edge = None
            if status is not None and status != ticket.status:
                edge = workflow.transition(ticket, status, now)

            return changed, previous_priority, previous_status, edge

        with self.uow:
            try:
                ticket, (changed, previous_priority, previous_status, edge) = (
                    self.ticket_repo.mutate(input_dto.ticket_id, apply)
                )
            except InvalidTransitionError as e:
                logger.warning(f"Ticket {input_dto.ticket_id} update rejected: {e.message}")
                raise

            if changed:
                priority_changed = "priority" in changed
                self.uow.publish_event(
                    TicketUpdatedEvent(
                        aggregate_id=ticket.id,
                        changed_fields=changed,
                        changed_by=input_dto.changed_by,
                        previous_priority=previous_priority.value if priority_changed else None,
                        new_priority=ticket.priority.value if priority_changed else None,
                    )
                )
            if edge is not None:
                self.uow.publish_event(
                    TicketStatusChangedEvent(
                        aggregate_id=ticket.id,
                        previous_status=previous_status.value,
                        new_status=ticket.status.value,
                        action=edge.label,
                        user_id=ticket.user_id,
                        changed_by=input_dto.changed_by,
                        resolution_hours=_hours(ticket.actual_resolution_time),
                    )
                )

        logger.info(
            f"Ticket {ticket.id} updated: {', '.join(changed) or 'no field changes'}"
            + (f", status -> {ticket.status.value}" if edge else "")
        )
        return TicketOutputDTO.from_entity(ticket)

    @staticmethod
    def _parse_estimate(value) -> Optional[timedelta]:
        """Accepts a timedelta, a finite number of hours, or None."""
        if value is None or isinstance(value, timedelta):
            return value
        try:
            hours = float(value)
            if not math.isfinite(hours):
                raise ValueError(value)
            return timedelta(hours=hours)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError(
                f"Invalid estimated resolution time: {value!r}",
                field="estimated_resolution_time",
            )


class TransitionTicketService:
    """
    Use Case: Move a ticket along the status workflow.

    Flow:
    1. Parse the requested status
    2. Apply the transition under the ticket's lock
    3. Publish TicketStatusChangedEvent
    4. Return the updated ticket
    """

    def __init__(self, ticket_repo: TicketRepository, uow: UnitOfWork, clock: Clock = utc_now):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.clock = clock

    def execute(self, input_dto: TransitionTicketInputDTO) -> TicketOutputDTO:
        """
        Raises:
            ValidationError: If the status value is unknown
            EntityNotFoundError: If the ticket does not exist
            InvalidTransitionError: If the move is not an edge of the
                current status; the ticket is left unchanged
        """
        target = parse_enum(TicketStatus, input_dto.target_status, "status")

        def apply(ticket: TicketEntity):
            previous = ticket.status
            return previous, workflow.transition(ticket, target, self.clock())

        with self.uow:
            try:
                ticket, (previous, edge) = self.ticket_repo.mutate(input_dto.ticket_id, apply)
            except InvalidTransitionError as e:
                logger.warning(f"Ticket {input_dto.ticket_id}: {e.message}")
                raise

            self.uow.publish_event(
                TicketStatusChangedEvent(
                    aggregate_id=ticket.id,
                    previous_status=previous.value,
                    new_status=ticket.status.value,
                    action=edge.label,
                    user_id=ticket.user_id,
                    changed_by=input_dto.changed_by,
                    resolution_hours=_hours(ticket.actual_resolution_time),
                )
            )

        logger.info(f"Ticket {ticket.id}: {previous.value} -> {ticket.status.value} ({edge.label})")
        return TicketOutputDTO.from_entity(ticket)


class GetAvailableActionsService:
    """
    Use Case: Actions a caller may offer for a ticket.

    Derived from the transition table on every call.
    """

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(self, ticket_id: str) -> List[workflow.StatusTransition]:
        ticket = self.ticket_repo.get(ticket_id)
        if ticket is None:
            raise _ticket_not_found(ticket_id)
        return workflow.available_transitions(ticket.status)


class DeleteTicketService:
    """
    Use Case: Remove a ticket.

    The blobs of every attachment (ticket and comment level) are
    discarded after the ticket is gone.
    """

    def __init__(self, ticket_repo: TicketRepository, uow: UnitOfWork, storage: AttachmentStorage):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.storage = storage

    async def execute(self, ticket_id: str, deleted_by: Optional[str] = None) -> None:
        """
        Raises:
            EntityNotFoundError: If the ticket does not exist
        """
        with self.uow:
            ticket = self.ticket_repo.delete(ticket_id)
            urls = [attachment.url for attachment in ticket.attachments]
            for comment in ticket.comments:
                urls.extend(attachment.url for attachment in comment.attachments)

            self.uow.publish_event(
                TicketDeletedEvent(
                    aggregate_id=ticket.id,
                    deleted_by=deleted_by,
                    discarded_attachments=len(urls),
                )
            )

        await _discard_all(self.storage, urls)
        logger.info(f"Ticket {ticket_id} deleted ({len(urls)} attachments discarded)")


class QueryTicketsService:
    """
    Use Case: Filtered, sorted and paginated ticket listing.

    Read-only: works on a repository snapshot and does not use the UoW.
    """

    def __init__(self, ticket_repo: TicketRepository, engine: Optional[TicketQueryEngine] = None):
        self.ticket_repo = ticket_repo
        self.engine = engine or TicketQueryEngine()

    def execute(
        self,
        filters: Optional[TicketFilters] = None,
        sort: Optional[TicketSort] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> PaginatedTicketsDTO:
        """
        Raises:
            ValidationError: On invalid pagination
        """
        self.engine.validate_page(page, page_size)
        result = self.engine.run(self.ticket_repo.list_all(), filters, sort, page, page_size)
        return PaginatedTicketsDTO(
            items=[TicketOutputDTO.from_entity(ticket) for ticket in result.items],
            total=result.total,
            page=result.page,
            page_size=result.page_size,
        )


class TicketStatsService:
    """
    Use Case: Dashboard statistics, recomputed from a snapshot on each call.
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        clock: Clock = utc_now,
        recent_window: timedelta = RECENT_ACTIVITY_WINDOW,
    ):
        self.ticket_repo = ticket_repo
        self.clock = clock
        self.recent_window = recent_window

    def execute(self) -> TicketStats:
        return compute_stats(self.ticket_repo.list_all(), self.clock(), self.recent_window)


class AddCommentService:
    """
    Use Case: Append a comment to a ticket.

    Flow:
    1. Check the ticket exists and the body is 1-1000 characters
    2. Validate the attachments against the comment limits
    3. Store the blobs (cancellable)
    4. Append the comment under the ticket's lock
    5. Publish CommentAddedEvent

    Any failure after step 3 discards the stored blobs, so the ticket's
    comment list and updated_at stay as they were.
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        uow: UnitOfWork,
        storage: AttachmentStorage,
        validator: AttachmentValidator,
        clock: Clock = utc_now,
    ):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.storage = storage
        self.validator = validator
        self.clock = clock

    async def execute(self, input_dto: AddCommentInputDTO) -> CommentOutputDTO:
        """
        Raises:
            EntityNotFoundError: If the ticket does not exist
            ValidationError: If the body is empty or too long
            AttachmentRejectedError: If any attachment rule fails
            TransientFailureError: If the storage fails
        """
        if not self.ticket_repo.exists(input_dto.ticket_id):
            raise _ticket_not_found(input_dto.ticket_id)

        try:
            Comment.validate_body(input_dto.body)
        except ValidationError as e:
            logger.warning(f"Comment on {input_dto.ticket_id} rejected: {e.message}")
            raise
        role = parse_enum(CommentAuthorRole, input_dto.author_role, "author_role")
        author = CommentAuthor(
            author_id=input_dto.author_id,
            name=input_dto.author_name,
            role=role,
        )

        uploads = list(input_dto.attachments)
        result = self.validator.validate(
            [upload.descriptor for upload in uploads],
            target=AttachmentTarget.COMMENT,
        )
        if not result.accepted:
            logger.warning(
                f"Comment on {input_dto.ticket_id} rejected: {', '.join(result.codes)}"
            )
            result.raise_if_rejected()

        urls = await _store_uploads(self.storage, input_dto.ticket_id, uploads)

        def apply(ticket: TicketEntity) -> Comment:
            now = self.clock()
            comment = Comment.create(
                ticket_id=ticket.id,
                author=author,
                body=input_dto.body,
                is_internal=input_dto.is_internal,
                attachments=_build_attachments(uploads, urls, now),
                now=now,
            )
            ticket.append_comment(comment, now)
            return comment

        try:
            with self.uow:
                ticket, comment = self.ticket_repo.mutate(input_dto.ticket_id, apply)
                self.uow.publish_event(
                    CommentAddedEvent(
                        aggregate_id=ticket.id,
                        comment_id=comment.id,
                        author_id=comment.author_id,
                        author_role=comment.author_role.value,
                        user_id=ticket.user_id,
                        is_internal=comment.is_internal,
                        preview=CommentAddedEvent.make_preview(comment.body),
                        attachment_count=len(comment.attachments),
                    )
                )
        except Exception:
            await _discard_all(self.storage, urls)
            raise

        logger.info(
            f"Comment {comment.id} added to {ticket.id} by {comment.author_role.value} "
            f"({len(comment.attachments)} attachments)"
        )
        return CommentOutputDTO.from_entity(comment)


class UploadAttachmentService:
    """
    Use Case: Attach a file directly to a ticket.

    The file is validated against a snapshot before the blob is stored,
    then validated again under the ticket's lock, since another upload
    may have landed while the blob was being written.
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        uow: UnitOfWork,
        storage: AttachmentStorage,
        validator: AttachmentValidator,
        clock: Clock = utc_now,
    ):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.storage = storage
        self.validator = validator
        self.clock = clock

    def _check(self, ticket: TicketEntity, upload: FileUploadDTO) -> None:
        result = self.validator.validate_one(
            upload.descriptor,
            existing=ticket.attachments,
            target=AttachmentTarget.TICKET,
        )
        if not result.accepted:
            logger.warning(f"Upload to {ticket.id} rejected: {', '.join(result.codes)}")
            result.raise_if_rejected()

    async def execute(self, input_dto: UploadAttachmentInputDTO) -> AttachmentOutputDTO:
        """
        Raises:
            EntityNotFoundError: If the ticket does not exist
            AttachmentRejectedError: If any attachment rule fails
            TransientFailureError: If the storage fails
        """
        snapshot = self.ticket_repo.get(input_dto.ticket_id)
        if snapshot is None:
            raise _ticket_not_found(input_dto.ticket_id)
        self._check(snapshot, input_dto.file)

        url = await self.storage.store(input_dto.ticket_id, input_dto.file)

        def apply(ticket: TicketEntity) -> Attachment:
            self._check(ticket, input_dto.file)
            now = self.clock()
            attachment = _build_attachments([input_dto.file], [url], now)[0]
            ticket.add_attachments([attachment], now)
            return attachment

        try:
            with self.uow:
                ticket, attachment = self.ticket_repo.mutate(input_dto.ticket_id, apply)
                self.uow.publish_event(
                    AttachmentAddedEvent(
                        aggregate_id=ticket.id,
                        attachment_id=attachment.id,
                        file_name=attachment.file_name,
                        file_size=attachment.file_size,
                        content_type=attachment.content_type,
                        uploaded_by=input_dto.uploaded_by,
                    )
                )
        except Exception:
            await _discard_all(self.storage, [url])
            raise

        logger.info(f"Attachment {attachment.id} ({attachment.file_name}) added to {ticket.id}")
        return AttachmentOutputDTO.from_entity(attachment)


class DeleteAttachmentService:
    """
    Use Case: Remove a ticket-level attachment.

    Attachments on comments cannot be removed. The blob is discarded
    after the ticket no longer references it.
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        uow: UnitOfWork,
        storage: AttachmentStorage,
        clock: Clock = utc_now,
    ):
        self.ticket_repo = ticket_repo
        self.uow = uow
        self.storage = storage
        self.clock = clock

    async def execute(self, input_dto: DeleteAttachmentInputDTO) -> None:
        """
        Raises:
            EntityNotFoundError: If the ticket or the attachment does not exist
            BusinessRuleViolationError: If the attachment is on a comment
        """
        with self.uow:
            ticket, attachment = self.ticket_repo.mutate(
                input_dto.ticket_id,
                lambda ticket: ticket.remove_attachment(input_dto.attachment_id, self.clock()),
            )
            self.uow.publish_event(
                AttachmentDeletedEvent(
                    aggregate_id=ticket.id,
                    attachment_id=attachment.id,
                    file_name=attachment.file_name,
                    deleted_by=input_dto.deleted_by,
                )
            )

        await _discard_all(self.storage, [attachment.url])
        logger.info(f"Attachment {attachment.id} removed from {ticket.id}")
