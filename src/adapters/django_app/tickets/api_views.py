"""
JSON API views of the Tickets domain.

Thin driving adapter: parses the request, calls one use case and
serializes the result. No business rules live here.

Endpoints:
- GET    /tickets/api/                               - Query tickets
- POST   /tickets/api/                               - Create ticket
- GET    /tickets/api/stats/                         - Statistics
- GET    /tickets/api/<id>/                          - Get ticket
- PATCH  /tickets/api/<id>/                          - Partial update
- DELETE /tickets/api/<id>/                          - Delete ticket
- POST   /tickets/api/<id>/transition/               - Change status
- GET    /tickets/api/<id>/actions/                  - Available actions
- POST   /tickets/api/<id>/comments/                 - Add comment
- POST   /tickets/api/<id>/attachments/              - Upload attachment
- DELETE /tickets/api/<id>/attachments/<att_id>/     - Delete attachment

Format:
- Input: JSON
- Output: JSON envelope {success, data/error, meta}

Identity:
- Optional X-User-Id / X-User-Name / X-User-Role headers; anonymous
  customer otherwise
"""

from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any, Dict, FrozenSet, List, Optional, Type
import base64
import binascii
import json
import logging

from asgiref.sync import async_to_sync
from django.http import HttpRequest, JsonResponse
from django.utils.dateparse import parse_date, parse_datetime
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from src.config.container import get_container
from src.core.shared.exceptions import (
    AttachmentRejectedError,
    BusinessRuleViolationError,
    DomainException,
    EntityNotFoundError,
    InvalidTransitionError,
    TransientFailureError,
    ValidationError,
)
from src.core.tickets.dtos import (
    AddCommentInputDTO,
    CreateTicketInputDTO,
    DeleteAttachmentInputDTO,
    FileUploadDTO,
    TransitionTicketInputDTO,
    UpdateTicketInputDTO,
    UploadAttachmentInputDTO,
    parse_enum,
)
from src.core.tickets.entities import (
    CommentAuthorRole,
    TicketCategory,
    TicketPriority,
    TicketStatus,
)
from src.core.tickets.queries import SortDirection, SortField, TicketFilters, TicketSort

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def json_response(success: bool, data: Any = None, error: str = None,
                  status: int = 200, meta: Dict = None) -> JsonResponse:
    """
    Build the standard JSON envelope.

    Args:
        success: Whether the operation succeeded
        data: Response payload
        error: Error message, if any
        status: HTTP status code
        meta: Extra metadata (pagination, error details)
    """
    response = {'success': success}

    if data is not None:
        response['data'] = data

    if error is not None:
        response['error'] = error

    if meta is not None:
        response['meta'] = meta

    return JsonResponse(response, status=status)


def parse_json_body(request: HttpRequest) -> Dict:
    """
    Raises:
        ValidationError: If the body is not a JSON object
    """
    if not request.body:
        return {}

    try:
        data = json.loads(request.body)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}")

    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@dataclass(frozen=True)
class Caller:
    user_id: str
    name: str
    role: CommentAuthorRole

    @property
    def is_staff(self) -> bool:
        return self.role != CommentAuthorRole.CUSTOMER


ANONYMOUS = Caller(user_id='anonymous', name='Anonymous', role=CommentAuthorRole.CUSTOMER)


def get_caller(request: HttpRequest) -> Caller:
    """Caller identity from the X-User-* headers."""
    user_id = request.headers.get('X-User-Id')
    if not user_id:
        return ANONYMOUS

    role_header = request.headers.get('X-User-Role') or 'customer'
    return Caller(
        user_id=user_id,
        name=request.headers.get('X-User-Name') or user_id,
        role=parse_enum(CommentAuthorRole, role_header, 'role'),
    )


def parse_upload(raw: Any) -> FileUploadDTO:
    """
    Build an upload from {file_name, size, content_type, content?}.

    content is optional base64; when present and size is missing, the
    decoded length is used.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Each attachment must be an object", field='attachments')

    content = None
    if raw.get('content'):
        try:
            content = base64.b64decode(raw['content'], validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(
                f"Attachment \"{raw.get('file_name')}\" has invalid base64 content",
                field='attachments',
            )

    size = raw.get('size')
    if size is None and content is not None:
        size = len(content)
    try:
        size = int(size)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Attachment \"{raw.get('file_name')}\" needs a numeric size",
            field='attachments',
        )

    return FileUploadDTO(
        file_name=raw.get('file_name') or '',
        size=size,
        content_type=raw.get('content_type') or '',
        content=content,
    )


def parse_uploads(raw: Any) -> tuple:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError("attachments must be a list", field='attachments')
    return tuple(parse_upload(item) for item in raw)


def parse_tags(raw: Any) -> tuple:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError("tags must be a list", field='tags')
    return tuple(raw)


def _multi(request: HttpRequest, name: str) -> List[str]:
    """Repeated (?status=a&status=b) or comma separated (?status=a,b) values."""
    values = []
    for raw in request.GET.getlist(name):
        values.extend(part.strip() for part in raw.split(',') if part.strip())
    return values


def _enum_set(request: HttpRequest, name: str, enum_cls: Type) -> FrozenSet:
    return frozenset(parse_enum(enum_cls, value, name) for value in _multi(request, name))


def _parse_moment(value: Optional[str], field: str, end_of_day: bool = False) -> Optional[datetime]:
    if not value:
        return None

    moment = parse_datetime(value)
    if moment is None:
        day = parse_date(value)
        if day is None:
            raise ValidationError(f"Invalid date: {value!r}", field=field)
        moment = datetime.combine(day, time.max if end_of_day else time.min)

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _parse_int(value: Optional[str], field: str, default: int) -> int:
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{field} must be an integer", field=field)


# =============================================================================
# Base API View
# =============================================================================

@method_decorator(csrf_exempt, name='dispatch')
class BaseAPIView(View):
    """
    Base view for the JSON API.

    Provides:
    - JSON parsing
    - Access to the DI container
    - Uniform error mapping
    """

    def get_container(self):
        return get_container()

    def get_service(self, service_name: str):
        return getattr(self.get_container(), service_name)()

    def parse_body(self, request: HttpRequest) -> Dict:
        return parse_json_body(request)

    def handle_exception(self, e: Exception) -> JsonResponse:
        """
        Map an exception to an error response.

        400 validation, 404 not found, 422 rejected attachments and
        business rules, 503 transient failures, 500 anything else.
        """
        if isinstance(e, ValidationError):
            return json_response(
                success=False,
                error=str(e),
                status=400,
                meta={'field': e.field}
            )

        if isinstance(e, AttachmentRejectedError):
            return json_response(
                success=False,
                error=str(e),
                status=422,
                meta={'reasons': [reason.to_dict() for reason in e.reasons]}
            )

        if isinstance(e, EntityNotFoundError):
            return json_response(
                success=False,
                error=str(e),
                status=404,
                meta={'entity_type': e.entity_type, 'entity_id': e.entity_id}
            )

        if isinstance(e, InvalidTransitionError):
            return json_response(
                success=False,
                error=str(e),
                status=422,
                meta={'rule': e.rule, 'allowed': list(e.allowed)}
            )

        if isinstance(e, BusinessRuleViolationError):
            return json_response(
                success=False,
                error=str(e),
                status=422,
                meta={'rule': e.rule}
            )

        if isinstance(e, TransientFailureError):
            return json_response(
                success=False,
                error=str(e),
                status=503,
                meta={'retryable': e.retryable}
            )

        if isinstance(e, DomainException):
            return json_response(
                success=False,
                error=str(e),
                status=400
            )

        logger.exception(f"Unexpected API error: {e}")
        return json_response(
            success=False,
            error="Internal server error",
            status=500
        )


# =============================================================================
# Ticket API Views
# =============================================================================

class TicketAPIListView(BaseAPIView):
    """
    GET /tickets/api/ - Query tickets
    POST /tickets/api/ - Create ticket
    """

    def get(self, request: HttpRequest) -> JsonResponse:
        """
        Query params:
        - status, priority, category: repeated or comma separated
        - search: free text
        - created_from, created_to: ISO date or datetime (inclusive)
        - sort: created_at|updated_at|priority|status|title
        - direction: asc|desc
        - page, page_size
        """
        try:
            container = self.get_container()
            filters = TicketFilters(
                statuses=_enum_set(request, 'status', TicketStatus),
                priorities=_enum_set(request, 'priority', TicketPriority),
                categories=_enum_set(request, 'category', TicketCategory),
                search=request.GET.get('search') or None,
                created_from=_parse_moment(request.GET.get('created_from'), 'created_from'),
                created_to=_parse_moment(
                    request.GET.get('created_to'), 'created_to', end_of_day=True
                ),
            )
            sort = TicketSort(
                field=SortField.from_string(request.GET.get('sort') or 'created_at'),
                direction=SortDirection.from_string(request.GET.get('direction') or 'desc'),
            )
            page = _parse_int(request.GET.get('page'), 'page', 1)
            page_size = _parse_int(
                request.GET.get('page_size'),
                'page_size',
                container.config.default_page_size(),
            )

            result = self.get_service('query_tickets_service').execute(
                filters, sort, page, page_size
            )

            return json_response(
                success=True,
                data=[item.to_dict() for item in result.items],
                meta={
                    'total': result.total,
                    'page': result.page,
                    'page_size': result.page_size,
                    'total_pages': result.total_pages,
                    'has_more': result.has_more,
                }
            )

        except Exception as e:
            return self.handle_exception(e)

    def post(self, request: HttpRequest) -> JsonResponse:
        """
        Body JSON:
        {
            "title": "string (5-100)",
            "description": "string (10-2000)",
            "priority": "low|medium|high|critical",
            "category": "network_issues|...|general_inquiry",
            "tags": ["string"],
            "attachments": [{"file_name", "size", "content_type", "content"}]
        }
        """
        try:
            data = self.parse_body(request)
            caller = get_caller(request)

            input_dto = CreateTicketInputDTO(
                title=data.get('title', ''),
                description=data.get('description', ''),
                user_id=caller.user_id,
                priority=data.get('priority', 'medium'),
                category=data.get('category', 'general_inquiry'),
                tags=parse_tags(data.get('tags')),
                attachments=parse_uploads(data.get('attachments')),
            )

            output = async_to_sync(self.get_service('create_ticket_service').execute)(input_dto)

            logger.info(f"API: ticket created {output.id}")
            return json_response(success=True, data=output.to_dict(), status=201)

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIStatsView(BaseAPIView):
    """GET /tickets/api/stats/"""

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            stats = self.get_service('ticket_stats_service').execute()
            return json_response(success=True, data=stats.to_dict())
        except Exception as e:
            return self.handle_exception(e)


class TicketAPIDetailView(BaseAPIView):
    """
    GET /tickets/api/<id>/ - Get ticket
    PATCH /tickets/api/<id>/ - Partial update
    DELETE /tickets/api/<id>/ - Delete ticket
    """

    def get(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            caller = get_caller(request)
            ticket = self.get_service('get_ticket_service').execute(
                pk, include_internal=caller.is_staff
            )
            return json_response(success=True, data=ticket.to_dict())
        except Exception as e:
            return self.handle_exception(e)

    def patch(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body JSON: any of title, description, priority, category, status,
        assignee_id, assignee_name, tags, estimated_resolution_time (hours).
        """
        try:
            data = self.parse_body(request)
            input_dto = UpdateTicketInputDTO(
                ticket_id=pk,
                changes=data,
                changed_by=get_caller(request).user_id,
            )
            output = self.get_service('update_ticket_service').execute(input_dto)
            return json_response(success=True, data=output.to_dict())
        except Exception as e:
            return self.handle_exception(e)

    def delete(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            service = self.get_service('delete_ticket_service')
            async_to_sync(service.execute)(pk, deleted_by=get_caller(request).user_id)
            logger.info(f"API: ticket deleted {pk}")
            return json_response(success=True, data={'id': pk, 'deleted': True})
        except Exception as e:
            return self.handle_exception(e)


class TicketAPITransitionView(BaseAPIView):
    """POST /tickets/api/<id>/transition/ with {"status": "<target>"}"""

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            data = self.parse_body(request)
            if not data.get('status'):
                raise ValidationError("status is required", field='status')

            output = self.get_service('transition_ticket_service').execute(
                TransitionTicketInputDTO(
                    ticket_id=pk,
                    target_status=data['status'],
                    changed_by=get_caller(request).user_id,
                )
            )
            return json_response(success=True, data=output.to_dict())
        except Exception as e:
            return self.handle_exception(e)


class TicketAPIActionsView(BaseAPIView):
    """GET /tickets/api/<id>/actions/"""

    def get(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actions = self.get_service('available_actions_service').execute(pk)
            return json_response(success=True, data=[action.to_dict() for action in actions])
        except Exception as e:
            return self.handle_exception(e)


class TicketAPICommentsView(BaseAPIView):
    """
    POST /tickets/api/<id>/comments/

    Body JSON:
    {
        "body": "string (1-1000)",
        "is_internal": false,
        "attachments": [...]
    }
    """

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            data = self.parse_body(request)
            caller = get_caller(request)

            input_dto = AddCommentInputDTO(
                ticket_id=pk,
                author_id=caller.user_id,
                author_name=caller.name,
                author_role=caller.role.value,
                body=data.get('body', ''),
                # Customers cannot post internal notes
                is_internal=bool(data.get('is_internal')) and caller.is_staff,
                attachments=parse_uploads(data.get('attachments')),
            )

            output = async_to_sync(self.get_service('add_comment_service').execute)(input_dto)
            return json_response(success=True, data=output.to_dict(), status=201)
        except Exception as e:
            return self.handle_exception(e)


class TicketAPIAttachmentsView(BaseAPIView):
    """POST /tickets/api/<id>/attachments/ with one file descriptor."""

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            data = self.parse_body(request)
            input_dto = UploadAttachmentInputDTO(
                ticket_id=pk,
                file=parse_upload(data),
                uploaded_by=get_caller(request).user_id,
            )
            service = self.get_service('upload_attachment_service')
            output = async_to_sync(service.execute)(input_dto)
            return json_response(success=True, data=output.to_dict(), status=201)
        except Exception as e:
            return self.handle_exception(e)


class TicketAPIAttachmentDetailView(BaseAPIView):
    """DELETE /tickets/api/<id>/attachments/<attachment_id>/"""

    def delete(self, request: HttpRequest, pk: str, attachment_id: str) -> JsonResponse:
        try:
            service = self.get_service('delete_attachment_service')
            async_to_sync(service.execute)(
                DeleteAttachmentInputDTO(
                    ticket_id=pk,
                    attachment_id=attachment_id,
                    deleted_by=get_caller(request).user_id,
                )
            )
            return json_response(success=True, data={'id': attachment_id, 'deleted': True})
        except Exception as e:
            return self.handle_exception(e)
