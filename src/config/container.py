"""
Dependency Injection Container.

Configures and owns every dependency of the application, using
dependency-injector for lazy creation and explicit wiring.

Patterns:
- Singleton: one instance per app (repository, storage, publisher)
- Factory: new instance per call (use cases, UoW)
- Configuration: built-in defaults overlaid with the Django TICKETS setting
"""

from datetime import timedelta
from typing import Any, Dict, Optional
import logging

from dependency_injector import containers, providers

from src.adapters.events.publishers import get_event_publisher
from src.adapters.memory.fixtures import seed_demo_data
from src.adapters.memory.repository import InMemoryTicketRepository
from src.adapters.memory.storage import InMemoryAttachmentStorage
from src.adapters.memory.unit_of_work import InMemoryUnitOfWork
from src.core.tickets.attachments import MIB, AttachmentPolicy, AttachmentValidator
from src.core.tickets.entities import utc_now
from src.core.tickets.queries import TicketQueryEngine
from src.core.tickets.use_cases import (
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

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "max_file_size": 10 * MIB,
    "max_ticket_attachments": 5,
    "max_comment_attachments": 3,
    "default_page_size": 10,
    "max_page_size": 100,
    "recent_activity_hours": 24,
    "seed_demo_data": False,
    "storage_latency": 0.0,
    "event_publisher_mode": "sync",
}


class Container(containers.DeclarativeContainer):
    """
    Main Dependency Injection container.

    Layout:
    - Configuration: defaults + settings
    - Infrastructure: repository, storage, event publisher
    - Unit of Work: per operation
    - Services: use cases

    Example:
        container = get_container()
        service = container.transition_ticket_service()
        result = service.execute(input_dto)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    config = providers.Configuration()

    clock = providers.Object(utc_now)

    # =========================================================================
    # Domain policies
    # =========================================================================

    attachment_policy = providers.Singleton(
        AttachmentPolicy,
        max_file_size=config.max_file_size.as_int(),
        max_ticket_attachments=config.max_ticket_attachments.as_int(),
        max_comment_attachments=config.max_comment_attachments.as_int(),
    )

    attachment_validator = providers.Singleton(
        AttachmentValidator,
        policy=attachment_policy,
    )

    query_engine = providers.Singleton(
        TicketQueryEngine,
        max_page_size=config.max_page_size.as_int(),
    )

    recent_activity_window = providers.Factory(
        timedelta,
        hours=config.recent_activity_hours.as_int(),
    )

    # =========================================================================
    # Infrastructure (Singleton - one instance per app)
    # =========================================================================

    ticket_repository = providers.Singleton(InMemoryTicketRepository)

    attachment_storage = providers.Singleton(
        InMemoryAttachmentStorage,
        latency=config.storage_latency.as_float(),
    )

    event_publisher = providers.Singleton(
        get_event_publisher,
        mode=config.event_publisher_mode,
    )

    # =========================================================================
    # Unit of Work (Factory - new instance per operation)
    # =========================================================================

    unit_of_work = providers.Factory(
        InMemoryUnitOfWork,
        event_publisher=event_publisher,
    )

    # =========================================================================
    # Services / Use Cases (Factory - new instance per call)
    # =========================================================================

    create_ticket_service = providers.Factory(
        CreateTicketService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        storage=attachment_storage,
        validator=attachment_validator,
        clock=clock,
    )

    get_ticket_service = providers.Factory(
        GetTicketService,
        ticket_repo=ticket_repository,
    )

    update_ticket_service = providers.Factory(
        UpdateTicketService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        clock=clock,
    )

    transition_ticket_service = providers.Factory(
        TransitionTicketService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        clock=clock,
    )

    available_actions_service = providers.Factory(
        GetAvailableActionsService,
        ticket_repo=ticket_repository,
    )

    delete_ticket_service = providers.Factory(
        DeleteTicketService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        storage=attachment_storage,
    )

    # Read side (no UoW)
    query_tickets_service = providers.Factory(
        QueryTicketsService,
        ticket_repo=ticket_repository,
        engine=query_engine,
    )

    ticket_stats_service = providers.Factory(
        TicketStatsService,
        ticket_repo=ticket_repository,
        clock=clock,
        recent_window=recent_activity_window,
    )

    add_comment_service = providers.Factory(
        AddCommentService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        storage=attachment_storage,
        validator=attachment_validator,
        clock=clock,
    )

    upload_attachment_service = providers.Factory(
        UploadAttachmentService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        storage=attachment_storage,
        validator=attachment_validator,
        clock=clock,
    )

    delete_attachment_service = providers.Factory(
        DeleteAttachmentService,
        ticket_repo=ticket_repository,
        uow=unit_of_work,
        storage=attachment_storage,
        clock=clock,
    )


def _settings_overrides() -> Dict[str, Any]:
    """The Django TICKETS setting, with lower-cased keys."""
    from django.conf import settings

    if not settings.configured:
        return {}
    return {key.lower(): value for key, value in getattr(settings, "TICKETS", {}).items()}


def create_container(overrides: Optional[Dict[str, Any]] = None) -> Container:
    """
    Build a configured container.

    Args:
        overrides: Config values applied on top of defaults and settings

    Returns:
        Container, with demo tickets loaded when seed_demo_data is set
    """
    container = Container()
    config = dict(DEFAULT_CONFIG)
    config.update(_settings_overrides())
    config.update(overrides or {})
    container.config.from_dict(config)

    if config.get("seed_demo_data"):
        seed_demo_data(container.ticket_repository())

    logger.debug(f"Container created (publisher={config['event_publisher_mode']})")
    return container


# =============================================================================
# Global Container (Singleton)
# =============================================================================

_container: Optional[Container] = None


def get_container() -> Container:
    """
    Global container instance, created on first use.
    """
    global _container

    if _container is None:
        _container = create_container()

    return _container


def reset_container() -> None:
    """
    Drop the global container (for tests).
    """
    global _container
    _container = None
