"""
End-to-end integration tests.

Flow validated:
- Use Case -> Repository -> Unit of Work -> CeleryEventPublisher
- Celery dispatcher -> event handler -> notification / metric tasks

Celery runs in eager mode, so no broker is needed, but the whole task
chain is executed. Run with --run-integration.
"""

import logging

import pytest

from src.adapters.events.publishers import CeleryEventPublisher
from src.adapters.memory.unit_of_work import InMemoryUnitOfWork
from src.config import celery_app
from src.core.tickets.dtos import (
    AddCommentInputDTO,
    CreateTicketInputDTO,
    TransitionTicketInputDTO,
)
from src.core.tickets.use_cases import (
    AddCommentService,
    CreateTicketService,
    TicketStatsService,
    TransitionTicketService,
)

pytestmark = pytest.mark.integration

HANDLERS_LOGGER = "src.adapters.events.handlers"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def eager_celery():
    """Run every task inline for the duration of a test."""
    previous = {
        "task_always_eager": celery_app.conf.task_always_eager,
        "task_eager_propagates": celery_app.conf.task_eager_propagates,
    }
    celery_app.conf.update(task_always_eager=True, task_eager_propagates=True)
    yield celery_app
    celery_app.conf.update(previous)


@pytest.fixture
def celery_uow(eager_celery):
    return InMemoryUnitOfWork(event_publisher=CeleryEventPublisher(also_log=False))


@pytest.fixture
def create_service(ticket_repo, celery_uow, storage, validator, clock):
    return CreateTicketService(
        ticket_repo=ticket_repo,
        uow=celery_uow,
        storage=storage,
        validator=validator,
        clock=clock,
    )


@pytest.fixture
def transition_service(ticket_repo, celery_uow, clock):
    return TransitionTicketService(ticket_repo=ticket_repo, uow=celery_uow, clock=clock)


@pytest.fixture
def comment_service(ticket_repo, celery_uow, storage, validator, clock):
    return AddCommentService(
        ticket_repo=ticket_repo,
        uow=celery_uow,
        storage=storage,
        validator=validator,
        clock=clock,
    )


# =============================================================================
# Tests
# =============================================================================

class TestTicketLifecycleWithCelery:

    @pytest.mark.asyncio
    async def test_critical_ticket_reaches_support_team(self, create_service, caplog):
        with caplog.at_level(logging.INFO, logger=HANDLERS_LOGGER):
            output = await create_service.execute(CreateTicketInputDTO(
                title="Production database down",
                description="The main database cluster refuses all connections",
                user_id="user-1",
                priority="critical",
                category="emergency_support",
            ))

        assert "Routing TicketCreatedEvent to" in caplog.text
        assert f"Support team [high]: {output.id}" in caplog.text
        assert "[METRIC] tickets_created=1" in caplog.text

    @pytest.mark.asyncio
    async def test_resolution_and_reply_notify_customer(
        self, create_service, transition_service, comment_service, clock, caplog
    ):
        ticket = await create_service.execute(CreateTicketInputDTO(
            title="Printer offline",
            description="HP LaserJet shows offline on all machines",
            user_id="user-7",
        ))

        with caplog.at_level(logging.INFO, logger=HANDLERS_LOGGER):
            await comment_service.execute(AddCommentInputDTO(
                ticket_id=ticket.id,
                author_id="support-1",
                author_name="John Smith",
                author_role="support",
                body="Restarted the print spooler, please try again.",
            ))
            clock.advance(hours=4)
            transition_service.execute(
                TransitionTicketInputDTO(ticket_id=ticket.id, target_status="resolved")
            )

        notifications = [
            record.getMessage() for record in caplog.records
            if "[NOTIFICATION]" in record.getMessage()
        ]
        assert len(notifications) == 2
        assert all("to user-7" in message for message in notifications)
        assert "[METRIC] ticket_resolution_hours=4.0" in caplog.text

    @pytest.mark.asyncio
    async def test_stats_after_lifecycle(self, create_service, transition_service, ticket_repo, clock):
        for title in ("Printer offline", "Monitor flickers"):
            await create_service.execute(CreateTicketInputDTO(
                title=title,
                description="Hardware problem reported from the front desk",
                user_id="user-1",
                category="hardware_problems",
            ))
        clock.advance(hours=2)
        transition_service.execute(TransitionTicketInputDTO(ticket_id="TK-001", target_status="resolved"))

        stats = TicketStatsService(ticket_repo=ticket_repo, clock=clock).execute()

        assert stats.total == 2
        assert stats.to_dict()["by_status"]["resolved"] == 1
        assert stats.average_resolution_hours == 2.0
