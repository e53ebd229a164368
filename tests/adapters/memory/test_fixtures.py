"""
Tests for the demo tickets.
"""

from datetime import timedelta

from src.adapters.memory.fixtures import demo_tickets, seed_demo_data
from src.core.tickets.entities import TicketStatus


class TestDemoTickets:

    def test_three_tickets_in_different_stages(self):
        tickets = demo_tickets()

        assert [t.id for t in tickets] == ["TK-001", "TK-002", "TK-003"]
        assert [t.status for t in tickets] == [
            TicketStatus.IN_PROGRESS,
            TicketStatus.OPEN,
            TicketStatus.RESOLVED,
        ]

    def test_resolved_ticket_has_resolution_time(self):
        resolved = demo_tickets()[2]

        assert resolved.actual_resolution_time == resolved.resolved_at - resolved.created_at
        assert resolved.actual_resolution_time == timedelta(hours=17, minutes=35)

    def test_seed_is_idempotent(self, ticket_repo):
        assert seed_demo_data(ticket_repo) == 3
        assert seed_demo_data(ticket_repo) == 0
        assert ticket_repo.count() == 3
        assert ticket_repo.next_id() == "TK-004"
